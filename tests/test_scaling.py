"""
Tests for per-replicate standardization
"""
import numpy as np
import pandas as pd
import pytest

from swimratio.errors import ModelFitFailed
from swimratio.modeling.scaling import fit_scale, standardize, to_ratio


class TestStandardize:
    def test_scaled_columns_have_zero_mean_unit_sd(self, swim_df):
        scale = fit_scale(swim_df)
        z = standardize(swim_df, scale)
        for col in ("zAge", "zRatio"):
            assert z[col].mean() == pytest.approx(0.0, abs=1e-12)
            assert z[col].std(ddof=1) == pytest.approx(1.0, rel=1e-12)

    def test_interaction_is_zero_for_men(self, swim_df):
        z = standardize(swim_df, fit_scale(swim_df))
        men = z.loc[z["Female"] == 0]
        women = z.loc[z["Female"] == 1]
        assert (men["zAgeF"] == 0.0).all()
        np.testing.assert_allclose(women["zAgeF"], women["zAge"])

    def test_same_params_reused_for_new_rows(self, swim_df):
        scale = fit_scale(swim_df)
        grid = pd.DataFrame({"Age": [35, 84], "Female": [0, 1]})
        z = standardize(grid, scale)
        assert "zRatio" not in z.columns
        assert z["zAge"].iloc[0] == pytest.approx((35 - scale.age_mean) / scale.age_sd)

    def test_back_transform_recovers_ratio(self, swim_df):
        scale = fit_scale(swim_df)
        z = standardize(swim_df, scale)
        np.testing.assert_allclose(to_ratio(z["zRatio"], scale), swim_df["Ratio"], rtol=1e-12)

    def test_single_age_cannot_be_scaled(self, swim_df):
        one_age = swim_df.loc[swim_df["Age"] == 35]
        with pytest.raises(ModelFitFailed, match="Age"):
            fit_scale(one_age)
