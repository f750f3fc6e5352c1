"""
Tests for loading and normalizing swim observations
"""
import numpy as np
import pandas as pd
import pytest

from swimratio.data.loader import SwimDataSpec, load_swim_df, validate_observations
from swimratio.data.prep import anchor_times, filter_ages, prepare
from swimratio.errors import DataIntegrityError


def _two_age_df() -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"Age": 35, "Sex": "M", "TimeSec": 900.0},
            {"Age": 35, "Sex": "M", "TimeSec": 1100.0},
            {"Age": 35, "Sex": "F", "TimeSec": 1100.0},
            {"Age": 30, "Sex": "M", "TimeSec": 1200.0},
            {"Age": 30, "Sex": "F", "TimeSec": 1210.0},
        ]
    )


class TestPrepare:
    """Ratio normalization against the age-35 anchor"""

    def test_male_ratio_uses_male_anchor(self):
        out = prepare(_two_age_df())
        row = out.loc[(out["Age"] == 30) & (out["Sex"] == "M")].iloc[0]
        assert row["age35"] == 1000.0
        assert row["Ratio"] == pytest.approx(1.2)

    def test_female_ratio_uses_female_anchor(self):
        out = prepare(_two_age_df())
        row = out.loc[(out["Age"] == 30) & (out["Sex"] == "F")].iloc[0]
        assert row["Ratio"] == pytest.approx(1210.0 / 1100.0)
        assert row["Female"] == 1

    def test_anchor_rows_average_to_one(self):
        out = prepare(_two_age_df())
        at35 = out.loc[out["Age"] == 35].groupby("Sex")["Ratio"].mean()
        assert at35["M"] == pytest.approx(1.0)
        assert at35["F"] == pytest.approx(1.0)

    def test_deterministic(self, raw_swim_df):
        a = prepare(raw_swim_df)
        b = prepare(raw_swim_df.copy())
        np.testing.assert_array_equal(a["Ratio"].to_numpy(), b["Ratio"].to_numpy())

    def test_missing_anchor_is_an_error(self):
        df = _two_age_df()
        df = df.loc[~((df["Age"] == 35) & (df["Sex"] == "F"))]
        with pytest.raises(DataIntegrityError, match="age 35"):
            prepare(df)

    def test_no_rows_in_range_is_an_error(self):
        df = pd.DataFrame([{"Age": 20, "Sex": "M", "TimeSec": 1000.0}])
        with pytest.raises(DataIntegrityError):
            prepare(df)


class TestFilterAges:
    """Age range and 5-year step"""

    def test_keeps_only_multiples_of_five_in_range(self):
        df = pd.DataFrame({"Age": [25, 29, 30, 33, 35, 80, 81, 85], "Sex": "M", "TimeSec": 1000.0})
        assert filter_ages(df)["Age"].tolist() == [30, 35, 80]

    def test_anchor_times_per_sex(self):
        assert anchor_times(_two_age_df()) == {"F": 1100.0, "M": 1000.0}


class TestValidateObservations:
    """Malformed rows are rejected, not dropped"""

    def test_normalizes_sex_codes(self):
        df = pd.DataFrame({"Age": ["35", 40], "Sex": [" m", "F "], "TimeSec": ["1000", 1100]})
        out = validate_observations(df)
        assert out["Sex"].tolist() == ["M", "F"]
        assert out["Age"].tolist() == [35, 40]
        assert out["TimeSec"].dtype == float

    def test_non_numeric_time(self):
        df = pd.DataFrame({"Age": [35, 40], "Sex": ["M", "M"], "TimeSec": [1000, "DNF"]})
        with pytest.raises(DataIntegrityError, match="TimeSec"):
            validate_observations(df)

    def test_non_positive_time(self):
        df = pd.DataFrame({"Age": [35], "Sex": ["M"], "TimeSec": [0.0]})
        with pytest.raises(DataIntegrityError, match="TimeSec"):
            validate_observations(df)

    def test_unknown_sex(self):
        df = pd.DataFrame({"Age": [35], "Sex": ["X"], "TimeSec": [1000.0]})
        with pytest.raises(DataIntegrityError, match="Sex"):
            validate_observations(df)

    def test_fractional_age(self):
        df = pd.DataFrame({"Age": [35.5], "Sex": ["M"], "TimeSec": [1000.0]})
        with pytest.raises(DataIntegrityError, match="Age"):
            validate_observations(df)

    def test_missing_column(self):
        with pytest.raises(DataIntegrityError, match="TimeSec"):
            validate_observations(pd.DataFrame({"Age": [35], "Sex": ["M"]}))


class TestLoadSwimDf:
    def test_reads_csv(self, tmp_path, raw_swim_df):
        path = tmp_path / "swim.csv"
        raw_swim_df.to_csv(path, index=False)
        df = load_swim_df(SwimDataSpec(path=path))
        assert len(df) == len(raw_swim_df)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_swim_df(SwimDataSpec(path=tmp_path / "nope.csv"))

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.csv"
        path.write_text("")
        with pytest.raises(DataIntegrityError, match="empty"):
            load_swim_df(SwimDataSpec(path=path))

    def test_header_only(self, tmp_path):
        path = tmp_path / "header.csv"
        path.write_text("Age,Sex,TimeSec\n")
        with pytest.raises(DataIntegrityError, match="too small"):
            load_swim_df(SwimDataSpec(path=path))
