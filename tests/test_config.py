"""
Tests for configuration loading
"""
import json

import pytest

from swimratio.config import BootstrapConfig, ReplicateConfig, config_from_dict, load_config
from swimratio.errors import ModelFitFailed


class TestConfig:
    def test_defaults(self):
        config = BootstrapConfig()
        assert config.n_replicates == 10
        assert config.interval == (2.5, 97.5)
        assert config.replicate.cv_folds == 5
        assert config.replicate.test_fraction == 0.2
        assert config.replicate.grid_ages == tuple(range(35, 85))

    def test_overlay_keeps_unset_values(self):
        config = config_from_dict({"n_replicates": 50, "replicate": {"poly": {"degree": 4}}})
        assert config.n_replicates == 50
        assert config.replicate.poly.degree == 4
        assert config.replicate.spline.degrees_of_freedom == 4
        assert config.base_seed == 1

    def test_unknown_keys(self):
        with pytest.raises(ValueError):
            config_from_dict({"replicates": 5})
        with pytest.raises(ValueError):
            config_from_dict({"replicate": {"folds": 3}})

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            BootstrapConfig(on_failure="ignore")
        with pytest.raises(ValueError):
            BootstrapConfig(interval=(97.5, 2.5))
        with pytest.raises(ValueError):
            ReplicateConfig(cv_folds=1)

    def test_load_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"base_seed": 42, "interval": [5, 95], "replicate": {"grid_ages": [35, 40]}}))
        config = load_config(path)
        assert config.base_seed == 42
        assert config.interval == (5.0, 95.0)
        assert config.replicate.grid_ages == (35, 40)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.json")


class TestErrors:
    def test_model_fit_failed_pickles(self):
        import pickle

        e = ModelFitFailed("spline", "singular design matrix", replicate=4)
        back = pickle.loads(pickle.dumps(e))
        assert back.model == "spline"
        assert back.replicate == 4
        assert str(back) == str(e)
