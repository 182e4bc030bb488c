"""Unit tests for config loader."""

from pathlib import Path

import pytest

from config.loader import AlignerConfig, ConfigLoader, FullConfig, OutputConfig, TwvConfig, load_full_config
from src.kws.errors import ConfigError, KwsError


@pytest.fixture
def loader(tmp_path: Path) -> ConfigLoader:
    return ConfigLoader(base_dir=tmp_path)


class TestPresets:
    """Bundled presets."""

    @pytest.mark.unit
    def test_default_preset(self, loader: ConfigLoader, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("KWS_AUDIO_DURATION", raising=False)
        config = loader.load_preset("default")
        assert config["aligner"]["max_distance"] == 50
        assert config["twv"]["prior_probability"] == pytest.approx(1e-4)
        assert config["twv"]["audio_duration"] is None
        assert loader.validate(config) == []

    @pytest.mark.unit
    def test_audio_duration_from_environment(self, loader: ConfigLoader, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KWS_AUDIO_DURATION", "3600.5")
        config = loader.load_preset("default")
        assert config["twv"]["audio_duration"] == 3600.5

    @pytest.mark.unit
    def test_alias(self, loader: ConfigLoader) -> None:
        config = loader.load_preset("kws15")
        assert config["twv"]["sweep_step"] == pytest.approx(0.01)
        assert config["output"]["decision_threshold"] == pytest.approx(0.5)

    @pytest.mark.unit
    def test_invalid_preset(self, loader: ConfigLoader) -> None:
        with pytest.raises(ConfigError, match="Invalid preset"):
            loader.load_preset("nonexistent")

    @pytest.mark.unit
    def test_presets_exist(self, config_path: Path) -> None:
        for name in ("default", "babel"):
            assert (config_path / "presets" / f"{name}.yaml").exists()


class TestConfigLoader:
    """Loading, merging, validation and dataclass conversion."""

    @pytest.mark.unit
    def test_missing_file(self, loader: ConfigLoader) -> None:
        with pytest.raises(FileNotFoundError):
            loader.load("missing.yaml")

    @pytest.mark.unit
    def test_relative_path_uses_base_dir(self, loader: ConfigLoader, tmp_path: Path) -> None:
        (tmp_path / "mine.yaml").write_text("aligner:\n  max_distance: 20\n")
        assert loader.load("mine.yaml") == {"aligner": {"max_distance": 20}}

    @pytest.mark.unit
    def test_env_var_inside_text(self, loader: ConfigLoader, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KWS_TAG", "dev")
        (tmp_path / "env.yaml").write_text("output:\n  name: run-${KWS_TAG}\n  other: ${KWS_UNSET_VAR}\n")
        config = loader.load("env.yaml")
        assert config["output"]["name"] == "run-dev"
        assert config["output"]["other"] == "${KWS_UNSET_VAR}"

    @pytest.mark.unit
    def test_merge(self, loader: ConfigLoader) -> None:
        base = {"twv": {"cost_fa": 0.1, "sweep_step": 0.05}, "aligner": {"max_distance": 50}}
        merged = loader.merge(base, {"twv": {"sweep_step": 0.01}})
        assert merged == {"twv": {"cost_fa": 0.1, "sweep_step": 0.01}, "aligner": {"max_distance": 50}}
        assert base["twv"]["sweep_step"] == 0.05

    @pytest.mark.unit
    def test_load_and_merge(self, loader: ConfigLoader, tmp_path: Path) -> None:
        override = tmp_path / "override.yaml"
        override.write_text("twv:\n  audio_duration: 7200\n")
        config = loader.load_and_merge("default", override)
        assert config["twv"]["audio_duration"] == 7200
        assert config["twv"]["cost_fa"] == pytest.approx(0.1)

    @pytest.mark.unit
    def test_validate_reports_issues(self, loader: ConfigLoader) -> None:
        config = {
            "aligner": {"max_distance": -5},
            "twv": {"value_corr": 0, "prior_probability": 1.5, "sweep_step": 0, "audio_duration": -1},
            "output": {"frames_per_sec": 0},
        }
        issues = loader.validate(config)
        assert len(issues) == 6
        assert any("prior_probability" in issue for issue in issues)

    @pytest.mark.unit
    def test_validate_non_numeric_values(self, loader: ConfigLoader) -> None:
        config = {
            "aligner": {"max_distance": True},
            "twv": {"cost_fa": "high", "sweep_step": None},
            "output": {"frames_per_sec": "fast", "decision_threshold": "half"},
        }
        issues = loader.validate(config)
        assert "twv.cost_fa must be a number, got 'high'" in issues
        assert "twv.sweep_step must be a number, got None" in issues
        assert "aligner.max_distance must be an integer >= 0" in issues
        assert "output.frames_per_sec must be a number > 0" in issues
        assert "output.decision_threshold must be null or a number" in issues
        assert len(issues) == 5

    @pytest.mark.unit
    def test_validate_section_type(self, loader: ConfigLoader) -> None:
        assert loader.validate({"twv": [1, 2]}) == ["Section 'twv' must be a mapping"]

    @pytest.mark.unit
    def test_to_dataclass_ignores_unknown_fields(self, loader: ConfigLoader) -> None:
        config = loader.to_dataclass({"aligner": {"max_distance": 30, "bogus": 1}, "twv": {"audio_duration": 60}})
        assert config.aligner == AlignerConfig(max_distance=30)
        assert config.twv.audio_duration == 60
        assert config.output == OutputConfig()

    @pytest.mark.unit
    def test_load_full_config(self) -> None:
        config = load_full_config("babel")
        assert isinstance(config, FullConfig)
        assert config.twv.sweep_step == pytest.approx(0.01)

    @pytest.mark.unit
    def test_load_full_config_from_path(self, tmp_path: Path) -> None:
        config_file = tmp_path / "scoring.yaml"
        config_file.write_text("aligner:\n  max_distance: 20\n")
        override = tmp_path / "override.yaml"
        override.write_text("twv:\n  sweep_step: 0.1\n")

        config = load_full_config(str(config_file), override)
        assert config.aligner.max_distance == 20
        assert config.twv.sweep_step == pytest.approx(0.1)

    @pytest.mark.unit
    def test_load_full_config_rejects_invalid(self, tmp_path: Path) -> None:
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("twv:\n  cost_fa: high\n")

        with pytest.raises(ConfigError, match="twv.cost_fa must be a number") as excinfo:
            load_full_config(str(config_file))
        assert isinstance(excinfo.value, KwsError)


class TestOptionsConversion:
    """Dataclasses feed the aligner and the TWV engine."""

    @pytest.mark.unit
    def test_twv_options(self) -> None:
        opts = TwvConfig(audio_duration=3600, sweep_step=0.1).to_options()
        assert opts.audio_duration == 3600.0
        assert opts.sweep_step == 0.1
        assert opts.validate() == []

    @pytest.mark.unit
    def test_aligner_options(self) -> None:
        assert AlignerConfig(max_distance=25).to_options().max_distance == 25

    @pytest.mark.unit
    def test_decision_threshold_falls_back_to_score_threshold(self) -> None:
        config = FullConfig(twv=TwvConfig(score_threshold=0.3))
        assert config.decision_threshold == 0.3
        config.output.decision_threshold = 0.7
        assert config.decision_threshold == 0.7
