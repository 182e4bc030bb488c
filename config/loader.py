"""
YAML configuration loader with validation for kws_twv_scorer

Provides:
- ConfigLoader: Main loader class with load, load_preset, merge, validate methods
- Dataclasses for type-safe config access
- Environment variable substitution
- Configuration validation
"""

import dataclasses
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from src.evaluation.twv import TwvMetricsOptions
from src.kws.aligner import KwsTermsAlignerOptions
from src.kws.errors import ConfigError

logger = logging.getLogger(__name__)

# =============================================================================
# DATACLASS CONFIGURATION STRUCTURES
# =============================================================================


@dataclass
class AlignerConfig:
    """Reference/hypothesis alignment parameters."""

    max_distance: int = 50  # frames between ref and hyp centers

    def to_options(self) -> KwsTermsAlignerOptions:
        return KwsTermsAlignerOptions(max_distance=int(self.max_distance))


@dataclass
class TwvConfig:
    """TWV cost model (Babel KWS15 eval plan names)."""

    cost_fa: float = 0.1
    value_corr: float = 1.0
    prior_probability: float = 1e-4
    score_threshold: float = 0.5
    sweep_step: float = 0.05
    audio_duration: Optional[float] = None  # seconds, no default

    def to_options(self) -> TwvMetricsOptions:
        return TwvMetricsOptions(
            cost_fa=float(self.cost_fa),
            value_corr=float(self.value_corr),
            prior_probability=float(self.prior_probability),
            score_threshold=float(self.score_threshold),
            sweep_step=float(self.sweep_step),
            audio_duration=None if self.audio_duration is None else float(self.audio_duration),
        )


@dataclass
class OutputConfig:
    """Alignment CSV export settings."""

    frames_per_sec: float = 100.0
    decision_threshold: Optional[float] = None  # None = twv.score_threshold


@dataclass
class FullConfig:
    """Complete configuration container."""

    aligner: AlignerConfig = field(default_factory=AlignerConfig)
    twv: TwvConfig = field(default_factory=TwvConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    @property
    def decision_threshold(self) -> float:
        if self.output.decision_threshold is None:
            return float(self.twv.score_threshold)
        return float(self.output.decision_threshold)


# =============================================================================
# CONFIGURATION LOADER
# =============================================================================


class ConfigLoader:
    """
    Main configuration loader class.

    Provides:
    - load(path): Load config from YAML file
    - load_preset(name): Load preset config
    - merge(base, override): Merge two configs
    - validate(config): Validate configuration
    """

    VALID_PRESETS = {"default", "babel", "kws15"}
    PRESET_ALIASES = {
        "kws15": "babel",
    }

    SECTION_CLASSES = {
        "aligner": AlignerConfig,
        "twv": TwvConfig,
        "output": OutputConfig,
    }

    TWV_DEFAULTS = {
        "cost_fa": 0.1,
        "value_corr": 1.0,
        "prior_probability": 1e-4,
        "score_threshold": 0.5,
        "sweep_step": 0.05,
    }

    def __init__(self, base_dir: Optional[Path] = None):
        """
        Initialize ConfigLoader.

        Args:
            base_dir: Base directory for resolving relative config paths.
                     Defaults to current working directory.
        """
        self.base_dir = base_dir or Path.cwd()
        self.presets_dir = Path(__file__).parent / "presets"

    def load(self, path: Union[str, Path]) -> Dict[str, Any]:
        """
        Load configuration from YAML file.

        Args:
            path: Path to YAML config file

        Returns:
            Dictionary with configuration data

        Raises:
            FileNotFoundError: If config file doesn't exist
            yaml.YAMLError: If YAML is invalid
        """
        path = Path(path)
        if not path.is_absolute():
            path = self.base_dir / path

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r") as f:
            raw_config = yaml.safe_load(f) or {}

        return self._process_config(raw_config)

    def load_preset(self, name: str) -> Dict[str, Any]:
        """
        Load a preset configuration by name.

        Args:
            name: Preset name (default, babel)

        Raises:
            ConfigError: If preset name is invalid
            FileNotFoundError: If preset file doesn't exist
        """
        canonical_name = self.PRESET_ALIASES.get(name, name)

        if canonical_name not in {"default", "babel"}:
            raise ConfigError(f"Invalid preset '{name}'. Valid presets: {', '.join(sorted(self.VALID_PRESETS))}")

        return self.load(self.presets_dir / f"{canonical_name}.yaml")

    def merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge two configurations, with override taking precedence.

        Nested dictionaries are merged recursively.
        Lists are replaced (not merged).
        """
        result = self._deep_copy_dict(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self.merge(result[key], value)
            else:
                result[key] = value

        return result

    def load_and_merge(self, preset_name: str, override_path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
        """Load preset and optionally merge with override config."""
        base_config = self.load_preset(preset_name)

        if override_path is not None:
            override_config = self.load(override_path)
            return self.merge(base_config, override_config)

        return base_config

    def validate(self, config: Dict[str, Any]) -> List[str]:
        """
        Validate configuration and return list of issues.

        A missing ``twv.audio_duration`` is not reported here: it is often
        supplied on the command line after loading.

        Returns:
            List of validation issues (empty if valid)
        """
        issues = []

        for section in self.SECTION_CLASSES:
            if section in config and not isinstance(config[section], dict):
                issues.append(f"Section '{section}' must be a mapping")
        if issues:
            return issues

        if "aligner" in config:
            al = config["aligner"]
            max_distance = al.get("max_distance", 0)
            if not isinstance(max_distance, int) or isinstance(max_distance, bool) or max_distance < 0:
                issues.append("aligner.max_distance must be an integer >= 0")

        if "twv" in config:
            tw = config["twv"]
            numeric = {name: tw.get(name, default) for name, default in self.TWV_DEFAULTS.items()}
            for name, value in numeric.items():
                if not _is_number(value):
                    issues.append(f"twv.{name} must be a number, got {value!r}")
            if _is_number(numeric["cost_fa"]) and numeric["cost_fa"] < 0:
                issues.append("twv.cost_fa must be >= 0")
            if _is_number(numeric["value_corr"]) and numeric["value_corr"] <= 0:
                issues.append("twv.value_corr must be > 0")
            if _is_number(numeric["prior_probability"]) and not 0 < numeric["prior_probability"] < 1:
                issues.append("twv.prior_probability must be in (0, 1)")
            if _is_number(numeric["sweep_step"]) and numeric["sweep_step"] <= 0:
                issues.append("twv.sweep_step must be > 0")
            duration = tw.get("audio_duration")
            if duration is not None and (not _is_number(duration) or duration <= 0):
                issues.append("twv.audio_duration must be null or > 0")

        if "output" in config:
            out = config["output"]
            frames_per_sec = out.get("frames_per_sec", 100.0)
            if not _is_number(frames_per_sec) or frames_per_sec <= 0:
                issues.append("output.frames_per_sec must be a number > 0")
            threshold = out.get("decision_threshold")
            if threshold is not None and not _is_number(threshold):
                issues.append("output.decision_threshold must be null or a number")

        return issues

    def to_dataclass(self, config: Dict[str, Any]) -> FullConfig:
        """
        Convert dictionary config to FullConfig dataclass.

        Unknown keys are dropped with a warning.
        """
        result: Dict[str, Any] = {}

        for section_name, section_class in self.SECTION_CLASSES.items():
            if section_name in config:
                section_data = config[section_name] or {}
                valid_fields = {f.name for f in dataclasses.fields(section_class)}
                filtered = {k: v for k, v in section_data.items() if k in valid_fields}
                if len(filtered) < len(section_data):
                    unknown = set(section_data) - valid_fields
                    logger.warning(f"Config section '{section_name}' has unknown fields (ignored): {unknown}")
                result[section_name] = section_class(**filtered)

        unknown_sections = set(config) - set(self.SECTION_CLASSES)
        if unknown_sections:
            logger.warning(f"Unknown config sections (ignored): {unknown_sections}")
        return FullConfig(**result)

    # =========================================================================
    # PRIVATE METHODS
    # =========================================================================

    def _process_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Substitute environment variables throughout the config tree."""
        if not isinstance(config, dict):
            return config  # type: ignore[unreachable]

        result = {}
        for key, value in config.items():
            if isinstance(value, str):
                value = self._substitute_env_vars(value)
            elif isinstance(value, dict):
                value = self._process_config(value)
            elif isinstance(value, list):
                value = [self._substitute_env_vars(v) if isinstance(v, str) else v for v in value]
            result[key] = value

        return result

    def _substitute_env_vars(self, value: str) -> Any:
        """
        Substitute environment variables in string.

        Supports ${VAR} and ${VAR:-default} syntax. When the whole string was
        a reference, the substituted text is re-read as a YAML scalar so that
        numbers and ``null`` keep their type.
        """
        pattern = r"\$\{([^}:]+)(?::-([^}]*))?\}"

        def replacer(match):
            var_name = match.group(1)
            default = match.group(2)

            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            elif default is not None:
                return default
            else:
                # Leave unresolved if no default
                return match.group(0)

        substituted = re.sub(pattern, replacer, value)
        if substituted != value and re.fullmatch(pattern, value.strip()):
            return yaml.safe_load(substituted)
        return substituted

    def _deep_copy_dict(self, d: Dict[str, Any]) -> Dict[str, Any]:
        """Create deep copy of dictionary."""
        result = {}
        for key, value in d.items():
            if isinstance(value, dict):
                result[key] = self._deep_copy_dict(value)
            elif isinstance(value, list):
                result[key] = list(value)  # type: ignore[assignment]  # shallow copy for lists
            else:
                result[key] = value
        return result


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

_default_loader: Optional[ConfigLoader] = None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def get_default_loader() -> ConfigLoader:
    """Get or create default ConfigLoader instance."""
    global _default_loader
    if _default_loader is None:
        _default_loader = ConfigLoader()
    return _default_loader


def load_full_config(config: str = "default", override_path: Optional[Union[str, Path]] = None) -> FullConfig:
    """
    Load and validate complete configuration as dataclass.

    Args:
        config: Preset name (default, babel, kws15) or path to a YAML file
        override_path: Optional path to override YAML

    Returns:
        FullConfig dataclass instance

    Raises:
        FileNotFoundError: If a config file doesn't exist
        ConfigError: If the preset is unknown or the configuration is invalid
    """
    loader = get_default_loader()
    if config in ConfigLoader.VALID_PRESETS:
        config_dict = loader.load_and_merge(config, override_path)
    else:
        config_dict = loader.load(config)
        if override_path is not None:
            config_dict = loader.merge(config_dict, loader.load(override_path))

    issues = loader.validate(config_dict)
    if issues:
        raise ConfigError("Invalid configuration: " + "; ".join(issues))
    return loader.to_dataclass(config_dict)
