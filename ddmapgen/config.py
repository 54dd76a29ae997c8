"""
Configuration Module

Immutable pipeline configuration and the settings loader.

Values are resolved in this order, the last one winning:

  1. built-in defaults (constants.py)
  2. YAML settings file (--config FILE or DDMAPGEN_CONFIG)
  3. environment variables (e.g. DDMAPGEN_SIMPLIFY_TOLERANCE=2.0)
  4. explicit command-line arguments
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .constants import (
    DEFAULT_BACKGROUND_LABEL,
    DEFAULT_CLASSIFICATION_RULES,
    DEFAULT_COLOR_TOLERANCE,
    DEFAULT_CONNECTIVITY,
    DEFAULT_DOOR_CONTACT_DISTANCE,
    DEFAULT_DOOR_MAX_ASPECT,
    DEFAULT_DOOR_MAX_AREA,
    DEFAULT_MIN_REGION_PIXELS,
    DEFAULT_SCALE,
    DEFAULT_SIMPLIFY_RETRIES,
    DEFAULT_SIMPLIFY_TOLERANCE,
    DEFAULT_WORKERS,
    ENV_CONFIG_PATH,
    ENV_PREFIX,
    MAX_WORKERS,
    VALID_CONNECTIVITY,
    Role,
)
from .errors import ConfigError

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]


def parse_color(value: Any) -> RGB:
    """
    Parse a colour given as "#rrggbb", "rrggbb" or a 3-item sequence.

    Args:
        value: Colour value from a settings file or rule dict

    Returns:
        (r, g, b) tuple of ints in 0-255
    """
    if isinstance(value, str):
        text = value.strip().lstrip("#")
        if len(text) != 6:
            raise ConfigError(f"Invalid colour: {value!r}")
        try:
            return tuple(int(text[i:i + 2], 16) for i in (0, 2, 4))
        except ValueError:
            raise ConfigError(f"Invalid colour: {value!r}") from None

    try:
        channels = [int(c) for c in value]
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid colour: {value!r}") from None

    if len(channels) != 3 or any(c < 0 or c > 255 for c in channels):
        raise ConfigError(f"Invalid colour: {value!r}")
    return tuple(channels)


@dataclass(frozen=True)
class ClassificationRule:
    """Maps a colour range to a region label (and optionally a role)."""
    label: str
    color: RGB
    tolerance: float = DEFAULT_COLOR_TOLERANCE
    role: Optional[str] = None
    border_is_background: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClassificationRule":
        if "label" not in data or "color" not in data:
            raise ConfigError(f"Classification rule needs 'label' and 'color': {dict(data)}")

        role = data.get("role")
        if role is not None and role not in Role.ALL:
            raise ConfigError(f"Unknown role {role!r} for rule {data['label']!r}")

        tolerance = float(data.get("tolerance", DEFAULT_COLOR_TOLERANCE))
        if tolerance < 0:
            raise ConfigError(f"Negative tolerance for rule {data['label']!r}")

        return cls(
            label=str(data["label"]),
            color=parse_color(data["color"]),
            tolerance=tolerance,
            role=role,
            border_is_background=bool(data.get("border_is_background", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "color": list(self.color),
            "tolerance": self.tolerance,
            "role": self.role,
            "border_is_background": self.border_is_background,
        }


def default_rules() -> Tuple[ClassificationRule, ...]:
    return tuple(ClassificationRule.from_dict(r) for r in DEFAULT_CLASSIFICATION_RULES)


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration threaded through every pipeline stage."""
    rules: Tuple[ClassificationRule, ...] = field(default_factory=default_rules)
    background_label: str = DEFAULT_BACKGROUND_LABEL
    min_region_pixels: int = DEFAULT_MIN_REGION_PIXELS
    connectivity: int = DEFAULT_CONNECTIVITY
    simplify_tolerance: float = DEFAULT_SIMPLIFY_TOLERANCE
    simplify_retries: int = DEFAULT_SIMPLIFY_RETRIES
    scale: float = DEFAULT_SCALE
    door_max_area: float = DEFAULT_DOOR_MAX_AREA
    door_max_aspect: float = DEFAULT_DOOR_MAX_ASPECT
    door_contact_distance: float = DEFAULT_DOOR_CONTACT_DISTANCE
    workers: int = DEFAULT_WORKERS

    def __post_init__(self):
        validate_config(self)

    def rule_for(self, label: str) -> Optional[ClassificationRule]:
        """Return the first rule producing `label`, if any."""
        for rule in self.rules:
            if rule.label == label:
                return rule
        return None

    def with_overrides(self, **overrides) -> "PipelineConfig":
        """Return a copy with the given non-None options replaced."""
        values = {k: v for k, v in overrides.items() if v is not None}
        if not values:
            return self
        return replace(self, **values)


# Options that may be set from a settings file or the environment
SCALAR_OPTIONS = {
    "background_label": str,
    "min_region_pixels": int,
    "connectivity": int,
    "simplify_tolerance": float,
    "simplify_retries": int,
    "scale": float,
    "door_max_area": float,
    "door_max_aspect": float,
    "door_contact_distance": float,
    "workers": int,
}


def validate_config(config: PipelineConfig) -> None:
    """
    Check option ranges.

    Raises:
        ConfigError: naming the first invalid option
    """
    if config.connectivity not in VALID_CONNECTIVITY:
        raise ConfigError(f"connectivity must be 4 or 8, got {config.connectivity}")
    if not config.rules:
        raise ConfigError("At least one classification rule is required")
    if config.min_region_pixels < 1:
        raise ConfigError(f"min_region_pixels must be >= 1, got {config.min_region_pixels}")
    if config.simplify_tolerance < 0:
        raise ConfigError(f"simplify_tolerance must be >= 0, got {config.simplify_tolerance}")
    if config.simplify_retries < 1:
        raise ConfigError(f"simplify_retries must be >= 1, got {config.simplify_retries}")
    if config.scale <= 0:
        raise ConfigError(f"scale must be > 0, got {config.scale}")
    if config.door_max_area < 0 or config.door_max_aspect < 1:
        raise ConfigError("door_max_area must be >= 0 and door_max_aspect >= 1")
    if not 1 <= config.workers <= MAX_WORKERS:
        raise ConfigError(f"workers must be between 1 and {MAX_WORKERS}, got {config.workers}")

    labels = [r.label for r in config.rules]
    if config.background_label in labels:
        raise ConfigError(
            f"background_label {config.background_label!r} is also a rule label"
        )


def _coerce(name: str, value: Any) -> Any:
    try:
        return SCALAR_OPTIONS[name](value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {name}: {value!r}") from None


def config_from_dict(data: Mapping[str, Any], base: Optional[PipelineConfig] = None) -> PipelineConfig:
    """
    Build a config from a settings mapping, starting from `base`.

    Args:
        data: Parsed settings (e.g. from YAML)
        base: Config supplying values for missing keys (defaults if None)

    Returns:
        New PipelineConfig
    """
    base = base or PipelineConfig()
    values: Dict[str, Any] = {}

    for key, value in data.items():
        if key == "rules":
            if not isinstance(value, list):
                raise ConfigError("'rules' must be a list of rule mappings")
            values["rules"] = tuple(ClassificationRule.from_dict(r) for r in value)
        elif key in SCALAR_OPTIONS:
            values[key] = _coerce(key, value)
        else:
            logger.warning(f"Ignoring unknown setting: {key}")

    return replace(base, **values)


def load_settings_file(path: str) -> Dict[str, Any]:
    """
    Read a YAML settings file.

    Returns:
        Settings mapping (empty for an empty file)
    """
    settings_path = Path(path)
    if not settings_path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with open(settings_path, encoding="utf-8") as f:
            settings = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse config file {path}: {e}") from e

    if settings is None:
        return {}
    if not isinstance(settings, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")

    # settings.yaml nests pipeline options under 'pipeline'
    return settings.get("pipeline", settings)


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Collect DDMAPGEN_<OPTION> scalar overrides from the environment."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for name in SCALAR_OPTIONS:
        env_name = f"{ENV_PREFIX}{name.upper()}"
        if env_name in environ:
            overrides[name] = _coerce(name, environ[env_name])
    return overrides


def load_config(
    config_path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PipelineConfig:
    """
    Resolve the effective configuration.

    Args:
        config_path: Settings file (falls back to DDMAPGEN_CONFIG)
        overrides: Explicit option values (None values are ignored)
        environ: Environment mapping (os.environ if None)

    Returns:
        Effective PipelineConfig
    """
    environ = os.environ if environ is None else environ
    config = PipelineConfig()

    config_path = config_path or environ.get(ENV_CONFIG_PATH)
    if config_path:
        logger.debug(f"Loading settings from {config_path}")
        config = config_from_dict(load_settings_file(config_path), config)

    env_values = env_overrides(environ)
    if env_values:
        logger.debug(f"Environment overrides: {env_values}")
        config = replace(config, **env_values)

    if overrides:
        config = config.with_overrides(**overrides)

    return config


def config_to_dict(config: PipelineConfig) -> Dict[str, Any]:
    """Plain mapping of a config (for logging and settings round trips)."""
    data: Dict[str, Any] = {}
    for f in fields(config):
        value = getattr(config, f.name)
        if f.name == "rules":
            value = [r.to_dict() for r in value]
        data[f.name] = value
    return data
