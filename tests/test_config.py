"""
Configuration Tests

Tests for the settings loader, precedence rules and validation.
"""

import sys
import tempfile
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "scripts"))

from ddmapgen.config import (
    ClassificationRule,
    PipelineConfig,
    config_from_dict,
    config_to_dict,
    env_overrides,
    load_config,
    load_settings_file,
    parse_color,
)
from ddmapgen.constants import (
    DEFAULT_CONNECTIVITY,
    DEFAULT_MIN_REGION_PIXELS,
    DEFAULT_SCALE,
    DEFAULT_SIMPLIFY_TOLERANCE,
)
from ddmapgen.errors import ConfigError

SETTINGS_PATH = project_root / "config" / "settings.yaml"


def write_settings(tmpdir: str, text: str) -> str:
    path = Path(tmpdir) / "settings.yaml"
    path.write_text(text)
    return str(path)


def test_defaults():
    """Test built-in defaults."""
    config = PipelineConfig()

    assert config.connectivity == DEFAULT_CONNECTIVITY
    assert config.min_region_pixels == DEFAULT_MIN_REGION_PIXELS
    assert config.simplify_tolerance == DEFAULT_SIMPLIFY_TOLERANCE
    assert config.scale == DEFAULT_SCALE
    assert [r.label for r in config.rules] == ["wall", "floor"]
    assert config.rule_for("wall").role == "wall"
    assert config.rule_for("door") is None

    print("  [PASS] Defaults")
    return True


def test_shipped_settings_match_defaults():
    """Test config/settings.yaml documents the built-in defaults."""
    config = load_config(str(SETTINGS_PATH), environ={})

    assert config_to_dict(config) == config_to_dict(PipelineConfig())

    print("  [PASS] Shipped settings match defaults")
    return True


def test_parse_color():
    """Test colour parsing."""
    assert parse_color("#ff8000") == (255, 128, 0)
    assert parse_color("000000") == (0, 0, 0)
    assert parse_color([1, 2, 3]) == (1, 2, 3)

    for bad in ("#12345", "zzzzzz", [1, 2], [0, 0, 300], None):
        try:
            parse_color(bad)
            assert False, f"Should reject {bad!r}"
        except ConfigError:
            pass

    print("  [PASS] Colour parsing")
    return True


def test_rule_from_dict():
    """Test rule parsing and validation."""
    rule = ClassificationRule.from_dict({"label": "door", "color": "#ff0000", "tolerance": 40})

    assert rule.color == (255, 0, 0)
    assert rule.tolerance == 40.0
    assert rule.role is None
    assert not rule.border_is_background

    for bad in ({"label": "x"}, {"label": "x", "color": "#000000", "role": "stairs"},
                {"label": "x", "color": "#000000", "tolerance": -1}):
        try:
            ClassificationRule.from_dict(bad)
            assert False, f"Should reject {bad}"
        except ConfigError:
            pass

    print("  [PASS] Rule parsing")
    return True


def test_validation():
    """Test invalid options raise ConfigError naming the option."""
    cases = [
        ({"connectivity": 6}, "connectivity"),
        ({"simplify_tolerance": -1.0}, "simplify_tolerance"),
        ({"scale": 0.0}, "scale"),
        ({"workers": 0}, "workers"),
        ({"min_region_pixels": 0}, "min_region_pixels"),
        ({"rules": ()}, "rule"),
        ({"background_label": "wall"}, "background_label"),
    ]
    for options, name in cases:
        try:
            PipelineConfig(**options)
            assert False, f"Should reject {options}"
        except ConfigError as e:
            assert name in str(e), f"Message should name {name}: {e}"

    print("  [PASS] Option validation")
    return True


def test_settings_file():
    """Test loading a YAML settings file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = write_settings(tmpdir, """
pipeline:
  scale: 64
  simplify_tolerance: 2.0
  rules:
    - label: wall
      color: "#202020"
      role: wall
    - label: floor
      color: [250, 250, 250]
      tolerance: 30
      role: floor
      border_is_background: true
""")
        config = load_config(path, environ={})

    assert config.scale == 64.0
    assert config.simplify_tolerance == 2.0
    assert config.rules[0].color == (32, 32, 32)
    assert config.rules[1].tolerance == 30.0
    assert config.connectivity == DEFAULT_CONNECTIVITY

    print("  [PASS] Settings file")
    return True


def test_settings_file_errors():
    """Test unreadable settings files raise ConfigError."""
    with tempfile.TemporaryDirectory() as tmpdir:
        for text in ("pipeline: [unclosed", "- just\n- a list\n"):
            path = write_settings(tmpdir, text)
            try:
                load_settings_file(path)
                assert False, f"Should reject {text!r}"
            except ConfigError:
                pass

        empty = write_settings(tmpdir, "")
        assert load_settings_file(empty) == {}

    try:
        load_settings_file("/nonexistent/settings.yaml")
        assert False, "Should reject missing file"
    except ConfigError:
        pass

    print("  [PASS] Settings file errors")
    return True


def test_precedence():
    """Test defaults < file < environment < explicit overrides."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = write_settings(tmpdir, "scale: 64\nworkers: 2\nmin_region_pixels: 8\n")
        environ = {"DDMAPGEN_SCALE": "48", "DDMAPGEN_WORKERS": "3"}

        config = load_config(path, overrides={"workers": 4, "scale": None}, environ=environ)

    assert config.min_region_pixels == 8, "File beats defaults"
    assert config.scale == 48.0, "Environment beats file"
    assert config.workers == 4, "Explicit override beats environment"

    print("  [PASS] Precedence")
    return True


def test_config_path_from_environment():
    """Test DDMAPGEN_CONFIG names the settings file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = write_settings(tmpdir, "connectivity: 8\n")
        config = load_config(environ={"DDMAPGEN_CONFIG": path})

    assert config.connectivity == 8

    print("  [PASS] Settings path from environment")
    return True


def test_env_overrides_coercion():
    """Test environment values are coerced and validated."""
    assert env_overrides({"DDMAPGEN_SIMPLIFY_TOLERANCE": "0.5", "OTHER": "1"}) == {
        "simplify_tolerance": 0.5
    }

    try:
        env_overrides({"DDMAPGEN_WORKERS": "many"})
        assert False, "Should reject non-integer"
    except ConfigError:
        pass

    print("  [PASS] Environment coercion")
    return True


def test_config_from_dict_ignores_unknown():
    """Test unknown settings are ignored."""
    config = config_from_dict({"colour_depth": 8, "scale": 16})

    assert config.scale == 16.0

    print("  [PASS] Unknown settings ignored")
    return True


def test_verify_install_settings_check():
    """Test the installation check resolves the shipped settings."""
    from verify_install import check_settings

    ok, info = check_settings()

    assert ok, info
    assert "2 rules" in info

    print("  [PASS] Installation settings check")
    return True


def run_all_tests():
    """Run all configuration tests."""
    print("\n" + "=" * 60)
    print("Configuration Tests")
    print("=" * 60)

    results = []

    print("\nDefaults and Validation:")
    results.append(test_defaults())
    results.append(test_shipped_settings_match_defaults())
    results.append(test_parse_color())
    results.append(test_rule_from_dict())
    results.append(test_validation())

    print("\nLoading Tests:")
    results.append(test_settings_file())
    results.append(test_settings_file_errors())
    results.append(test_precedence())
    results.append(test_config_path_from_environment())
    results.append(test_env_overrides_coercion())
    results.append(test_config_from_dict_ignores_unknown())
    results.append(test_verify_install_settings_check())

    passed = sum(results)
    total = len(results)
    print("\n" + "=" * 60)
    print(f"Configuration Results: {passed}/{total} tests passed")
    print("=" * 60)

    return passed == total


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
