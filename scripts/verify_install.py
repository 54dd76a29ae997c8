#!/usr/bin/env python
"""
ddmapgen - Installation Verification Script

Run this script to verify all dependencies are correctly installed.
"""

import sys
from pathlib import Path
from typing import Optional, Tuple

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

SETTINGS_PATH = PROJECT_ROOT / "config" / "settings.yaml"

PACKAGES = [
    ("numpy", "numpy", "__version__"),
    ("opencv", "cv2", "__version__"),
    ("shapely", "shapely", "__version__"),
    ("pillow", "PIL", "__version__"),
    ("pyyaml", "yaml", "__version__"),
]


def check_package(name: str, import_name: Optional[str] = None, version_attr: str = "__version__") -> Tuple[bool, str]:
    """Check if a package is installed and return version."""
    import_name = import_name or name
    try:
        module = __import__(import_name)
        version = getattr(module, version_attr, "unknown")
        return True, str(version)
    except ImportError as e:
        return False, str(e)


def check_converter() -> Tuple[bool, str]:
    """Check that the ddmapgen package imports."""
    try:
        import ddmapgen
        from ddmapgen.pipeline import MapPipeline  # noqa: F401
        return True, f"version {ddmapgen.__version__}"
    except ImportError as e:
        return False, str(e)


def check_settings(path: Path = SETTINGS_PATH) -> Tuple[bool, str]:
    """Check that settings.yaml resolves to a valid configuration."""
    try:
        from ddmapgen.config import load_config
        from ddmapgen.errors import ConfigError
    except ImportError as e:
        return False, str(e)

    try:
        config = load_config(str(path), environ={})
    except ConfigError as e:
        return False, e.describe()
    return True, f"{len(config.rules)} rules, scale {config.scale:g}"


def print_check(name: str, ok: bool, info: str, warn_only: bool = False) -> None:
    status = "PASS" if ok else ("WARN" if warn_only else "FAIL")
    print(f"  {name:25} [{status}] {info}")


def main():
    print("=" * 60)
    print("ddmapgen - Installation Verification")
    print("=" * 60)
    print()

    results = []

    print("Core Dependencies:")
    print("-" * 40)

    for name, import_name, version_attr in PACKAGES:
        ok, info = check_package(name, import_name, version_attr)
        print_check(name, ok, info)
        results.append((name, ok))

    print()
    print("Converter:")
    print("-" * 40)

    ok, info = check_converter()
    print_check("ddmapgen", ok, info)
    results.append(("ddmapgen", ok))

    ok, info = check_settings()
    print_check("settings.yaml", ok, info)
    results.append(("settings", ok))

    print()
    print("=" * 60)

    passed = sum(1 for _, ok in results if ok)
    total = len(results)

    if passed == total:
        print(f"ALL CHECKS PASSED ({passed}/{total})")
        print("Environment is ready for map generation.")
        return 0

    failed = [name for name, ok in results if not ok]
    print(f"SOME CHECKS FAILED ({passed}/{total})")
    print(f"Failed: {', '.join(failed)}")
    return 1


if __name__ == "__main__":
    sys.exit(main())
