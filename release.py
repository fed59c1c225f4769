"""
Helper for keeping the orca version in sync with pyproject.toml.

    python release.py            # copy the toml version into orca/__init__.py
    python release.py minor      # bump the toml version, then copy it over
"""

import re
import sys
from pathlib import Path
from typing import Optional


TOML_PATH = Path(Path(__file__).parent, "pyproject.toml")
PACKAGE_PATH = Path(Path(__file__).parent, "orca/__init__.py")

TOML_VERSION_PATTERN = r'^(version\s*=\s*["\'])(\d+\.\d+\.\d+)(["\'])'
BUMP_PARTS = ("major", "minor", "patch")


def parse_version(version_str: str) -> tuple[int, int, int]:
    """Parse a version string into major, minor, patch tuple."""
    match = re.match(r"^(\d+)\.(\d+)\.(\d+)$", version_str.strip("\"'"))
    if not match:
        raise ValueError(f"Invalid version format: {version_str}")
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def bump(version: tuple[int, int, int], part: str) -> tuple[int, int, int]:
    """Increment one part of a version, zeroing the parts after it."""
    major, minor, patch = version
    if part == "major":
        return major + 1, 0, 0
    elif part == "minor":
        return major, minor + 1, 0
    elif part == "patch":
        return major, minor, patch + 1

    raise ValueError(f"Unknown version part '{part}', expected one of {BUMP_PARTS}")


def get_current_version_from_toml() -> tuple[int, int, int]:
    """Extract the [project] version from the TOML file."""
    content = TOML_PATH.read_text(encoding="utf-8")
    match = re.search(TOML_VERSION_PATTERN, content, flags=re.MULTILINE)

    if not match:
        raise ValueError("No version field found in TOML file")

    return parse_version(match.group(2))


def update_toml_version(new_version: tuple[int, int, int]) -> None:
    content = TOML_PATH.read_text(encoding="utf-8")
    version_str = ".".join(str(part) for part in new_version)

    new_content, count = re.subn(
        TOML_VERSION_PATTERN,
        lambda m: f"{m.group(1)}{version_str}{m.group(3)}",
        content,
        count=1,
        flags=re.MULTILINE,
    )
    if count == 0:
        raise ValueError("No version field found in TOML file")

    TOML_PATH.write_text(new_content, encoding="utf-8")


def update_python_version(new_version: tuple[int, int, int]) -> None:
    """Update version constants in the package module."""
    content = PACKAGE_PATH.read_text(encoding="utf-8")

    for name, value in zip(("major", "minor", "patch"), new_version):
        pattern = rf"version_{name}\s*=\s*\d+"
        content, count = re.subn(pattern, f"version_{name} = {value}", content)
        if count == 0:
            raise ValueError(f"Pattern not found: {pattern}")

    PACKAGE_PATH.write_text(content, encoding="utf-8")
    print(f"Updated {PACKAGE_PATH} to {'.'.join(map(str, new_version))}")


def main(argv: Optional[list[str]] = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    version = get_current_version_from_toml()

    if args:
        version = bump(version, args[0])
        update_toml_version(version)

    update_python_version(version)
    return 0


if __name__ == "__main__":
    sys.exit(main())
