"""Project version and interpreter requirements."""

from __future__ import annotations

from pathlib import Path
from typing import Final, NamedTuple, Tuple

MIN_PYTHON_VERSION: Final[Tuple[int, int]] = (3, 10)
MIN_PYTHON_VERSION_STR: Final[str] = ".".join(str(part) for part in MIN_PYTHON_VERSION)
PYTHON_REQUIRES_SPECIFIER: Final[str] = f">={MIN_PYTHON_VERSION_STR}"


class VersionInfo(NamedTuple):
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def _read_version(path: Path) -> VersionInfo:
    raw = path.read_text(encoding="utf-8").strip()
    parts = raw.split(".")
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        raise ValueError(f"VERSION must look like MAJOR.MINOR.PATCH, got {raw!r}")
    return VersionInfo(*(int(part) for part in parts))


_VERSION_FILE = Path(__file__).resolve().parent.parent / "VERSION"
VERSION_INFO: Final[VersionInfo] = _read_version(_VERSION_FILE)
PROJECT_VERSION: Final[str] = str(VERSION_INFO)
__version__: Final[str] = PROJECT_VERSION

__all__ = [
    "MIN_PYTHON_VERSION",
    "MIN_PYTHON_VERSION_STR",
    "PYTHON_REQUIRES_SPECIFIER",
    "PROJECT_VERSION",
    "VERSION_INFO",
    "VersionInfo",
    "__version__",
]
