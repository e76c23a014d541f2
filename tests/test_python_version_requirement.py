"""Ensure Python compatibility requirements stay in sync across the project."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import src
from config.version import (
    MIN_PYTHON_VERSION,
    PROJECT_VERSION,
    PYTHON_REQUIRES_SPECIFIER,
)


def test_python_version_single_source_of_truth() -> None:
    """The declared Python version should match the project metadata."""

    assert src.__package_info__["python_requires"] == PYTHON_REQUIRES_SPECIFIER
    assert sys.version_info[:2] >= MIN_PYTHON_VERSION

    setup_text = (ROOT_DIR / "setup.py").read_text(encoding="utf-8")
    assert "PYTHON_REQUIRES_SPECIFIER" in setup_text


def test_version_file_matches_package() -> None:
    raw = (ROOT_DIR / "VERSION").read_text(encoding="utf-8").strip()
    assert raw == PROJECT_VERSION == src.__version__
