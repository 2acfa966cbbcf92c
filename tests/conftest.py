# SPDX-License-Identifier: MIT
"""Pytest configuration and shared fixtures for the layout-ingest test suite.

This module provides:
- Paths to the sample layouts under ``tests/fixtures``
- A factory fixture that writes small layout files into ``tmp_path``
- Deterministic test environment setup
"""
from __future__ import annotations

import os
from collections.abc import Callable
from pathlib import Path

import pytest


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TESTS_DIR = Path(__file__).resolve().parent
FIXTURES_DIR = TESTS_DIR / "fixtures"


# ---------------------------------------------------------------------------
# Environment Setup
# ---------------------------------------------------------------------------


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest environment for determinism."""
    deterministic_env = {
        "LC_ALL": "C",
        "LANG": "C",
        "TZ": "UTC",
        "PYTHONHASHSEED": "0",
    }
    for key, value in deterministic_env.items():
        os.environ.setdefault(key, value)


# ---------------------------------------------------------------------------
# Fixtures: Sample Layouts
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def fixtures_dir() -> Path:
    """Path to the sample layout directory."""
    return FIXTURES_DIR


@pytest.fixture(scope="session")
def qucs_sample() -> Path:
    """Qucs schematic with a substrate, two ports, a line, a coupled pair and a stub."""
    return FIXTURES_DIR / "bandpass.sch"


@pytest.fixture(scope="session")
def sonnet_sample() -> Path:
    """Sonnet project with one metal polygon, a simulation box and two ports."""
    return FIXTURES_DIR / "resonator.son"


@pytest.fixture(scope="session")
def kicad_sample() -> Path:
    """KiCad board with a stackup, two SMA connectors, a trace, a via and a zone."""
    return FIXTURES_DIR / "bandpass.kicad_pcb"


@pytest.fixture
def write_layout(tmp_path: Path) -> Callable[[str, str], Path]:
    """Factory writing ``content`` to ``tmp_path / name`` and returning the path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _write
