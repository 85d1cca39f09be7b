"""Shared test fixtures for lixen."""

from __future__ import annotations

from pathlib import Path

import pytest

from lixen.config import IndexerConfig
from lixen.index.builder import IndexBuilder
from lixen.index.models import CodebaseIndex


@pytest.fixture
def tmp_project(tmp_path: Path) -> Path:
    """Create a temporary flat-layout project with tagged Python files."""
    # Entry point: uses core.Engine, imports plugins only for side effects
    (tmp_path / "app.py").write_text('''"""Application entry point."""
# @lixen: #focus(x,y)

from core import Engine
import plugins


def run():
    return Engine().start()
''')

    core = tmp_path / "core"
    core.mkdir()
    (core / "__init__.py").write_text('''"""Core package."""
# @lixen: #dev{base(core)}

from core.engine import Engine
''')
    (core / "engine.py").write_text('''"""The engine."""
# @lixen: #dev{feature[shield(render,system)]}

from core.util import helper


class Engine:
    def start(self):
        return helper()
''')
    (core / "util.py").write_text('''"""Helpers."""


def helper():
    return 1
''')

    plugins = tmp_path / "plugins"
    plugins.mkdir()
    (plugins / "__init__.py").write_text('"""Plugins."""\n')
    (plugins / "register.py").write_text('''"""Plugin registration."""
# @lixen: #dev{feature[loader]}

REGISTRY = []
REGISTRY.append("default")
''')

    shared = tmp_path / "shared"
    shared.mkdir()
    (shared / "constants.py").write_text('''"""Constants every consumer needs."""
# @lixen: #all(*)

VERSION = "1.0"
''')

    (tmp_path / "plain.py").write_text('''"""A module without tags."""

import os


def cwd():
    return os.getcwd()
''')

    # Skipped by default
    tests = tmp_path / "tests"
    tests.mkdir()
    (tests / "test_app.py").write_text('"""Tests."""\n# @lixen: #focus(x)\n')

    return tmp_path


@pytest.fixture
def index(tmp_project: Path) -> CodebaseIndex:
    """A freshly built index of tmp_project."""
    return IndexBuilder().build(tmp_project, IndexerConfig())
