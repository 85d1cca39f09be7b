"""The selection: a set of indexed paths, persisted between CLI runs.

The selection is a plain ``set[str]`` passed to every operation. On disk it
lives in ``.lixen/selection.txt`` in the export format.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from lixen.config import SELECTION_FILE, get_lixen_dir
from lixen.index.models import CodebaseIndex
from lixen.selection.output import load_selection_file, write_output_file

logger = logging.getLogger("lixen.selection")


def normalize_path(path: str) -> str:
    """Index key for a user-supplied relative path."""
    path = path.strip().replace("\\", "/")
    while path.startswith("./"):
        path = path[2:]
    return path


def add_paths(selection: set[str], index: CodebaseIndex, paths: Iterable[str]) -> int:
    """Select indexed paths; unknown paths are ignored. Returns the number added."""
    count = 0
    for path in paths:
        path = normalize_path(path)
        if path in index.files and path not in selection:
            selection.add(path)
            count += 1
    return count


def remove_paths(selection: set[str], paths: Iterable[str]) -> int:
    count = 0
    for path in paths:
        path = normalize_path(path)
        if path in selection:
            selection.discard(path)
            count += 1
    return count


def retain_indexed(selection: set[str], index: CodebaseIndex) -> list[str]:
    """Drop paths the index no longer knows about; return them sorted."""
    stale = sorted(path for path in selection if path not in index.files)
    selection.difference_update(stale)
    return stale


def selection_path(root: Path) -> Path:
    return get_lixen_dir(root) / SELECTION_FILE


def save_selection(root: Path, selection: set[str]) -> None:
    write_output_file(selection_path(root), selection)


def load_selection_state(root: Path, index: CodebaseIndex) -> set[str]:
    """Load the persisted selection, pruned to paths still indexed."""
    path = selection_path(root)
    if not path.exists():
        return set()
    selection = load_selection_file(path, index)
    logger.debug(f"Loaded {len(selection)} selected files from {path}")
    return selection
