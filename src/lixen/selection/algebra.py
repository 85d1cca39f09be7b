"""Selection set algebra over tag levels.

A level is a TagRef whose empty trailing fields widen the match: a file
matches ``TagRef("dev", "feature")`` if it carries anything under
``dev/feature``. Every operation takes the selection explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from lixen.index.models import CodebaseIndex
from lixen.tags.models import TagRef, has_ref


class SelectionState(str, Enum):
    """How much of a level's matching files the selection covers."""

    NONE = "none"
    PARTIAL = "partial"
    FULL = "full"


@dataclass
class ToggleResult:
    selected: bool  # True if the toggle selected, False if it deselected
    count: int  # files whose membership changed


def files_matching(index: CodebaseIndex, ref: TagRef) -> list[str]:
    """Sorted paths of indexed files carrying the ref."""
    return sorted(path for path, fi in index.files.items() if has_ref(fi.tags, ref))


def select_at_level(selection: set[str], index: CodebaseIndex, ref: TagRef) -> int:
    """Add every matching file; return how many were newly selected."""
    count = 0
    for path in files_matching(index, ref):
        if path not in selection:
            selection.add(path)
            count += 1
    return count


def deselect_at_level(selection: set[str], index: CodebaseIndex, ref: TagRef) -> int:
    """Remove every matching file; return how many were deselected."""
    count = 0
    for path in files_matching(index, ref):
        if path in selection:
            selection.discard(path)
            count += 1
    return count


def all_selected_at_level(selection: set[str], index: CodebaseIndex, ref: TagRef) -> bool:
    """True when every matching file is selected (vacuously true if none match)."""
    return all(path in selection for path in files_matching(index, ref))


def toggle_at_level(selection: set[str], index: CodebaseIndex, ref: TagRef) -> ToggleResult:
    """Deselect the level if it is fully selected, otherwise select it.

    A level matching no files counts as fully selected, so toggling it
    "deselects" zero files.
    """
    if all_selected_at_level(selection, index, ref):
        return ToggleResult(selected=False, count=deselect_at_level(selection, index, ref))
    return ToggleResult(selected=True, count=select_at_level(selection, index, ref))


def selection_state_at_level(selection: set[str], index: CodebaseIndex, ref: TagRef) -> SelectionState:
    matching = files_matching(index, ref)
    selected = sum(1 for path in matching if path in selection)
    if not matching or selected == 0:
        return SelectionState.NONE
    if selected == len(matching):
        return SelectionState.FULL
    return SelectionState.PARTIAL
