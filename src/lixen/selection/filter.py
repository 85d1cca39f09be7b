"""Filters: path sets combined step by step, then optionally selected.

Each step (a tag level, a path substring, a label prefix) produces a set
of paths that is folded into the running filter according to the mode.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum

from lixen.index.models import CodebaseIndex
from lixen.tags.models import iter_refs


class FilterMode(str, Enum):
    OR = "or"  # union
    AND = "and"  # intersection
    NOT = "not"  # subtract
    XOR = "xor"  # symmetric difference


@dataclass
class FilterState:
    paths: set[str] = field(default_factory=set)
    mode: FilterMode = FilterMode.OR

    @property
    def active(self) -> bool:
        return bool(self.paths)

    def clear(self) -> None:
        self.paths.clear()


def apply_filter(state: FilterState, new_paths: Iterable[str]) -> None:
    """Fold a path set into the filter using the current mode.

    The first step of an empty filter becomes its base, except in NOT
    mode, which has nothing to subtract from.
    """
    incoming = set(new_paths)
    if not state.paths:
        if state.mode != FilterMode.NOT:
            state.paths = incoming
        return

    if state.mode == FilterMode.OR:
        state.paths |= incoming
    elif state.mode == FilterMode.AND:
        state.paths &= incoming
    elif state.mode == FilterMode.NOT:
        state.paths -= incoming
    elif state.mode == FilterMode.XOR:
        state.paths ^= incoming


def remove_from_filter(state: FilterState, paths: Iterable[str]) -> None:
    state.paths.difference_update(paths)


def select_filtered(selection: set[str], state: FilterState) -> int:
    """Transfer filtered files into the selection; return how many were added."""
    added = state.paths - selection
    selection |= added
    return len(added)


def search_paths(index: CodebaseIndex, text: str) -> list[str]:
    """Paths containing `text`, case-insensitively."""
    needle = text.lower()
    return sorted(path for path in index.files if needle in path.lower())


def search_labels(index: CodebaseIndex, prefix: str) -> list[str]:
    """Files carrying a label that starts with `prefix` (case-insensitive)."""
    needle = prefix.lower()
    matches = []
    for path, info in index.files.items():
        if any(
            ref.is_address and ref.label.lower().startswith(needle)
            for ref in iter_refs(info.tags)
        ):
            matches.append(path)
    return sorted(matches)


def search_categories(index: CodebaseIndex, prefix: str) -> list[str]:
    needle = prefix.lower()
    return sorted(
        path
        for path, info in index.files.items()
        if any(cat.lower().startswith(needle) for cat in info.tags)
    )
