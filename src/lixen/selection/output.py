"""Resolve the final output file list, export it and load it back."""

from __future__ import annotations

import posixpath
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from lixen.fileio import write_atomic
from lixen.index.models import CodebaseIndex
from lixen.selection.expander import AnalysisCache, expand_dependencies

# Outputs above this many bytes are flagged as large.
SIZE_WARNING_THRESHOLD = 300 * 1024


@dataclass
class OutputStats:
    total_files: int = 0
    total_size: int = 0
    dep_files: int = 0  # files pulled in by expansion only
    dep_size: int = 0

    @property
    def is_large(self) -> bool:
        return self.total_size > SIZE_WARNING_THRESHOLD


def compute_output_files(
    selection: set[str],
    index: CodebaseIndex,
    cache: AnalysisCache,
    expand: bool = True,
    depth: int = 2,
) -> list[str]:
    """Selected files, their expanded dependencies and every always-include file.

    Returns paths sorted lexicographically, without duplicates.
    """
    output = {path for path in selection if path in index.files}
    if expand and selection:
        output |= expand_dependencies(selection, index, cache, depth)
    output.update(index.always_include())
    return sorted(output)


def compute_output_stats(
    selection: set[str],
    index: CodebaseIndex,
    cache: AnalysisCache,
    expand: bool = True,
    depth: int = 2,
) -> OutputStats:
    """Size the output, splitting off files present only as dependencies."""
    direct = set(selection) | set(index.always_include())
    stats = OutputStats()
    for path in compute_output_files(selection, index, cache, expand, depth):
        size = index.files[path].size
        stats.total_files += 1
        stats.total_size += size
        if path not in direct:
            stats.dep_files += 1
            stats.dep_size += size
    return stats


def render_output(files: Iterable[str]) -> str:
    """One ``./relative/path`` per line, sorted and de-duplicated."""
    return "".join(f"./{path}\n" for path in sorted(set(files)))


def write_output_file(path: str | Path, files: Iterable[str]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    write_atomic(path, render_output(files))


def load_selection_file(path: str | Path, index: CodebaseIndex) -> set[str]:
    """Rebuild a selection from an exported list or a hand-written pattern file."""
    text = Path(path).read_text(encoding="utf-8")
    return match_selection_patterns(text.splitlines(), index)


def match_selection_patterns(lines: Iterable[str], index: CodebaseIndex) -> set[str]:
    """Match each pattern line against the indexed paths.

    Supported patterns:
        pkg/mod.py          exact path (a leading ``./`` is ignored)
        pkg/** or pkg/...   everything under a directory
        *.py, *_views.py    any path ending with the suffix
        pkg/*               files directly inside a directory

    Blank lines and ``#`` comments are ignored; unmatched patterns are skipped.
    """
    paths = index.sorted_paths()
    matched: set[str] = set()

    for raw in lines:
        pattern = raw.strip()
        if not pattern or pattern.startswith("#"):
            continue
        if pattern.startswith("./"):
            pattern = pattern[2:]

        if pattern in ("**", "..."):
            matched.update(paths)
        elif pattern.endswith("/**") or pattern.endswith("/..."):
            prefix = pattern.rsplit("/", 1)[0] + "/"
            matched.update(p for p in paths if p.startswith(prefix))
        elif pattern.startswith("*"):
            suffix = pattern[1:]
            matched.update(p for p in paths if p.endswith(suffix))
        elif pattern.endswith("/*"):
            directory = pattern[:-2]
            matched.update(p for p in paths if posixpath.dirname(p) == directory)
        elif pattern in index.files:
            matched.add(pattern)

    return matched
