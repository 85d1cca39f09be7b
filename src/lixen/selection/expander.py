"""Bounded breadth-first dependency expansion.

Starting from the selection, follow symbol usage into the files that
define the used symbols, plus the initializer of every blank-imported
package, up to a fixed number of file hops.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from functools import partial

from lixen.config import MAX_DEPTH, MIN_DEPTH
from lixen.exceptions import AnalysisError
from lixen.index.analyzer import analyze_file_dependencies
from lixen.index.models import CodebaseIndex, DependencyAnalysis

logger = logging.getLogger("lixen.expand")

AnalysisCache = dict[str, DependencyAnalysis]
Analyzer = Callable[[str], DependencyAnalysis]


def clamp_depth(depth: int) -> int:
    return max(MIN_DEPTH, min(MAX_DEPTH, depth))


def expand_dependencies(
    selection: set[str],
    index: CodebaseIndex,
    cache: AnalysisCache,
    max_depth: int,
    analyze: Analyzer | None = None,
) -> set[str]:
    """Return the files implied by the selection, excluding the selection itself.

    Args:
        selection: Seed paths (depth 0).
        index: The codebase index.
        cache: Per-path analysis cache, filled as files are analyzed.
        max_depth: Maximum file hops, clamped to 1..5.
        analyze: Optional analyzer override; defaults to re-reading the
            file from the index root.
    """
    depth_limit = clamp_depth(max_depth)
    if analyze is None:
        analyze = partial(analyze_file_dependencies, index.root, module_root=index.module_root)

    visited = set(selection)
    result: set[str] = set()
    frontier: deque[tuple[str, int]] = deque((path, 0) for path in sorted(selection))

    def visit(path: str, depth: int) -> None:
        if path in visited:
            return
        visited.add(path)
        result.add(path)
        frontier.append((path, depth + 1))

    while frontier:
        path, depth = frontier.popleft()
        info = index.files.get(path)
        if info is None or depth >= depth_limit:
            continue

        analysis = cache.get(path)
        if analysis is None:
            try:
                analysis = analyze(path)
            except AnalysisError as e:
                logger.debug(f"Skipping symbol expansion for {path}: {e.reason}")
            else:
                cache[path] = analysis

        if analysis is not None:
            for import_path in sorted(analysis.used_symbols):
                for symbol in sorted(analysis.used_symbols[import_path]):
                    target = index.resolve_symbol(import_path, symbol)
                    if target is None:
                        logger.debug(f"{path}: unresolved {import_path}.{symbol}")
                        continue
                    visit(target, depth)

        for import_path in sorted(info.blank_imports):
            target = _initializer_for(index, import_path)
            if target is not None:
                visit(target, depth)

    logger.debug(f"Expanded {len(selection)} selected files by {len(result)} (depth {depth_limit})")
    return result


def _initializer_for(index: CodebaseIndex, import_path: str) -> str | None:
    """The file a blank import runs: the named module if it initializes,
    else the package's first initializer-bearing file."""
    resolved = index.resolve_import(import_path)
    if resolved is None:
        return None
    pkg_dir, module_file = resolved
    if module_file is not None and index.files[module_file].has_init:
        return module_file
    pkg = index.packages.get(pkg_dir)
    if pkg is None:
        return None
    for candidate in pkg.files:
        if index.files[candidate].has_init:
            return candidate
    return None
