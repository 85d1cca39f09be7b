"""Build the tag index from a Python source tree."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path

import networkx as nx

from lixen.config import IndexerConfig
from lixen.exceptions import AnalysisError, IndexingError
from lixen.index.analyzer import file_package, parse_source, summarize_module
from lixen.index.models import CodebaseIndex, FileInfo, PackageInfo
from lixen.tags.grammar import is_always_include, parse_annotation_lines
from lixen.tags.models import normalize_tags
from lixen.tags.placement import header_lines

logger = logging.getLogger("lixen.index")


class IndexBuilder:
    """Builds a CodebaseIndex.

    The import graph has two types of nodes:
    - File nodes (``file::<path>``): indexed source files
    - Package nodes (``pkg::<dir>``): directories holding indexed files

    A file -> package edge means the file imports something local from
    that package.
    """

    def __init__(self) -> None:
        self.graph = nx.DiGraph()

    def build(
        self,
        root: str | Path,
        config: IndexerConfig | None = None,
        progress_callback: callable | None = None,
    ) -> CodebaseIndex:
        """Index every Python file under `root`.

        Args:
            root: Root directory to index.
            config: Indexer configuration.
            progress_callback: Optional callback(file_path, current, total).

        Returns:
            A freshly built CodebaseIndex.
        """
        root = Path(root).resolve()
        if not root.is_dir():
            raise IndexingError(f"Not a directory: {root}")
        if config is None:
            config = IndexerConfig()

        # Reset state so reusing a builder doesn't accumulate stale data
        self.graph = nx.DiGraph()

        paths = collect_files(root, config)
        files: dict[str, FileInfo] = {}
        total = len(paths)
        for i, full_path in enumerate(paths):
            rel_path = full_path.relative_to(root).as_posix()
            if progress_callback:
                progress_callback(rel_path, i + 1, total)
            info = self._index_file(full_path, rel_path, config)
            if info is not None:
                files[rel_path] = info

        packages = _build_packages(files)
        index = CodebaseIndex(
            root=str(root),
            module_root=config.module_root,
            files=files,
            packages=packages,
            graph=self.graph,
        )
        self._link_imports(index)

        logger.debug(
            f"Indexed {len(files)} files in {len(packages)} packages "
            f"({self.graph.number_of_edges()} import edges)"
        )
        return index

    def _index_file(self, full_path: Path, rel_path: str, config: IndexerConfig) -> FileInfo | None:
        try:
            source = full_path.read_text(encoding="utf-8-sig")
            size = full_path.stat().st_size
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping unreadable file {rel_path}: {e}")
            return None

        tags, errors = parse_annotation_lines(header_lines(source.splitlines()), config.marker)
        for error in errors:
            logger.debug(f"{rel_path}: malformed annotation skipped: {error}")
        tags = normalize_tags(tags)

        info = FileInfo(
            path=rel_path,
            package=file_package(rel_path),
            size=size,
            tags=tags,
            is_all=is_always_include(tags),
            errors=errors,
        )

        try:
            tree = parse_source(source, rel_path)
        except AnalysisError as e:
            logger.debug(str(e))
            info.errors.append(e.reason)
            return info

        summary = summarize_module(tree, rel_path, config.module_root)
        info.definitions = summary.definitions
        info.import_paths = summary.import_paths
        info.blank_imports = summary.blank_imports
        info.has_init = summary.has_init
        return info

    def _link_imports(self, index: CodebaseIndex) -> None:
        """Resolve each file's imports to local packages and record the edges."""
        for pkg_dir in index.packages:
            self.graph.add_node(f"pkg::{pkg_dir}", type="package", dir=pkg_dir)

        for path in index.sorted_paths():
            info = index.files[path]
            file_node = f"file::{path}"
            self.graph.add_node(file_node, type="file", path=path)

            local: set[str] = set()
            for import_path in info.import_paths:
                resolved = index.resolve_import(import_path)
                if resolved is None:
                    continue
                pkg_dir = resolved[0]
                if pkg_dir != info.package:
                    local.add(pkg_dir)
            info.imports = sorted(local)
            for pkg_dir in info.imports:
                self.graph.add_edge(file_node, f"pkg::{pkg_dir}", kind="imports")


def build_index(root: str | Path, config: IndexerConfig | None = None) -> CodebaseIndex:
    """Convenience wrapper: build a fresh index."""
    return IndexBuilder().build(root, config)


def _build_packages(files: dict[str, FileInfo]) -> dict[str, PackageInfo]:
    """Group files by directory and build each package's symbol table.

    Files are visited in path order, so the first definition of a symbol
    wins. Module and subpackage names are added afterwards for symbols no
    file defines (``from pkg import submodule``).
    """
    packages: dict[str, PackageInfo] = {}
    for path in sorted(files):
        info = files[path]
        pkg = packages.setdefault(info.package, PackageInfo(dir=info.package))
        pkg.files.append(path)
        for name in info.definitions:
            pkg.symbol_files.setdefault(name, path)

    for path in sorted(files):
        info = files[path]
        pkg = packages[info.package]
        stem = Path(path).stem
        if stem != "__init__":
            pkg.symbol_files.setdefault(stem, path)
            continue
        # pkg/sub/__init__.py is "sub" inside pkg
        if info.package != ".":
            parent = file_package(info.package)
            if parent in packages:
                name = info.package.rsplit("/", 1)[-1]
                packages[parent].symbol_files.setdefault(name, path)

    return packages


# ----------------------------------------------------------------------
# File collection
# ----------------------------------------------------------------------


def collect_files(root: str | Path, config: IndexerConfig | None = None) -> list[Path]:
    """Collect all indexable Python files in a directory, sorted."""
    root = Path(root).resolve()
    if config is None:
        config = IndexerConfig()
    return _collect_files(root, config)


def is_test_file(filename: str) -> bool:
    return (
        filename.startswith("test_")
        or filename.endswith("_test.py")
        or filename == "conftest.py"
    )


def _collect_files(root: Path, config: IndexerConfig) -> list[Path]:
    """Collect all Python files, respecting exclusion patterns."""
    files = []
    max_size = config.max_file_size_kb * 1024

    # Read .gitignore if available
    gitignore_patterns = _read_gitignore(root)
    all_exclude = config.exclude_patterns + gitignore_patterns

    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = os.path.relpath(dirpath, root)

        dirnames[:] = [
            d
            for d in dirnames
            if not _should_exclude(os.path.join(rel_dir, d) if rel_dir != "." else d, all_exclude)
        ]

        for filename in filenames:
            if not filename.endswith(".py"):
                continue
            if config.skip_tests and is_test_file(filename):
                continue

            rel_path = os.path.join(rel_dir, filename) if rel_dir != "." else filename
            if _should_exclude(rel_path, all_exclude):
                continue

            full_path = Path(dirpath) / filename
            try:
                if full_path.stat().st_size > max_size:
                    logger.debug(f"Skipping {rel_path}: larger than {config.max_file_size_kb} KB")
                    continue
            except OSError:
                continue

            files.append(full_path)

    return sorted(files)


def _should_exclude(path: str, patterns: list[str]) -> bool:
    """Check if a path matches any exclusion pattern."""
    path_parts = Path(path).parts
    for pattern in patterns:
        if fnmatch.fnmatch(path, pattern):
            return True
        for part in path_parts:
            if fnmatch.fnmatch(part, pattern):
                return True
    return False


def _read_gitignore(root: Path) -> list[str]:
    """Read .gitignore patterns from the project root."""
    gitignore = root / ".gitignore"
    if not gitignore.exists():
        return []

    patterns = []
    try:
        for line in gitignore.read_text().splitlines():
            line = line.strip()
            if line and not line.startswith("#"):
                if line.endswith("/"):
                    line = line[:-1]
                patterns.append(line)
    except OSError:
        logger.debug(f"Could not read {gitignore}")
    return patterns
