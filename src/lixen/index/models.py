"""Data models for the tagged codebase index."""

from __future__ import annotations

import networkx as nx
from pydantic import BaseModel, Field

from lixen.tags.models import TagSet


class FileInfo(BaseModel):
    """Everything the index knows about one source file."""

    path: str  # relative, posix: "pkg/mod.py"
    package: str  # directory key: "pkg", "." for the root
    size: int = 0
    tags: TagSet = Field(default_factory=dict)
    is_all: bool = False  # carries all(*), always exported
    definitions: list[str] = Field(default_factory=list)  # top-level names
    import_paths: list[str] = Field(default_factory=list)  # absolute dotted imports
    imports: list[str] = Field(default_factory=list)  # local package directories
    blank_imports: list[str] = Field(default_factory=list)  # dotted, imported for side effects
    has_init: bool = False  # runs code with side effects at import time
    errors: list[str] = Field(default_factory=list)


class PackageInfo(BaseModel):
    """Files sharing a directory."""

    dir: str
    files: list[str] = Field(default_factory=list)  # sorted paths
    symbol_files: dict[str, str] = Field(default_factory=dict)  # symbol -> defining file

    @property
    def name(self) -> str:
        return self.dir.rsplit("/", 1)[-1]


class DependencyAnalysis(BaseModel):
    """Symbol usage of one file: import path -> names referenced through it."""

    path: str
    used_symbols: dict[str, list[str]] = Field(default_factory=dict)


def import_path_to_dir(import_path: str, module_root: str) -> str | None:
    """Map a dotted import path to a directory relative to the indexed root.

    Returns None when the import lies outside the module root.
    """
    if module_root:
        if import_path == module_root:
            return "."
        if import_path.startswith(module_root + "."):
            return import_path[len(module_root) + 1:].replace(".", "/")
        return None
    if not import_path:
        return None
    return import_path.replace(".", "/")


def dir_to_import_path(directory: str, module_root: str) -> str:
    """Inverse of import_path_to_dir."""
    if directory in (".", ""):
        return module_root
    dotted = directory.replace("/", ".")
    return f"{module_root}.{dotted}" if module_root else dotted


class CodebaseIndex:
    """The complete index of a tagged codebase.

    Files and packages are plain dicts keyed by path/directory. Import
    relationships live in a directed graph with ``file::<path>`` and
    ``pkg::<dir>`` nodes, from which reverse dependencies are read.
    """

    def __init__(
        self,
        root: str,
        module_root: str = "",
        files: dict[str, FileInfo] | None = None,
        packages: dict[str, PackageInfo] | None = None,
        graph: nx.DiGraph | None = None,
    ) -> None:
        self.root = root
        self.module_root = module_root
        self.files: dict[str, FileInfo] = files or {}
        self.packages: dict[str, PackageInfo] = packages or {}
        self.graph = graph if graph is not None else nx.DiGraph()

    def __contains__(self, path: object) -> bool:
        return path in self.files

    def __len__(self) -> int:
        return len(self.files)

    def sorted_paths(self) -> list[str]:
        return sorted(self.files)

    @property
    def category_names(self) -> list[str]:
        names: set[str] = set()
        for fi in self.files.values():
            names.update(fi.tags)
        return sorted(names)

    def always_include(self) -> list[str]:
        return sorted(path for path, fi in self.files.items() if fi.is_all)

    # ------------------------------------------------------------------
    # Import resolution
    # ------------------------------------------------------------------

    def resolve_import(self, import_path: str) -> tuple[str, str | None] | None:
        """Resolve a dotted import to (package_dir, module_file).

        ``module_file`` is set when the import names a module file rather
        than a package directory. None means "not local".
        """
        directory = import_path_to_dir(import_path, self.module_root)
        if directory is None:
            return None
        if directory in self.packages:
            return directory, None
        module_file = f"{directory}.py"
        if module_file in self.files:
            parent = directory.rpartition("/")[0] or "."
            return parent, module_file
        return None

    def resolve_symbol(self, import_path: str, symbol: str) -> str | None:
        """Find the file defining `symbol` as seen through `import_path`."""
        resolved = self.resolve_import(import_path)
        if resolved is None:
            return None
        pkg_dir, module_file = resolved
        if module_file is not None and symbol in self.files[module_file].definitions:
            return module_file
        pkg = self.packages.get(pkg_dir)
        if pkg is None:
            return None
        return pkg.symbol_files.get(symbol)

    # ------------------------------------------------------------------
    # Dependency queries
    # ------------------------------------------------------------------

    def reverse_deps(self, pkg_dir: str) -> list[str]:
        """Files importing the package at `pkg_dir`."""
        node = f"pkg::{pkg_dir}"
        if not self.graph.has_node(node):
            return []
        return sorted(
            self.graph.nodes[pred]["path"]
            for pred in self.graph.predecessors(node)
            if self.graph.nodes[pred].get("type") == "file"
        )

    def reverse_dep_table(self) -> dict[str, list[str]]:
        """Package directory -> importing files, for every imported package."""
        table = {}
        for pkg_dir in sorted(self.packages):
            importers = self.reverse_deps(pkg_dir)
            if importers:
                table[pkg_dir] = importers
        return table

    def get_stats(self) -> dict:
        tagged = sum(1 for fi in self.files.values() if fi.tags)
        return {
            "files": len(self.files),
            "packages": len(self.packages),
            "tagged_files": tagged,
            "always_include": sum(1 for fi in self.files.values() if fi.is_all),
            "categories": len(self.category_names),
            "import_edges": self.graph.number_of_edges(),
            "total_size": sum(fi.size for fi in self.files.values()),
        }
