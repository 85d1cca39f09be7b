"""Python source analysis using the built-in ast module.

Extracts what the index and the dependency expander need from one file:
top-level definitions, absolute import paths, which imported names are
actually used, blank (side-effect only) imports, and whether the module
runs code at import time.
"""

from __future__ import annotations

import ast
import posixpath
from dataclasses import dataclass, field
from pathlib import Path

from lixen.exceptions import AnalysisError
from lixen.index.models import DependencyAnalysis, dir_to_import_path


@dataclass
class ModuleSummary:
    """Facts about one parsed module."""

    definitions: list[str] = field(default_factory=list)
    import_paths: list[str] = field(default_factory=list)
    blank_imports: list[str] = field(default_factory=list)
    used_symbols: dict[str, list[str]] = field(default_factory=dict)
    has_init: bool = False


def file_package(path: str) -> str:
    """Directory key of a relative file path ("." for the root)."""
    return posixpath.dirname(path) or "."


def resolve_relative(module: str | None, level: int, path: str, module_root: str) -> str:
    """Turn a (possibly relative) ``from`` import into an absolute dotted path."""
    if level == 0:
        return module or ""
    package = dir_to_import_path(file_package(path), module_root)
    parts = package.split(".") if package else []
    if level > 1:
        parts = parts[: max(len(parts) - (level - 1), 0)]
    if module:
        parts.append(module)
    return ".".join(parts)


def _dotted_name(node: ast.AST) -> str:
    """Dotted name of a Name/Attribute chain, "" if rooted elsewhere."""
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        parent = _dotted_name(node.value)
        if parent:
            return f"{parent}.{node.attr}"
    return ""


class _NameCollector(ast.NodeVisitor):
    """Collect bare names and the outermost dotted chains a module reads."""

    def __init__(self) -> None:
        self.names: set[str] = set()
        self.chains: set[str] = set()

    def visit_Attribute(self, node: ast.Attribute) -> None:
        chain = _dotted_name(node)
        if chain:
            self.chains.add(chain)
        else:
            self.generic_visit(node)

    def visit_Name(self, node: ast.Name) -> None:
        self.names.add(node.id)


def extract_definitions(tree: ast.Module) -> list[str]:
    """Top-level names a module defines."""
    names: list[str] = []
    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            names.append(node.name)
        elif isinstance(node, ast.Assign):
            for target in node.targets:
                if isinstance(target, ast.Name):
                    names.append(target.id)
                elif isinstance(target, (ast.Tuple, ast.List)):
                    names.extend(e.id for e in target.elts if isinstance(e, ast.Name))
        elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            names.append(node.target.id)
    return sorted(set(names))


def _is_main_guard(node: ast.If) -> bool:
    test = node.test
    return (
        isinstance(test, ast.Compare)
        and isinstance(test.left, ast.Name)
        and test.left.id == "__name__"
        and len(test.comparators) == 1
        and isinstance(test.comparators[0], ast.Constant)
        and test.comparators[0].value == "__main__"
    )


def _is_passive(stmts: list[ast.stmt]) -> bool:
    """True if a statement list only imports, binds names or passes."""
    for stmt in stmts:
        if isinstance(stmt, (ast.Import, ast.ImportFrom, ast.Pass, ast.Assign, ast.AnnAssign)):
            continue
        if isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant):
            continue
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            if stmt.decorator_list:
                return False
            continue
        if isinstance(stmt, ast.If):
            if not (_is_passive(stmt.body) and _is_passive(stmt.orelse)):
                return False
            continue
        return False
    return True


def has_initializer(tree: ast.Module) -> bool:
    """True if importing the module runs code with side effects."""
    for node in tree.body:
        if isinstance(node, ast.Expr) and isinstance(node.value, (ast.Call, ast.Await)):
            return True
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            if node.decorator_list:
                return True
        elif isinstance(node, (ast.For, ast.AsyncFor, ast.While, ast.With, ast.AsyncWith)):
            return True
        elif isinstance(node, ast.Try):
            handlers = [s for h in node.handlers for s in h.body]
            if not _is_passive(node.body + handlers + node.orelse + node.finalbody):
                return True
        elif isinstance(node, ast.If):
            if _is_main_guard(node):
                continue
            if not (_is_passive(node.body) and _is_passive(node.orelse)):
                return True
    return False


def summarize_module(tree: ast.Module, path: str, module_root: str) -> ModuleSummary:
    """Analyze a parsed module.

    ``from M import a`` records ``a`` under ``M``. ``import M`` (or
    ``import M as b``) records the first attribute read through the
    binding. A plain import whose binding is never read is a blank import.
    """
    summary = ModuleSummary(
        definitions=extract_definitions(tree),
        has_init=has_initializer(tree),
    )

    collector = _NameCollector()
    collector.visit(tree)
    roots = collector.names | {chain.split(".", 1)[0] for chain in collector.chains}

    used: dict[str, set[str]] = {}
    bound: dict[str, str] = {}  # local prefix -> imported module
    import_paths: set[str] = set()
    blank: set[str] = set()

    for node in ast.walk(tree):
        if isinstance(node, ast.ImportFrom):
            target = resolve_relative(node.module, node.level, path, module_root)
            if not target:
                continue
            import_paths.add(target)
            for alias in node.names:
                if alias.name != "*":
                    used.setdefault(target, set()).add(alias.name)
        elif isinstance(node, ast.Import):
            for alias in node.names:
                import_paths.add(alias.name)
                prefix = alias.asname or alias.name
                bound[prefix] = alias.name
                binding = prefix.split(".", 1)[0]
                if binding not in roots:
                    blank.add(alias.name)

    # Longest prefix first so "a.b.c.X" credits "a.b.c" rather than "a.b".
    prefixes = sorted(bound, key=len, reverse=True)
    for chain in sorted(collector.chains):
        for prefix in prefixes:
            if chain.startswith(prefix + "."):
                symbol = chain[len(prefix) + 1:].split(".", 1)[0]
                used.setdefault(bound[prefix], set()).add(symbol)
                break

    summary.import_paths = sorted(import_paths)
    summary.blank_imports = sorted(blank)
    summary.used_symbols = {k: sorted(v) for k, v in sorted(used.items())}
    return summary


def parse_source(source: str, path: str) -> ast.Module:
    """Parse source text, raising AnalysisError on syntax errors."""
    try:
        return ast.parse(source, filename=path)
    except (SyntaxError, ValueError) as e:
        raise AnalysisError(path, f"SyntaxError: {e}") from e


def analyze_file_dependencies(root: str | Path, path: str, module_root: str = "") -> DependencyAnalysis:
    """Re-read and analyze one indexed file.

    Raises:
        AnalysisError: if the file cannot be read or parsed.
    """
    full_path = Path(root) / path
    try:
        source = full_path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as e:
        raise AnalysisError(path, str(e)) from e

    tree = parse_source(source, path)
    summary = summarize_module(tree, path, module_root)
    return DependencyAnalysis(path=path, used_symbols=summary.used_symbols)
