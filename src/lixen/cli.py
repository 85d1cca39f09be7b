"""Command-line interface for lixen."""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path

import click
from rich.console import Console as RichConsole
from rich.logging import RichHandler
from rich.markup import escape

from lixen import __version__
from lixen.config import (
    ProjectConfig,
    find_project_root,
    load_config,
    save_config,
    set_config_value,
)
from lixen.editor.commit import commit_edit_session, plan_changes
from lixen.editor.session import EditSession, open_edit_session
from lixen.exceptions import AnalysisError, ConfigError, IndexingError, TagSyntaxError
from lixen.index.analyzer import analyze_file_dependencies
from lixen.index.builder import IndexBuilder
from lixen.index.models import CodebaseIndex
from lixen.selection.algebra import (
    deselect_at_level,
    files_matching,
    select_at_level,
    selection_state_at_level,
    toggle_at_level,
)
from lixen.selection.expander import expand_dependencies
from lixen.selection.filter import (
    FilterMode,
    FilterState,
    apply_filter,
    remove_from_filter,
    search_categories,
    search_labels,
    search_paths,
    select_filtered,
)
from lixen.selection.output import (
    compute_output_files,
    compute_output_stats,
    load_selection_file,
    render_output,
    write_output_file,
)
from lixen.selection.store import (
    add_paths,
    load_selection_state,
    normalize_path,
    remove_paths,
    retain_indexed,
    save_selection,
)
from lixen.tags.models import TagRef
from lixen.ui.console import Console

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=RichConsole(stderr=True), show_path=False)],
        force=True,
    )


def _get_project_root(path: str | None = None) -> Path:
    """Find the project root or error."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        return root

    root = find_project_root()
    if root is None:
        console.error(
            "No lixen project found. Run 'lixen init' first, "
            "or specify a path with --path."
        )
        sys.exit(1)
    return root


def _load_config(root: Path) -> ProjectConfig:
    try:
        return load_config(root)
    except ConfigError as e:
        console.error(str(e))
        sys.exit(1)


def _build_index(root: Path, config: ProjectConfig, progress_callback=None) -> CodebaseIndex:
    try:
        return IndexBuilder().build(root, config.indexer, progress_callback)
    except IndexingError as e:
        console.error(str(e))
        sys.exit(1)


def _load_state(path: str | None) -> tuple[Path, ProjectConfig, CodebaseIndex, set[str]]:
    """Project root, config, a fresh index and the persisted selection."""
    root = _get_project_root(path)
    config = _load_config(root)
    index = _build_index(root, config)
    selection = load_selection_state(root, index)
    return root, config, index, selection


def _parse_refs(refs: tuple[str, ...]) -> list[TagRef]:
    parsed = []
    for spec in refs:
        try:
            parsed.append(TagRef.from_path(spec))
        except ValueError as e:
            console.error(escape(str(e)))
            sys.exit(1)
    return parsed


@click.group()
@click.version_option(version=__version__, prog_name="lixen")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose: bool):
    """lixen - curate codebase context with tag annotations."""
    _setup_logging(verbose)


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--module-root", default=None, help="Dotted import prefix of the tree (e.g. 'mypkg').")
def init(path: str | None, module_root: str | None):
    """Initialize lixen for a repository and index it."""
    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {root}")
        sys.exit(1)
    if not root.is_dir():
        console.error(f"Not a directory: {root}")
        sys.exit(1)

    console.banner()
    console.info(f"Initializing lixen for: {root}")

    config = _load_config(root)
    config.name = root.name
    config.root_path = str(root)
    if module_root is not None:
        config.indexer.module_root = module_root

    save_config(root, config)
    console.success("Configuration saved")

    start_time = time.time()
    with console.indexing_progress() as progress:
        task = progress.add_task("Indexing...", total=None)

        def on_progress(file_path: str, current: int, total: int):
            progress.update(task, total=total, completed=current, description=f"Reading {file_path}")

        index = _build_index(root, config, on_progress)

    elapsed = time.time() - start_time
    stats = index.get_stats()
    console.success(f"Indexed {stats['files']} files in {elapsed:.1f}s")
    console.show_stats(stats)


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
def status(path: str | None):
    """Show index statistics, the selection and the output size."""
    root, config, index, selection = _load_state(path)
    console.info(f"Project: {config.name or root.name}")
    console.show_stats(index.get_stats())

    stats = compute_output_stats(
        selection, index, {}, config.selection.expand_deps, config.selection.depth_limit
    )
    console.show_output_stats(stats, len(selection))


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--category", "-c", default=None, help="Only show this category.")
def tags(path: str | None, category: str | None):
    """Show the tag taxonomy with selection state."""
    _, _, index, selection = _load_state(path)

    taxonomy = EditSession(files=index.sorted_paths())
    taxonomy.rebuild_tree(index)
    rows = [
        (node.depth, node.name, node.file_count, selection_state_at_level(selection, index, node.ref))
        for node in taxonomy.tree
        if category is None or node.ref.category == category
    ]
    if not rows:
        console.warning("No tags found")
        return
    console.show_taxonomy(rows)


def _level_command(refs: tuple[str, ...], path: str | None, op: str) -> None:
    root, _, index, selection = _load_state(path)
    for ref in _parse_refs(refs):
        if op == "select":
            count = select_at_level(selection, index, ref)
            console.success(f"select {ref}: {count} file(s)")
        elif op == "deselect":
            count = deselect_at_level(selection, index, ref)
            console.success(f"deselect {ref}: {count} file(s)")
        else:
            result = toggle_at_level(selection, index, ref)
            verb = "select" if result.selected else "deselect"
            console.success(f"{verb} {ref}: {result.count} file(s)")
    save_selection(root, selection)
    console.info(f"{len(selection)} file(s) selected")


@main.command()
@click.argument("refs", nargs=-1, required=True)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def select(refs: tuple[str, ...], path: str | None):
    """Select every file carrying a tag level (category/group/module/label)."""
    _level_command(refs, path, "select")


@main.command()
@click.argument("refs", nargs=-1, required=True)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def deselect(refs: tuple[str, ...], path: str | None):
    """Deselect every file carrying a tag level."""
    _level_command(refs, path, "deselect")


@main.command()
@click.argument("refs", nargs=-1, required=True)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def toggle(refs: tuple[str, ...], path: str | None):
    """Deselect a fully selected tag level, otherwise select it."""
    _level_command(refs, path, "toggle")


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.option("--path", "-p", "project", default=None, help="Path to the project root.")
def add(paths: tuple[str, ...], project: str | None):
    """Select files by path."""
    root, _, index, selection = _load_state(project)
    unknown = [p for p in paths if normalize_path(p) not in index.files]
    for p in unknown:
        console.warning(f"Not indexed: {p}")
    count = add_paths(selection, index, paths)
    save_selection(root, selection)
    console.success(f"Added {count} file(s), {len(selection)} selected")


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.option("--path", "-p", "project", default=None, help="Path to the project root.")
def remove(paths: tuple[str, ...], project: str | None):
    """Deselect files by path."""
    root, _, _, selection = _load_state(project)
    count = remove_paths(selection, paths)
    save_selection(root, selection)
    console.success(f"Removed {count} file(s), {len(selection)} selected")


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
def clear(path: str | None):
    """Clear the selection."""
    root = _get_project_root(path)
    save_selection(root, set())
    console.success("Selection cleared")


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--replace", is_flag=True, help="Replace the selection instead of extending it.")
def load(file: str, path: str | None, replace: bool):
    """Select files listed in FILE (paths or patterns such as pkg/** and *.py)."""
    root, _, index, selection = _load_state(path)
    loaded = load_selection_file(file, index)
    if replace:
        selection = loaded
    else:
        selection |= loaded
    save_selection(root, selection)
    console.success(f"Loaded {len(loaded)} file(s), {len(selection)} selected")


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--tag", "-t", "tag_refs", multiple=True, help="Tag level to match.")
@click.option("--match", "-m", "matches", multiple=True, help="Path substring to match.")
@click.option("--label", "-l", "labels", multiple=True, help="Label prefix to match.")
@click.option("--category", "-c", "categories", multiple=True, help="Category prefix to match.")
@click.option(
    "--mode",
    type=click.Choice([m.value for m in FilterMode]),
    default=FilterMode.OR.value,
    help="How successive matches combine.",
)
@click.option("--exclude", "-x", "excluded", multiple=True, help="Path to drop from the result.")
@click.option("--select", "do_select", is_flag=True, help="Add the result to the selection.")
def find(
    path: str | None,
    tag_refs: tuple[str, ...],
    matches: tuple[str, ...],
    labels: tuple[str, ...],
    categories: tuple[str, ...],
    mode: str,
    excluded: tuple[str, ...],
    do_select: bool,
):
    """Combine tag and path matches into a file set."""
    root, _, index, selection = _load_state(path)
    state = FilterState(mode=FilterMode(mode))
    for ref in _parse_refs(tag_refs):
        apply_filter(state, files_matching(index, ref))
    for text in matches:
        apply_filter(state, search_paths(index, text))
    for prefix in labels:
        apply_filter(state, search_labels(index, prefix))
    for prefix in categories:
        apply_filter(state, search_categories(index, prefix))
    remove_from_filter(state, (normalize_path(p) for p in excluded))

    if not state.active:
        console.warning("No files matched")
        return
    console.show_paths(sorted(state.paths), title=f"{len(state.paths)} file(s)")

    if do_select:
        count = select_filtered(selection, state)
        save_selection(root, selection)
        console.success(f"Selected {count} new file(s), {len(selection)} selected")


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--deps/--no-deps", default=None, help="Expand dependencies of the selection.")
@click.option("--depth", "-d", type=int, default=None, help="Expansion depth (1-5).")
@click.option("--out", "-o", default=None, help="Output file (default from config).")
@click.option("--stdout", "to_stdout", is_flag=True, help="Print the list instead of writing it.")
def output(path: str | None, deps: bool | None, depth: int | None, out: str | None, to_stdout: bool):
    """Write the output file list for the selection."""
    root, config, index, selection = _load_state(path)
    expand = config.selection.expand_deps if deps is None else deps
    depth = config.selection.depth_limit if depth is None else depth

    cache: dict = {}
    files = compute_output_files(selection, index, cache, expand, depth)
    if to_stdout:
        click.echo(render_output(files), nl=False)
        return

    out_path = Path(out) if out else root / config.selection.output_file
    try:
        write_output_file(out_path, files)
    except OSError as e:
        console.error(f"Cannot write {out_path}: {e}")
        sys.exit(1)

    stats = compute_output_stats(selection, index, cache, expand, depth)
    console.success(f"Wrote {len(files)} path(s) to {out_path}")
    console.show_output_stats(stats, len(selection))


@main.command()
@click.argument("file")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--depth", "-d", type=int, default=1, help="Expansion depth (1-5).")
def deps(file: str, path: str | None, depth: int):
    """Show what a file uses, what imports its package, and what it pulls in."""
    _, _, index, _ = _load_state(path)
    rel = normalize_path(file)
    info = index.files.get(rel)
    if info is None:
        console.error(f"Not indexed: {file}")
        sys.exit(1)

    try:
        analysis = analyze_file_dependencies(index.root, rel, index.module_root)
    except AnalysisError as e:
        console.error(str(e))
        sys.exit(1)

    console.info(f"{rel} (package {info.package})")
    if analysis.used_symbols:
        console.console.print("\n[bold]Uses:[/bold]")
        for import_path, symbols in analysis.used_symbols.items():
            console.console.print(f"  {import_path}: [cyan]{', '.join(symbols)}[/cyan]")

    importers = index.reverse_deps(info.package)
    if importers:
        console.show_paths(importers, title=f"Imported by ({len(importers)}):")

    pulled = sorted(expand_dependencies({rel}, index, {}, depth))
    if pulled:
        console.show_paths(pulled, title=f"Pulls in at depth {depth} ({len(pulled)}):")


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--add", "-a", "additions", multiple=True, help="Tags to add, e.g. '#dev{feature[shield]}'.")
@click.option("--delete", "-x", "deletions", multiple=True, help="Tag level to delete (category/group/module/label).")
@click.option("--dry-run", is_flag=True, help="Show the changes without writing them.")
def edit(path: str | None, additions: tuple[str, ...], deletions: tuple[str, ...], dry_run: bool):
    """Add or delete tags across every selected file."""
    root, config, index, selection = _load_state(path)
    session = open_edit_session(selection, index)
    if not session.files:
        console.error("No files selected")
        sys.exit(1)

    for text in additions:
        try:
            session.add_from_text(text)
        except TagSyntaxError as e:
            console.error(escape(f"Parse error in {text!r}: {e}"))
            sys.exit(1)
    for ref in _parse_refs(deletions):
        if not session.mark_deletion(index, ref):
            console.warning(f"No selected file carries {ref}")

    console.show_edit_tree(session)
    if not session.dirty:
        console.info("Nothing to change")
        return

    changes = plan_changes(session, index)
    if not changes:
        console.info("Nothing to change")
        return
    console.show_changes(changes)
    if dry_run:
        console.info("Dry run: no files written")
        return

    result = commit_edit_session(session, index, config.indexer)
    for failed in result.failed:
        console.warning(f"Could not update {failed}")
    console.success(f"Modified {len(result.modified)} file(s)")

    for stale in retain_indexed(selection, result.index):
        console.warning(f"No longer indexed: {stale}")
    save_selection(root, selection)


@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage lixen configuration."""
    root = _get_project_root(path)
    config = _load_config(root)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: lixen config get <key>")
            sys.exit(1)
        data = config.model_dump()
        for part in key.split("."):
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {key}")
                sys.exit(1)
        console.console.print(f"{key} = {data}")
    elif action == "set":
        if not key or value is None:
            console.error("Usage: lixen config set <key> <value>")
            sys.exit(1)
        try:
            # Try to parse as JSON for non-string values
            try:
                parsed_value = json.loads(value)
            except json.JSONDecodeError:
                parsed_value = value

            config = set_config_value(config, key, parsed_value)
            save_config(root, config)
            console.success(f"Set {key} = {parsed_value}")
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except ConfigError as e:
            console.error(str(e))
            sys.exit(1)


if __name__ == "__main__":
    main()
