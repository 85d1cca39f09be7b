"""Apply an edit session to source files and rebuild the index."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from lixen.config import IndexerConfig
from lixen.editor.session import EditSession, TagDeletion
from lixen.fileio import write_atomic
from lixen.index.builder import IndexBuilder
from lixen.index.models import CodebaseIndex
from lixen.tags.grammar import annotation_content, format_annotation_line, serialize_tags
from lixen.tags.models import TagRef, TagSet, copy_tags, normalize_tags
from lixen.tags.placement import header_comment_indices, insertion_index, split_bom

logger = logging.getLogger("lixen.commit")

# Lines split on "\n" only, endings kept.
_LINE = re.compile(r"[^\n]*\n|[^\n]+$")


@dataclass
class CommitResult:
    modified: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    index: CodebaseIndex | None = None


@dataclass
class FileChange:
    """A planned rewrite of one file's annotation."""

    path: str
    before: str  # serialized annotation content, "" if none
    after: str


# ----------------------------------------------------------------------
# Tag set mutation
# ----------------------------------------------------------------------


def delete_ref(tags: TagSet, ref: TagRef) -> None:
    """Remove the ref's subtree, dropping containers left empty."""
    groups = tags.get(ref.category)
    if groups is None:
        return
    if not ref.group:
        del tags[ref.category]
        return

    mods = groups.get(ref.group)
    if mods is None:
        return
    if not ref.module:
        del groups[ref.group]
    else:
        labels = mods.get(ref.module)
        if labels is None:
            return
        if not ref.label:
            del mods[ref.module]
        else:
            remaining = [label for label in labels if label != ref.label]
            if remaining:
                mods[ref.module] = remaining
            else:
                del mods[ref.module]
        if not mods:
            del groups[ref.group]

    if not groups:
        del tags[ref.category]


def add_ref(tags: TagSet, ref: TagRef) -> None:
    """Insert the ref if absent, creating intermediate levels.

    A module ref without a label creates an empty module entry.
    """
    if not ref.group:
        return
    mods = tags.setdefault(ref.category, {}).setdefault(ref.group, {})
    if ref.label:
        labels = mods.setdefault(ref.module, [])
        if ref.label not in labels:
            labels.append(ref.label)
    elif ref.module:
        mods.setdefault(ref.module, [])


def apply_pending(
    tags: TagSet,
    path: str,
    additions: list[TagRef],
    deletions: list[TagDeletion],
) -> TagSet:
    """Return a new tag set with the session's edits applied to one file."""
    result = copy_tags(tags)
    for deletion in deletions:
        if path in deletion.files:
            delete_ref(result, deletion.ref)
    for ref in additions:
        add_ref(result, ref)
    return normalize_tags(result)


# ----------------------------------------------------------------------
# Source splicing
# ----------------------------------------------------------------------


def _strip_eol(line: str) -> str:
    return line.rstrip("\r\n")


def _eol_of(line: str) -> str:
    return line[len(_strip_eol(line)):]


def find_annotation_lines(lines: list[str], marker: str) -> list[int]:
    """Indices of annotation lines inside the module header."""
    bare = [_strip_eol(line) for line in lines]
    return [i for i in header_comment_indices(bare) if annotation_content(bare[i], marker) is not None]


def splice_annotation(text: str, content: str, marker: str) -> str:
    """Rewrite the file text so its annotation reads `content`.

    The first annotation line is replaced and any others dropped; with no
    annotation line, one is inserted after the module docstring. Empty
    content removes every annotation line. Line endings elsewhere, and the
    presence or absence of a final newline, are preserved. A leading byte
    order mark stays first.
    """
    bom, text = split_bom(text)
    lines = _LINE.findall(text)
    existing = find_annotation_lines(lines, marker)
    new_line = format_annotation_line(content, marker) if content else None
    had_final_eol = not lines or _eol_of(lines[-1]) != ""
    default_eol = next((_eol_of(line) for line in lines if _eol_of(line)), "\n")

    if existing:
        first = existing[0]
        for i in reversed(existing[1:]):
            del lines[i]
        if new_line is None:
            del lines[first]
        else:
            lines[first] = new_line + _eol_of(lines[first])
    elif new_line is not None:
        bare = [_strip_eol(line) for line in lines]
        at = insertion_index(bare)
        if at > 0 and not _eol_of(lines[at - 1]):
            lines[at - 1] += default_eol
        lines.insert(at, new_line + default_eol)

    if lines:
        last = lines[-1]
        if had_final_eol and not _eol_of(last):
            lines[-1] = last + default_eol
        elif not had_final_eol and _eol_of(last):
            lines[-1] = _strip_eol(last)
    return bom + "".join(lines)


def apply_tag_changes_to_file(
    root: str | Path,
    path: str,
    tags: TagSet,
    additions: list[TagRef],
    deletions: list[TagDeletion],
    marker: str = "lixen",
) -> bool:
    """Apply pending edits to one file on disk.

    Returns False when the file's tags would not change; the file is then
    left untouched.

    Raises:
        OSError: if the file cannot be read or replaced.
    """
    new_tags = apply_pending(tags, path, additions, deletions)
    if new_tags == normalize_tags(tags):
        return False

    full_path = Path(root) / path
    with open(full_path, encoding="utf-8", newline="") as f:
        text = f.read()
    updated = splice_annotation(text, serialize_tags(new_tags), marker)
    if updated == text:
        return False
    write_atomic(full_path, updated)
    return True


def plan_changes(session: EditSession, index: CodebaseIndex) -> list[FileChange]:
    """Preview the annotation each file would end up with."""
    changes = []
    for path in session.files:
        info = index.files.get(path)
        if info is None:
            continue
        new_tags = apply_pending(info.tags, path, session.additions, session.deletions)
        if new_tags != normalize_tags(info.tags):
            changes.append(FileChange(path, serialize_tags(info.tags), serialize_tags(new_tags)))
    return changes


def commit_edit_session(
    session: EditSession,
    index: CodebaseIndex,
    config: IndexerConfig | None = None,
) -> CommitResult:
    """Write every file's changes, then rebuild the index from disk.

    Files are processed independently; a file that fails to read or write
    is logged and skipped.
    """
    if config is None:
        config = IndexerConfig(module_root=index.module_root)
    result = CommitResult()

    for path in session.files:
        info = index.files.get(path)
        if info is None:
            continue
        try:
            changed = apply_tag_changes_to_file(
                index.root, path, info.tags, session.additions, session.deletions, config.marker
            )
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to update {path}: {e}")
            result.failed.append(path)
            continue
        if changed:
            logger.debug(f"Updated annotation in {path}")
            result.modified.append(path)

    session.additions.clear()
    session.deletions.clear()
    result.index = IndexBuilder().build(index.root, config)
    return result
