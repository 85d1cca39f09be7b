"""Locating the module header of a Python source file.

The header is everything before the first real statement: a shebang, an
encoding cookie, leading comments and the module docstring. Annotation
lines are only recognised in its comments, never inside the docstring, and
a new annotation line is placed right after the docstring's last line.
"""

from __future__ import annotations

import re

_DOCSTRING_START = re.compile(r"""^[rRuU]?("{3}|'{3}|"|')""")
BOM = "\ufeff"


def _is_comment_or_blank(line: str) -> bool:
    stripped = line.strip()
    return not stripped or stripped.startswith("#")


def _docstring_end(lines: list[str], start: int) -> int | None:
    """Index of the line closing the docstring opened on `start`."""
    stripped = lines[start].strip()
    match = _DOCSTRING_START.match(stripped)
    if match is None:
        return None
    quote = match.group(1)
    rest = stripped[match.end():]

    if len(quote) == 1:
        return start if quote in rest else None

    if quote in rest:
        return start
    for i in range(start + 1, len(lines)):
        if quote in lines[i]:
            return i
    return None


def _scan(lines: list[str]) -> tuple[int | None, int | None, int]:
    """Return (docstring_start, docstring_end, header_end)."""
    i = 0
    n = len(lines)
    while i < n and _is_comment_or_blank(lines[i]):
        i += 1

    if i < n and _DOCSTRING_START.match(lines[i].strip()):
        end = _docstring_end(lines, i)
        if end is not None:
            start = i
            i = end + 1
            while i < n and _is_comment_or_blank(lines[i]):
                i += 1
            return start, end, i
    return None, None, i


def header_bounds(lines: list[str]) -> tuple[int | None, int]:
    """Return (declaration_line, header_end) for a file split into lines.

    ``declaration_line`` is the index of the docstring's closing line, or
    None when the module has no docstring. ``header_end`` is the index of
    the first line that belongs to a real statement (or ``len(lines)``).
    """
    _, declaration, end = _scan(lines)
    return declaration, end


def header_comment_indices(lines: list[str]) -> list[int]:
    """Indices of header lines that may hold an annotation.

    Docstring lines are excluded, so an annotation quoted inside the
    docstring is plain text.
    """
    start, declaration, end = _scan(lines)
    return [
        i for i in range(end)
        if start is None or not start <= i <= declaration
    ]


def insertion_index(lines: list[str]) -> int:
    """Where a new annotation line goes when the file has none."""
    declaration, _ = header_bounds(lines)
    if declaration is not None:
        return declaration + 1

    # No docstring: after the leading comment block (shebang, encoding
    # cookie, license text). A blank line ends the block.
    i = 0
    while i < len(lines) and lines[i].lstrip().startswith("#"):
        i += 1
    return i


def header_lines(lines: list[str]) -> list[str]:
    return [lines[i] for i in header_comment_indices(lines)]


def split_bom(text: str) -> tuple[str, str]:
    """Split a leading byte order mark off decoded text."""
    if text.startswith(BOM):
        return BOM, text[len(BOM):]
    return "", text
