"""Parsing and canonical serialization of tag annotation lines.

An annotation is a single comment line in a module header::

    # @lixen: #focus(render,input)
    # @lixen: #dev{(wip),feature[shield(render,system)],base(core)}

Whitespace is insignificant. Blocks and sibling clauses are separated by
commas. Several annotation lines in one file accumulate. The ``all(*)``
clause (``#all(*)`` or ``all(*)`` inside any category) marks the file as
always-include; it is kept in the tag set like any other tag.
"""

from __future__ import annotations

from lixen.exceptions import TagSyntaxError
from lixen.tags.models import DIRECT, TagSet, merge_tags

ALL_NAME = "all"
ALL_LABEL = "*"

_DELIMITERS = set("#{}[](),")


def strip_whitespace(text: str) -> str:
    """Remove every whitespace character."""
    return "".join(text.split())


def annotation_prefix(marker: str) -> str:
    return f"@{marker}:"


def annotation_content(line: str, marker: str) -> str | None:
    """Return the content of an annotation comment line, or None if it isn't one."""
    stripped = line.strip()
    if not stripped.startswith("#"):
        return None
    body = stripped[1:].lstrip()
    prefix = annotation_prefix(marker)
    if not body.startswith(prefix):
        return None
    return body[len(prefix):].strip()


def format_annotation_line(content: str, marker: str) -> str:
    return f"# {annotation_prefix(marker)} {content}"


def is_always_include(tags: TagSet) -> bool:
    """True if the tag set carries the ``all(*)`` clause anywhere."""
    for cat, groups in tags.items():
        for group, mods in groups.items():
            name = cat if group == DIRECT else group
            if name == ALL_NAME and ALL_LABEL in mods.get(DIRECT, []):
                return True
    return False


def parse_tags(content: str) -> TagSet:
    """Parse annotation content into a tag set.

    Raises:
        TagSyntaxError: if the content does not follow the grammar.
    """
    parser = _Parser(strip_whitespace(content))
    return parser.parse()


def parse_annotation_lines(lines: list[str], marker: str) -> tuple[TagSet, list[str]]:
    """Parse and merge every annotation line.

    Returns the merged tag set and one error message per malformed line;
    malformed lines contribute nothing.
    """
    tags: TagSet = {}
    errors: list[str] = []
    for line in lines:
        content = annotation_content(line, marker)
        if not content:
            continue
        try:
            merge_tags(tags, parse_tags(content))
        except TagSyntaxError as e:
            errors.append(str(e))
    return tags, errors


class _Parser:
    """Recursive-descent parser over whitespace-free annotation content."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.tags: TagSet = {}

    def parse(self) -> TagSet:
        while not self._at_end():
            if self._peek() == ",":
                self.pos += 1
                continue
            self._block()
        return self.tags

    # -- primitives -----------------------------------------------------

    def _at_end(self) -> bool:
        return self.pos >= len(self.text)

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _expect(self, char: str) -> None:
        if self._peek() != char:
            found = self._peek() or "end of input"
            raise TagSyntaxError(f"expected '{char}' at position {self.pos}, got '{found}'")
        self.pos += 1

    def _name(self, what: str) -> str:
        start = self.pos
        while not self._at_end() and self._peek() not in _DELIMITERS:
            self.pos += 1
        name = self.text[start:self.pos]
        if not name:
            raise TagSyntaxError(f"empty {what} name at position {start}")
        return name

    def _labels(self) -> list[str]:
        """Parse "(a,b,c)" and return the labels."""
        self._expect("(")
        labels: list[str] = []
        while self._peek() != ")":
            if self._at_end():
                raise TagSyntaxError("missing ')' in label list")
            if self._peek() == ",":
                self.pos += 1
                continue
            labels.append(self._name("label"))
        self.pos += 1
        if not labels:
            raise TagSyntaxError(f"empty label list at position {self.pos - 2}")
        return labels

    def _add(self, cat: str, group: str, mod: str, labels: list[str]) -> None:
        existing = self.tags.setdefault(cat, {}).setdefault(group, {}).setdefault(mod, [])
        for label in labels:
            if label not in existing:
                existing.append(label)

    # -- grammar --------------------------------------------------------

    def _block(self) -> None:
        self._expect("#")
        category = self._name("category")
        char = self._peek()
        if char == "(":
            self._add(category, DIRECT, DIRECT, self._labels())
        elif char == "{":
            self.pos += 1
            self._clauses(category)
            self._expect("}")
        else:
            raise TagSyntaxError(f"expected '(' or '{{' after '#{category}'")

    def _clauses(self, category: str) -> None:
        while self._peek() != "}":
            if self._at_end():
                raise TagSyntaxError(f"missing '}}' in block '#{category}'")
            char = self._peek()
            if char == ",":
                self.pos += 1
                continue
            if char == "(":
                self._add(category, DIRECT, DIRECT, self._labels())
                continue

            group = self._name("group")
            char = self._peek()
            if char == "(":
                self._add(category, group, DIRECT, self._labels())
            elif char == "[":
                self.pos += 1
                self._modules(category, group)
                self._expect("]")
            else:
                raise TagSyntaxError(f"expected '(' or '[' after group '{group}'")

    def _modules(self, category: str, group: str) -> None:
        while self._peek() != "]":
            if self._at_end():
                raise TagSyntaxError(f"missing ']' in group '{group}'")
            if self._peek() == ",":
                self.pos += 1
                continue
            module = self._name("module")
            labels = self._labels() if self._peek() == "(" else []
            self._add(category, group, module, labels)


# ----------------------------------------------------------------------
# Serialization
# ----------------------------------------------------------------------


def _label_list(labels: list[str]) -> str:
    return ",".join(sorted(set(labels)))


def serialize_category(category: str, groups: dict[str, dict[str, list[str]]]) -> str:
    """Serialize one category block, or "" when it carries nothing."""
    direct_labels = groups.get(DIRECT, {}).get(DIRECT, [])

    if len(groups) == 1 and DIRECT in groups:
        direct_mods = groups[DIRECT]
        if len(direct_mods) == 1 and direct_labels:
            return f"#{category}({_label_list(direct_labels)})"

    parts: list[str] = []
    if direct_labels:
        parts.append(f"({_label_list(direct_labels)})")

    for group in sorted(g for g in groups if g != DIRECT):
        mods = groups[group]
        group_direct = mods.get(DIRECT, [])
        if group_direct:
            parts.append(f"{group}({_label_list(group_direct)})")
        for mod in sorted(m for m in mods if m != DIRECT):
            labels = mods[mod]
            if labels:
                parts.append(f"{group}[{mod}({_label_list(labels)})]")
            else:
                parts.append(f"{group}[{mod}]")

    if not parts:
        return ""
    return f"#{category}{{{','.join(parts)}}}"


def serialize_tags(tags: TagSet) -> str:
    """Canonical annotation content for a tag set ("" when empty)."""
    blocks = []
    for category in sorted(tags):
        block = serialize_category(category, tags[category])
        if block:
            blocks.append(block)
    return ",".join(blocks)
