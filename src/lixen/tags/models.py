"""Tag addresses and nested tag sets.

A tag lives at a 4-level address: category -> group -> module -> label.
The 2- and 3-level annotation forms omit the group and/or module; those
levels hold the ``DIRECT`` sentinel instead of a name.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import NamedTuple

# Parentheses are grammar delimiters, so no parsed name can collide with it.
DIRECT = "(direct)"

# Segment used for DIRECT in the path form "category/group/module/label".
DIRECT_SEGMENT = "-"

# category -> group -> module -> labels
TagSet = dict[str, dict[str, dict[str, list[str]]]]


class TagRef(NamedTuple):
    """A (possibly partial) tag address.

    Empty trailing fields mean "this level and everything beneath it", so
    ``TagRef("dev")`` refers to the whole ``dev`` category while
    ``TagRef("dev", "feature", "shield", "render")`` is a single label.
    """

    category: str
    group: str = ""
    module: str = ""
    label: str = ""

    @property
    def level(self) -> int:
        """Number of populated fields (1 = category ... 4 = label)."""
        if not self.group:
            return 1
        if not self.module:
            return 2
        if not self.label:
            return 3
        return 4

    @property
    def is_address(self) -> bool:
        return self.level == 4

    @property
    def parent(self) -> TagRef | None:
        level = self.level
        if level == 1:
            return None
        return TagRef(*self[: level - 1])

    def covers(self, other: TagRef) -> bool:
        """True if `other` is this ref or lies beneath it in the hierarchy."""
        level = self.level
        return other.level >= level and tuple(other[:level]) == tuple(self[:level])

    @property
    def path(self) -> str:
        parts = [self.category]
        for value in self[1 : self.level]:
            parts.append(DIRECT_SEGMENT if value == DIRECT else value)
        return "/".join(parts)

    @classmethod
    def from_path(cls, spec: str) -> TagRef:
        """Parse "category/group/module/label" ("-" marks an omitted level)."""
        parts = [p.strip() for p in spec.strip().strip("/").split("/")]
        if not parts or not parts[0] or len(parts) > 4 or any(not p for p in parts):
            raise ValueError(f"Invalid tag reference: {spec!r}")
        values = [DIRECT if p == DIRECT_SEGMENT else p for p in parts]
        if values[0] == DIRECT:
            raise ValueError(f"Category cannot be omitted: {spec!r}")
        return cls(*values)

    def __str__(self) -> str:
        return self.path


def copy_tags(tags: TagSet) -> TagSet:
    """Deep-copy a tag set."""
    return {
        cat: {
            group: {mod: list(labels) for mod, labels in mods.items()}
            for group, mods in groups.items()
        }
        for cat, groups in tags.items()
    }


def merge_tags(target: TagSet, source: TagSet) -> None:
    """Merge `source` into `target`, keeping label lists free of duplicates."""
    for cat, groups in source.items():
        cat_groups = target.setdefault(cat, {})
        for group, mods in groups.items():
            group_mods = cat_groups.setdefault(group, {})
            for mod, labels in mods.items():
                existing = group_mods.setdefault(mod, [])
                for label in labels:
                    if label not in existing:
                        existing.append(label)


def normalize_tags(tags: TagSet) -> TagSet:
    """Return a copy with sorted, de-duplicated labels and empty containers dropped.

    Modules are kept even without labels (``group[module]`` is meaningful);
    a DIRECT module with no labels carries nothing and is dropped.
    """
    result: TagSet = {}
    for cat, groups in tags.items():
        out_groups: dict[str, dict[str, list[str]]] = {}
        for group, mods in groups.items():
            out_mods: dict[str, list[str]] = {}
            for mod, labels in mods.items():
                unique = sorted(set(labels))
                if mod == DIRECT and not unique:
                    continue
                out_mods[mod] = unique
            if out_mods:
                out_groups[group] = out_mods
        if out_groups:
            result[cat] = out_groups
    return result


def has_ref(tags: TagSet, ref: TagRef) -> bool:
    """True if the tag set has content at or under the ref's level."""
    groups = tags.get(ref.category)
    if groups is None:
        return False
    if not ref.group:
        return True

    mods = groups.get(ref.group)
    if mods is None:
        return False
    if not ref.module:
        return True

    labels = mods.get(ref.module)
    if labels is None:
        return False
    if not ref.label:
        return True

    return ref.label in labels


def iter_refs(tags: TagSet) -> Iterator[TagRef]:
    """Yield every category, group, module and label ref present in a tag set.

    DIRECT levels are not yielded on their own; their labels are.
    """
    for cat, groups in tags.items():
        yield TagRef(cat)
        for group, mods in groups.items():
            if group != DIRECT:
                yield TagRef(cat, group)
            for mod, labels in mods.items():
                if mod != DIRECT:
                    yield TagRef(cat, group, mod)
                for label in labels:
                    yield TagRef(cat, group, mod, label)
