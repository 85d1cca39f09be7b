"""Tag edit sessions: aggregation, deletion marks, cascade and additions.

A session is opened over a fixed set of files. It aggregates every tag
address those files carry into a tree with per-node coverage, and queues
additions and deletions until the session is committed or discarded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from lixen.index.models import CodebaseIndex
from lixen.tags.grammar import parse_tags, strip_whitespace
from lixen.tags.models import DIRECT, TagRef, has_ref


class Coverage(str, Enum):
    NONE = "none"
    PARTIAL = "partial"
    FULL = "full"


def compute_coverage(count: int, total: int) -> Coverage:
    if count == 0 or total == 0:
        return Coverage.NONE
    if count == total:
        return Coverage.FULL
    return Coverage.PARTIAL


class NodeKind(str, Enum):
    CATEGORY = "category"
    GROUP = "group"
    MODULE = "module"
    LABEL = "label"


_KEY_PREFIX = {
    NodeKind.CATEGORY: "c",
    NodeKind.GROUP: "g",
    NodeKind.MODULE: "m",
    NodeKind.LABEL: "t",
}


@dataclass
class EditorTagNode:
    """One row of the aggregated tag tree."""

    kind: NodeKind
    ref: TagRef
    depth: int
    file_count: int
    total: int
    deleted: bool = False
    implicit_delete: bool = False

    @property
    def coverage(self) -> Coverage:
        return compute_coverage(self.file_count, self.total)

    @property
    def key(self) -> str:
        """Stable expansion key, e.g. ``g:dev,feature``.

        Fields are joined with ",", which is a delimiter in the grammar and
        so never part of a name.
        """
        parts = [p for p in self.ref if p]
        return f"{_KEY_PREFIX[self.kind]}:{','.join(parts)}"

    @property
    def expandable(self) -> bool:
        return self.kind != NodeKind.LABEL

    @property
    def name(self) -> str:
        if self.kind == NodeKind.CATEGORY:
            return f"#{self.ref.category}"
        if self.kind == NodeKind.GROUP:
            return self.ref.group
        if self.kind == NodeKind.MODULE:
            return self.ref.module
        return self.ref.label


@dataclass
class TagDeletion:
    ref: TagRef
    files: list[str]  # files carrying the ref when it was marked


@dataclass
class EditSession:
    """Pending tag edits over a fixed, sorted file set."""

    files: list[str]
    additions: list[TagRef] = field(default_factory=list)
    deletions: list[TagDeletion] = field(default_factory=list)
    expansion: dict[str, bool] = field(default_factory=dict)
    tree: list[EditorTagNode] = field(default_factory=list)

    @property
    def dirty(self) -> bool:
        return bool(self.additions or self.deletions)

    @property
    def deleted_refs(self) -> set[TagRef]:
        return {d.ref for d in self.deletions}

    def find_node(self, ref: TagRef) -> EditorTagNode | None:
        for node in self.tree:
            if node.ref == ref:
                return node
        return None

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def rebuild_tree(self, index: CodebaseIndex) -> None:
        """Aggregate the session files' tags into the display tree.

        The full tree is always built; collapsed nodes only affect
        ``visible_nodes``. Deletion marks are restored from the queue.
        """
        infos = [index.files[p] for p in self.files if p in index.files]
        total = len(self.files)

        # cat -> group -> module -> labels, union over all session files
        seen: dict[str, dict[str, dict[str, set[str]]]] = {}
        for info in infos:
            for cat, groups in info.tags.items():
                for group, mods in groups.items():
                    for mod, labels in mods.items():
                        seen.setdefault(cat, {}).setdefault(group, {}).setdefault(mod, set()).update(labels)

        def count(ref: TagRef) -> int:
            return sum(1 for info in infos if has_ref(info.tags, ref))

        def add(kind: NodeKind, ref: TagRef, depth: int) -> None:
            node = EditorTagNode(kind=kind, ref=ref, depth=depth, file_count=count(ref), total=total)
            if node.expandable:
                self.expansion.setdefault(node.key, True)
            self.tree.append(node)

        self.tree = []
        for cat in sorted(seen):
            groups = seen[cat]
            add(NodeKind.CATEGORY, TagRef(cat), 0)
            for label in sorted(groups.get(DIRECT, {}).get(DIRECT, set())):
                add(NodeKind.LABEL, TagRef(cat, DIRECT, DIRECT, label), 1)

            for group in sorted(g for g in groups if g != DIRECT):
                mods = groups[group]
                add(NodeKind.GROUP, TagRef(cat, group), 1)
                for label in sorted(mods.get(DIRECT, set())):
                    add(NodeKind.LABEL, TagRef(cat, group, DIRECT, label), 2)
                for mod in sorted(m for m in mods if m != DIRECT):
                    add(NodeKind.MODULE, TagRef(cat, group, mod), 2)
                    for label in sorted(mods[mod]):
                        add(NodeKind.LABEL, TagRef(cat, group, mod, label), 3)

        # Drop stale deletions whose nodes vanished
        present = {node.ref for node in self.tree}
        self.deletions = [d for d in self.deletions if d.ref in present]
        self._refresh_marks()

    def visible_nodes(self) -> list[EditorTagNode]:
        """Tree rows with the descendants of collapsed nodes hidden."""
        visible = []
        hidden_below: int | None = None
        for node in self.tree:
            if hidden_below is not None:
                if node.depth > hidden_below:
                    continue
                hidden_below = None
            visible.append(node)
            if node.expandable and not self.expansion.get(node.key, True):
                hidden_below = node.depth
        return visible

    def set_expanded(self, ref: TagRef, expanded: bool) -> None:
        node = self.find_node(ref)
        if node is not None and node.expandable:
            self.expansion[node.key] = expanded

    # ------------------------------------------------------------------
    # Deletions
    # ------------------------------------------------------------------

    def toggle_deletion(self, index: CodebaseIndex, ref: TagRef) -> bool:
        """Mark or un-mark a tree node (and its subtree) for deletion.

        Un-marking also clears any explicitly marked ancestor. Returns
        False if the ref is not in the tree.
        """
        node = self.find_node(ref)
        if node is None:
            return False

        if node.deleted:
            self.deletions = [
                d for d in self.deletions
                if not (ref.covers(d.ref) or d.ref.covers(ref))
            ]
        else:
            for target in [n.ref for n in self.tree if ref.covers(n.ref)]:
                self._add_deletion(index, target)

        self._refresh_marks()
        return True

    def mark_deletion(self, index: CodebaseIndex, ref: TagRef) -> bool:
        """Mark a node for deletion, leaving it marked if it already is."""
        node = self.find_node(ref)
        if node is None:
            return False
        if not node.deleted:
            self.toggle_deletion(index, ref)
        return True

    def _add_deletion(self, index: CodebaseIndex, ref: TagRef) -> None:
        if ref in self.deleted_refs:
            return
        files = [
            path for path in self.files
            if path in index.files and has_ref(index.files[path].tags, ref)
        ]
        if files:
            self.deletions.append(TagDeletion(ref=ref, files=files))

    def _refresh_marks(self) -> None:
        deleted = self.deleted_refs
        for node in self.tree:
            node.deleted = node.ref in deleted
        self.compute_implicit_deletions()

    def compute_implicit_deletions(self) -> None:
        """Flag modules and groups that the explicit marks would empty.

        A module is implicitly deleted when every label under it is marked.
        A group is implicitly deleted when every module and direct label
        under it is deleted, explicitly or implicitly.
        """
        for node in self.tree:
            node.implicit_delete = False

        children: dict[TagRef, list[EditorTagNode]] = {}
        for node in self.tree:
            if node.kind == NodeKind.LABEL:
                parent = TagRef(*node.ref[:3]) if node.ref.module != DIRECT else TagRef(*node.ref[:2])
                if parent.group == DIRECT:
                    continue  # category-direct labels: no category inference
                children.setdefault(parent, []).append(node)
            elif node.kind == NodeKind.MODULE:
                children.setdefault(TagRef(*node.ref[:2]), []).append(node)

        for node in self.tree:
            if node.kind == NodeKind.MODULE and not node.deleted:
                kids = children.get(node.ref, [])
                node.implicit_delete = bool(kids) and all(k.deleted for k in kids)

        for node in self.tree:
            if node.kind == NodeKind.GROUP and not node.deleted:
                kids = children.get(node.ref, [])
                node.implicit_delete = bool(kids) and all(
                    k.deleted or k.implicit_delete for k in kids
                )

    # ------------------------------------------------------------------
    # Additions
    # ------------------------------------------------------------------

    def add_from_text(self, text: str) -> int:
        """Parse free-form tag text and queue its tags as additions.

        A missing leading ``#`` is supplied. Returns the number of newly
        queued refs.

        Raises:
            TagSyntaxError: if the text does not parse; nothing is queued.
        """
        content = strip_whitespace(text)
        if not content:
            return 0
        if not content.startswith("#"):
            content = "#" + content
        tags = parse_tags(content)

        refs: list[TagRef] = []
        for cat in sorted(tags):
            for group in sorted(tags[cat]):
                for mod in sorted(tags[cat][group]):
                    labels = tags[cat][group][mod]
                    if labels:
                        refs.extend(TagRef(cat, group, mod, label) for label in sorted(labels))
                    elif mod != DIRECT:
                        refs.append(TagRef(cat, group, mod))

        count = 0
        for ref in refs:
            if ref not in self.additions:
                self.additions.append(ref)
                count += 1
        return count

    def remove_addition(self, ref: TagRef) -> bool:
        if ref in self.additions:
            self.additions.remove(ref)
            return True
        return False

    def clear(self) -> None:
        self.additions.clear()
        self.deletions.clear()
        self._refresh_marks()


def open_edit_session(selection: set[str], index: CodebaseIndex) -> EditSession:
    """Open a session over the indexed members of the selection."""
    session = EditSession(files=sorted(p for p in selection if p in index.files))
    session.rebuild_tree(index)
    return session
