"""Tests for committing edit sessions back to source files."""

from __future__ import annotations

from pathlib import Path

import pytest

import lixen.editor.commit as commit_module
from lixen.editor.commit import (
    add_ref,
    apply_pending,
    commit_edit_session,
    delete_ref,
    plan_changes,
    splice_annotation,
)
from lixen.editor.session import TagDeletion, open_edit_session
from lixen.fileio import write_atomic
from lixen.index.builder import IndexBuilder
from lixen.index.models import CodebaseIndex
from lixen.tags.grammar import parse_tags
from lixen.tags.models import DIRECT, TagRef
from lixen.tags.placement import header_bounds, header_comment_indices, insertion_index

RENDER = TagRef("dev", "feature", "shield", "render")
SYSTEM = TagRef("dev", "feature", "shield", "system")


class TestTagMutation:
    def test_delete_label_keeps_siblings(self):
        tags = parse_tags("#dev{feature[shield(render,system)]}")
        delete_ref(tags, RENDER)
        assert tags == {"dev": {"feature": {"shield": ["system"]}}}

    def test_delete_last_label_cascades(self):
        tags = parse_tags("#dev{feature[shield(render)]},#focus(x)")
        delete_ref(tags, RENDER)
        assert tags == {"focus": {DIRECT: {DIRECT: ["x"]}}}

    def test_delete_group_and_category(self):
        tags = parse_tags("#dev{base(core),feature[loader]}")
        delete_ref(tags, TagRef("dev", "feature"))
        assert tags == {"dev": {"base": {DIRECT: ["core"]}}}
        delete_ref(tags, TagRef("dev"))
        assert tags == {}

    def test_delete_missing_is_noop(self):
        tags = parse_tags("#focus(x)")
        delete_ref(tags, TagRef("dev", "feature"))
        delete_ref(tags, TagRef("focus", DIRECT, DIRECT, "nope"))
        assert tags == {"focus": {DIRECT: {DIRECT: ["x"]}}}

    def test_add_ref(self):
        tags: dict = {}
        add_ref(tags, RENDER)
        add_ref(tags, RENDER)
        add_ref(tags, TagRef("dev", "feature", "loader"))
        assert tags == {"dev": {"feature": {"shield": ["render"], "loader": []}}}

    def test_apply_pending_only_recorded_files(self):
        tags = parse_tags("#dev{feature[shield(render,system)]}")
        deletion = TagDeletion(ref=RENDER, files=["other.py"])
        assert apply_pending(tags, "mine.py", [], [deletion]) == tags


class TestSplice:
    def test_insert_after_docstring(self):
        text = '"""Doc."""\n\nX = 1\n'
        assert splice_annotation(text, "#focus(a)", "lixen") == (
            '"""Doc."""\n# @lixen: #focus(a)\n\nX = 1\n'
        )

    def test_insert_after_multiline_docstring(self):
        text = '"""Summary.\n\nMore.\n"""\nX = 1\n'
        result = splice_annotation(text, "#focus(a)", "lixen")
        assert result.splitlines()[4] == "# @lixen: #focus(a)"

    def test_insert_without_docstring(self):
        text = "#!/usr/bin/env python\n# -*- coding: utf-8 -*-\nimport os\n"
        assert splice_annotation(text, "#focus(a)", "lixen") == (
            "#!/usr/bin/env python\n# -*- coding: utf-8 -*-\n# @lixen: #focus(a)\nimport os\n"
        )

    def test_insert_after_license_comments(self):
        text = "# Copyright X\n# License MIT\n\nimport os\n"
        assert splice_annotation(text, "#focus(a)", "lixen") == (
            "# Copyright X\n# License MIT\n# @lixen: #focus(a)\n\nimport os\n"
        )

    def test_docstring_example_left_alone(self):
        text = '"""Module.\n\nUsage example:\n    # @lixen: #demo(example)\n"""\n\nX = 1\n'
        assert splice_annotation(text, "#focus(a)", "lixen") == (
            '"""Module.\n\nUsage example:\n    # @lixen: #demo(example)\n"""\n'
            "# @lixen: #focus(a)\n\nX = 1\n"
        )

    def test_byte_order_mark_kept_first(self):
        text = '\ufeff"""Doc."""\n# @lixen: #focus(x)\n\nX = 1\n'
        assert splice_annotation(text, "#focus(x,z)", "lixen") == (
            '\ufeff"""Doc."""\n# @lixen: #focus(x,z)\n\nX = 1\n'
        )
        assert splice_annotation("\ufeffX = 1\n", "#focus(a)", "lixen") == (
            "\ufeff# @lixen: #focus(a)\nX = 1\n"
        )

    def test_empty_file(self):
        assert splice_annotation("", "#focus(a)", "lixen") == "# @lixen: #focus(a)\n"

    def test_replace_and_collapse(self):
        text = '"""Doc."""\n# @lixen: #focus(a)\n# note\n# @lixen: #focus(b)\nX = 1\n'
        assert splice_annotation(text, "#focus(a,b,c)", "lixen") == (
            '"""Doc."""\n# @lixen: #focus(a,b,c)\n# note\nX = 1\n'
        )

    def test_remove(self):
        text = '"""Doc."""\n# @lixen: #focus(a)\nX = 1\n'
        assert splice_annotation(text, "", "lixen") == '"""Doc."""\nX = 1\n'

    def test_annotation_below_header_untouched(self):
        text = '"""Doc."""\nX = 1\n# @lixen: #focus(old)\n'
        assert splice_annotation(text, "#focus(a)", "lixen") == (
            '"""Doc."""\n# @lixen: #focus(a)\nX = 1\n# @lixen: #focus(old)\n'
        )

    def test_crlf_preserved(self):
        text = '"""Doc."""\r\nX = 1\r\n'
        assert splice_annotation(text, "#focus(a)", "lixen") == (
            '"""Doc."""\r\n# @lixen: #focus(a)\r\nX = 1\r\n'
        )

    def test_missing_final_newline_preserved(self):
        assert splice_annotation('"""Doc."""', "#focus(a)", "lixen") == (
            '"""Doc."""\n# @lixen: #focus(a)'
        )


class TestPlacement:
    def test_header_bounds(self):
        lines = ["#!/usr/bin/env python", '"""Doc', "", 'end."""', "# c", "", "import os"]
        assert header_bounds(lines) == (3, 6)

    def test_no_docstring(self):
        assert header_bounds(["import os"]) == (None, 0)
        assert insertion_index(["import os"]) == 0

    def test_single_quoted_docstring(self):
        assert insertion_index(["'Doc.'", "X = 1"]) == 1

    def test_header_comment_indices_skip_docstring(self):
        lines = ["# lead", '"""Doc', "# quoted", '"""', "# after", "import os"]
        assert header_comment_indices(lines) == [0, 4]

    def test_insertion_after_comment_block(self):
        assert insertion_index(["# a", "# b", "", "import os"]) == 2
        assert insertion_index(["# a", "", "# b", "import os"]) == 1


class TestCommit:
    def test_insert_into_untagged_file(self, tmp_project: Path, index: CodebaseIndex):
        session = open_edit_session({"core/util.py"}, index)
        session.add_from_text("#dev{feature[shield(render,system)]}")
        result = commit_edit_session(session, index)

        assert result.modified == ["core/util.py"]
        lines = (tmp_project / "core" / "util.py").read_text().splitlines()
        assert lines[0] == '"""Helpers."""'
        assert lines[1] == "# @lixen: #dev{feature[shield(render,system)]}"
        assert result.index.files["core/util.py"].tags["dev"]["feature"]["shield"] == ["render", "system"]

    def test_delete_all_tags_removes_line(self, tmp_project: Path, index: CodebaseIndex):
        session = open_edit_session({"app.py"}, index)
        session.toggle_deletion(index, TagRef("focus"))
        result = commit_edit_session(session, index)

        assert result.modified == ["app.py"]
        text = (tmp_project / "app.py").read_text()
        assert "@lixen" not in text
        assert text.startswith('"""Application entry point."""\n\nfrom core import Engine\n')
        assert result.index.files["app.py"].tags == {}

    def test_delete_last_labels_drops_module(self, tmp_project: Path, index: CodebaseIndex):
        session = open_edit_session({"core/engine.py"}, index)
        session.toggle_deletion(index, RENDER)
        session.toggle_deletion(index, SYSTEM)
        commit_edit_session(session, index)
        assert "@lixen" not in (tmp_project / "core" / "engine.py").read_text()

    def test_partial_label_delete(self, tmp_project: Path, index: CodebaseIndex):
        session = open_edit_session({"core/engine.py"}, index)
        session.toggle_deletion(index, RENDER)
        commit_edit_session(session, index)
        text = (tmp_project / "core" / "engine.py").read_text()
        assert "# @lixen: #dev{feature[shield(system)]}\n" in text

    def test_deletion_only_touches_carriers(self, tmp_project: Path, index: CodebaseIndex):
        before = (tmp_project / "plugins" / "register.py").read_bytes()
        session = open_edit_session({"app.py", "plugins/register.py"}, index)
        session.toggle_deletion(index, TagRef("focus", DIRECT, DIRECT, "x"))
        result = commit_edit_session(session, index)
        assert result.modified == ["app.py"]
        assert (tmp_project / "plugins" / "register.py").read_bytes() == before

    def test_noop_leaves_file_identical(self, tmp_project: Path, index: CodebaseIndex):
        before = (tmp_project / "app.py").read_bytes()
        session = open_edit_session({"app.py"}, index)
        session.add_from_text("#focus(x)")
        result = commit_edit_session(session, index)
        assert result.modified == []
        assert (tmp_project / "app.py").read_bytes() == before

    def test_byte_order_mark_file(self, tmp_project: Path):
        path = tmp_project / "core" / "util.py"
        path.write_text('\ufeff"""Doc."""\n# @lixen: #focus(x)\n\nX = 1\n', encoding="utf-8")
        index = IndexBuilder().build(tmp_project)
        session = open_edit_session({"core/util.py"}, index)
        session.add_from_text("#focus(z)")
        result = commit_edit_session(session, index)

        assert result.modified == ["core/util.py"]
        assert path.read_bytes() == (
            b'\xef\xbb\xbf"""Doc."""\n# @lixen: #focus(x,z)\n\nX = 1\n'
        )
        assert result.index.files["core/util.py"].tags == {"focus": {DIRECT: {DIRECT: ["x", "z"]}}}

    def test_session_cleared(self, index: CodebaseIndex):
        session = open_edit_session({"app.py"}, index)
        session.add_from_text("#focus(z)")
        commit_edit_session(session, index)
        assert not session.dirty

    def test_failure_does_not_stop_other_files(
        self, tmp_project: Path, index: CodebaseIndex, monkeypatch: pytest.MonkeyPatch
    ):
        def flaky_write(path, text):
            if Path(path).name == "app.py":
                raise OSError("disk full")
            write_atomic(path, text)

        monkeypatch.setattr(commit_module, "write_atomic", flaky_write)
        session = open_edit_session({"app.py", "core/engine.py"}, index)
        session.add_from_text("#focus(z)")
        result = commit_edit_session(session, index)

        assert result.failed == ["app.py"]
        assert result.modified == ["core/engine.py"]
        assert "z" not in result.index.files["app.py"].tags["focus"][DIRECT][DIRECT]
        assert "z" in result.index.files["core/engine.py"].tags["focus"][DIRECT][DIRECT]

    def test_plan_changes(self, index: CodebaseIndex):
        session = open_edit_session({"app.py", "core/util.py"}, index)
        session.toggle_deletion(index, TagRef("focus", DIRECT, DIRECT, "y"))
        changes = plan_changes(session, index)
        assert len(changes) == 1
        assert changes[0].path == "app.py"
        assert changes[0].before == "#focus(x,y)"
        assert changes[0].after == "#focus(x)"


class TestWriteAtomic:
    def test_replaces_and_keeps_mode(self, tmp_path: Path):
        target = tmp_path / "f.py"
        target.write_text("old\n")
        target.chmod(0o640)
        write_atomic(target, "new\r\n")
        assert target.read_bytes() == b"new\r\n"
        assert target.stat().st_mode & 0o777 == 0o640
        assert list(tmp_path.iterdir()) == [target]
