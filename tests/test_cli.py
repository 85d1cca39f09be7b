"""Tests for the CLI interface."""

from __future__ import annotations

from pathlib import Path

import pytest
from click.testing import CliRunner

from lixen.cli import main
from lixen.exceptions import IndexingError


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def indexed_project(tmp_project: Path) -> Path:
    """Create a tmp_project that has been initialized."""
    runner = CliRunner()
    result = runner.invoke(main, ["init", "--path", str(tmp_project)])
    assert result.exit_code == 0, f"Init failed: {result.output}"
    return tmp_project


def _selection(root: Path) -> str:
    return (root / ".lixen" / "selection.txt").read_text()


class TestCLIInit:
    def test_init_basic(self, runner: CliRunner, tmp_project: Path):
        result = runner.invoke(main, ["init", "--path", str(tmp_project)])
        assert result.exit_code == 0
        assert "Indexed 8 files" in result.output

    def test_init_creates_lixen_dir(self, runner: CliRunner, tmp_project: Path):
        runner.invoke(main, ["init", "--path", str(tmp_project)])
        assert (tmp_project / ".lixen").exists()
        assert (tmp_project / ".lixen" / "config.json").exists()

    def test_init_module_root(self, runner: CliRunner, tmp_project: Path):
        runner.invoke(main, ["init", "--path", str(tmp_project), "--module-root", "myapp"])
        result = runner.invoke(
            main, ["config", "get", "indexer.module_root", "--path", str(tmp_project)]
        )
        assert "myapp" in result.output

    def test_init_nonexistent_path(self, runner: CliRunner):
        result = runner.invoke(main, ["init", "--path", "/nonexistent/path"])
        assert result.exit_code != 0

    def test_init_file_path(self, runner: CliRunner, tmp_project: Path):
        result = runner.invoke(main, ["init", "--path", str(tmp_project / "app.py")])
        assert result.exit_code == 1
        assert "Not a directory" in result.output
        assert not isinstance(result.exception, IndexingError)


class TestCLIStatus:
    def test_status(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(main, ["status", "--path", str(indexed_project)])
        assert result.exit_code == 0
        assert "Output" in result.output

    def test_status_nonexistent_path(self, runner: CliRunner):
        result = runner.invoke(main, ["status", "--path", "/nonexistent/path"])
        assert result.exit_code != 0


class TestCLITags:
    def test_tags(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(main, ["tags", "--path", str(indexed_project)])
        assert result.exit_code == 0
        assert "#dev" in result.output
        assert "shield" in result.output

    def test_tags_unknown_category(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(main, ["tags", "-c", "nope", "--path", str(indexed_project)])
        assert result.exit_code == 0
        assert "No tags found" in result.output


class TestCLISelection:
    def test_select_group(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(main, ["select", "dev/feature", "--path", str(indexed_project)])
        assert result.exit_code == 0
        assert _selection(indexed_project) == "./core/engine.py\n./plugins/register.py\n"

    def test_toggle_twice(self, runner: CliRunner, indexed_project: Path):
        runner.invoke(main, ["toggle", "focus/-/-/x", "--path", str(indexed_project)])
        assert _selection(indexed_project) == "./app.py\n"
        runner.invoke(main, ["toggle", "focus/-/-/x", "--path", str(indexed_project)])
        assert _selection(indexed_project) == ""

    def test_deselect(self, runner: CliRunner, indexed_project: Path):
        runner.invoke(main, ["select", "dev", "--path", str(indexed_project)])
        runner.invoke(main, ["deselect", "dev/base", "--path", str(indexed_project)])
        assert _selection(indexed_project) == "./core/engine.py\n./plugins/register.py\n"

    def test_invalid_ref(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(main, ["select", "-/x", "--path", str(indexed_project)])
        assert result.exit_code != 0

    def test_add_remove_clear(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(
            main, ["add", "./plain.py", "missing.py", "--path", str(indexed_project)]
        )
        assert result.exit_code == 0
        assert "Not indexed" in result.output
        assert _selection(indexed_project) == "./plain.py\n"

        runner.invoke(main, ["remove", "plain.py", "--path", str(indexed_project)])
        assert _selection(indexed_project) == ""

        runner.invoke(main, ["add", "app.py", "--path", str(indexed_project)])
        runner.invoke(main, ["clear", "--path", str(indexed_project)])
        assert _selection(indexed_project) == ""

    def test_load_patterns(self, runner: CliRunner, indexed_project: Path):
        patterns = indexed_project / "patterns.txt"
        patterns.write_text("# core only\ncore/**\n")
        runner.invoke(main, ["add", "app.py", "--path", str(indexed_project)])
        runner.invoke(main, ["load", str(patterns), "--path", str(indexed_project)])
        assert _selection(indexed_project) == (
            "./app.py\n./core/__init__.py\n./core/engine.py\n./core/util.py\n"
        )

        runner.invoke(main, ["load", str(patterns), "--replace", "--path", str(indexed_project)])
        assert "./app.py" not in _selection(indexed_project)


class TestCLIFind:
    def test_find_and(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(
            main,
            ["find", "-t", "dev", "-m", "core", "--mode", "and", "--path", str(indexed_project)],
        )
        assert result.exit_code == 0
        assert "core/engine.py" in result.output
        assert "plugins/register.py" not in result.output

    def test_find_select(self, runner: CliRunner, indexed_project: Path):
        runner.invoke(main, ["find", "-l", "rend", "--select", "--path", str(indexed_project)])
        assert _selection(indexed_project) == "./core/engine.py\n"

    def test_find_category_exclude(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(
            main,
            ["find", "-c", "de", "-x", "./core/__init__.py", "--select", "--path", str(indexed_project)],
        )
        assert result.exit_code == 0
        assert _selection(indexed_project) == "./core/engine.py\n./plugins/register.py\n"

    def test_find_nothing(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(main, ["find", "-m", "zzz", "--path", str(indexed_project)])
        assert result.exit_code == 0
        assert "No files matched" in result.output


class TestCLIOutput:
    def test_output_stdout(self, runner: CliRunner, indexed_project: Path):
        runner.invoke(main, ["add", "app.py", "--path", str(indexed_project)])
        result = runner.invoke(
            main, ["output", "--stdout", "--depth", "1", "--path", str(indexed_project)]
        )
        assert result.exit_code == 0
        assert result.output == (
            "./app.py\n./core/engine.py\n./plugins/register.py\n./shared/constants.py\n"
        )

    def test_output_no_deps(self, runner: CliRunner, indexed_project: Path):
        runner.invoke(main, ["add", "app.py", "--path", str(indexed_project)])
        result = runner.invoke(
            main, ["output", "--stdout", "--no-deps", "--path", str(indexed_project)]
        )
        assert result.output == "./app.py\n./shared/constants.py\n"

    def test_output_file(self, runner: CliRunner, indexed_project: Path):
        runner.invoke(main, ["add", "plain.py", "--path", str(indexed_project)])
        result = runner.invoke(main, ["output", "--path", str(indexed_project)])
        assert result.exit_code == 0
        assert (indexed_project / "catalog.txt").read_text() == (
            "./plain.py\n./shared/constants.py\n"
        )


class TestCLIDeps:
    def test_deps(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(main, ["deps", "app.py", "--path", str(indexed_project)])
        assert result.exit_code == 0
        assert "core/engine.py" in result.output
        assert "plugins/register.py" in result.output

    def test_deps_not_indexed(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(main, ["deps", "missing.py", "--path", str(indexed_project)])
        assert result.exit_code != 0


class TestCLIEdit:
    def test_edit_add(self, runner: CliRunner, indexed_project: Path):
        runner.invoke(main, ["add", "core/util.py", "--path", str(indexed_project)])
        result = runner.invoke(
            main, ["edit", "--add", "#focus(z)", "--path", str(indexed_project)]
        )
        assert result.exit_code == 0, result.output
        assert "Modified 1 file(s)" in result.output
        text = (indexed_project / "core" / "util.py").read_text()
        assert text.splitlines()[1] == "# @lixen: #focus(z)"

    def test_edit_delete(self, runner: CliRunner, indexed_project: Path):
        runner.invoke(main, ["add", "core/engine.py", "--path", str(indexed_project)])
        result = runner.invoke(
            main,
            ["edit", "--delete", "dev/feature/shield/render", "--path", str(indexed_project)],
        )
        assert result.exit_code == 0, result.output
        text = (indexed_project / "core" / "engine.py").read_text()
        assert "# @lixen: #dev{feature[shield(system)]}" in text

    def test_edit_dry_run(self, runner: CliRunner, indexed_project: Path):
        before = (indexed_project / "app.py").read_text()
        runner.invoke(main, ["add", "app.py", "--path", str(indexed_project)])
        result = runner.invoke(
            main, ["edit", "-a", "#focus(z)", "--dry-run", "--path", str(indexed_project)]
        )
        assert result.exit_code == 0
        assert "Dry run" in result.output
        assert (indexed_project / "app.py").read_text() == before

    def test_edit_parse_error(self, runner: CliRunner, indexed_project: Path):
        runner.invoke(main, ["add", "app.py", "--path", str(indexed_project)])
        result = runner.invoke(
            main, ["edit", "-a", "#dev{feature[x", "--path", str(indexed_project)]
        )
        assert result.exit_code != 0
        assert "Parse error" in result.output

    def test_edit_without_selection(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(main, ["edit", "-a", "#focus(z)", "--path", str(indexed_project)])
        assert result.exit_code != 0
        assert "No files selected" in result.output


class TestCLIConfig:
    def test_config_show(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(
            main, ["config", "show", "--path", str(indexed_project)]
        )
        assert result.exit_code == 0
        assert "indexer" in result.output

    def test_config_get(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(
            main, ["config", "get", "selection.depth_limit", "--path", str(indexed_project)]
        )
        assert result.exit_code == 0
        assert "2" in result.output

    def test_config_set(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(
            main,
            ["config", "set", "selection.depth_limit", "3", "--path", str(indexed_project)],
        )
        assert result.exit_code == 0
        assert "Set" in result.output

    def test_config_set_invalid(self, runner: CliRunner, indexed_project: Path):
        result = runner.invoke(
            main,
            ["config", "set", "selection.depth_limit", "9", "--path", str(indexed_project)],
        )
        assert result.exit_code != 0


class TestCLIVersion:
    def test_version(self, runner: CliRunner):
        result = runner.invoke(main, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output
