"""Tests for the glspgen command line."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from glspgen import __version__
from glspgen.cli import app

runner = CliRunner()


class TestGenerate:
    def test_writes_files(self, grammar_file: Path, tmp_path: Path) -> None:
        out = tmp_path / "out"
        result = runner.invoke(app, ["generate", str(grammar_file), "--output", str(out)])

        assert result.exit_code == 0, result.output
        assert "Generated" in result.stdout
        assert (out / "common" / "model-types.ts").exists()
        assert (out / "browser" / "views" / "state-view.tsx").exists()

    def test_dry_run_json(self, grammar_file: Path, tmp_path: Path) -> None:
        out = tmp_path / "out"
        result = runner.invoke(
            app,
            ["generate", str(grammar_file), "-o", str(out), "--dry-run", "--json", "-t", "common"],
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert payload["success"] is True
        assert payload["phase"] == "done"
        assert payload["written"] == []
        assert all(path.startswith("common/") for path in payload["files"])
        assert not out.exists()

    def test_plugin_option(self, grammar_file: Path, tmp_path: Path) -> None:
        out = tmp_path / "out"
        result = runner.invoke(app, ["generate", str(grammar_file), "-o", str(out), "-p", "type-safety"])
        assert result.exit_code == 0, result.output
        assert (out / "common" / "type-guards.ts").exists()

    def test_unknown_plugin(self, grammar_file: Path, tmp_path: Path) -> None:
        result = runner.invoke(app, ["generate", str(grammar_file), "-o", str(tmp_path), "-p", "nope"])
        assert result.exit_code == 1

    def test_config_file_beside_grammar(self, grammar_file: Path, tmp_path: Path) -> None:
        (grammar_file.parent / "glspgen.toml").write_text(
            '[generation]\ntargets = ["server"]\n',
            encoding="utf-8",
        )
        out = tmp_path / "out"
        result = runner.invoke(app, ["generate", str(grammar_file), "-o", str(out)])

        assert result.exit_code == 0, result.output
        assert (out / "server" / "server-module.ts").exists()
        assert not (out / "common").exists()

    def test_invalid_grammar(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.langium"
        path.write_text("interface Task {\n    owner: Person\n}\n", encoding="utf-8")
        out = tmp_path / "out"
        result = runner.invoke(app, ["generate", str(path), "-o", str(out)])

        assert result.exit_code == 1
        assert not out.exists()


class TestValidate:
    def test_valid_grammar(self, grammar_file: Path) -> None:
        result = runner.invoke(app, ["validate", str(grammar_file)])

        assert result.exit_code == 0, result.output
        assert "StartState" in result.stdout
        assert "Transition" in result.stdout
        assert "Grammar is valid" in result.stdout

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", str(tmp_path / "missing.langium")])
        assert result.exit_code == 1

    def test_parse_error(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.langium"
        path.write_text("interface Broken {\n", encoding="utf-8")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1


class TestTemplates:
    def test_lists_builtin(self) -> None:
        result = runner.invoke(app, ["templates"])
        assert result.exit_code == 0
        assert "server/model-factory" in result.stdout
        assert "browser/frontend-module" in result.stdout

    def test_category(self) -> None:
        result = runner.invoke(app, ["templates", "common"])
        assert result.exit_code == 0
        assert "common/model-types" in result.stdout
        assert "server/" not in result.stdout


def test_version() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout
