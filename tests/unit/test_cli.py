"""Unit tests for the mindmesh CLI — argument parsing and command handlers."""

from __future__ import annotations

from pathlib import Path

import pytest

from mindmesh.cli.commands import _build_parser, main


@pytest.fixture()
def cli_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """A config file pointing at a throwaway SQLite database, no credentials."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("OPENAI_API_KEY", "")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "")
    path = tmp_path / "config.yaml"
    path.write_text(
        "embedding:\n"
        "  dimension: 8\n"
        "storage:\n"
        "  backend: sqlite\n"
        f"database_path: {tmp_path / 'cli.db'}\n",
        encoding="utf-8",
    )
    return path


class TestParser:
    def test_ask_arguments(self) -> None:
        args = _build_parser().parse_args(["ask", "--owner", "alice", "--limit", "3", "Why?"])

        assert args.command == "ask"
        assert args.owner == "alice"
        assert args.limit == 3
        assert args.session is None
        assert args.question == "Why?"

    def test_ingest_requires_files(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["ingest", "--owner", "alice"])

    def test_no_command_prints_help(self, capsys) -> None:
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()


class TestCommands:
    def test_ingest_then_list(self, cli_config: Path, tmp_path: Path, capsys) -> None:
        notes = tmp_path / "notes.txt"
        notes.write_text("Meeting notes about the quarterly roadmap.", encoding="utf-8")

        assert main(["--config", str(cli_config), "ingest", "--owner", "alice", str(notes)]) == 0
        ingest_out = capsys.readouterr().out
        assert "Status:         completed" in ingest_out
        assert "Duplicate:      no" in ingest_out

        assert main(["--config", str(cli_config), "list", "--owner", "alice"]) == 0
        assert "notes.txt" in capsys.readouterr().out

    def test_missing_file_sets_exit_code(self, cli_config: Path, capsys) -> None:
        exit_code = main(["--config", str(cli_config), "ingest", "--owner", "alice", "nope.txt"])

        assert exit_code == 1
        assert "is not a file" in capsys.readouterr().err

    def test_ask_without_documents(self, cli_config: Path, capsys) -> None:
        assert main(["--config", str(cli_config), "ask", "--owner", "alice", "Anything?"]) == 0
        assert "could not find any relevant documents" in capsys.readouterr().out

    def test_application_error_is_reported(self, cli_config: Path, capsys) -> None:
        assert main(["--config", str(cli_config), "ask", "--owner", "alice", "   "]) == 1
        assert "Error:" in capsys.readouterr().err
