"""
Tests for the command-line interface.
"""

import io
import stat

import pytest

from motiv.cli import CommandError, build_parser, main, resolve_description, strip_comment_lines


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Point Motiv at an empty home directory with no config file."""
    home = tmp_path / "home"
    monkeypatch.setenv("MOTIV_HOME", str(home))
    monkeypatch.setenv("MOTIV_CONFIG", str(tmp_path / "no-config.yaml"))
    return home


@pytest.fixture
def initialized(home, capsys):
    assert main(["init"]) == 0
    assert main(["project", "add", "--name", "app", "--repo", "git@github.com:acme/app.git"]) == 0
    capsys.readouterr()
    return home


class TestResolveDescription:
    """Tests for description input resolution."""

    def test_words_joined(self):
        assert resolve_description(None, ["Add", "a", "button"]) == "Add a button"

    def test_file_wins(self, tmp_path):
        path = tmp_path / "desc.md"
        path.write_text("  From a file\n\nWith details\n")
        assert resolve_description(str(path), ["ignored"]) == "From a file\n\nWith details"

    def test_missing_file(self, tmp_path):
        with pytest.raises(CommandError, match="File not found"):
            resolve_description(str(tmp_path / "missing.md"), [])

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.md"
        path.write_text("   \n")
        with pytest.raises(CommandError, match="empty"):
            resolve_description(str(path), [])

    def test_piped_stdin(self):
        assert resolve_description(None, [], stdin=io.StringIO("Piped text\n")) == "Piped text"

    def test_strip_comment_lines(self):
        text = "# header\n# more\n\nReal description\n# trailing"
        assert strip_comment_lines(text) == "Real description"


class TestParser:
    """Tests for argument parsing."""

    def test_submit_arguments(self):
        args = build_parser().parse_args(
            ["submit", "-p", "app", "--autonomy", "full", "Add", "tests"]
        )
        assert args.project == "app"
        assert args.autonomy == "full"
        assert args.description == ["Add", "tests"]

    def test_retry_force(self):
        args = build_parser().parse_args(["retry", "REQ-0001", "--force"])
        assert args.request_id == "REQ-0001"
        assert args.force is True

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "Autonomy levels" in capsys.readouterr().out


class TestCommands:
    """Tests for CLI commands against a temporary home."""

    def test_init(self, home, capsys):
        assert main(["init"]) == 0
        out = capsys.readouterr().out
        assert "Motiv initialized." in out
        assert (home / "ledger" / ".git").exists()
        assert (home / "workspaces").is_dir()
        env_file = home / ".env"
        assert "GITHUB_TOKEN=" in env_file.read_text()
        assert stat.S_IMODE(env_file.stat().st_mode) == 0o600

        assert main(["init"]) == 0
        assert "already initialized" in capsys.readouterr().out

    def test_commands_require_init(self, home, capsys):
        assert main(["status"]) == 1
        assert "not initialized" in capsys.readouterr().err

    def test_project_add_and_list(self, initialized, capsys):
        assert main(["project", "list"]) == 0
        out = capsys.readouterr().out
        assert "app" in out
        assert "git@github.com:acme/app.git" in out
        assert "draft_pr" in out

    def test_duplicate_project(self, initialized, capsys):
        assert main(["project", "add", "--name", "app", "--repo", "x"]) == 1
        assert "already exists" in capsys.readouterr().err

    def test_project_add_invalid_autonomy(self, initialized, capsys):
        code = main(["project", "add", "--name", "other", "--repo", "x", "--autonomy", "yolo"])
        assert code == 1
        assert "Invalid autonomy level" in capsys.readouterr().err

    def test_submit_ingest_only(self, initialized, capsys):
        code = main(["submit", "-p", "app", "--autonomy", "ingest_only", "Add", "a", "README"])
        assert code == 0
        out = capsys.readouterr().out
        assert "Request:  REQ-0001" in out
        assert "execution skipped" in out

        assert main(["status"]) == 0
        out = capsys.readouterr().out
        assert "REQ-0001" in out
        assert "[ ] ingested" in out
        assert "Add a README" in out

    def test_submit_unknown_project(self, initialized, capsys):
        assert main(["submit", "-p", "ghost", "desc"]) == 1
        assert 'Project "ghost" not found' in capsys.readouterr().err

    def test_show_and_logs(self, initialized, capsys):
        main(["submit", "-p", "app", "--autonomy", "ingest_only", "Add a README"])
        capsys.readouterr()

        assert main(["show", "REQ-0001"]) == 0
        out = capsys.readouterr().out
        assert "Request:  REQ-0001" in out
        assert "Branch:   motiv/REQ-0001" in out
        assert "v1 [initial]" in out

        assert main(["logs", "REQ-0001"]) == 0
        out = capsys.readouterr().out
        assert "created: Request created from cli: Add a README" in out

    def test_show_unknown_request(self, initialized, capsys):
        assert main(["show", "REQ-0042"]) == 1
        assert "REQ-0042 not found" in capsys.readouterr().err

    def test_amend_rejected_for_ingested(self, initialized, capsys):
        main(["submit", "-p", "app", "--autonomy", "ingest_only", "Add a README"])
        capsys.readouterr()
        assert main(["amend", "REQ-0001", "More"]) == 1
        assert "cannot be amended" in capsys.readouterr().err

    def test_retry_rejected_for_ingested(self, initialized, capsys):
        main(["submit", "-p", "app", "--autonomy", "ingest_only", "Add a README"])
        capsys.readouterr()
        assert main(["retry", "REQ-0001"]) == 1
        assert "--force" in capsys.readouterr().err

    def test_empty_status(self, initialized, capsys):
        assert main(["status"]) == 0
        assert "No requests" in capsys.readouterr().out

    def test_invalid_config(self, tmp_path, monkeypatch, capsys):
        config = tmp_path / "bad.yaml"
        config.write_text("provider:\n  kind: mystery\n")
        monkeypatch.setenv("MOTIV_HOME", str(tmp_path / "home"))
        assert main(["--config", str(config), "status"]) == 1
        assert "Invalid configuration" in capsys.readouterr().err
