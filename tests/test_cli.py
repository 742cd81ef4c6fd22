from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from prt.cli import main
from prt.errors import GhAuthError
from prt.models import PullRequest, Repository


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in ("PRT_GITHUB_USERNAME", "PRT_SEARCH_PATHS", "PRT_CONCURRENCY", "NO_COLOR"):
        monkeypatch.delenv(name, raising=False)
    return tmp_path


class FakeGhClient:
    user_error = None

    def __init__(self, retry_policy=None):
        self.retry_policy = retry_policy

    def check(self):
        pass

    def check_and_get_user(self):
        if self.user_error is not None:
            raise self.user_error
        return "alice"

    def list_prs(self, repo_path):
        return [
            PullRequest(
                number=1,
                title="Add login",
                url="https://github.com/org/api/pull/1",
                author="alice",
                head_branch="login",
                base_branch="main",
                created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
            )
        ]


class FakeScanner:
    repos: list[Repository] = []

    def __init__(self, max_depth=3, include_patterns=None):
        self.max_depth = max_depth

    def scan(self, search_paths):
        return [Repository(name=r.name, path=r.path, owner=r.owner) for r in self.repos]


def test_cli_help_shows_commands():
    runner = CliRunner()
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "scan" in result.output
    assert "init" in result.output
    assert "config" in result.output


def test_scan_help_lists_flags():
    runner = CliRunner()
    result = runner.invoke(main, ["scan", "--help"])
    assert result.exit_code == 0
    for flag in ("--path", "--filter", "--group", "--depth", "--max-age", "--concurrency", "--json", "--all"):
        assert flag in result.output


def test_init_writes_config(home):
    runner = CliRunner()

    result = runner.invoke(main, ["init"])

    assert result.exit_code == 0
    config_file = home / ".prt" / "config.yaml"
    assert config_file.exists()
    assert "search_paths" in config_file.read_text(encoding="utf-8")

    result = runner.invoke(main, ["init"])
    assert "Skipped" in result.output

    config_file.write_text("github_username: bob\n", encoding="utf-8")
    result = runner.invoke(main, ["init", "--force"])
    assert "Created" in result.output
    assert "search_paths" in config_file.read_text(encoding="utf-8")


def test_config_shows_effective_values(home):
    (home / ".prt").mkdir()
    (home / ".prt" / "config.yaml").write_text("github_username: alice\nscan_depth: 2\n", encoding="utf-8")

    result = CliRunner().invoke(main, ["config", "show"])

    assert result.exit_code == 0
    assert "github_username: alice" in result.output
    assert "scan_depth: 2" in result.output


def test_scan_without_search_paths(home):
    result = CliRunner().invoke(main, ["scan"])

    assert result.exit_code == 1
    assert "No search paths configured" in result.output


def test_scan_json(home):
    FakeScanner.repos = [Repository(name="api", path=str(home / "api"), owner="org")]

    with patch("prt.cli.GhClient", FakeGhClient), patch("prt.cli.Scanner", FakeScanner):
        result = CliRunner().invoke(main, ["scan", "--path", str(home), "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["username"] == "alice"
    assert data["total_prs"] == 1
    assert data["my_prs"][0]["number"] == 1
    assert data["my_prs"][0]["repo_owner"] == "org"


def test_scan_text(home):
    FakeScanner.repos = [Repository(name="api", path=str(home / "api"), owner="org")]

    with patch("prt.cli.GhClient", FakeGhClient), patch("prt.cli.Scanner", FakeScanner):
        result = CliRunner().invoke(main, ["scan", "--path", str(home)])

    assert result.exit_code == 0, result.output
    assert "MY PRS" in result.stdout
    assert "#1 Add login" in result.stdout
    assert "1 PRs across 1 repositories" in result.stdout


def test_scan_no_repositories(home):
    FakeScanner.repos = []

    with patch("prt.cli.GhClient", FakeGhClient), patch("prt.cli.Scanner", FakeScanner):
        result = CliRunner().invoke(main, ["scan", "--path", str(home)])

    assert result.exit_code == 0
    assert "No Git repositories found" in result.output


def test_scan_reports_gh_errors(home):
    FakeScanner.repos = []

    class UnauthenticatedClient(FakeGhClient):
        user_error = GhAuthError("GitHub CLI is not authenticated. Run: gh auth login")

    with patch("prt.cli.GhClient", UnauthenticatedClient), patch("prt.cli.Scanner", FakeScanner):
        result = CliRunner().invoke(main, ["scan", "--path", str(home)])

    assert result.exit_code == 1
    assert "gh auth login" in result.output


def test_config_help_lists_subcommands():
    result = CliRunner().invoke(main, ["config", "--help"])
    assert result.exit_code == 0
    for name in ("show", "path", "edit"):
        assert name in result.output


def test_config_path(home):
    runner = CliRunner()
    config_file = home / ".prt" / "config.yaml"

    result = runner.invoke(main, ["config", "path"])
    assert result.exit_code == 0
    assert result.output.strip() == f"{config_file} (not created yet)"

    runner.invoke(main, ["init"])
    result = runner.invoke(main, ["config", "path"])
    assert result.output.strip() == str(config_file)


def test_config_edit_creates_and_opens(home):
    config_file = home / ".prt" / "config.yaml"

    with patch("prt.cli.click.edit") as edit:
        result = CliRunner().invoke(main, ["config", "edit"])

    assert result.exit_code == 0, result.output
    assert "Created new config file" in result.output
    assert config_file.exists()
    edit.assert_called_once_with(filename=str(config_file))


def test_config_edit_keeps_existing_file(home):
    (home / ".prt").mkdir()
    config_file = home / ".prt" / "config.yaml"
    config_file.write_text("github_username: alice\n", encoding="utf-8")

    with patch("prt.cli.click.edit") as edit:
        result = CliRunner().invoke(main, ["config", "edit"])

    assert "Created" not in result.output
    assert config_file.read_text(encoding="utf-8") == "github_username: alice\n"
    edit.assert_called_once_with(filename=str(config_file))


def test_scan_colors_output(home):
    FakeScanner.repos = [Repository(name="api", path=str(home / "api"), owner="org")]

    with patch("prt.cli.GhClient", FakeGhClient), patch("prt.cli.Scanner", FakeScanner):
        colored = CliRunner().invoke(main, ["scan", "--path", str(home)], color=True)
        plain = CliRunner().invoke(main, ["scan", "--path", str(home), "--no-color"], color=True)

    assert colored.exit_code == 0, colored.output
    assert "\x1b[" in colored.stdout
    assert plain.exit_code == 0, plain.output
    assert "\x1b[" not in plain.stdout
    assert "#1 Add login" in plain.stdout


def test_scan_respects_no_color_env(home, monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    FakeScanner.repos = [Repository(name="api", path=str(home / "api"), owner="org")]

    with patch("prt.cli.GhClient", FakeGhClient), patch("prt.cli.Scanner", FakeScanner):
        result = CliRunner().invoke(main, ["scan", "--path", str(home)], color=True)

    assert result.exit_code == 0, result.output
    assert "\x1b[" not in result.stdout
