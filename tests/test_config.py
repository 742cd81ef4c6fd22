from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from prt.config import (
    GROUP_BY_AUTHOR,
    KNOWN_BOTS,
    SORT_NEWEST,
    ConfigError,
    Flags,
    PrtConfig,
    config_path,
    expand_path,
)


def write_config(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def test_load_defaults_when_missing(tmp_path):
    config = PrtConfig.load(tmp_path / "missing.yaml", environ={})

    assert config.github_username == ""
    assert config.search_paths == []
    assert config.scan_depth == 3
    assert config.default_group_by == "project"
    assert config.default_sort == "oldest"
    assert config.bots == KNOWN_BOTS
    assert config.fetch.concurrency == 10
    assert config.fetch.max_attempts == 3
    assert config.needs_setup()


def test_load_from_file(tmp_path):
    path = write_config(tmp_path, {
        "github_username": "alice",
        "team_members": ["bob", "carol"],
        "search_paths": [str(tmp_path)],
        "include_repos": ["svc-*"],
        "scan_depth": 2,
        "default_group_by": "author",
        "default_sort": "newest",
        "show_other_prs": True,
        "max_pr_age_days": 30,
        "fetch": {"concurrency": 4, "max_attempts": 5},
    })

    config = PrtConfig.load(path, environ={})

    assert config.github_username == "alice"
    assert config.team_members == ["bob", "carol"]
    assert config.search_paths == [str(tmp_path)]
    assert config.include_repos == ["svc-*"]
    assert config.scan_depth == 2
    assert config.default_group_by == GROUP_BY_AUTHOR
    assert config.default_sort == SORT_NEWEST
    assert config.show_other_prs is True
    assert config.max_pr_age_days == 30
    assert config.fetch.concurrency == 4
    assert config.fetch.max_attempts == 5
    assert config.fetch.initial_wait == 1.0
    assert not config.needs_setup()


def test_load_expands_home(tmp_path):
    path = write_config(tmp_path, {"search_paths": ["~/code"]})
    config = PrtConfig.load(path, environ={})
    assert config.search_paths == [expand_path("~/code")]
    assert not config.search_paths[0].startswith("~")


def test_load_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("search_paths: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError):
        PrtConfig.load(path, environ={})


def test_load_non_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        PrtConfig.load(path, environ={})


def test_load_coerces_scalar_strings(tmp_path):
    path = write_config(tmp_path, {
        "scan_depth": "3",
        "show_icons": "no",
        "team_members": "bob, carol",
        "fetch": {"concurrency": "4", "initial_wait": "0.5"},
    })

    config = PrtConfig.load(path, environ={})

    assert config.scan_depth == 3
    assert config.show_icons is False
    assert config.team_members == ["bob", "carol"]
    assert config.fetch.concurrency == 4
    assert config.fetch.initial_wait == 0.5
    config.search_paths = [str(tmp_path)]
    config.github_username = "alice"
    config.validate()


def test_load_rejects_mistyped_values(tmp_path):
    path = write_config(tmp_path, {
        "scan_depth": "deep",
        "show_icons": "maybe",
        "search_paths": {"home": "~/code"},
        "max_pr_age_days": True,
        "fetch": {"concurrency": [1, 2]},
    })

    with pytest.raises(ConfigError) as exc_info:
        PrtConfig.load(path, environ={})

    errors = exc_info.value.errors
    assert len(errors) == 5
    assert any(e.startswith("scan_depth:") for e in errors)
    assert any(e.startswith("show_icons:") for e in errors)
    assert any(e.startswith("search_paths:") for e in errors)
    assert any(e.startswith("max_pr_age_days:") for e in errors)
    assert any(e.startswith("fetch.concurrency:") for e in errors)


def test_load_rejects_non_mapping_fetch(tmp_path):
    path = write_config(tmp_path, {"fetch": [1, 2]})
    with pytest.raises(ConfigError, match="fetch"):
        PrtConfig.load(path, environ={})


def test_env_overrides_file(tmp_path):
    path = write_config(tmp_path, {"github_username": "alice", "scan_depth": 2})
    environ = {
        "PRT_GITHUB_USERNAME": "bob",
        "PRT_TEAM_MEMBERS": "carol, dave ,",
        "PRT_SCAN_DEPTH": "5",
        "PRT_SHOW_OTHER_PRS": "yes",
        "PRT_CONCURRENCY": "3",
    }

    config = PrtConfig.load(path, environ=environ)

    assert config.github_username == "bob"
    assert config.team_members == ["carol", "dave"]
    assert config.scan_depth == 5
    assert config.show_other_prs is True
    assert config.fetch.concurrency == 3


def test_env_invalid_int(tmp_path):
    with pytest.raises(ConfigError, match="PRT_SCAN_DEPTH"):
        PrtConfig.load(tmp_path / "missing.yaml", environ={"PRT_SCAN_DEPTH": "deep"})


def test_flags_override_env(tmp_path):
    path = write_config(tmp_path, {"search_paths": ["/from/file"], "scan_depth": 2})
    flags = Flags(path=str(tmp_path), filter="api-*", group="author", depth=4, max_age=7, concurrency=2)

    config = PrtConfig.load(path, flags=flags, environ={"PRT_SCAN_DEPTH": "6"})

    assert config.search_paths == [str(tmp_path)]
    assert config.include_repos == ["api-*"]
    assert config.default_group_by == "author"
    assert config.scan_depth == 4
    assert config.max_pr_age_days == 7
    assert config.fetch.concurrency == 2


def test_zero_flags_keep_config(tmp_path):
    path = write_config(tmp_path, {"scan_depth": 2, "fetch": {"concurrency": 6}})
    config = PrtConfig.load(path, flags=Flags(), environ={})
    assert config.scan_depth == 2
    assert config.fetch.concurrency == 6


def test_validate_ok(tmp_path):
    config = PrtConfig(github_username="alice", search_paths=[str(tmp_path)])
    config.validate()


def test_validate_collects_errors(tmp_path):
    config = PrtConfig(
        search_paths=[str(tmp_path / "nope")],
        default_group_by="team",
        default_sort="random",
        scan_depth=0,
        max_pr_age_days=-1,
    )
    config.fetch.concurrency = 0

    with pytest.raises(ConfigError) as exc_info:
        config.validate()

    errors = exc_info.value.errors
    assert len(errors) == 7
    message = str(exc_info.value)
    assert "github_username" in message
    assert "search path does not exist" in message
    assert "default_group_by" in message
    assert "default_sort" in message
    assert "scan_depth" in message
    assert "fetch.concurrency" in message


def test_validate_requires_search_paths():
    config = PrtConfig(github_username="alice")
    with pytest.raises(ConfigError, match="search_path"):
        config.validate()


def test_to_dict_round_trips_through_yaml(tmp_path):
    config = PrtConfig(github_username="alice", search_paths=[str(tmp_path)])
    dumped = yaml.safe_dump(config.to_dict())
    path = tmp_path / "config.yaml"
    path.write_text(dumped, encoding="utf-8")

    loaded = PrtConfig.load(path, environ={})
    assert loaded == config


def test_config_path_under_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))
    assert config_path() == tmp_path / ".prt" / "config.yaml"
