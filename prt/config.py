"""
Configuration management for PRT.

Loads ~/.prt/config.yaml and layers overrides on top, highest first:
1. CLI flags
2. Environment variables (PRT_* prefix)
3. Config file
4. Defaults
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml


GROUP_BY_PROJECT = "project"
GROUP_BY_AUTHOR = "author"

SORT_OLDEST = "oldest"
SORT_NEWEST = "newest"

ENV_PREFIX = "PRT_"

# Common bot accounts, kept out of the team bucket
KNOWN_BOTS = [
    "dependabot[bot]",
    "dependabot",
    "renovate[bot]",
    "renovate",
    "github-actions[bot]",
    "codecov[bot]",
    "codecov",
    "semantic-release-bot",
    "greenkeeper[bot]",
    "snyk-bot",
    "imgbot[bot]",
    "allcontributors[bot]",
    "mergify[bot]",
    "kodiakhq[bot]",
    "stale[bot]",
]


class ConfigError(Exception):
    """One or more configuration problems."""

    def __init__(self, errors: list[str]):
        super().__init__("configuration errors:\n  - " + "\n  - ".join(errors))
        self.errors = errors


@dataclass
class FetchConfig:
    """How PRs are fetched from GitHub."""
    concurrency: int = 10  # max gh calls in flight
    max_attempts: int = 3
    initial_wait: float = 1.0  # seconds
    max_wait: float = 10.0  # seconds


@dataclass
class Flags:
    """CLI flag values that override the config."""
    path: str | None = None  # replaces search_paths
    filter: str | None = None  # replaces include_repos
    group: str | None = None
    depth: int = 0
    max_age: int = 0
    concurrency: int = 0


@dataclass
class PrtConfig:
    """Complete PRT configuration."""
    github_username: str = ""  # auto-detected through gh when empty
    team_members: list[str] = field(default_factory=list)

    # Repository discovery
    search_paths: list[str] = field(default_factory=list)
    include_repos: list[str] = field(default_factory=list)  # globs, empty = all
    scan_depth: int = 3

    bots: list[str] = field(default_factory=lambda: list(KNOWN_BOTS))

    # Display
    default_group_by: str = GROUP_BY_PROJECT  # project | author
    default_sort: str = SORT_OLDEST  # oldest | newest
    show_branch_name: bool = True
    show_icons: bool = True
    show_other_prs: bool = False

    max_pr_age_days: int = 0  # 0 = no limit

    fetch: FetchConfig = field(default_factory=FetchConfig)

    @classmethod
    def load(
        cls,
        path: Path | None = None,
        flags: Flags | None = None,
        environ: dict[str, str] | None = None,
    ) -> "PrtConfig":
        """Load configuration from file, environment and flags."""
        config_file = path or config_path()
        config = cls()

        if config_file.exists():
            with open(config_file, encoding="utf-8") as f:
                try:
                    data = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    raise ConfigError([f"error reading config {config_file}: {e}"]) from e
            if not isinstance(data, dict):
                raise ConfigError([f"config {config_file} must be a mapping"])
            config = cls._parse(data)

        config._apply_env(os.environ if environ is None else environ)
        if flags is not None:
            config._apply_flags(flags)

        config.search_paths = expand_paths(config.search_paths)
        return config

    @classmethod
    def _parse(cls, data: dict[str, Any]) -> "PrtConfig":
        errors: list[str] = []
        values = _typed_values(data, _FIELD_TYPES, "", errors)

        fetch_data = data.get("fetch") or {}
        if not isinstance(fetch_data, dict):
            errors.append("fetch: expected a mapping")
            fetch_data = {}
        fetch_values = _typed_values(fetch_data, _FETCH_FIELD_TYPES, "fetch.", errors)

        if errors:
            raise ConfigError(errors)
        return cls(fetch=FetchConfig(**fetch_values), **values)

    def _apply_env(self, environ: dict[str, str]) -> None:
        converters = {
            "GITHUB_USERNAME": ("github_username", str),
            "TEAM_MEMBERS": ("team_members", _split_list),
            "SEARCH_PATHS": ("search_paths", _split_list),
            "INCLUDE_REPOS": ("include_repos", _split_list),
            "SCAN_DEPTH": ("scan_depth", int),
            "DEFAULT_GROUP_BY": ("default_group_by", str),
            "DEFAULT_SORT": ("default_sort", str),
            "SHOW_OTHER_PRS": ("show_other_prs", _to_bool),
            "MAX_PR_AGE_DAYS": ("max_pr_age_days", int),
        }
        for name, (attr, convert) in converters.items():
            value = environ.get(ENV_PREFIX + name)
            if not value:
                continue
            try:
                setattr(self, attr, convert(value))
            except ValueError as e:
                raise ConfigError([f"{ENV_PREFIX}{name}: invalid value {value!r}"]) from e

        concurrency = environ.get(ENV_PREFIX + "CONCURRENCY")
        if concurrency:
            try:
                self.fetch.concurrency = int(concurrency)
            except ValueError as e:
                raise ConfigError([f"{ENV_PREFIX}CONCURRENCY: invalid value {concurrency!r}"]) from e

    def _apply_flags(self, flags: Flags) -> None:
        if flags.path:
            self.search_paths = [flags.path]
        if flags.filter:
            self.include_repos = [flags.filter]
        if flags.group:
            self.default_group_by = flags.group
        if flags.depth > 0:
            self.scan_depth = flags.depth
        if flags.max_age > 0:
            self.max_pr_age_days = flags.max_age
        if flags.concurrency > 0:
            self.fetch.concurrency = flags.concurrency

    def validate(self) -> None:
        """Raise ConfigError listing every problem found."""
        errors = []

        if not self.github_username:
            errors.append("github_username is required (set in config or via gh CLI auto-detect)")

        if not self.search_paths:
            errors.append("at least one search_path is required")
        for path in self.search_paths:
            if not Path(path).exists():
                errors.append(f"search path does not exist: {path}")

        if self.default_group_by not in (GROUP_BY_PROJECT, GROUP_BY_AUTHOR):
            errors.append(
                f"invalid default_group_by: {self.default_group_by!r} "
                f"(must be {GROUP_BY_PROJECT!r} or {GROUP_BY_AUTHOR!r})"
            )
        if self.default_sort not in (SORT_OLDEST, SORT_NEWEST):
            errors.append(
                f"invalid default_sort: {self.default_sort!r} "
                f"(must be {SORT_OLDEST!r} or {SORT_NEWEST!r})"
            )

        if self.scan_depth < 1:
            errors.append("scan_depth must be at least 1")
        if self.max_pr_age_days < 0:
            errors.append("max_pr_age_days must not be negative")
        if self.fetch.concurrency < 1:
            errors.append("fetch.concurrency must be at least 1")

        if errors:
            raise ConfigError(errors)

    def needs_setup(self) -> bool:
        """True when search paths are missing; the username can be auto-detected."""
        return not self.search_paths

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


_FIELD_TYPES: dict[str, type] = {
    "github_username": str,
    "team_members": list,
    "search_paths": list,
    "include_repos": list,
    "scan_depth": int,
    "bots": list,
    "default_group_by": str,
    "default_sort": str,
    "show_branch_name": bool,
    "show_icons": bool,
    "show_other_prs": bool,
    "max_pr_age_days": int,
}

_FETCH_FIELD_TYPES: dict[str, type] = {
    "concurrency": int,
    "max_attempts": int,
    "initial_wait": float,
    "max_wait": float,
}

_TRUE_WORDS = ("1", "true", "yes", "on")
_FALSE_WORDS = ("0", "false", "no", "off")


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


def _to_bool(value: str) -> bool:
    return value.strip().lower() in _TRUE_WORDS


def _coerce(value: Any, kind: type) -> Any:
    """Convert a YAML value to kind. Raises ValueError when it does not fit."""
    if kind is str:
        if isinstance(value, str):
            return value
    elif kind is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in _TRUE_WORDS + _FALSE_WORDS:
            return _to_bool(value)
    elif kind is list:
        if isinstance(value, str):
            return _split_list(value)
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return list(value)
    elif not isinstance(value, bool):
        try:
            return kind(value)
        except (TypeError, ValueError):
            pass
    raise ValueError(f"expected {kind.__name__}, got {value!r}")


def _typed_values(
    data: dict[str, Any],
    field_types: dict[str, type],
    prefix: str,
    errors: list[str],
) -> dict[str, Any]:
    values = {}
    for key, kind in field_types.items():
        if data.get(key) is None:
            continue
        try:
            values[key] = _coerce(data[key], kind)
        except ValueError as e:
            errors.append(f"{prefix}{key}: {e}")
    return values


def expand_path(path: str) -> str:
    """Expand a leading ~ to the home directory."""
    return os.path.expanduser(path)


def expand_paths(paths: list[str]) -> list[str]:
    return [expand_path(p) for p in paths]


def config_dir() -> Path:
    """The PRT configuration directory (~/.prt)."""
    return Path.home() / ".prt"


def config_path() -> Path:
    """The PRT configuration file (~/.prt/config.yaml)."""
    return config_dir() / "config.yaml"


def ensure_config_dir() -> Path:
    """Ensure ~/.prt exists and return its path."""
    path = config_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path
