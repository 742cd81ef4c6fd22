"""
Discovery of local Git repositories with GitHub remotes.

Walks the configured search paths, finds `.git` directories and asks
git for each clone's origin remote.
"""

from __future__ import annotations

import fnmatch
import os
import re
import subprocess
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from loguru import logger

from .models import Repository


# Concurrent `git remote` inspections
INSPECT_CONCURRENCY = 10

# Directories never searched for repositories
SKIP_DIRS = {
    "node_modules",
    "vendor",
    "__pycache__",
    "venv",
    ".venv",
}

_REMOTE_PATTERNS = [
    re.compile(r"^git@github\.com:([^/]+)/([^/]+?)(\.git)?$"),  # SSH
    re.compile(r"^https?://github\.com/([^/]+)/([^/]+?)(\.git)?$"),  # HTTPS
    re.compile(r"^ssh://git@github\.com/([^/]+)/([^/]+?)(\.git)?$"),  # SSH URL
]


def parse_github_remote(remote_url: str) -> tuple[str, str]:
    """
    Extract (owner, repo) from a GitHub remote URL.

    Supports git@github.com:owner/repo.git, https://github.com/owner/repo.git
    and ssh://git@github.com/owner/repo.git, with or without ".git".
    Returns ("", "") for anything else.
    """
    remote_url = remote_url.strip()
    for pattern in _REMOTE_PATTERNS:
        match = pattern.match(remote_url)
        if match:
            return match.group(1), match.group(2)
    return "", ""


def get_remote_url(repo_path: str | Path) -> str:
    """URL of the origin remote. Raises ValueError if there is none."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            cwd=repo_path,
            capture_output=True,
            text=True,
            check=True,
        )
    except (subprocess.CalledProcessError, OSError) as e:
        raise ValueError(f"no origin remote: {repo_path}") from e
    return result.stdout.strip()


def inspect_repo(repo_path: str | Path) -> Repository:
    """
    Build a Repository for a clone with a GitHub origin.

    Raises:
        ValueError: not a Git repo, no origin, or origin is not GitHub.
    """
    remote_url = get_remote_url(repo_path)
    owner, name = parse_github_remote(remote_url)
    if not owner or not name:
        raise ValueError(f"not a GitHub repository: {remote_url}")
    return Repository(name=name, path=str(repo_path), owner=owner, remote_url=remote_url)


class RepoFilter:
    """Glob filter on repository names. No patterns matches everything."""

    def __init__(self, patterns: list[str] | None = None):
        self.patterns = list(patterns or [])

    def matches(self, name: str) -> bool:
        if not self.patterns:
            return True
        # fnmatchcase: GitHub repository names are case-sensitive
        return any(fnmatch.fnmatchcase(name, pattern) for pattern in self.patterns)

    def has_patterns(self) -> bool:
        return bool(self.patterns)


def _depth(base: Path, path: Path) -> int:
    rel = path.relative_to(base)
    return len(rel.parts)


class Scanner:
    """Finds GitHub repositories under a set of search paths."""

    def __init__(self, max_depth: int = 3, include_patterns: list[str] | None = None):
        self.max_depth = max_depth
        self.filter = RepoFilter(include_patterns)

    def _find_repo_paths(self, search_path: Path) -> list[Path]:
        found: list[Path] = []
        for root, dirs, _files in os.walk(search_path):
            current = Path(root)
            if ".git" in dirs:
                found.append(current)

            depth = _depth(search_path, current)
            kept = []
            for d in dirs:
                if d.startswith(".") or d in SKIP_DIRS:
                    continue
                if (current / d).is_symlink():
                    continue
                if depth + 1 > self.max_depth:
                    continue
                kept.append(d)
            dirs[:] = kept
        return found

    def _inspect(self, path: Path) -> Repository | None:
        try:
            return inspect_repo(path)
        except ValueError as e:
            logger.debug(f"Skipping {path}: {e}")
            return None

    def scan(self, search_paths: list[str]) -> list[Repository]:
        """Return GitHub repositories found under search_paths, sorted by path."""
        repo_paths: list[Path] = []
        seen: set[Path] = set()

        for raw in search_paths:
            search_path = Path(raw).expanduser()
            if not search_path.is_dir():
                logger.debug(f"Search path does not exist: {search_path}")
                continue
            for path in self._find_repo_paths(search_path):
                resolved = path.resolve()
                if resolved in seen:
                    continue
                seen.add(resolved)
                repo_paths.append(path)

        if not repo_paths:
            return []

        with ThreadPoolExecutor(max_workers=INSPECT_CONCURRENCY) as pool:
            inspected = list(pool.map(self._inspect, repo_paths))

        repos = [
            repo for repo in inspected
            if repo is not None and self.filter.matches(repo.name)
        ]
        repos.sort(key=lambda r: r.path)
        logger.debug(f"Found {len(repos)} GitHub repositories")
        return repos
