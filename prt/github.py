"""
GitHub client for PRT, backed by the gh CLI.

Lists open pull requests of local repositories by running
`gh pr list` inside each clone.

Supports:
- Up-front checks that gh is installed and authenticated
- Current user lookup
- Retry with backoff for transient failures
"""

from __future__ import annotations

import shutil
import subprocess
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Protocol, runtime_checkable

from loguru import logger

from .errors import (
    GH_AUTH_MESSAGE,
    GH_INSTALL_MESSAGE,
    GhAuthError,
    GhError,
    GhNotFoundError,
    PRParseError,
    RepoNotFoundError,
    RepoScanError,
    classify_error,
)
from .models import PullRequest
from .parser import PR_LIST_JSON_FIELDS, parse_pr_list
from .retry import RetryPolicy, Retryer


GH_BINARY = "gh"


@runtime_checkable
class Client(Protocol):
    """Operations the orchestrator and CLI need from GitHub."""

    def check(self) -> None: ...

    def get_current_user(self) -> str: ...

    def check_and_get_user(self) -> str: ...

    def list_prs(self, repo_path: str) -> list[PullRequest]: ...


class GhClient:
    """gh CLI client with error classification and retry handling."""

    def __init__(
        self,
        retry_policy: RetryPolicy | None = None,
        runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        which: Callable[[str], str | None] = shutil.which,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._run_command = runner
        self._which = which
        self.retryer = Retryer(retry_policy, sleep=sleep)

    def _run(self, args: list[str], cwd: str | None = None) -> str:
        """Run gh and return its stdout. Raises CalledProcessError on failure."""
        try:
            result = self._run_command(
                [GH_BINARY, *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            if cwd is not None and e.filename == cwd:
                raise RepoNotFoundError(cwd) from e
            raise GhNotFoundError(GH_INSTALL_MESSAGE) from e
        return result.stdout or ""

    def _ensure_installed(self) -> None:
        if self._which(GH_BINARY) is None:
            raise GhNotFoundError(GH_INSTALL_MESSAGE)

    def _check_auth(self) -> None:
        try:
            self._run(["auth", "status"])
        except subprocess.CalledProcessError as e:
            raise GhAuthError(GH_AUTH_MESSAGE) from e

    def check(self) -> None:
        """
        Verify gh is installed and authenticated.

        Raises:
            GhNotFoundError: gh is not on PATH.
            GhAuthError: `gh auth status` failed.
        """
        self._ensure_installed()
        self._check_auth()

    def get_current_user(self) -> str:
        """Return the authenticated GitHub username."""
        try:
            out = self._run(["api", "user", "--jq", ".login"])
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise GhError(f"failed to get current user: {stderr or e}") from e

        username = out.strip()
        if not username:
            raise GhError("empty username returned from GitHub API")
        return username

    def check_and_get_user(self) -> str:
        """
        Check gh and fetch the current user, running both gh calls in parallel.

        The install check runs first since nothing else can work without
        the binary. If both parallel calls fail, the auth error wins.
        """
        self._ensure_installed()

        with ThreadPoolExecutor(max_workers=2) as pool:
            auth_future = pool.submit(self._check_auth)
            user_future = pool.submit(self.get_current_user)

            auth_error = auth_future.exception()
            user_error = user_future.exception()

        if auth_error is not None:
            raise auth_error
        if user_error is not None:
            raise user_error
        return user_future.result()

    def list_prs(self, repo_path: str) -> list[PullRequest]:
        """
        List open pull requests of the repository cloned at repo_path.

        Failed gh calls are classified and retried; a parse failure on a
        successful response is not.

        Returns:
            List of PullRequest objects, empty if the repo has no open PRs.
        """
        def fetch() -> str:
            try:
                return self._run(
                    ["pr", "list", "--json", PR_LIST_JSON_FIELDS, "--state", "open"],
                    cwd=repo_path,
                )
            except subprocess.CalledProcessError as e:
                raise classify_error(e, repo_path) from e

        out = self.retryer.do_with_result(fetch).strip()
        if out == "" or out == "[]":
            return []

        try:
            prs = parse_pr_list(out)
        except PRParseError as e:
            raise RepoScanError(repo_path, e) from e

        logger.debug(f"{repo_path}: {len(prs)} open PRs")
        return prs
