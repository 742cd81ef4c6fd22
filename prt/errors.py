"""
Error types for gh CLI failures and their classification.

Every failure of an external gh invocation is mapped to a GhError
subclass tagged with an ErrorKind. The kind drives both the message
shown to the user and whether the Retryer tries again.
"""

from __future__ import annotations

import subprocess
from enum import Enum


class ErrorKind(str, Enum):
    """Classified category of a gh failure."""
    CLI_MISSING = "cli_missing"
    AUTH_REQUIRED = "auth_required"
    RATE_LIMITED = "rate_limited"
    REPOSITORY_NOT_FOUND = "repository_not_found"
    NETWORK_TRANSIENT = "network_transient"
    UNCLASSIFIED = "unclassified"

    @property
    def remediation(self) -> str:
        return _REMEDIATION[self]


_REMEDIATION = {
    ErrorKind.CLI_MISSING: "Install the GitHub CLI: https://cli.github.com/",
    ErrorKind.AUTH_REQUIRED: "Run: gh auth login",
    ErrorKind.RATE_LIMITED: "Wait for the GitHub API rate limit to reset and retry.",
    ErrorKind.REPOSITORY_NOT_FOUND: "Check the repository remote and your access to it.",
    ErrorKind.NETWORK_TRANSIENT: "Check your network connection.",
    ErrorKind.UNCLASSIFIED: "See the error message for details.",
}

GH_INSTALL_MESSAGE = """\
GitHub CLI (gh) not found.

Please install it:
  brew install gh        # macOS
  sudo apt install gh    # Debian/Ubuntu
  winget install gh      # Windows

Then authenticate:
  gh auth login"""

GH_AUTH_MESSAGE = """\
GitHub CLI is not authenticated.

Please run:
  gh auth login"""

MAX_ERROR_MESSAGE_LENGTH = 50


class GhError(Exception):
    """Error from a gh CLI invocation."""
    kind = ErrorKind.UNCLASSIFIED


class GhNotFoundError(GhError):
    """gh CLI is not installed."""
    kind = ErrorKind.CLI_MISSING

    def __init__(self, message: str | None = None):
        super().__init__(message or "gh CLI not found. Please install: https://cli.github.com/")


class GhAuthError(GhError):
    """gh CLI is not authenticated."""
    kind = ErrorKind.AUTH_REQUIRED

    def __init__(self, message: str | None = None):
        super().__init__(message or "gh CLI not authenticated. Run: gh auth login")


class RateLimitError(GhError):
    """GitHub API rate limit reached."""
    kind = ErrorKind.RATE_LIMITED

    def __init__(self, reset_time: str | None = None):
        if reset_time:
            message = f"GitHub API rate limit reached. Resets at {reset_time}"
        else:
            message = "GitHub API rate limit reached. Please wait and retry."
        super().__init__(message)
        self.reset_time = reset_time


class RepoNotFoundError(GhError):
    """Repository does not exist or the user lacks access."""
    kind = ErrorKind.REPOSITORY_NOT_FOUND

    def __init__(self, repo_path: str):
        super().__init__(f"repository not found or no access: {repo_path}")
        self.repo_path = repo_path


class NetworkError(GhError):
    """Network failure, possibly after several attempts."""
    kind = ErrorKind.NETWORK_TRANSIENT

    def __init__(self, cause: BaseException | None, retries: int = 0):
        super().__init__(f"network error after {retries} retries: {cause}")
        self.cause = cause
        self.retries = retries


class RepoScanError(GhError):
    """Repository-specific failure that fits no other category."""
    kind = ErrorKind.UNCLASSIFIED

    def __init__(self, repo_path: str, cause: BaseException, repo_name: str = "", detail: str = ""):
        super().__init__(f"failed to scan {repo_name or repo_path}: {detail or cause}")
        self.repo_path = repo_path
        self.repo_name = repo_name
        self.cause = cause


class PRParseError(ValueError):
    """gh returned output that is not a valid PR list."""


def _stderr_text(err: BaseException) -> str:
    stderr = getattr(err, "stderr", None)
    if stderr is None:
        return ""
    if isinstance(stderr, bytes):
        return stderr.decode("utf-8", errors="replace")
    return str(stderr)


def _contains_any(texts: tuple[str, ...], *needles: str) -> bool:
    lowered = [t.lower() for t in texts]
    return any(needle.lower() in text for needle in needles for text in lowered)


def classify_error(err: BaseException | None, repo_path: str = "") -> GhError | None:
    """
    Map a raw gh failure onto a GhError subclass.

    Checks the error text and any captured stderr, case-insensitively,
    in priority order: rate limit, not found, auth, network. Anything
    else becomes a RepoScanError wrapping the original error.
    """
    if err is None:
        return None
    if isinstance(err, GhError):
        return err

    stderr = _stderr_text(err).strip()
    if isinstance(err, subprocess.CalledProcessError):
        # str() would include the argv, and "--json author,..." matches "auth"
        err_str = f"exit status {err.returncode}"
    else:
        err_str = str(err)
    texts = (stderr, err_str)

    if _contains_any(texts, "rate limit"):
        return RateLimitError()

    if _contains_any(texts, "not found", "could not resolve", "404"):
        return RepoNotFoundError(repo_path)

    if _contains_any(texts, "auth", "401", "403", "not logged in"):
        return GhAuthError(stderr or err_str)

    if _contains_any(texts, "network", "connection", "timeout", "dial"):
        return NetworkError(err, retries=0)

    return RepoScanError(repo_path, err, detail=stderr or err_str)


def truncate_message(message: str, limit: int = MAX_ERROR_MESSAGE_LENGTH) -> str:
    """Shorten a message for single-line display."""
    message = " ".join(message.split())
    if len(message) <= limit:
        return message
    return message[: limit - 3] + "..."
