"""
Parsing of `gh pr list --json ...` output into PullRequest records.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from .errors import PRParseError
from .models import (
    CI_STATUS_FAILING,
    CI_STATUS_NONE,
    CI_STATUS_PASSING,
    CI_STATUS_PENDING,
    PullRequest,
    Review,
)


# Fields requested from gh pr list
PR_LIST_JSON_FIELDS = (
    "number,title,url,author,state,isDraft,createdAt,baseRefName,headRefName,"
    "statusCheckRollup,reviewRequests,assignees,reviews"
)

FAILING_CHECK_STATES = {"FAILURE", "ERROR", "CANCELLED", "TIMED_OUT", "ACTION_REQUIRED"}
PENDING_CHECK_STATES = {"PENDING", "EXPECTED", "QUEUED", "IN_PROGRESS", "WAITING"}


def parse_timestamp(value: str) -> datetime:
    """Parse an RFC 3339 timestamp as returned by gh into an aware datetime."""
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _check_state(check: dict[str, Any]) -> str:
    # StatusContext entries carry "state"; CheckRun entries carry
    # "conclusion" once finished and only "status" while running.
    for key in ("state", "conclusion", "status"):
        value = check.get(key)
        if value:
            return str(value).upper()
    return ""


def compute_ci_status(checks: list[dict[str, Any]] | None) -> str:
    """
    Overall CI status from individual status checks.

    Priority: failing > pending > passing > none
    """
    if not checks:
        return CI_STATUS_NONE

    has_failing = False
    has_pending = False
    for check in checks:
        state = _check_state(check)
        if state in FAILING_CHECK_STATES:
            has_failing = True
        elif state in PENDING_CHECK_STATES:
            has_pending = True

    if has_failing:
        return CI_STATUS_FAILING
    if has_pending:
        return CI_STATUS_PENDING
    return CI_STATUS_PASSING


def _login(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("login") or ""
    return ""


def _parse_review(data: dict[str, Any]) -> Review:
    submitted = None
    submitted_raw = data.get("submittedAt")
    if submitted_raw:
        try:
            submitted = parse_timestamp(submitted_raw)
        except ValueError:
            submitted = None
    return Review(
        author=_login(data.get("author")),
        state=data.get("state") or "",
        submitted=submitted,
    )


def _parse_pr(data: dict[str, Any]) -> PullRequest:
    created_raw = data.get("createdAt") or ""
    try:
        created_at = parse_timestamp(created_raw)
    except ValueError as e:
        raise PRParseError(f"invalid createdAt {created_raw!r}: {e}") from e

    try:
        number = int(data["number"])
    except (KeyError, TypeError, ValueError) as e:
        raise PRParseError(f"invalid PR number in {data!r}") from e

    return PullRequest(
        number=number,
        title=data.get("title") or "",
        url=data.get("url") or "",
        author=_login(data.get("author")),
        state=data.get("state") or "",
        is_draft=bool(data.get("isDraft", False)),
        base_branch=data.get("baseRefName") or "",
        head_branch=data.get("headRefName") or "",
        created_at=created_at,
        ci_status=compute_ci_status(data.get("statusCheckRollup")),
        review_requests=[login for login in map(_login, data.get("reviewRequests") or []) if login],
        assignees=[login for login in map(_login, data.get("assignees") or []) if login],
        reviews=[_parse_review(r) for r in data.get("reviews") or []],
    )


def parse_pr_list(data: str | bytes) -> list[PullRequest]:
    """
    Parse the JSON array printed by `gh pr list --json ...`.

    Raises:
        PRParseError: if the output is not a JSON array of PR objects.
    """
    try:
        items = json.loads(data)
    except json.JSONDecodeError as e:
        raise PRParseError(f"failed to parse PR list: {e}") from e

    if not isinstance(items, list):
        raise PRParseError(f"expected a JSON array, got {type(items).__name__}")

    prs = []
    for item in items:
        if not isinstance(item, dict):
            raise PRParseError(f"expected a PR object, got {type(item).__name__}")
        prs.append(_parse_pr(item))
    return prs
