"""
Sorting of fetched PRs into display categories.

Categories, checked in order:
- My PRs: authored by the current user
- Needs My Attention: review requested from or assigned to the user,
  unless the user already approved
- Team PRs: authored by a configured team member
- Other PRs: everyone else, bots included
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from .config import SORT_NEWEST, PrtConfig
from .models import (
    REVIEW_STATE_APPROVED,
    REVIEW_STATE_NONE,
    PullRequest,
    Repository,
    Review,
    ScanResult,
)
from .stacks import detect_stacks


def find_my_review_status(reviews: list[Review], username: str) -> str:
    """State of the user's most recent review, or NONE."""
    latest: Review | None = None
    for review in reviews:
        if review.author != username:
            continue
        if latest is None:
            latest = review
        elif review.submitted and (latest.submitted is None or review.submitted > latest.submitted):
            latest = review
    if latest is None:
        return REVIEW_STATE_NONE
    return latest.state


def _categorize_pr(pr: PullRequest, username: str, team: set[str], result: ScanResult) -> None:
    if pr.author == username:
        result.my_prs.append(pr)
    elif (pr.is_review_requested_from_me or pr.is_assigned_to_me) and pr.my_review_status != REVIEW_STATE_APPROVED:
        result.needs_my_attention.append(pr)
    elif pr.author in team:
        # team membership is checked first, so a listed bot counts as team
        result.team_prs.append(pr)
    else:
        result.other_prs.append(pr)


def categorize(
    repos: list[Repository],
    config: PrtConfig,
    username: str,
    now: datetime | None = None,
) -> ScanResult:
    """Build a ScanResult from repositories whose PRs have been fetched."""
    result = ScanResult(username=username)
    team = set(config.team_members)

    cutoff = None
    if config.max_pr_age_days > 0:
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=config.max_pr_age_days)

    for repo in repos:
        if repo.scan_error is not None:
            result.repos_with_errors.append(repo)
            continue
        if not repo.has_prs():
            result.repos_without_prs.append(repo)
            continue

        result.repos_with_prs.append(repo)
        result.total_prs_found += len(repo.prs)
        result.stacks[repo.full_name] = detect_stacks(repo.prs)

        for pr in repo.prs:
            pr.repo_name = repo.name
            pr.repo_owner = repo.owner
            pr.repo_path = repo.path

            pr.is_review_requested_from_me = username in pr.review_requests
            pr.is_assigned_to_me = username in pr.assignees
            pr.my_review_status = find_my_review_status(pr.reviews, username)

            if cutoff is not None and pr.created_at < cutoff:
                continue
            _categorize_pr(pr, username, team, result)

    result.total_repos_scanned = len(repos)
    sort_result(result, config.default_sort)
    return result


def sort_prs(prs: list[PullRequest], order: str) -> None:
    """Sort in place by creation time, PR number breaking ties."""
    if order == SORT_NEWEST:
        prs.sort(key=lambda pr: (-pr.created_at.timestamp(), pr.number))
    else:
        prs.sort(key=lambda pr: (pr.created_at, pr.number))


def sort_result(result: ScanResult, order: str) -> None:
    sort_prs(result.my_prs, order)
    sort_prs(result.needs_my_attention, order)
    sort_prs(result.team_prs, order)
    sort_prs(result.other_prs, order)
