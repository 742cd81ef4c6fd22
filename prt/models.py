"""
Core domain types for PRT.

Plain data structures shared by the fetcher, stack detector,
categorizer and display layers.
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


# PR states (as reported by gh, plus DRAFT as an effective state)
PR_STATE_OPEN = "OPEN"
PR_STATE_DRAFT = "DRAFT"
PR_STATE_MERGED = "MERGED"
PR_STATE_CLOSED = "CLOSED"

# Aggregate CI status
CI_STATUS_PASSING = "passing"
CI_STATUS_FAILING = "failing"
CI_STATUS_PENDING = "pending"
CI_STATUS_NONE = "none"

# Review states
REVIEW_STATE_NONE = "NONE"
REVIEW_STATE_APPROVED = "APPROVED"
REVIEW_STATE_CHANGES_REQUESTED = "CHANGES_REQUESTED"
REVIEW_STATE_COMMENTED = "COMMENTED"
REVIEW_STATE_PENDING = "PENDING"
REVIEW_STATE_DISMISSED = "DISMISSED"

# Repository scan status
SCAN_STATUS_SUCCESS = "success"
SCAN_STATUS_NO_PRS = "no_prs"
SCAN_STATUS_ERROR = "error"
SCAN_STATUS_SKIPPED = "skipped"


@dataclass
class Review:
    """A single code review on a PR."""
    author: str
    state: str
    submitted: datetime | None = None


@dataclass
class PullRequest:
    """An open GitHub pull request, parsed from gh output."""
    number: int
    title: str
    url: str
    author: str
    state: str = PR_STATE_OPEN
    is_draft: bool = False
    base_branch: str = ""  # target, e.g. "main"
    head_branch: str = ""  # source, e.g. "feature-x"
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    ci_status: str = CI_STATUS_NONE
    review_requests: list[str] = field(default_factory=list)
    assignees: list[str] = field(default_factory=list)
    reviews: list[Review] = field(default_factory=list)

    # Set during categorization
    is_review_requested_from_me: bool = False
    is_assigned_to_me: bool = False
    my_review_status: str = REVIEW_STATE_NONE

    # Set during fetching
    repo_name: str = ""
    repo_owner: str = ""
    repo_path: str = ""

    def age(self, now: datetime | None = None):
        """Time elapsed since the PR was created."""
        now = now or datetime.now(timezone.utc)
        return now - self.created_at

    def age_string(self, now: datetime | None = None) -> str:
        """Human-readable age: "2d ago", "5h ago", "30m ago" or "just now"."""
        seconds = self.age(now).total_seconds()
        days = int(seconds // 86400)
        if days > 0:
            return f"{days}d ago"
        hours = int(seconds // 3600)
        if hours > 0:
            return f"{hours}h ago"
        minutes = int(seconds // 60)
        if minutes > 0:
            return f"{minutes}m ago"
        return "just now"

    def effective_state(self) -> str:
        """DRAFT for draft PRs, otherwise the reported state."""
        if self.is_draft:
            return PR_STATE_DRAFT
        return self.state

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "author": self.author,
            "state": self.state,
            "is_draft": self.is_draft,
            "base_branch": self.base_branch,
            "head_branch": self.head_branch,
            "created_at": self.created_at.isoformat(),
            "ci_status": self.ci_status,
            "review_requests": list(self.review_requests),
            "assignees": list(self.assignees),
            "reviews": [
                {
                    "author": r.author,
                    "state": r.state,
                    "submitted": r.submitted.isoformat() if r.submitted else None,
                }
                for r in self.reviews
            ],
            "is_review_requested_from_me": self.is_review_requested_from_me,
            "is_assigned_to_me": self.is_assigned_to_me,
            "my_review_status": self.my_review_status,
            "repo_name": self.repo_name,
            "repo_owner": self.repo_owner,
            "repo_path": self.repo_path,
        }


@dataclass
class Repository:
    """A local Git repository with a GitHub remote."""
    name: str  # e.g. "prt"
    path: str  # e.g. "/home/jdoe/code/prt"
    owner: str = ""  # e.g. "org"
    remote_url: str = ""

    # Fetch results, written once by the orchestrator task that owns this repo
    prs: list[PullRequest] = field(default_factory=list)
    scan_status: str = ""
    scan_error: Exception | None = None

    @property
    def full_name(self) -> str:
        if not self.owner:
            return self.name
        return f"{self.owner}/{self.name}"

    def has_prs(self) -> bool:
        return len(self.prs) > 0


@dataclass(eq=False)
class StackNode:
    """
    One PR in a dependency tree of stacked PRs.

    The parent link is a weak reference; children are owned by the node.
    """
    pr: PullRequest
    children: list[StackNode] = field(default_factory=list)
    depth: int = 0  # 0 = root
    is_orphan: bool = False  # parent merged but PR still targets its branch
    _parent: weakref.ref | None = field(default=None, repr=False)

    @property
    def parent(self) -> StackNode | None:
        if self._parent is None:
            return None
        return self._parent()

    @parent.setter
    def parent(self, node: StackNode | None) -> None:
        self._parent = weakref.ref(node) if node is not None else None

    def is_blocked(self) -> bool:
        """True if this PR has a parent PR that is not merged yet."""
        parent = self.parent
        if parent is None:
            return False
        return parent.pr.state != PR_STATE_MERGED

    def get_root(self) -> StackNode:
        current = self
        while current.parent is not None:
            current = current.parent
        return current

    def has_children(self) -> bool:
        return len(self.children) > 0

    def is_root(self) -> bool:
        return self.parent is None


@dataclass
class Stack:
    """All stacked-PR trees of one repository."""
    roots: list[StackNode] = field(default_factory=list)
    all_nodes: list[StackNode] = field(default_factory=list)

    def size(self) -> int:
        return len(self.all_nodes)

    def is_empty(self) -> bool:
        return len(self.all_nodes) == 0


@dataclass
class ScanResult:
    """
    Categorized PRs and metadata from one scan.

    Pipeline: scanner finds repos, gh client fetches PRs, stack detector
    builds trees, categorizer sorts PRs, everything lands here.
    """
    my_prs: list[PullRequest] = field(default_factory=list)
    needs_my_attention: list[PullRequest] = field(default_factory=list)
    team_prs: list[PullRequest] = field(default_factory=list)
    other_prs: list[PullRequest] = field(default_factory=list)

    repos_with_prs: list[Repository] = field(default_factory=list)
    repos_without_prs: list[Repository] = field(default_factory=list)
    repos_with_errors: list[Repository] = field(default_factory=list)

    # Keyed by repository full name, e.g. "org/repo"
    stacks: dict[str, Stack] = field(default_factory=dict)

    total_repos_scanned: int = 0
    total_prs_found: int = 0
    scan_duration: float = 0.0  # seconds
    username: str = ""

    def total_prs(self) -> int:
        return (
            len(self.my_prs)
            + len(self.needs_my_attention)
            + len(self.team_prs)
            + len(self.other_prs)
        )

    def has_prs(self) -> bool:
        return self.total_prs() > 0

    def has_errors(self) -> bool:
        return len(self.repos_with_errors) > 0

    def total_repos(self) -> int:
        return len(self.repos_with_prs) + len(self.repos_without_prs) + len(self.repos_with_errors)

    def scan_duration_string(self) -> str:
        if self.scan_duration < 1:
            return f"{int(round(self.scan_duration * 1000))}ms"
        return f"{int(round(self.scan_duration))}s"
