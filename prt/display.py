"""
Plain-text and JSON output for scan results.

Text output is coloured with click styles unless color=False; click.echo
strips the escape codes when stdout is not a terminal.
"""

from __future__ import annotations

import json
from typing import Any

import click

from .config import GROUP_BY_AUTHOR
from .errors import truncate_message
from .models import (
    CI_STATUS_FAILING,
    CI_STATUS_PASSING,
    CI_STATUS_PENDING,
    PullRequest,
    Repository,
    ScanResult,
    Stack,
    StackNode,
)


TREE_BRANCH = "├─"
TREE_LAST_BRANCH = "└─"
TREE_VERTICAL = "│ "
TREE_INDENT = "  "

CI_ICONS = {
    CI_STATUS_PASSING: "✓",
    CI_STATUS_FAILING: "✗",
    CI_STATUS_PENDING: "●",
}
CI_ASCII = {
    CI_STATUS_PASSING: "ok",
    CI_STATUS_FAILING: "x",
    CI_STATUS_PENDING: "..",
}

# click.style keyword arguments per output element
STYLES: dict[str, dict[str, Any]] = {
    "header": {"fg": "magenta", "bold": True},
    "repo": {"fg": "white", "bold": True},
    "meta": {"fg": "bright_black"},
    "tree": {"fg": "bright_black"},
    "draft": {"fg": "bright_black", "italic": True},
    "blocked": {"fg": "bright_black", "dim": True},
    "empty": {"fg": "bright_black", "italic": True},
    "error": {"fg": "red"},
    "branch": {"fg": "cyan"},
    CI_STATUS_PASSING: {"fg": "green"},
    CI_STATUS_FAILING: {"fg": "red"},
    CI_STATUS_PENDING: {"fg": "yellow"},
}


def paint(text: str, style: str, color: bool = True) -> str:
    if not color:
        return text
    return click.style(text, **STYLES[style])


def _pr_line(
    pr: PullRequest,
    node: StackNode | None,
    show_icons: bool,
    show_branches: bool,
    show_repo: bool,
    color: bool,
) -> str:
    parts = [f"#{pr.number} {pr.title}"]
    who = pr.repo_name if show_repo else f"@{pr.author}"
    parts.append(paint(f"({who}, {pr.age_string()})", "meta", color))
    if pr.is_draft:
        parts.append(paint("[draft]", "draft", color))
    icons = CI_ICONS if show_icons else CI_ASCII
    if pr.ci_status in icons:
        parts.append(paint(f"CI {icons[pr.ci_status]}", pr.ci_status, color))
    if node is not None:
        parent = node.parent
        if node.is_blocked() and parent is not None:
            parts.append(paint(f"(blocked by #{parent.pr.number})", "blocked", color))
        elif node.is_orphan:
            parts.append(paint("(orphan)", "blocked", color))
    line = " ".join(parts)
    if show_branches:
        line += "\n    " + paint(f"{pr.head_branch} → {pr.base_branch}", "branch", color)
    return line


def _render_node(
    lines: list[str],
    node: StackNode,
    prefix: str,
    is_last: bool,
    opts: dict[str, bool],
) -> None:
    color = opts["color"]
    branch = paint(TREE_LAST_BRANCH if is_last else TREE_BRANCH, "tree", color)
    text = _pr_line(node.pr, node, **opts)
    first, *rest = text.split("\n")
    lines.append(f"{prefix}{branch} {first}")
    continuation = prefix + paint(TREE_INDENT if is_last else TREE_VERTICAL, "tree", color)
    for extra in rest:
        lines.append(f"{continuation} {extra.strip()}")

    child_prefix = continuation + " "
    for i, child in enumerate(node.children):
        _render_node(lines, child, child_prefix, i == len(node.children) - 1, opts)


def _render_group(
    lines: list[str],
    prs: list[PullRequest],
    stack: Stack | None,
    opts: dict[str, bool],
) -> None:
    color = opts["color"]
    nodes = {node.pr.number: node for node in stack.all_nodes} if stack else {}
    numbers = {pr.number for pr in prs}

    # Stack roots in this group draw their whole tree; members whose
    # root is drawn elsewhere are listed flat.
    items: list[tuple[PullRequest, StackNode | None, bool]] = []
    for pr in prs:
        node = nodes.get(pr.number)
        if node is None:
            items.append((pr, None, False))
            continue
        root = node.get_root()
        if root is node:
            items.append((pr, node, node.has_children()))
        elif root.pr.number not in numbers:
            items.append((pr, node, False))

    for i, (pr, node, as_tree) in enumerate(items):
        is_last = i == len(items) - 1
        if as_tree and node is not None:
            _render_node(lines, node, "", is_last, opts)
            continue
        branch = paint(TREE_LAST_BRANCH if is_last else TREE_BRANCH, "tree", color)
        continuation = paint(TREE_INDENT if is_last else TREE_VERTICAL, "tree", color)
        first, *rest = _pr_line(pr, node, **opts).split("\n")
        lines.append(f"{branch} {first}")
        for extra in rest:
            lines.append(f"{continuation} {extra.strip()}")


def render_section(
    title: str,
    prs: list[PullRequest],
    stacks: dict[str, Stack],
    group_by: str,
    show_icons: bool = True,
    show_branches: bool = True,
    color: bool = False,
) -> str:
    lines = [paint(title, "header", color), ""]
    if not prs:
        lines.append("  " + paint("None", "empty", color))
        return "\n".join(lines) + "\n"

    opts = {"show_icons": show_icons, "show_branches": show_branches, "color": color}
    if group_by == GROUP_BY_AUTHOR:
        groups: dict[str, list[PullRequest]] = {}
        for pr in prs:
            groups.setdefault(pr.author, []).append(pr)
        for author in sorted(groups):
            lines.append(paint(f"[@{author}]", "repo", color))
            # stacks are per repository, so author groups are drawn flat
            _render_group(lines, groups[author], None, dict(opts, show_repo=True))
            lines.append("")
    else:
        groups = {}
        for pr in prs:
            full_name = f"{pr.repo_owner}/{pr.repo_name}" if pr.repo_owner else pr.repo_name
            groups.setdefault(full_name, []).append(pr)
        for full_name in sorted(groups):
            lines.append(paint(f"[{full_name}]", "repo", color))
            _render_group(lines, groups[full_name], stacks.get(full_name), dict(opts, show_repo=False))
            lines.append("")

    return "\n".join(lines) + "\n"


def render_errors(repos: list[Repository], color: bool = False) -> str:
    lines = [paint("ERRORS", "header", color), ""]
    for repo in repos:
        message = truncate_message(str(repo.scan_error)) if repo.scan_error else "error"
        lines.append(paint(f"x {repo.name} ({message})", "error", color))
    return "\n".join(lines) + "\n"


def render_text(
    result: ScanResult,
    group_by: str = "project",
    show_icons: bool = True,
    show_branches: bool = True,
    show_other_prs: bool = False,
    color: bool = False,
) -> str:
    """Render a ScanResult as sectioned plain text, styled when color is set."""
    sections = [
        ("MY PRS", result.my_prs),
        ("NEEDS MY ATTENTION", result.needs_my_attention),
        ("TEAM PRS", result.team_prs),
    ]
    if show_other_prs:
        sections.append(("OTHER PRS", result.other_prs))

    out = []
    for title, prs in sections:
        out.append(render_section(title, prs, result.stacks, group_by, show_icons, show_branches, color))
    if result.has_errors():
        out.append(render_errors(result.repos_with_errors, color))

    out.append(paint(
        f"{result.total_prs()} PRs across {result.total_repos()} repositories "
        f"in {result.scan_duration_string()}",
        "meta",
        color,
    ) + "\n")
    return "\n".join(out)


def build_json_output(result: ScanResult, show_other_prs: bool = False) -> dict[str, Any]:
    output: dict[str, Any] = {
        "my_prs": [pr.to_dict() for pr in result.my_prs],
        "needs_my_attention": [pr.to_dict() for pr in result.needs_my_attention],
        "team_prs": [pr.to_dict() for pr in result.team_prs],
    }
    total = len(result.my_prs) + len(result.needs_my_attention) + len(result.team_prs)
    if show_other_prs:
        output["other_prs"] = [pr.to_dict() for pr in result.other_prs]
        total += len(result.other_prs)

    output["total_prs"] = total
    output["username"] = result.username
    output["scan_seconds"] = result.scan_duration
    return output


def render_json(result: ScanResult, show_other_prs: bool = False) -> str:
    """Render a ScanResult as pretty-printed JSON, suitable for jq."""
    return json.dumps(build_json_output(result, show_other_prs), indent=2) + "\n"


class ProgressPrinter:
    """Progress callback that reports each finished repository on stderr."""

    def __init__(self, ascii_only: bool = False, color: bool = False):
        self.ascii_only = ascii_only
        self.color = color

    def __call__(self, done: int, total: int, repo: Repository) -> None:
        if repo.scan_error is not None:
            icon = paint("x" if self.ascii_only else "✗", CI_STATUS_FAILING, self.color)
            status = f"{icon} {repo.name} ({truncate_message(str(repo.scan_error))})"
        else:
            icon = paint("+" if self.ascii_only else "✓", CI_STATUS_PASSING, self.color)
            status = f"{icon} {repo.name} ({len(repo.prs)} PRs)"
        click.echo(f"Fetching PRs [{done}/{total}] {status}", err=True)
