"""
Detection of stacked PRs.

A PR is stacked on another when its base branch is the other PR's head
branch:

    PR_A: head=feature-auth,       base=main
    PR_B: head=feature-auth-tests, base=feature-auth

PR_B is a child of PR_A. A repository's open PRs form a forest of such
trees; PRs targeting main/master are roots.
"""

from __future__ import annotations

from loguru import logger

from .models import PullRequest, Stack, StackNode


def _by_number(node: StackNode) -> int:
    return node.pr.number


def _head_branch_index(prs: list[PullRequest]) -> dict[str, PullRequest]:
    """Map head branch -> PR. On duplicates the newest PR wins."""
    index: dict[str, PullRequest] = {}
    for pr in prs:
        current = index.get(pr.head_branch)
        if current is None:
            index[pr.head_branch] = pr
            continue
        logger.debug(
            f"PRs #{current.number} and #{pr.number} share head branch {pr.head_branch!r}"
        )
        if (pr.created_at, pr.number) > (current.created_at, current.number):
            index[pr.head_branch] = pr
    return index


def _assign_depths(root: StackNode, visited: set[int]) -> None:
    pending = [(root, 0)]
    while pending:
        node, depth = pending.pop()
        if node.pr.number in visited:
            continue
        visited.add(node.pr.number)
        node.depth = depth
        for child in node.children:
            pending.append((child, depth + 1))


def _find_cycle_cut(start: StackNode) -> StackNode:
    """Lowest-numbered node of the cycle reached by following parents from start."""
    path: list[StackNode] = []
    seen: set[int] = set()
    node: StackNode | None = start
    while node is not None and node.pr.number not in seen:
        seen.add(node.pr.number)
        path.append(node)
        node = node.parent
    if node is None:
        return start
    cycle = path[path.index(node):]
    return min(cycle, key=_by_number)


def _sort_children(nodes: list[StackNode]) -> None:
    for node in nodes:
        if node.children:
            node.children.sort(key=_by_number)
            _sort_children(node.children)


def detect_stacks(prs: list[PullRequest]) -> Stack:
    """
    Build the stacked-PR forest for one repository's PRs.

    Roots, every children list and all_nodes are sorted by PR number.
    """
    stack = Stack()
    if not prs:
        return stack

    head_to_pr = _head_branch_index(prs)

    nodes: dict[int, StackNode] = {}
    for pr in prs:
        nodes.setdefault(pr.number, StackNode(pr=pr))

    for node in nodes.values():
        parent_pr = head_to_pr.get(node.pr.base_branch)
        if parent_pr is None or parent_pr.number == node.pr.number:
            continue
        parent = nodes[parent_pr.number]
        node.parent = parent
        parent.children.append(node)

    visited: set[int] = set()
    for node in nodes.values():
        if node.parent is None:
            _assign_depths(node, visited)

    # Unvisited nodes either sit on a base/head cycle or hang below one.
    for number in sorted(nodes):
        if number in visited:
            continue
        cut = _find_cycle_cut(nodes[number])
        logger.debug(f"Breaking stack cycle at PR #{cut.pr.number}")
        parent = cut.parent
        if parent is not None:
            parent.children.remove(cut)
            cut.parent = None
        _assign_depths(cut, visited)

    stack.all_nodes = sorted(nodes.values(), key=_by_number)
    stack.roots = [node for node in stack.all_nodes if node.parent is None]
    _sort_children(stack.roots)
    return stack


def find_stacked_prs(stack: Stack) -> list[StackNode]:
    """Nodes that are part of a stack (have a parent or children)."""
    return [node for node in stack.all_nodes if node.parent is not None or node.children]


def get_stack_for_pr(stack: Stack, pr_number: int) -> StackNode | None:
    """Root of the tree containing the given PR, or None if it is not in the stack."""
    for node in stack.all_nodes:
        if node.pr.number == pr_number:
            return node.get_root()
    return None


def count_blocked_prs(stack: Stack) -> int:
    """Number of PRs waiting on an unmerged parent."""
    return sum(1 for node in stack.all_nodes if node.is_blocked())
