"""
Concurrent PR fetching across many repositories.

A fixed-size worker pool bounds how many gh calls run at once; results
come back through a queue drained by the calling thread, which also
invokes the progress callback.
"""

from __future__ import annotations

import queue
from concurrent.futures import ThreadPoolExecutor
from typing import Callable

from loguru import logger

from .github import Client
from .models import (
    SCAN_STATUS_ERROR,
    SCAN_STATUS_NO_PRS,
    SCAN_STATUS_SUCCESS,
    Repository,
)

DEFAULT_CONCURRENCY = 10

# progress(done, total, repo) is called once per finished repository
FetchProgress = Callable[[int, int, Repository], None]


class Orchestrator:
    """Fetches PRs for a set of repositories with bounded concurrency."""

    def __init__(self, client: Client, concurrency: int = DEFAULT_CONCURRENCY):
        self.client = client
        self.concurrency = max(concurrency, 1)

    def _fetch_one(self, repo: Repository, results: queue.Queue) -> None:
        try:
            prs = self.client.list_prs(repo.path)
        except Exception as e:
            logger.debug(f"{repo.full_name}: {e}")
            repo.scan_error = e
            repo.scan_status = SCAN_STATUS_ERROR
        else:
            if not prs:
                repo.scan_status = SCAN_STATUS_NO_PRS
            else:
                for pr in prs:
                    pr.repo_name = repo.name
                    pr.repo_owner = repo.owner
                    pr.repo_path = repo.path
                repo.prs = prs
                repo.scan_status = SCAN_STATUS_SUCCESS
        finally:
            results.put(repo)

    def fetch_all_prs(
        self,
        repos: list[Repository],
        progress: FetchProgress | None = None,
    ) -> None:
        """
        Fetch PRs for every repository, blocking until all are done.

        Results land on each Repository (prs, scan_status, scan_error).
        One repository failing never affects the others. The progress
        callback fires in completion order, not input order.
        """
        if not repos:
            return

        total = len(repos)
        results: queue.Queue = queue.Queue()

        with ThreadPoolExecutor(max_workers=self.concurrency, thread_name_prefix="prt-fetch") as pool:
            for repo in repos:
                pool.submit(self._fetch_one, repo, results)

            for done in range(1, total + 1):
                repo = results.get()
                if progress is not None:
                    progress(done, total, repo)


def fetch_all_prs(
    repos: list[Repository],
    client: Client,
    progress: FetchProgress | None = None,
) -> None:
    """Fetch PRs for all repositories with a default orchestrator."""
    Orchestrator(client).fetch_all_prs(repos, progress)
