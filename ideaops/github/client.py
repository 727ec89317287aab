"""Thin wrapper around PyGithub for authenticated GitHub API access."""

from __future__ import annotations

import logging
import time
from typing import Any

from github import Auth, Github
from github.GithubException import RateLimitExceededException
from github.PullRequest import PullRequest
from github.Repository import Repository

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BASE_DELAY = 2.0  # seconds


class GraphQLError(Exception):
    """The GraphQL endpoint answered with an ``errors`` payload."""


class GitHubClient:
    """Authenticated GitHub client scoped to a single repository.

    Usage:
        client = GitHubClient(token="ghp_...", repo="owner/repo")
        data = client.graphql("query { viewer { login } }")
    """

    def __init__(self, token: str, repo: str = "") -> None:
        self._gh = Github(auth=Auth.Token(token))
        self._repo_name = repo
        self._repo: Repository | None = None

    @property
    def repo(self) -> Repository:
        if self._repo is None:
            self._repo = self._gh.get_repo(self._repo_name)
        return self._repo

    def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        """Run a GraphQL query and return its ``data`` payload.

        Rate-limited calls are retried with exponential backoff.
        """
        for attempt in range(MAX_RETRIES):
            try:
                _headers, payload = self._gh.requester.graphql_query(query, variables or {})
                break
            except RateLimitExceededException:
                if attempt == MAX_RETRIES - 1:
                    raise
                delay = RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning(f"GitHub rate limit hit, retrying in {delay}s...")
                time.sleep(delay)

        if payload.get("errors"):
            messages = "; ".join(e.get("message", str(e)) for e in payload["errors"])
            raise GraphQLError(messages)
        return payload.get("data") or {}

    def find_open_pull_request(self, branch: str) -> PullRequest | None:
        """Return the open PR whose head is ``branch``, if any."""
        owner = self._repo_name.split("/")[0]
        for pr in self.repo.get_pulls(state="open", head=f"{owner}:{branch}"):
            return pr
        return None

    def close(self) -> None:
        self._gh.close()
