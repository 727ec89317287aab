"""Tests for ideaops.github.client: GraphQL calls, retries, PR lookup."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from github.GithubException import RateLimitExceededException

from ideaops.github.client import GitHubClient, GraphQLError


def _client() -> tuple[GitHubClient, MagicMock]:
    with patch("ideaops.github.client.Github") as github_cls:
        client = GitHubClient(token="ghp_test", repo="acme/webapp")
    return client, github_cls.return_value


class TestGraphQL:
    def test_returns_data(self):
        client, gh = _client()
        gh.requester.graphql_query.return_value = ({}, {"data": {"viewer": {"login": "octo"}}})
        assert client.graphql("query { viewer { login } }") == {"viewer": {"login": "octo"}}
        gh.requester.graphql_query.assert_called_once_with("query { viewer { login } }", {})

    def test_errors_raise(self):
        client, gh = _client()
        gh.requester.graphql_query.return_value = ({}, {"errors": [{"message": "Field 'x' doesn't exist"}]})
        with pytest.raises(GraphQLError, match="Field 'x' doesn't exist"):
            client.graphql("query { x }")

    def test_retries_rate_limit(self):
        client, gh = _client()
        gh.requester.graphql_query.side_effect = [
            RateLimitExceededException(403, {"message": "rate limited"}, None),
            ({}, {"data": {"ok": True}}),
        ]
        with patch("ideaops.github.client.time.sleep") as sleep:
            assert client.graphql("q", {"a": 1}) == {"ok": True}
        sleep.assert_called_once_with(2.0)

    def test_gives_up_after_max_retries(self):
        client, gh = _client()
        gh.requester.graphql_query.side_effect = RateLimitExceededException(403, {"message": "rate limited"}, None)
        with patch("ideaops.github.client.time.sleep") as sleep:
            with pytest.raises(RateLimitExceededException):
                client.graphql("q")
        assert sleep.call_count == 2
        assert gh.requester.graphql_query.call_count == 3


class TestFindOpenPullRequest:
    def test_found(self):
        client, gh = _client()
        pr = MagicMock(title="[U-1] Button")
        gh.get_repo.return_value.get_pulls.return_value = [pr]
        assert client.find_open_pull_request("feat/U-1-button") is pr
        gh.get_repo.return_value.get_pulls.assert_called_once_with(state="open", head="acme:feat/U-1-button")

    def test_none(self):
        client, gh = _client()
        gh.get_repo.return_value.get_pulls.return_value = []
        assert client.find_open_pull_request("feat/U-1-button") is None
