# =============================================================================
# Shared Test Fixtures
# =============================================================================
#
# `github_stub` builds a GitHubClient backed by httpx.MockTransport, so
# tool and orchestrator tests run against canned GitHub payloads without
# any network access or token.
# =============================================================================

from __future__ import annotations

from typing import Any

import httpx
import pytest

from app.services.github import GitHubClient

Route = tuple[int, Any]


@pytest.fixture
def github_stub():
    """
    Factory: github_stub({"/users/octocat": (200, {...}), ...}).

    Unknown paths return 404. Every request is recorded on
    `client.requests` for assertions.
    """

    def make(routes: dict[str, Route]) -> GitHubClient:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            status, body = routes.get(request.url.path, (404, {"message": "Not Found"}))
            return httpx.Response(status, json=body)

        client = GitHubClient(
            token="test-token",
            base_url="https://api.github.test",
            transport=httpx.MockTransport(handler),
        )
        client.requests = seen
        return client

    return make
