# =============================================================================
# GitHub REST Client — Evidence Source Transport
# =============================================================================
#
# Thin async wrapper over the GitHub REST API. Every Evidence Tool reads
# through this client; none of them touch httpx directly.
#
# RESPONSIBILITIES:
#   - Base URL, Bearer auth, Accept and User-Agent headers
#   - JSON decoding
#   - Mapping every non-2xx response (and network failure) to UpstreamError
#
# NOT RESPONSIBILITIES:
#   - Retries or rate-limit back-off. A failed call fails; whether that
#     is fatal is decided by the calling tool.
#   - Pagination. Each tool asks for exactly one page of a fixed size.
#
# DESIGN DECISION: One client per assessment, used as an async context
# manager. Concurrent assessments therefore never share connection state
# or headers, and tests can inject an `httpx.MockTransport`.
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.config import settings

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """
    A GitHub call failed.

    Attributes:
        status_code: HTTP status, or 0 when the request never got a response.
        status_text: Upstream reason phrase ("Not Found", "Forbidden", ...)
            or the network error text.
        url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        status_text: str = "",
        url: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.status_text = status_text
        self.url = url


class GitHubClient:
    """
    Async GitHub REST client.

    Usage:
        async with GitHubClient() as github:
            profile = await github.get_user("octocat")

    All constructor arguments default to the values in settings.
    """

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        user_agent: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        resolved_token = settings.github_token if token is None else token
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": user_agent or settings.github_user_agent,
        }
        if resolved_token:
            headers["Authorization"] = f"Bearer {resolved_token}"
        else:
            logger.warning(
                "No GITHUB_TOKEN configured — using unauthenticated "
                "GitHub access (60 requests/hour)"
            )

        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.github_api_url).rstrip("/"),
            headers=headers,
            timeout=timeout or settings.github_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    async def get_user(self, username: str) -> dict[str, Any]:
        return await self._get(
            f"/users/{username}", what="GitHub user profile",
        )

    async def list_user_repos(
        self,
        username: str,
        per_page: int,
        sort: str | None = None,
        repo_type: str | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {"per_page": per_page}
        if sort:
            params["sort"] = sort
        if repo_type:
            params["type"] = repo_type
        return await self._get(
            f"/users/{username}/repos", params=params, what="repos",
        )

    async def list_pulls(
        self, full_name: str, per_page: int, state: str = "all",
    ) -> list[dict[str, Any]]:
        return await self._get(
            f"/repos/{full_name}/pulls",
            params={"state": state, "per_page": per_page},
            what="pull requests",
        )

    async def get_pull(self, full_name: str, number: int) -> dict[str, Any]:
        return await self._get(
            f"/repos/{full_name}/pulls/{number}", what="pull request",
        )

    async def list_events(
        self, username: str, per_page: int,
    ) -> list[dict[str, Any]]:
        return await self._get(
            f"/users/{username}/events",
            params={"per_page": per_page},
            what="events",
        )

    async def list_starred(
        self, username: str, per_page: int, sort: str = "created",
    ) -> list[dict[str, Any]]:
        return await self._get(
            f"/users/{username}/starred",
            params={"per_page": per_page, "sort": sort},
            what="starred repos",
        )

    # -------------------------------------------------------------------------
    # Internal Helpers
    # -------------------------------------------------------------------------

    async def _get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        what: str = "resource",
    ) -> Any:
        """
        GET a JSON resource.

        Raises:
            UpstreamError: Non-2xx status, network failure, or a body that
                is not JSON.
        """
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as e:
            raise UpstreamError(
                f"Failed to fetch {what}: {e}",
                status_text=str(e),
                url=path,
            ) from e

        if not response.is_success:
            raise UpstreamError(
                f"Failed to fetch {what}: {response.reason_phrase}",
                status_code=response.status_code,
                status_text=response.reason_phrase,
                url=str(response.url),
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                f"Failed to decode {what}: {e}",
                status_code=response.status_code,
                status_text=response.reason_phrase,
                url=str(response.url),
            ) from e
