"""Minimal GitHub REST client used by ``cool-kit reset``."""

from __future__ import annotations

from typing import Any

import httpx

from coolkit.core.errors import ApiError, NetworkError

GITHUB_API = "https://api.github.com"


class GitHubClient:
    def __init__(
        self,
        token: str,
        *,
        base_url: str = GITHUB_API,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "cool-kit",
            },
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self._client.close()

    def _request(self, method: str, path: str) -> httpx.Response:
        try:
            response = self._client.request(method, path)
        except httpx.TransportError as exc:
            raise NetworkError(f"GitHub {method} {path} failed: {exc}", cause=exc) from exc
        if response.is_error:
            raise ApiError(response.status_code, response.text, url=str(response.url))
        return response

    def get_user(self) -> dict[str, Any]:
        """The authenticated user (``login`` is the repo owner for personal repos)."""
        return self._request("GET", "/user").json()

    def delete_repo(self, owner: str, name: str) -> None:
        """Needs a token with the ``delete_repo`` scope."""
        self._request("DELETE", f"/repos/{owner}/{name}")
