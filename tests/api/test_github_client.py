"""Tests for coolkit.api.github.GitHubClient."""

import httpx
import pytest

from coolkit.api import GitHubClient
from coolkit.core.errors import ApiError, NetworkError


def _client(handler) -> GitHubClient:
    return GitHubClient("ghp_token", transport=httpx.MockTransport(handler))


def test_get_user_sends_api_headers():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"login": "octocat"})

    with _client(handler) as client:
        assert client.get_user()["login"] == "octocat"

    request = seen[0]
    assert str(request.url) == "https://api.github.com/user"
    assert request.headers["Authorization"] == "Bearer ghp_token"
    assert request.headers["Accept"] == "application/vnd.github+json"
    assert request.headers["X-GitHub-Api-Version"] == "2022-11-28"


def test_delete_repo():
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path))
        return httpx.Response(204)

    _client(handler).delete_repo("octocat", "blog")
    assert seen == [("DELETE", "/repos/octocat/blog")]


def test_missing_scope_raises_api_error():
    client = _client(lambda request: httpx.Response(403, json={"message": "Must have admin rights to Repository."}))
    with pytest.raises(ApiError) as exc_info:
        client.delete_repo("octocat", "blog")
    assert exc_info.value.status_code == 403
    assert not exc_info.value.is_not_found


def test_deleted_repo_is_not_found():
    client = _client(lambda request: httpx.Response(404, json={"message": "Not Found"}))
    with pytest.raises(ApiError) as exc_info:
        client.delete_repo("octocat", "blog")
    assert exc_info.value.is_not_found


def test_transport_failure_is_network_error():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(NetworkError):
        _client(handler).get_user()
