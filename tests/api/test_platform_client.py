"""Tests for coolkit.api.client.PlatformClient against httpx.MockTransport."""

import httpx
import pytest

from coolkit.api import PlatformClient
from coolkit.core.errors import ApiError, NetworkError


class Recorder:
    """MockTransport handler that replays responses and keeps the requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return httpx.Response(response.status_code, headers=response.headers, content=response.content)


def _client(handler, sleeps=None):
    return PlatformClient(
        "https://coolify.example.com/",
        "tok",
        transport=httpx.MockTransport(handler),
        sleep=sleeps if sleeps is not None else (lambda s: None),
    )


class TestRequests:
    def test_headers_and_base_path(self):
        handler = Recorder(httpx.Response(200, json={"uuid": "p1", "name": "blog"}))
        with _client(handler) as client:
            assert client.get_project("p1") == {"uuid": "p1", "name": "blog"}

        request = handler.requests[0]
        assert str(request.url) == "https://coolify.example.com/api/v1/projects/p1"
        assert request.headers["Authorization"] == "Bearer tok"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["User-Agent"] == "cool-kit"

    def test_delete_application_sends_volume_flag(self):
        handler = Recorder(httpx.Response(200, json={"message": "deleted"}))
        client = _client(handler)
        client.delete_application("a1")
        client.delete_application("a1", delete_volumes=False)

        assert [r.method for r in handler.requests] == ["DELETE", "DELETE"]
        assert handler.requests[0].url.params["delete_volumes"] == "true"
        assert handler.requests[1].url.params["delete_volumes"] == "false"
        assert handler.requests[0].url.path == "/api/v1/applications/a1"

    def test_delete_project(self):
        handler = Recorder(httpx.Response(200))
        _client(handler).delete_project("p1")
        assert handler.requests[0].url.path == "/api/v1/projects/p1"

    def test_version(self):
        handler = Recorder(httpx.Response(200, text="4.0.0-beta.360\n"))
        assert _client(handler).version() == "4.0.0-beta.360"


class TestErrors:
    def test_not_found_raises_at_once(self, sleeps):
        handler = Recorder(httpx.Response(404, json={"message": "Project not found."}))
        with pytest.raises(ApiError) as exc_info:
            _client(handler, sleeps).delete_project("gone")

        assert exc_info.value.is_not_found
        assert "Project not found." in str(exc_info.value)
        assert len(handler.requests) == 1
        assert sleeps.calls == []

    def test_server_errors_are_retried(self, sleeps):
        handler = Recorder(httpx.Response(503), httpx.Response(502), httpx.Response(200, json={"uuid": "a1"}))
        assert _client(handler, sleeps).get_application("a1") == {"uuid": "a1"}
        assert len(handler.requests) == 3
        assert sleeps.calls == [1.0, 2.0]

    def test_exhausted_server_errors_become_api_error(self, sleeps):
        handler = Recorder(httpx.Response(500, text="oops"))
        with pytest.raises(ApiError) as exc_info:
            _client(handler, sleeps).get_project("p1")

        assert type(exc_info.value) is ApiError
        assert exc_info.value.status_code == 500
        assert exc_info.value.url.endswith("/api/v1/projects/p1")
        assert len(handler.requests) == 3

    def test_network_errors_are_retried_then_raised(self, sleeps):
        handler = Recorder(httpx.ConnectError("connection refused"))
        with pytest.raises(NetworkError, match="connection refused"):
            _client(handler, sleeps).version()
        assert len(handler.requests) == 3
        assert len(sleeps.calls) == 2
