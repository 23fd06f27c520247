"""HTTP client for the self-hosted platform's REST API (``/api/v1``).

Only the calls the reset flow needs are implemented. Requests whose error is
retryable (5xx, 429 or a network error, see
:func:`~coolkit.core.errors.is_retryable`) are retried with exponential
backoff; other 4xx responses raise :class:`~coolkit.core.errors.ApiError` at
once, so a 404 on delete is visible to the teardown coordinator as
"already gone".
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

import httpx

from coolkit.core.errors import ApiError, NetworkError, is_retryable
from coolkit.execution.retry import ExponentialBackoff, RetryContext, RetryStrategy

logger = logging.getLogger(__name__)

USER_AGENT = "cool-kit"


class PlatformClient:
    """Bearer-token client rooted at ``<url>/api/v1``.

    Args:
        url: Platform base URL, e.g. ``https://coolify.example.com``
        token: API token created in the platform's settings
        transport: Optional httpx transport (``httpx.MockTransport`` in tests)
        strategy: Retry policy for 5xx / network failures
        sleep: Sleep used between retries

    Example:
        >>> with PlatformClient("https://coolify.example.com", token) as client:
        ...     client.delete_application("k8s0w4o")
    """

    def __init__(
        self,
        url: str,
        token: str,
        *,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        strategy: RetryStrategy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = url.rstrip("/") + "/api/v1"
        self.strategy = strategy or ExponentialBackoff(max_attempts=3, base_delay=1.0, max_delay=10.0)
        self.sleep = sleep
        self._client = httpx.Client(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
            timeout=timeout,
            transport=transport,
        )

    def __enter__(self) -> PlatformClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ── Requests ─────────────────────────────────────────────────

    def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        def send() -> httpx.Response:
            try:
                response = self._client.request(method, path, **kwargs)
            except httpx.TransportError as exc:
                raise NetworkError(f"{method} {self.base_url}{path} failed: {exc}", cause=exc) from exc
            if response.status_code >= 400:
                raise ApiError(response.status_code, response.text, url=str(response.url))
            return response

        def on_retry(attempt: int, error: BaseException, delay: float) -> None:
            logger.warning(
                "api.retry",
                extra={"method": method, "path": path, "attempt": attempt, "delay_s": delay, "error": str(error)},
            )

        ctx = RetryContext(self.strategy, on_retry=on_retry, sleep=self.sleep, retry_if=is_retryable)
        return ctx.run(send)

    def get_json(self, path: str) -> Any:
        return self.request("GET", path).json()

    # ── Resources ────────────────────────────────────────────────

    def get_project(self, uuid: str) -> dict[str, Any]:
        return self.get_json(f"/projects/{uuid}")

    def delete_project(self, uuid: str) -> None:
        self.request("DELETE", f"/projects/{uuid}")

    def get_application(self, uuid: str) -> dict[str, Any]:
        return self.get_json(f"/applications/{uuid}")

    def delete_application(self, uuid: str, *, delete_volumes: bool = True) -> None:
        params = {"delete_volumes": "true" if delete_volumes else "false"}
        self.request("DELETE", f"/applications/{uuid}", params=params)

    def version(self) -> str:
        return self.request("GET", "/version").text.strip()
