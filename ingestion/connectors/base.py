"""Connector errors and the shared HTTP document fetcher."""

from __future__ import annotations

from typing import Callable, Optional, TypeVar

import httpx

from ingestion.settings import Settings


class ConnectorError(Exception):
    """Base connector error."""


class TransientError(ConnectorError):
    """Retryable error (e.g., rate limit, network hiccup)."""


class PermanentError(ConnectorError):
    """Non-retryable error (e.g., 4xx semantics)."""


T = TypeVar("T")

# url -> document text; injected in tests/offline runs
FetchFn = Callable[[str], str]


def call_with_retries(fn: Callable[[], T], *, max_attempts: int = 1) -> T:
    """Run ``fn`` retrying TransientError up to ``max_attempts`` times."""
    attempts = 0
    last_error: Optional[Exception] = None
    while attempts < max_attempts:
        attempts += 1
        try:
            return fn()
        except TransientError as exc:
            last_error = exc
            if attempts >= max_attempts:
                raise
    assert last_error is not None
    raise last_error


def raise_for_status(response: httpx.Response, label: str) -> None:
    if response.status_code == 429 or response.status_code >= 500:
        raise TransientError(f"{label} transient error: {response.status_code}")
    if response.status_code >= 400:
        raise PermanentError(f"{label} error: {response.status_code}")


class HttpFetcher:
    """Blocking GET with a browser-like User-Agent and a bounded timeout.

    Many source sites refuse default client identifiers, so every request
    carries ``user_agent``. Network failures surface as TransientError, HTTP
    error codes as Transient/PermanentError.
    """

    def __init__(
        self,
        *,
        timeout: float = 12.0,
        user_agent: str,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            headers={
                "User-Agent": user_agent,
                "Accept": "text/html,application/xhtml+xml",
                "Accept-Language": "en-US,en;q=0.9",
            },
        )

    @classmethod
    def from_settings(cls, settings: Settings, client: Optional[httpx.Client] = None) -> "HttpFetcher":
        return cls(timeout=settings.http_timeout_seconds, user_agent=settings.http_user_agent, client=client)

    def get_text(self, url: str) -> str:
        try:
            resp = self._client.get(url)
        except httpx.InvalidURL as exc:
            raise PermanentError(f"invalid url {url!r}: {exc}") from exc
        except httpx.TimeoutException as exc:
            raise TransientError(f"timeout fetching {url}") from exc
        except httpx.HTTPError as exc:
            raise TransientError(f"request failed for {url}: {exc}") from exc
        raise_for_status(resp, url)
        return resp.text

    __call__ = get_text

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpFetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()
