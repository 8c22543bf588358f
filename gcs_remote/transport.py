from __future__ import annotations
"""Authorized HTTP access to the storage JSON API."""
import logging
import threading
import time
from typing import Callable, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx

from .auth import DEFAULT_SCOPES, TokenProvider
from .errors import (
    AuthError,
    NotFoundError,
    OtherError,
    StorageTimeoutError,
    TransferCancelledError,
    UnmodifiedError,
)

LOGGER = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation signal with an optional deadline.

    ``cancel()`` may be called from any thread; the operation notices it the
    next time it calls :meth:`check`.
    """

    def __init__(self, timeout: float | None = None, clock: Callable[[], float] = time.monotonic):
        self._event = threading.Event()
        self._clock = clock
        self._deadline = clock() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    def check(self) -> None:
        if self.cancelled:
            raise TransferCancelledError("Operation cancelled by caller")
        if self.expired:
            raise StorageTimeoutError("Operation exceeded its deadline")


def quote_key(key: str) -> str:
    return quote(key, safe="")


def describe_response(response: httpx.Response) -> str:
    try:
        data = response.json()
    except (httpx.ResponseNotRead, ValueError):
        return response.reason_phrase
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        return str(data["error"].get("message") or response.reason_phrase)
    return response.reason_phrase


def classify_response(response: httpx.Response, *, key: str = "") -> None:
    """Raise the matching :class:`StorageError` for a non-2xx response."""

    status = response.status_code
    if 200 <= status < 300:
        return
    if status == 404:
        raise NotFoundError(key)
    if status == 304:
        raise UnmodifiedError(f"Object '{key}' not modified")
    raise OtherError(f"Request failed with HTTP {status}: {describe_response(response)}")


class StorageTransport:
    """Issues requests for one bucket, fetching a fresh token for each of them."""

    def __init__(
        self,
        client: httpx.Client,
        token_provider: TokenProvider,
        *,
        bucket: str,
        api_endpoint: str,
        scopes: Sequence[str] = DEFAULT_SCOPES,
    ):
        self._client = client
        self._token_provider = token_provider
        self._bucket = bucket
        self._api_endpoint = api_endpoint.rstrip("/")
        self._scopes = tuple(scopes)

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def bucket_path(self) -> str:
        return f"/storage/v1/b/{quote_key(self._bucket)}"

    def object_path(self, key: str) -> str:
        return f"{self.bucket_path}/o/{quote_key(key)}"

    @property
    def list_url(self) -> str:
        return f"{self._api_endpoint}{self.bucket_path}/o"

    def object_url(self, key: str) -> str:
        return f"{self._api_endpoint}{self.object_path(key)}"

    @property
    def upload_url(self) -> str:
        return f"{self._api_endpoint}/upload{self.bucket_path}/o"

    @property
    def batch_url(self) -> str:
        return f"{self._api_endpoint}/batch/storage/v1"

    def send(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        content=None,
        stream: bool = False,
        cancel: CancellationToken | None = None,
    ) -> httpx.Response:
        if cancel is not None:
            cancel.check()
        request_headers = {"Authorization": f"Bearer {self._authorize()}"}
        request_headers.update(headers or {})
        try:
            request = self._client.build_request(
                method, url, params=params, headers=request_headers, content=content
            )
            LOGGER.debug("%s %s", method, request.url)
            response = self._client.send(request, stream=stream)
        except httpx.TimeoutException as exc:
            raise StorageTimeoutError(f"{method} {url} timed out") from exc
        except (httpx.HTTPError, httpx.InvalidURL, httpx.StreamError) as exc:
            raise OtherError(f"{method} {url} failed: {exc}", exc) from exc
        LOGGER.debug("%s %s -> %d", method, request.url, response.status_code)
        return response

    def _authorize(self) -> str:
        try:
            return self._token_provider.token(self._scopes)
        except AuthError as exc:
            raise OtherError(f"Unable to obtain access token: {exc}", exc) from exc
