from __future__ import annotations
"""Two-phase, cancellable object download."""
from datetime import datetime
import logging
from typing import Iterator, Mapping, Optional

import httpx

from .codec import CatalogDecodeError, decode_object, load_json
from .errors import BadInputError, OtherError, StorageTimeoutError, UnmodifiedError
from .models import ObjectEntry
from .transport import CancellationToken, StorageTransport, classify_response

LOGGER = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


def format_range(start: int = 0, end: int | None = None) -> str:
    if start < 0 or (end is not None and end < start):
        raise BadInputError(f"Invalid byte range {start}-{end}")
    return f"bytes={start}-" if end is None else f"bytes={start}-{end}"


class DownloadHandle:
    """Object metadata plus the live, single-pass payload stream.

    Bytes are read from the network only as the caller iterates
    :attr:`byte_stream`. The handle must be drained or closed; use it as a
    context manager to release the connection either way.
    """

    def __init__(
        self,
        response: httpx.Response,
        entry: ObjectEntry,
        *,
        cancel: CancellationToken | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self._response = response
        self._entry = entry
        self._cancel = cancel
        self._chunk_size = chunk_size
        self._closed = False
        self.byte_stream: Iterator[bytes] = self._iter_chunks()

    @property
    def entry(self) -> ObjectEntry:
        return self._entry

    @property
    def key(self) -> str:
        return self._entry.key

    @property
    def size_bytes(self) -> int:
        return self._entry.size_bytes

    @property
    def last_modified(self) -> Optional[datetime]:
        return self._entry.last_modified

    @property
    def etag(self) -> str:
        return self._entry.etag

    @property
    def content_type(self) -> str:
        return self._entry.content_type

    @property
    def metadata(self) -> Optional[Mapping[str, str]]:
        return self._entry.metadata or None

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[bytes]:
        return self.byte_stream

    def read(self) -> bytes:
        """Drain the remaining stream into memory."""

        return b"".join(self.byte_stream)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._response.close()

    def __enter__(self) -> DownloadHandle:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _iter_chunks(self) -> Iterator[bytes]:
        try:
            if self._closed:
                return
            self._check_cancel()
            for chunk in self._response.iter_bytes(self._chunk_size):
                if chunk:
                    yield chunk
                self._check_cancel()
        except httpx.TimeoutException as exc:
            raise StorageTimeoutError(f"Timed out reading '{self.key}'") from exc
        except httpx.HTTPError as exc:
            raise OtherError(f"Failed reading '{self.key}': {exc}", exc) from exc
        except httpx.StreamError as exc:
            if self._closed:
                return
            raise OtherError(f"Failed reading '{self.key}': {exc}", exc) from exc
        finally:
            self.close()

    def _check_cancel(self) -> None:
        if self._cancel is not None:
            self._cancel.check()


def fetch_metadata(
    transport: StorageTransport, key: str, cancel: CancellationToken | None = None
) -> ObjectEntry:
    """Metadata phase: ``GET .../o/{key}?alt=json``."""

    if not key:
        raise BadInputError("Object key must not be empty")
    response = transport.send(
        "GET", transport.object_url(key), params={"alt": "json"}, cancel=cancel
    )
    classify_response(response, key=key)
    try:
        return decode_object(load_json(response.content))
    except CatalogDecodeError as exc:
        raise OtherError(f"Unable to decode metadata for '{key}': {exc}", exc) from exc


def open_download(
    transport: StorageTransport,
    key: str,
    cancel: CancellationToken | None = None,
    *,
    start: int = 0,
    end: int | None = None,
    if_none_match: str | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> DownloadHandle:
    """Resolve ``key`` to a :class:`DownloadHandle` without reading the payload."""

    byte_range = format_range(start, end)
    entry = fetch_metadata(transport, key, cancel)
    if if_none_match and entry.etag == if_none_match:
        raise UnmodifiedError(f"Object '{key}' not modified")

    headers = {"Range": byte_range}
    if if_none_match:
        headers["If-None-Match"] = if_none_match
    response = transport.send(
        "GET",
        transport.object_url(key),
        params={"alt": "media"},
        headers=headers,
        stream=True,
        cancel=cancel,
    )
    try:
        classify_response(response, key=key)
        if cancel is not None:
            cancel.check()
    except BaseException:
        response.close()
        raise
    LOGGER.debug("Opened download for '%s' (%s, HTTP %d)", key, byte_range, response.status_code)
    return DownloadHandle(response, entry, cancel=cancel, chunk_size=chunk_size)
