from __future__ import annotations
"""Business logic for interacting with a storage bucket."""
import logging
import os
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Iterator, Optional, Sequence, Union

import httpx

from .auth import DEFAULT_SCOPES, TokenProvider
from .batch import delete_batch, validate_keys
from .download import DownloadHandle, fetch_metadata, open_download
from .errors import BadInputError, OtherError
from .listing import ListingStream, validate_max_entries
from .models import Listing, ObjectEntry
from .profiles import DEFAULT_API_ENDPOINT
from .settings import AppSettings
from .transport import CancellationToken, StorageTransport, classify_response

LOGGER = logging.getLogger(__name__)

ByteSource = Union[Iterable[bytes], BinaryIO]


class RemoteStorage:
    """Encapsulates bucket operations independent of any user interface.

    ``client_factory`` builds the shared :class:`httpx.Client`; tests pass a
    factory that installs an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        bucket: str,
        token_provider: TokenProvider,
        *,
        api_endpoint: str = DEFAULT_API_ENDPOINT,
        scopes: Sequence[str] = DEFAULT_SCOPES,
        settings: AppSettings | None = None,
        client_factory: Callable[..., httpx.Client] | None = None,
    ):
        if not bucket:
            raise BadInputError("bucket must not be empty")
        self._settings = settings or AppSettings()
        factory = client_factory or httpx.Client
        self._client = factory(timeout=self._settings.request_timeout)
        self._transport = StorageTransport(
            self._client,
            token_provider,
            bucket=bucket,
            api_endpoint=api_endpoint,
            scopes=scopes,
        )

    @property
    def bucket(self) -> str:
        return self._transport.bucket

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> RemoteStorage:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def list(
        self,
        prefix: str | None = None,
        max_entries: int | None = None,
        *,
        delimiter: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> ListingStream:
        """Return a lazy stream of listing pages.

        Raises:
            BadInputError: when ``max_entries`` is not a positive integer.
        """

        return ListingStream(
            self._transport,
            prefix,
            validate_max_entries(max_entries),
            delimiter=delimiter,
            page_size=self._settings.list_page_size,
            cancel=cancel,
        )

    def list_all(
        self,
        prefix: str | None = None,
        max_entries: int | None = None,
        *,
        delimiter: str | None = None,
        cancel: CancellationToken | None = None,
    ) -> Listing:
        """Drain :meth:`list` into a single merged :class:`Listing`."""

        return Listing.merge(
            self.list(prefix, max_entries, delimiter=delimiter, cancel=cancel)
        )

    def stat(self, key: str, cancel: CancellationToken | None = None) -> ObjectEntry:
        """Fetch metadata about a single object."""

        return fetch_metadata(self._transport, key, cancel)

    def download(
        self,
        key: str,
        cancel: CancellationToken | None = None,
        *,
        start: int = 0,
        end: int | None = None,
        if_none_match: str | None = None,
    ) -> DownloadHandle:
        """Resolve ``key`` to metadata plus a lazily read byte stream."""

        return open_download(
            self._transport,
            key,
            cancel,
            start=start,
            end=end,
            if_none_match=if_none_match,
            chunk_size=self._settings.download_chunk_size,
        )

    def download_to_file(
        self,
        key: str,
        destination: str | Path,
        *,
        progress_callback: Optional[Callable[[int], None]] = None,
        cancel: CancellationToken | None = None,
    ) -> ObjectEntry:
        """Download an object to ``destination``.

        Data is written to a temporary sibling file that replaces
        ``destination`` only once the whole payload has arrived.
        """

        destination = Path(destination)
        partial = destination.with_name(destination.name + ".part")
        transferred = 0
        with self.download(key, cancel) as handle:
            try:
                with partial.open("wb") as target:
                    for chunk in handle.byte_stream:
                        target.write(chunk)
                        transferred += len(chunk)
                        if progress_callback:
                            progress_callback(transferred)
            except BaseException:
                partial.unlink(missing_ok=True)
                raise
            os.replace(partial, destination)
            LOGGER.debug("Downloaded '%s' (%d bytes) to %s", key, transferred, destination)
            return handle.entry

    def upload(
        self,
        byte_source: ByteSource,
        destination: str,
        *,
        content_type: str | None = None,
        cancel: CancellationToken | None = None,
        progress_callback: Optional[Callable[[int], None]] = None,
    ) -> None:
        """Stream ``byte_source`` to ``destination`` in one chunked POST, without retry."""

        if not destination:
            raise BadInputError("Destination key must not be empty")
        headers = {"Content-Type": content_type or "application/octet-stream"}
        body = self._stream_body(byte_source, progress_callback, cancel)
        response = self._transport.send(
            "POST",
            self._transport.upload_url,
            params={"uploadType": "media", "name": destination},
            headers=headers,
            content=body,
            cancel=cancel,
        )
        classify_response(response, key=destination)
        LOGGER.debug("Uploaded '%s' to bucket '%s'", destination, self.bucket)

    def upload_file(
        self,
        source_path: str | Path,
        destination: str,
        *,
        content_type: str | None = None,
        cancel: CancellationToken | None = None,
        progress_callback: Optional[Callable[[int], None]] = None,
    ) -> None:
        """Upload a local file to the target key."""

        try:
            source = open(source_path, "rb")
        except OSError as exc:
            raise OtherError(f"Unable to open '{source_path}': {exc}", exc) from exc
        with source:
            self.upload(
                source,
                destination,
                content_type=content_type,
                cancel=cancel,
                progress_callback=progress_callback,
            )

    def delete_object(self, key: str, cancel: CancellationToken | None = None) -> None:
        """Delete a single object with a plain ``DELETE``."""

        if not key:
            raise BadInputError("Object key must not be empty")
        response = self._transport.send(
            "DELETE", self._transport.object_url(key), cancel=cancel
        )
        classify_response(response, key=key)

    def delete_many(
        self, keys: Sequence[str], cancel: CancellationToken | None = None
    ) -> dict[str, int]:
        """Delete ``keys`` through batch requests; returns the HTTP status per key.

        Statuses such as 404 are reported in the mapping, not raised.
        """

        keys = validate_keys(keys)
        statuses: dict[str, int] = {}
        batch_size = self._settings.batch_size
        for offset in range(0, len(keys), batch_size):
            statuses.update(
                delete_batch(self._transport, keys[offset : offset + batch_size], cancel)
            )
        return statuses

    def _stream_body(
        self,
        byte_source: ByteSource,
        progress_callback: Optional[Callable[[int], None]],
        cancel: CancellationToken | None,
    ) -> Iterator[bytes]:
        chunk_size = self._settings.download_chunk_size
        if hasattr(byte_source, "read"):
            chunks = iter(lambda: byte_source.read(chunk_size), b"")
        else:
            chunks = iter(byte_source)

        transferred = 0
        for chunk in chunks:
            if cancel is not None:
                cancel.check()
            transferred += len(chunk)
            if progress_callback:
                progress_callback(transferred)
            yield bytes(chunk)
