from __future__ import annotations
"""Lazy, page-at-a-time catalog listing."""
import logging
from typing import Optional

from .codec import CatalogDecodeError, decode_catalog_page, decode_object
from .errors import BadInputError, FatalError, OtherError
from .models import Listing
from .transport import CancellationToken, StorageTransport, classify_response

LOGGER = logging.getLogger(__name__)


def validate_max_entries(max_entries) -> Optional[int]:
    if max_entries is None:
        return None
    if isinstance(max_entries, bool) or not isinstance(max_entries, int) or max_entries <= 0:
        raise BadInputError("max_entries must be a positive integer")
    return max_entries


class ListingStream:
    """Iterator yielding one :class:`Listing` per catalog page.

    Each ``next()`` issues at most one request. The stream finishes when the
    server stops returning a page token, when ``max_entries`` entries have
    been produced, or after the first failure, which is raised exactly once.
    A finished stream cannot be restarted; call ``RemoteStorage.list`` again.
    """

    def __init__(
        self,
        transport: StorageTransport,
        prefix: str | None = None,
        max_entries: int | None = None,
        *,
        delimiter: str | None = None,
        page_size: int | None = None,
        cancel: CancellationToken | None = None,
    ):
        self._transport = transport
        self._prefix = prefix
        self._delimiter = delimiter
        self._page_size = page_size
        self._cancel = cancel
        self._remaining = validate_max_entries(max_entries)
        self._next_page_token: str | None = None
        self._pages_fetched = 0
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def pages_fetched(self) -> int:
        return self._pages_fetched

    def __iter__(self) -> ListingStream:
        return self

    def __next__(self) -> Listing:
        if self._finished:
            raise StopIteration
        try:
            return self._pull()
        except Exception:
            self._finished = True
            raise

    def _pull(self) -> Listing:
        params = self._build_params()
        LOGGER.debug(
            "Listing page %d of '%s' (prefix=%r)",
            self._pages_fetched + 1,
            self._transport.bucket,
            self._prefix,
        )
        response = self._transport.send(
            "GET", self._transport.list_url, params=params, cancel=self._cancel
        )
        classify_response(response)
        try:
            page = decode_catalog_page(response.content)
            listing = Listing(common_prefixes=list(page.prefixes))
            seen: set[str] = set()
            for record in page.items:
                entry = decode_object(record)
                if entry.key in seen:
                    raise FatalError(f"Duplicate key '{entry.key}' within one listing page")
                seen.add(entry.key)
                listing.keys.append(entry)
                if self._remaining is not None:
                    self._remaining -= 1
                    if self._remaining == 0:
                        LOGGER.debug("max_entries reached; ending listing")
                        self._finished = True
                        break
        except CatalogDecodeError as exc:
            raise OtherError(f"Unable to decode listing page: {exc}", exc) from exc

        self._pages_fetched += 1
        if page.is_terminal:
            self._finished = True
        else:
            self._next_page_token = page.next_page_token
        return listing

    def _build_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self._prefix:
            params["prefix"] = self._prefix
        if self._delimiter:
            params["delimiter"] = self._delimiter
        if self._next_page_token:
            params["pageToken"] = self._next_page_token
        page_size = self._page_size
        if self._remaining is not None:
            page_size = min(page_size, self._remaining) if page_size else self._remaining
        if page_size:
            params["maxResults"] = str(page_size)
        return params
