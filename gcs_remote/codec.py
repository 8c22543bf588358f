from __future__ import annotations
"""Mapping between catalog JSON and :mod:`gcs_remote.models` entities."""
from datetime import datetime, timezone
import json
import re
from typing import Any, Mapping, Optional

from .models import CatalogPage, ObjectEntry

_FRACTION_RE = re.compile(r"\.(\d+)(?=[+-]\d{2}:?\d{2}$|$)")


class CatalogDecodeError(ValueError):
    """Raised when a payload does not have the expected catalog shape."""


def parse_size(value: Any) -> int:
    """Parse a numeric field that the API may send as a string.

    Absent or unparsable values become ``0``.
    """

    if value is None or isinstance(value, bool):
        return 0
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return 0
    return parsed if parsed >= 0 else 0


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 only accepts 3 or 6 fractional digits
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def load_json(payload: bytes | str) -> Any:
    try:
        return json.loads(payload)
    except (TypeError, ValueError) as exc:
        raise CatalogDecodeError(f"Invalid JSON payload: {exc}") from exc


def decode_object(record: Any) -> ObjectEntry:
    """Build an :class:`ObjectEntry` from one object resource."""

    if not isinstance(record, Mapping):
        raise CatalogDecodeError("Object record must be a JSON object")
    name = record.get("name")
    if not isinstance(name, str) or not name:
        raise CatalogDecodeError("Object record is missing its name")
    metadata = record.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        metadata = {}
    return ObjectEntry(
        key=name,
        size_bytes=parse_size(record.get("size")),
        last_modified=parse_timestamp(record.get("updated")),
        etag=str(record.get("etag") or ""),
        content_type=str(record.get("contentType") or ""),
        metadata={str(k): str(v) for k, v in metadata.items() if v is not None},
        generation=parse_size(record.get("generation")),
        storage_class=str(record.get("storageClass") or ""),
    )


def encode_object(entry: ObjectEntry) -> dict[str, Any]:
    """Inverse of :func:`decode_object` for the fields the model carries."""

    payload: dict[str, Any] = {
        "name": entry.key,
        "size": str(entry.size_bytes),
        "etag": entry.etag,
        "contentType": entry.content_type,
        "metadata": dict(entry.metadata),
    }
    updated = format_timestamp(entry.last_modified)
    if updated:
        payload["updated"] = updated
    if entry.generation:
        payload["generation"] = str(entry.generation)
    if entry.storage_class:
        payload["storageClass"] = entry.storage_class
    return payload


def decode_catalog_page(payload: bytes | str | Mapping[str, Any]) -> CatalogPage:
    """Decode one list response into a :class:`CatalogPage`."""

    data = payload if isinstance(payload, Mapping) else load_json(payload)
    if not isinstance(data, Mapping):
        raise CatalogDecodeError("List response must be a JSON object")
    items = data.get("items", [])
    if items is None:
        items = []
    prefixes = data.get("prefixes", [])
    if prefixes is None:
        prefixes = []
    if not isinstance(items, list) or not isinstance(prefixes, list):
        raise CatalogDecodeError("List response has malformed items or prefixes")
    token = data.get("nextPageToken") or None
    if token is not None and not isinstance(token, str):
        raise CatalogDecodeError("nextPageToken must be a string")
    return CatalogPage(
        items=list(items),
        prefixes=[str(prefix) for prefix in prefixes],
        next_page_token=token,
    )
