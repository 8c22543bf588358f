from __future__ import annotations
"""Batched deletes over a single ``multipart/mixed`` request.

Every key becomes one embedded ``DELETE`` request whose ``Content-ID`` ends
in ``+<n>``, ``n`` being the key's 1-based position. The service echoes that
suffix in the matching response part, which is how statuses are mapped back
to keys: response parts may come back in any order.
"""
from dataclasses import dataclass, field
import logging
import re
from typing import Mapping, Sequence
import uuid

from .errors import BadInputError, FatalError
from .models import DeleteOutcome
from .transport import CancellationToken, StorageTransport, classify_response

LOGGER = logging.getLogger(__name__)

CRLF = "\r\n"
_BOUNDARY_RE = re.compile(r'boundary\s*=\s*"?([^";]+)"?', re.IGNORECASE)
_CONTENT_ID_RE = re.compile(r"\+(\d+)\s*>?\s*$")
_STATUS_LINE_RE = re.compile(r"^HTTP/\d(?:\.\d)?\s+(\d{3})(?:\s|$)")


@dataclass
class BatchRequest:
    """An encoded batch ready to send."""

    boundary: str
    body: bytes
    keys_by_id: dict[str, str] = field(default_factory=dict)

    @property
    def content_type(self) -> str:
        return f"multipart/mixed; boundary={self.boundary}"


@dataclass
class BatchDecodeResult:
    outcomes: list[DeleteOutcome] = field(default_factory=list)
    anomalies: int = 0


def validate_keys(keys: Sequence[str]) -> list[str]:
    if isinstance(keys, (str, bytes)):
        raise BadInputError("keys must be a sequence of object keys, not a single string")
    result = list(keys)
    seen: set[str] = set()
    for key in result:
        if not isinstance(key, str) or not key:
            raise BadInputError("Object keys must be non-empty strings")
        if key in seen:
            raise BadInputError(f"Duplicate key '{key}' in delete request")
        seen.add(key)
    return result


def encode_delete_batch(
    transport: StorageTransport,
    keys: Sequence[str],
    *,
    boundary: str | None = None,
    id_prefix: str | None = None,
) -> BatchRequest:
    boundary = boundary or f"batch_{uuid.uuid4().hex}"
    id_prefix = id_prefix or str(uuid.uuid4())
    lines: list[str] = []
    keys_by_id: dict[str, str] = {}
    for index, key in enumerate(keys):
        correlation_id = str(index + 1)
        keys_by_id[correlation_id] = key
        lines.extend(
            [
                f"--{boundary}",
                "Content-Type: application/http",
                "Content-Transfer-Encoding: binary",
                f"Content-ID: <{id_prefix}+{correlation_id}>",
                "",
                f"DELETE {transport.object_path(key)} HTTP/1.1",
                "",
            ]
        )
    lines.append(f"--{boundary}--")
    lines.append("")
    return BatchRequest(
        boundary=boundary,
        body=CRLF.join(lines).encode("utf-8"),
        keys_by_id=keys_by_id,
    )


def boundary_from_content_type(content_type: str | None) -> str | None:
    if not content_type:
        return None
    match = _BOUNDARY_RE.search(content_type)
    return match.group(1).strip() if match else None


def split_parts(body: str, boundary: str) -> list[str]:
    """Return the raw parts between ``--boundary`` delimiters.

    The preamble before the first delimiter and anything after the closing
    ``--boundary--`` are discarded.
    """

    delimiter = f"--{boundary}"
    parts: list[str] = []
    current: list[str] | None = None
    for line in body.splitlines():
        stripped = line.rstrip()
        if stripped == f"{delimiter}--":
            if current is not None:
                parts.append("\n".join(current))
            return parts
        if stripped == delimiter:
            if current is not None:
                parts.append("\n".join(current))
            current = []
            continue
        if current is not None:
            current.append(line)
    if current is not None:
        parts.append("\n".join(current))
    return parts


def parse_part(part: str) -> tuple[str | None, int | None]:
    """Extract ``(correlation_id, status_code)`` from one response part."""

    correlation_id = None
    status_code = None
    for line in part.splitlines():
        stripped = line.strip()
        name, sep, value = stripped.partition(":")
        if correlation_id is None and sep and name.strip().lower() == "content-id":
            match = _CONTENT_ID_RE.search(value)
            if match:
                correlation_id = str(int(match.group(1)))
            continue
        if status_code is None:
            match = _STATUS_LINE_RE.match(stripped)
            if match:
                status_code = int(match.group(1))
    return correlation_id, status_code


def decode_delete_batch(body: bytes | str, boundary: str) -> BatchDecodeResult:
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    result = BatchDecodeResult()
    for index, part in enumerate(split_parts(text, boundary)):
        if not part.strip():
            continue
        correlation_id, status_code = parse_part(part)
        if correlation_id is None or status_code is None:
            result.anomalies += 1
            LOGGER.warning(
                "Batch response part %d is missing its %s",
                index + 1,
                "Content-ID" if correlation_id is None else "status line",
            )
            continue
        result.outcomes.append(DeleteOutcome(correlation_id, status_code))
    return result


def correlate(
    keys_by_id: Mapping[str, str], outcomes: Sequence[DeleteOutcome]
) -> dict[str, int]:
    """Map decoded outcomes back onto the original keys.

    Raises:
        FatalError: for unknown or duplicate correlation ids, or keys left
            without an outcome.
    """

    statuses: dict[str, int] = {}
    for outcome in outcomes:
        key = keys_by_id.get(outcome.correlation_id)
        if key is None:
            raise FatalError(f"Unexpected correlation id '{outcome.correlation_id}' in batch response")
        if key in statuses:
            raise FatalError(f"Duplicate correlation id '{outcome.correlation_id}' in batch response")
        statuses[key] = outcome.status_code
    missing = [key for key in keys_by_id.values() if key not in statuses]
    if missing:
        raise FatalError(f"Batch response has no status for {len(missing)} key(s): {missing[:5]}")
    return statuses


def delete_batch(
    transport: StorageTransport,
    keys: Sequence[str],
    cancel: CancellationToken | None = None,
) -> dict[str, int]:
    """Delete ``keys`` with one batch request and return the status per key."""

    keys = validate_keys(keys)
    if not keys:
        return {}
    request = encode_delete_batch(transport, keys)
    LOGGER.debug("Sending batch delete of %d key(s)", len(keys))
    response = transport.send(
        "POST",
        transport.batch_url,
        headers={"Content-Type": request.content_type},
        content=request.body,
        cancel=cancel,
    )
    classify_response(response)
    boundary = boundary_from_content_type(response.headers.get("Content-Type")) or request.boundary
    decoded = decode_delete_batch(response.content, boundary)
    if decoded.anomalies:
        LOGGER.warning("Batch response contained %d malformed part(s)", decoded.anomalies)
    return correlate(request.keys_by_id, decoded.outcomes)
