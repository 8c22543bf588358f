from __future__ import annotations
"""Data models representing catalog entries and listings."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Mapping, Optional


@dataclass(frozen=True)
class ObjectEntry:
    """Metadata about a single stored object."""

    key: str
    size_bytes: int = 0
    last_modified: Optional[datetime] = None
    etag: str = ""
    content_type: str = ""
    metadata: Mapping[str, str] = field(default_factory=dict)
    generation: int = 0
    storage_class: str = ""

    def __post_init__(self):
        if not self.key:
            raise ValueError("ObjectEntry key must not be empty")


@dataclass
class Listing:
    """Represents a single page of catalog results."""

    keys: list[ObjectEntry] = field(default_factory=list)
    common_prefixes: list[str] = field(default_factory=list)

    @classmethod
    def merge(cls, pages: Iterable[Listing]) -> Listing:
        """Concatenate pages in arrival order."""

        merged = cls()
        for page in pages:
            merged.keys.extend(page.keys)
            merged.common_prefixes.extend(page.common_prefixes)
        return merged


@dataclass(frozen=True)
class CatalogPage:
    """Wire-level list response."""

    items: list[dict] = field(default_factory=list)
    prefixes: list[str] = field(default_factory=list)
    next_page_token: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return not self.next_page_token


@dataclass(frozen=True)
class DeleteOutcome:
    """Status of one sub-request decoded from a batch response."""

    correlation_id: str
    status_code: int
