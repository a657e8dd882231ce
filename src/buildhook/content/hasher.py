"""Deterministic fingerprint over the publishable content set."""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError

from buildhook.utils.timestamps import as_utc, utcnow

logger = logging.getLogger(__name__)

PUBLISH_STATUS = "publish"


class EnumerationError(Exception):
    """Raised when the publishable content could not be listed."""


@dataclass(frozen=True)
class ContentItem:
    id: int
    content_type: str
    title: str
    body: str
    modified_at: datetime


@dataclass(frozen=True)
class StructureItem:
    """A navigation menu or taxonomy term; shown on every page, so hashed too."""

    kind: str
    id: int
    name: str
    body: str
    modified_at: datetime


@dataclass(frozen=True)
class ContentFingerprint:
    hash: str
    item_count: int
    computed_at: datetime = field(default_factory=utcnow, compare=False)


class ContentSource(Protocol):
    async def list_publishable(self, content_types: list[str]) -> list[ContentItem]: ...

    async def list_structure(self) -> list[StructureItem]: ...


def _canonical_entry(item: ContentItem) -> list:
    return [
        item.id,
        as_utc(item.modified_at).isoformat(),
        item.title,
        hashlib.md5(item.body.encode("utf-8")).hexdigest(),
    ]


def _structure_entry(item: StructureItem) -> list:
    return [
        f"{item.kind}:{item.id}",
        as_utc(item.modified_at).isoformat(),
        item.name,
        hashlib.md5(item.body.encode("utf-8")).hexdigest(),
    ]


def fingerprint_items(
    items: list[ContentItem], structure: list[StructureItem] | None = None
) -> str:
    """Fold (id, modified, title, digest(body)) of every item into one SHA-256.

    Items are sorted by id first, so enumeration order never affects the result.
    Fields outside the tuple (view counters, content type) are ignored. Menus
    and terms follow the content entries, keyed "kind:id" and sorted the same way.
    """
    ordered = sorted(items, key=lambda item: item.id)
    entries = [_canonical_entry(item) for item in ordered]
    entries += [
        _structure_entry(item)
        for item in sorted(structure or [], key=lambda item: (item.kind, item.id))
    ]
    canonical = json.dumps(
        entries,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


EMPTY_FINGERPRINT = fingerprint_items([])


class ContentHasher:
    def __init__(self, source: ContentSource, content_types: list[str]) -> None:
        self._source = source
        self._content_types = list(content_types)

    @property
    def content_types(self) -> list[str]:
        return list(self._content_types)

    async def compute_fingerprint(self) -> ContentFingerprint:
        try:
            items = await self._source.list_publishable(self._content_types)
            structure = await self._source.list_structure()
        except (SQLAlchemyError, OSError) as exc:
            raise EnumerationError(f"Could not list publishable content: {exc}") from exc

        digest = fingerprint_items(items, structure)
        logger.debug(
            "Fingerprinted %d publishable items and %d menus/terms: %s",
            len(items), len(structure), digest,
        )
        return ContentFingerprint(hash=digest, item_count=len(items))
