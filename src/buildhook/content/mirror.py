"""Applies CMS mutation snapshots to the locally stored content set."""

import logging

from sqlalchemy.exc import SQLAlchemyError

from buildhook.content.hasher import PUBLISH_STATUS
from buildhook.db.repository import Repository
from buildhook.events.models import ChangeEvent, ChangeKind

logger = logging.getLogger(__name__)

MENU_KIND = "nav_menu"
TERM_KIND = "term"

_STRUCTURE_DELETE_HOOKS = {"delete_term"}


class MirrorError(Exception):
    """Raised when a mutation could not be written to the content store."""


class ContentMirror:
    """Keeps `content_items` and `site_structure` in step with the CMS.

    Each notification carries the entity as it looks after the mutation. The
    mirror writes that snapshot before the pipeline fingerprints, so the
    fingerprint reflects the CMS state the event describes.
    """

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    async def apply(self, event: ChangeEvent) -> bool:
        """Write the event's snapshot. Returns False when there was nothing to write."""
        entity_id = _parse_id(event.entity_id)
        if entity_id is None:
            logger.warning("%s without a numeric entity id, not mirrored", event.hook)
            return False

        try:
            if event.kind == ChangeKind.CONTENT_DELETED:
                await self._repo.delete_content(entity_id)
            elif event.kind == ChangeKind.CONTENT_SAVED:
                await self._repo.upsert_content(
                    entity_id,
                    title=event.title,
                    body=event.body,
                    modified_at=event.modified_at,
                    content_type=event.content_type,
                    # Either side of the transition is publish, or the
                    # observer would not have forwarded it
                    status=event.resulting_status or event.previous_status or PUBLISH_STATUS,
                )
            elif event.kind == ChangeKind.MENU_UPDATED:
                await self._apply_structure(MENU_KIND, entity_id, event)
            else:
                await self._apply_structure(TERM_KIND, entity_id, event)
        except SQLAlchemyError as exc:
            raise MirrorError(f"Could not store {event.hook} for {entity_id}: {exc}") from exc

        logger.debug("Mirrored %s for %s", event.hook, entity_id)
        return True

    async def _apply_structure(self, kind: str, entity_id: int, event: ChangeEvent) -> None:
        if event.hook in _STRUCTURE_DELETE_HOOKS:
            await self._repo.delete_structure(kind, entity_id)
            return
        await self._repo.upsert_structure(
            kind,
            entity_id,
            name=event.title,
            body=event.body,
            # A menu save without a modification time still counts as a change
            modified_at=event.modified_at or event.occurred_at,
        )


def _parse_id(entity_id: str | None) -> int | None:
    if entity_id is None:
        return None
    try:
        return int(entity_id)
    except ValueError:
        return None
