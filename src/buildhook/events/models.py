"""Pydantic models for CMS mutation notifications."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from buildhook.utils.timestamps import utcnow


class ChangeKind(Enum):
    CONTENT_SAVED = "content_saved"
    CONTENT_DELETED = "content_deleted"
    MENU_UPDATED = "menu_updated"
    TAXONOMY_CHANGED = "taxonomy_changed"


# CMS hook name -> kind of change
HOOK_KINDS: dict[str, ChangeKind] = {
    "save_post": ChangeKind.CONTENT_SAVED,
    "publish_post": ChangeKind.CONTENT_SAVED,
    "transition_post_status": ChangeKind.CONTENT_SAVED,
    "delete_post": ChangeKind.CONTENT_DELETED,
    "trash_post": ChangeKind.CONTENT_DELETED,
    "wp_update_nav_menu": ChangeKind.MENU_UPDATED,
    "created_term": ChangeKind.TAXONOMY_CHANGED,
    "edited_term": ChangeKind.TAXONOMY_CHANGED,
    "delete_term": ChangeKind.TAXONOMY_CHANGED,
}


class ChangeEvent(BaseModel):
    """A single content mutation, consumed within one pipeline pass."""

    kind: ChangeKind
    hook: str  # originating CMS hook, echoed as the webhook event name
    entity_id: str | None = None
    occurred_at: datetime = Field(default_factory=utcnow)
    is_transient: bool = False  # autosave or revision snapshot
    previous_status: str | None = None
    resulting_status: str | None = None
    # Entity as the CMS holds it after the mutation; None fields are unknown
    content_type: str | None = None
    title: str | None = None
    body: str | None = None
    modified_at: datetime | None = None


class MutationNotification(BaseModel):
    """Body the CMS posts for every lifecycle hook it fires."""

    hook: str
    entity_id: str | int | None = None
    timestamp: datetime | None = None
    previous_status: str | None = None
    resulting_status: str | None = None
    is_autosave: bool = False
    is_revision: bool = False
    # Snapshot of the entity: post type or taxonomy, title or name, rendered
    # content (menu items or term description for structure hooks)
    content_type: str | None = None
    title: str | None = None
    body: str | None = None
    modified_at: datetime | None = None

    def to_event(self) -> ChangeEvent:
        kind = HOOK_KINDS.get(self.hook)
        if kind is None:
            raise ValueError(f"Unsupported hook: {self.hook}")
        return ChangeEvent(
            kind=kind,
            hook=self.hook,
            entity_id=str(self.entity_id) if self.entity_id is not None else None,
            occurred_at=self.timestamp or utcnow(),
            is_transient=self.is_autosave or self.is_revision,
            previous_status=self.previous_status,
            resulting_status=self.resulting_status,
            content_type=self.content_type,
            title=self.title,
            body=self.body,
            modified_at=self.modified_at,
        )
