from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

BUILD_STATE_ID = 1


class Base(DeclarativeBase):
    pass


class ContentRecord(Base):
    """A content row as the CMS stores it (posts, pages, custom types)."""

    __tablename__ = "content_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    content_type: Mapped[str] = mapped_column(String, nullable=False, default="post")
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    # Metadata that churns without affecting what gets published
    view_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class StructureRecord(Base):
    """Site structure rendered on every page: navigation menus and taxonomy terms."""

    __tablename__ = "site_structure"

    kind: Mapped[str] = mapped_column(String, primary_key=True)  # "nav_menu" or "term"
    entity_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


class BuildStateRecord(Base):
    __tablename__ = "build_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    build_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_build_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class OptionRecord(Base):
    """Operator-set key/value options."""

    __tablename__ = "options"

    name: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")
