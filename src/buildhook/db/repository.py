import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from buildhook.content.hasher import (
    EMPTY_FINGERPRINT,
    PUBLISH_STATUS,
    ContentFingerprint,
    ContentItem,
    StructureItem,
)
from buildhook.utils.timestamps import as_utc, utcnow

from .models import (
    BUILD_STATE_ID,
    Base,
    BuildStateRecord,
    ContentRecord,
    OptionRecord,
    StructureRecord,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildState:
    content_hash: str | None
    build_number: int
    last_build_at: datetime | None
    revision: int

    @property
    def build_version(self) -> str:
        return str(self.build_number)


@dataclass(frozen=True)
class CompareResult:
    changed: bool
    state: BuildState


def _to_state(row: BuildStateRecord) -> BuildState:
    return BuildState(
        content_hash=row.content_hash,
        build_number=row.build_number,
        last_build_at=as_utc(row.last_build_at) if row.last_build_at else None,
        revision=row.revision,
    )


class Repository:
    def __init__(self, database_url: str) -> None:
        self._engine = create_async_engine(database_url, echo=False)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    async def init_db(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with self._session_factory() as session:
            if await session.get(BuildStateRecord, BUILD_STATE_ID) is not None:
                return
            # An empty site is the live state before anything was published
            session.add(BuildStateRecord(id=BUILD_STATE_ID, content_hash=EMPTY_FINGERPRINT))
            try:
                await session.commit()
            except IntegrityError:
                # Another worker created the row first
                await session.rollback()

    async def close(self) -> None:
        await self._engine.dispose()

    # -- Content --

    async def list_publishable(self, content_types: list[str]) -> list[ContentItem]:
        async with self._session_factory() as session:
            stmt = (
                select(ContentRecord)
                .where(
                    ContentRecord.status == PUBLISH_STATUS,
                    ContentRecord.content_type.in_(content_types),
                )
                .order_by(ContentRecord.id)
            )
            result = await session.execute(stmt)
            return [
                ContentItem(
                    id=row.id,
                    content_type=row.content_type,
                    title=row.title,
                    body=row.body,
                    modified_at=row.modified_at,
                )
                for row in result.scalars()
            ]

    async def count_published(self, content_type: str) -> int:
        async with self._session_factory() as session:
            stmt = select(func.count()).select_from(ContentRecord).where(
                ContentRecord.status == PUBLISH_STATUS,
                ContentRecord.content_type == content_type,
            )
            return (await session.execute(stmt)).scalar_one()

    async def upsert_content(
        self,
        content_id: int,
        *,
        title: str | None = None,
        body: str | None = None,
        modified_at: datetime | None = None,
        content_type: str | None = None,
        status: str = PUBLISH_STATUS,
    ) -> None:
        """Insert or update a content row. None fields keep the stored value."""
        async with self._session_factory() as session:
            existing = await session.get(ContentRecord, content_id)
            if existing is None:
                existing = ContentRecord(
                    id=content_id,
                    content_type=content_type or "post",
                    title="",
                    body="",
                    modified_at=as_utc(modified_at) if modified_at else utcnow(),
                )
                session.add(existing)
            existing.status = status
            if title is not None:
                existing.title = title
            if body is not None:
                existing.body = body
            if modified_at is not None:
                existing.modified_at = as_utc(modified_at)
            if content_type is not None:
                existing.content_type = content_type
            await session.commit()

    async def record_view(self, content_id: int) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(ContentRecord)
                .where(ContentRecord.id == content_id)
                .values(view_count=ContentRecord.view_count + 1)
            )
            await session.commit()

    async def delete_content(self, content_id: int) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(ContentRecord).where(ContentRecord.id == content_id))
            await session.commit()

    # -- Menus and terms --

    async def list_structure(self) -> list[StructureItem]:
        async with self._session_factory() as session:
            stmt = select(StructureRecord).order_by(StructureRecord.kind, StructureRecord.entity_id)
            result = await session.execute(stmt)
            return [
                StructureItem(
                    kind=row.kind,
                    id=row.entity_id,
                    name=row.name,
                    body=row.body,
                    modified_at=row.modified_at,
                )
                for row in result.scalars()
            ]

    async def upsert_structure(
        self,
        kind: str,
        entity_id: int,
        *,
        name: str | None = None,
        body: str | None = None,
        modified_at: datetime | None = None,
    ) -> None:
        async with self._session_factory() as session:
            existing = await session.get(StructureRecord, (kind, entity_id))
            if existing is None:
                existing = StructureRecord(kind=kind, entity_id=entity_id, name="", body="")
                session.add(existing)
            if name is not None:
                existing.name = name
            if body is not None:
                existing.body = body
            existing.modified_at = as_utc(modified_at) if modified_at else utcnow()
            await session.commit()

    async def delete_structure(self, kind: str, entity_id: int) -> None:
        async with self._session_factory() as session:
            await session.execute(
                delete(StructureRecord).where(
                    StructureRecord.kind == kind, StructureRecord.entity_id == entity_id
                )
            )
            await session.commit()

    # -- BuildState --

    async def get_build_state(self) -> BuildState:
        async with self._session_factory() as session:
            row = await session.get(BuildStateRecord, BUILD_STATE_ID)
            if row is None:
                raise RuntimeError("build_state row missing; call init_db() first")
            return _to_state(row)

    async def compare_and_update(self, fingerprint: ContentFingerprint) -> CompareResult:
        """Advance the build state if the fingerprint differs from the stored one.

        Uses an optimistic revision check, so of several callers racing with the
        same new fingerprint exactly one sees changed=True. Losers re-read the
        row and find the hash already stored.
        """
        while True:
            current = await self.get_build_state()
            if current.content_hash == fingerprint.hash:
                return CompareResult(changed=False, state=current)

            advanced = await self._advance(current, fingerprint.hash)
            if advanced is not None:
                logger.info(
                    "Content changed: build %s, hash %s",
                    advanced.build_version, fingerprint.hash,
                )
                return CompareResult(changed=True, state=advanced)
            logger.debug("Build state revision %d superseded, re-reading", current.revision)

    async def record_manual_build(self, fingerprint: ContentFingerprint) -> BuildState:
        """Advance the build state unconditionally (operator-triggered build)."""
        while True:
            current = await self.get_build_state()
            advanced = await self._advance(current, fingerprint.hash)
            if advanced is not None:
                return advanced

    async def record_baseline(self, fingerprint: ContentFingerprint) -> CompareResult:
        """Store the fingerprint as already built, without counting a build.

        Used when installing against an existing site: build number and
        last_build_at stay untouched since nothing was dispatched.
        """
        while True:
            current = await self.get_build_state()
            if current.content_hash == fingerprint.hash:
                return CompareResult(changed=False, state=current)
            advanced = await self._advance(current, fingerprint.hash, count_build=False)
            if advanced is not None:
                return CompareResult(changed=True, state=advanced)

    async def _advance(
        self, current: BuildState, content_hash: str, *, count_build: bool = True
    ) -> BuildState | None:
        """Write the next state if nobody else has since `current` was read."""
        build_number = current.build_number
        last_build_at = current.last_build_at
        if count_build:
            build_number += 1
            last_build_at = utcnow()
            if current.last_build_at is not None and current.last_build_at > last_build_at:
                last_build_at = current.last_build_at

        async with self._session_factory() as session:
            result = await session.execute(
                update(BuildStateRecord)
                .where(
                    BuildStateRecord.id == BUILD_STATE_ID,
                    BuildStateRecord.revision == current.revision,
                )
                .values(
                    content_hash=content_hash,
                    build_number=build_number,
                    revision=BuildStateRecord.revision + 1,
                    last_build_at=last_build_at,
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        if result.rowcount != 1:
            return None
        return BuildState(
            content_hash=content_hash,
            build_number=build_number,
            last_build_at=last_build_at,
            revision=current.revision + 1,
        )

    # -- Options --

    async def get_options(self, names: list[str]) -> dict[str, str]:
        async with self._session_factory() as session:
            stmt = select(OptionRecord).where(OptionRecord.name.in_(names))
            result = await session.execute(stmt)
            return {row.name: row.value for row in result.scalars()}

    async def set_options(self, values: dict[str, str | None]) -> None:
        """Write options in one transaction; a None value removes the option."""
        async with self._session_factory() as session:
            for name, value in values.items():
                existing = await session.get(OptionRecord, name)
                if value is None:
                    if existing:
                        await session.delete(existing)
                elif existing:
                    existing.value = value
                else:
                    session.add(OptionRecord(name=name, value=value))
            await session.commit()
