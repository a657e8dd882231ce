from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy.exc import SQLAlchemyError

from buildhook.content.hasher import ContentItem
from buildhook.db.repository import Repository


def make_item(
    item_id: int,
    title: str = "Title",
    body: str = "<p>Body</p>",
    modified_at: datetime | None = None,
    content_type: str = "post",
) -> ContentItem:
    return ContentItem(
        id=item_id,
        content_type=content_type,
        title=title,
        body=body,
        modified_at=modified_at or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
    )


class BrokenSource:
    async def list_publishable(self, content_types):
        raise SQLAlchemyError("database is unavailable")

    async def list_structure(self):
        raise SQLAlchemyError("database is unavailable")


class RecordingTransport:
    """Collects outbound requests and answers with a fixed status per host."""

    def __init__(self, statuses: dict[str, int] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self._statuses = statuses or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self._statuses.get(request.url.host, 204))

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'buildhook.db'}"


@pytest.fixture
async def repo(database_url):
    repository = Repository(database_url)
    await repository.init_db()
    yield repository
    await repository.close()


@pytest.fixture
def transport():
    return RecordingTransport()
