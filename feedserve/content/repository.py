"""Content repository interface and the SQLAlchemy-backed implementation."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedserve.content.models import ContentItem, ContentQuery, Enclosure, ensure_utc
from feedserve.db import crud
from feedserve.db.crud import CATEGORY_TAXONOMY, TAG_TAXONOMY
from feedserve.db.models import ContentRecord

logger = logging.getLogger(__name__)

ContentChangedListener = Callable[[int], Awaitable[None]]


class ContentRepository(ABC):
    """Queryable store of publishable items.

    Besides queries, the repository publishes content-change notifications to
    listeners registered with :meth:`on_content_changed`.
    """

    def __init__(self) -> None:
        self._listeners: list[ContentChangedListener] = []

    @abstractmethod
    async def query(self, query: ContentQuery) -> list[ContentItem]:
        """Return the items matching ``query`` in the requested order."""

    @abstractmethod
    async def latest_modified(self, content_types: Iterable[str]) -> datetime | None:
        """Return the newest modification time across the given content types."""

    @abstractmethod
    async def get_item(self, item_id: int) -> ContentItem | None:
        """Return a single item, or None."""

    def on_content_changed(self, listener: ContentChangedListener) -> None:
        """Subscribe to publish/update/delete notifications."""
        self._listeners.append(listener)

    async def notify_content_changed(self, item_id: int) -> None:
        """Deliver a change notification to every listener.

        A failing listener is logged and does not stop delivery to the rest.
        """
        for listener in self._listeners:
            try:
                await listener(item_id)
            except Exception:
                logger.error(
                    f"Content-changed listener failed for item {item_id}", exc_info=True
                )


def record_to_item(record: ContentRecord) -> ContentItem:
    """Project a database row into a ContentItem."""
    return ContentItem(
        id=record.id,
        title=record.title,
        permalink=record.permalink,
        content_type=record.content_type,
        published_at=ensure_utc(record.published_at),
        modified_at=ensure_utc(record.modified_at),
        author_name=record.author_name or "",
        excerpt=record.excerpt or "",
        body_html=record.body_html or "",
        categories=[t.name for t in record.terms if t.taxonomy == CATEGORY_TAXONOMY],
        tags=[t.name for t in record.terms if t.taxonomy == TAG_TAXONOMY],
        enclosures=[
            Enclosure(
                url=e.url,
                mime_type=e.mime_type or "",
                length_bytes=e.length_bytes or 0,
                title=e.title,
            )
            for e in record.enclosures
        ],
        comment_count=record.comment_count or 0,
        image_url=record.image_url,
    )


class SqlContentRepository(ContentRepository):
    """Content repository over the SQLAlchemy ``content_items`` tables."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        super().__init__()
        self._sessionmaker = sessionmaker

    async def query(self, query: ContentQuery) -> list[ContentItem]:
        async with self._sessionmaker() as db:
            records = await crud.query_content(db, query)
            return [record_to_item(r) for r in records]

    async def latest_modified(self, content_types: Iterable[str]) -> datetime | None:
        async with self._sessionmaker() as db:
            value = await crud.latest_modified(db, content_types)
        return ensure_utc(value) if value is not None else None

    async def get_item(self, item_id: int) -> ContentItem | None:
        async with self._sessionmaker() as db:
            record = await crud.get_content_by_id(db, item_id)
            return record_to_item(record) if record else None
