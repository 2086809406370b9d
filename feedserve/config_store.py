"""Configuration store: capability flags, integer options and feed definitions."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedserve.config import Settings
from feedserve.db import crud
from feedserve.db.models import FeedDefinitionRecord
from feedserve.feeds.models import FeedDefinition

logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}


def parse_bool(value: str) -> bool:
    return value.strip().lower() in TRUTHY


@dataclass
class ConfigSnapshot:
    """Point-in-time view of the configuration store.

    Lookups fall back to the process settings, then to the caller's default.
    """

    settings: Settings
    options: dict[str, str] = field(default_factory=dict)
    definitions: list[FeedDefinition] = field(default_factory=list)

    def get_bool(self, key: str, default: bool = False) -> bool:
        if key in self.options:
            return parse_bool(self.options[key])
        return bool(getattr(self.settings, key, default))

    def get_int(self, key: str, default: int = 0) -> int:
        if key in self.options:
            try:
                return int(self.options[key])
            except ValueError:
                logger.warning(f"Option {key} is not an integer: {self.options[key]!r}")
        return int(getattr(self.settings, key, default))


class ConfigStore(ABC):
    """Key/value settings plus feed definitions."""

    @abstractmethod
    async def snapshot(self) -> ConfigSnapshot:
        """Load options and definitions in one round trip."""

    async def get_bool(self, key: str, default: bool = False) -> bool:
        return (await self.snapshot()).get_bool(key, default)

    async def get_int(self, key: str, default: int = 0) -> int:
        return (await self.snapshot()).get_int(key, default)

    async def get_feed_definitions(self) -> list[FeedDefinition]:
        return (await self.snapshot()).definitions


def record_to_definition(record: FeedDefinitionRecord) -> FeedDefinition:
    """Convert a stored row into a FeedDefinition."""
    return FeedDefinition(
        slug=record.slug,
        title=record.title or "",
        description=record.description or "",
        content_types=set(record.content_types or ["post"]),
        category_filter=set(record.category_filter or []),
        tag_filter=set(record.tag_filter or []),
        taxonomy_filter={k: set(v) for k, v in (record.taxonomy_filter or {}).items()},
        date_from=record.date_from,
        date_to=record.date_to,
        limit=record.limit,
        order_by=record.order_by,
        order_direction=record.order_direction,
        format=record.format,
        enabled=record.enabled,
    )


class SqlConfigStore(ConfigStore):
    """Configuration store backed by the ``options`` and ``feed_definitions`` tables."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], settings: Settings):
        self._sessionmaker = sessionmaker
        self._settings = settings

    async def snapshot(self) -> ConfigSnapshot:
        async with self._sessionmaker() as db:
            options = await crud.get_options(db)
            records = await crud.list_feed_definitions(db)

        definitions = []
        for record in records:
            try:
                definitions.append(record_to_definition(record))
            except ValidationError as e:
                logger.error(f"Skipping invalid feed definition {record.slug!r}: {e}")

        return ConfigSnapshot(
            settings=self._settings, options=options, definitions=definitions
        )
