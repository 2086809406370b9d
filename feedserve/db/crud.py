"""CRUD utilities for database operations."""

from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import and_, delete, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from feedserve.content.models import ContentQuery
from feedserve.db.models import (
    ContentRecord,
    FeedDefinitionRecord,
    Option,
    Term,
    content_terms,
)

PUBLISHED = "publish"

CATEGORY_TAXONOMY = "category"
TAG_TAXONOMY = "post_tag"


def _naive_utc(value: datetime) -> datetime:
    """Convert an aware datetime to the naive UTC form stored in the database."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _has_any_term(taxonomy: str, term_ids: Iterable[int]):
    """EXISTS clause: the content row carries at least one of ``term_ids``."""
    return exists(
        select(content_terms.c.term_id)
        .join(Term, Term.id == content_terms.c.term_id)
        .where(
            content_terms.c.content_id == ContentRecord.id,
            Term.taxonomy == taxonomy,
            Term.id.in_(list(term_ids)),
        )
    )


def _order_clauses(order_by: str, direction: str) -> list:
    if order_by == "random":
        return [func.random()]

    column = {
        "title": ContentRecord.title,
        "commentCount": ContentRecord.comment_count,
    }.get(order_by, ContentRecord.published_at)

    if direction == "asc":
        return [column.asc(), ContentRecord.id.asc()]
    return [column.desc(), ContentRecord.id.desc()]


async def query_content(db: AsyncSession, query: ContentQuery) -> list[ContentRecord]:
    """Run a content query with all filters, ordering and limit applied."""
    conditions = [
        ContentRecord.status == PUBLISHED,
        ContentRecord.content_type.in_(query.content_types),
    ]

    groups: dict[str, list[int]] = {
        taxonomy: list(terms) for taxonomy, terms in query.taxonomy_terms.items() if terms
    }
    if query.category_ids:
        groups[CATEGORY_TAXONOMY] = sorted(
            set(groups.get(CATEGORY_TAXONOMY, [])) | set(query.category_ids)
        )
    if query.tag_ids:
        groups[TAG_TAXONOMY] = sorted(set(groups.get(TAG_TAXONOMY, [])) | set(query.tag_ids))

    # AND across taxonomies, OR within one taxonomy
    for taxonomy, term_ids in groups.items():
        conditions.append(_has_any_term(taxonomy, term_ids))

    # Date bounds are inclusive
    if query.date_from is not None:
        conditions.append(ContentRecord.published_at >= _naive_utc(query.date_from))
    if query.date_to is not None:
        conditions.append(ContentRecord.published_at <= _naive_utc(query.date_to))

    stmt = (
        select(ContentRecord)
        .where(and_(*conditions))
        .options(selectinload(ContentRecord.terms), selectinload(ContentRecord.enclosures))
        .order_by(*_order_clauses(query.order_by, query.order_direction))
        .limit(query.limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_content_by_id(db: AsyncSession, content_id: int) -> ContentRecord | None:
    """Get a single content item with its terms and enclosures."""
    result = await db.execute(
        select(ContentRecord)
        .where(ContentRecord.id == content_id)
        .options(selectinload(ContentRecord.terms), selectinload(ContentRecord.enclosures))
    )
    return result.scalar_one_or_none()


async def latest_modified(
    db: AsyncSession, content_types: Iterable[str]
) -> datetime | None:
    """Most recent modification across published items of the given types."""
    result = await db.execute(
        select(func.max(ContentRecord.modified_at)).where(
            ContentRecord.status == PUBLISHED,
            ContentRecord.content_type.in_(list(content_types)),
        )
    )
    return result.scalar_one_or_none()


async def list_feed_definitions(db: AsyncSession) -> list[FeedDefinitionRecord]:
    """List all custom feed definitions ordered by slug."""
    result = await db.execute(
        select(FeedDefinitionRecord).order_by(FeedDefinitionRecord.slug)
    )
    return list(result.scalars().all())


async def get_feed_definition(db: AsyncSession, slug: str) -> FeedDefinitionRecord | None:
    """Get a feed definition by slug."""
    result = await db.execute(
        select(FeedDefinitionRecord).where(FeedDefinitionRecord.slug == slug)
    )
    return result.scalar_one_or_none()


async def upsert_feed_definition(
    db: AsyncSession, slug: str, **fields
) -> FeedDefinitionRecord:
    """Create or update a feed definition."""
    record = await get_feed_definition(db, slug)

    if record:
        for name, value in fields.items():
            setattr(record, name, value)
    else:
        record = FeedDefinitionRecord(slug=slug, **fields)
        db.add(record)

    await db.commit()
    await db.refresh(record)
    return record


async def delete_feed_definition(db: AsyncSession, slug: str) -> bool:
    """Delete a feed definition. Returns True if a row was removed."""
    result = await db.execute(
        delete(FeedDefinitionRecord).where(FeedDefinitionRecord.slug == slug)
    )
    await db.commit()
    return result.rowcount > 0  # type: ignore[attr-defined]


async def get_options(db: AsyncSession) -> dict[str, str]:
    """Load every option row as a dict."""
    result = await db.execute(select(Option))
    return {opt.key: opt.value for opt in result.scalars().all()}


async def set_option(db: AsyncSession, key: str, value: str) -> Option:
    """Create or update an option."""
    option = await db.get(Option, key)
    if option:
        option.value = value
    else:
        option = Option(key=key, value=value)
        db.add(option)
    await db.commit()
    return option
