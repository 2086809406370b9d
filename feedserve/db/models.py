"""SQLAlchemy models for FeedServe."""

import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


def uid() -> str:
    """Generate a UUID string for primary keys."""
    return str(uuid.uuid4())


content_terms = Table(
    "content_terms",
    Base.metadata,
    Column(
        "content_id",
        ForeignKey("content_items.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("term_id", ForeignKey("terms.id", ondelete="CASCADE"), primary_key=True),
)


class ContentRecord(Base):
    """A publishable item (post, page, episode, ...)."""

    __tablename__ = "content_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_type: Mapped[str] = mapped_column(String, index=True, default="post")
    status: Mapped[str] = mapped_column(String, index=True, default="publish")
    title: Mapped[str] = mapped_column(String)
    permalink: Mapped[str] = mapped_column(String)
    author_name: Mapped[str] = mapped_column(String, default="")
    excerpt: Mapped[str] = mapped_column(Text, default="")
    body_html: Mapped[str] = mapped_column(Text, default="")
    comment_count: Mapped[int] = mapped_column(Integer, default=0)
    image_url: Mapped[str | None] = mapped_column(String, nullable=True)
    published_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    modified_at: Mapped[datetime] = mapped_column(DateTime, index=True)

    terms: Mapped[list["Term"]] = relationship(secondary=content_terms)
    enclosures: Mapped[list["EnclosureRecord"]] = relationship(
        back_populates="content", cascade="all, delete-orphan", order_by="EnclosureRecord.id"
    )


class Term(Base):
    """Taxonomy term. Categories use taxonomy ``category``, tags ``post_tag``."""

    __tablename__ = "terms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    taxonomy: Mapped[str] = mapped_column(String, index=True)
    slug: Mapped[str] = mapped_column(String)
    name: Mapped[str] = mapped_column(String)


class EnclosureRecord(Base):
    """Media attachment of a content item."""

    __tablename__ = "enclosures"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    content_id: Mapped[int] = mapped_column(
        ForeignKey("content_items.id", ondelete="CASCADE"), index=True
    )
    url: Mapped[str] = mapped_column(String)
    mime_type: Mapped[str] = mapped_column(String, default="")
    length_bytes: Mapped[int] = mapped_column(Integer, default=0)
    title: Mapped[str | None] = mapped_column(String, nullable=True)

    content: Mapped["ContentRecord"] = relationship(back_populates="enclosures")


class FeedDefinitionRecord(Base):
    """Custom feed definition, edited by the admin layer."""

    __tablename__ = "feed_definitions"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=uid)
    slug: Mapped[str] = mapped_column(String, unique=True, index=True)
    title: Mapped[str] = mapped_column(String, default="")
    description: Mapped[str] = mapped_column(Text, default="")
    content_types: Mapped[list] = mapped_column(JSON, default=list)
    category_filter: Mapped[list] = mapped_column(JSON, default=list)
    tag_filter: Mapped[list] = mapped_column(JSON, default=list)
    taxonomy_filter: Mapped[dict] = mapped_column(JSON, default=dict)
    date_from: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    date_to: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    limit: Mapped[int] = mapped_column(Integer, default=10)
    order_by: Mapped[str] = mapped_column(String, default="date")
    order_direction: Mapped[str] = mapped_column(String, default="desc")
    format: Mapped[str] = mapped_column(String, default="rss2")
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


class Option(Base):
    """Site option (capability flags and integer settings)."""

    __tablename__ = "options"

    key: Mapped[str] = mapped_column(String, primary_key=True)
    value: Mapped[str] = mapped_column(String)
