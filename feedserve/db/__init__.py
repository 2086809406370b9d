"""Database module for FeedServe."""

from feedserve.db.models import (
    Base,
    ContentRecord,
    EnclosureRecord,
    FeedDefinitionRecord,
    Option,
    Term,
)
from feedserve.db.session import (
    create_tables,
    dispose_db_engine,
    get_db_engine,
    get_sessionmaker,
)

__all__ = [
    "Base",
    "ContentRecord",
    "EnclosureRecord",
    "FeedDefinitionRecord",
    "Option",
    "Term",
    "create_tables",
    "dispose_db_engine",
    "get_db_engine",
    "get_sessionmaker",
]
