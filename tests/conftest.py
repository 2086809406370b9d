"""Shared fixtures: an in-memory Redis double, a SQLite database and sample content."""

import fnmatch
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from feedserve.config import Settings
from feedserve.content.models import ContentItem, Enclosure
from feedserve.db.models import Base, ContentRecord, EnclosureRecord, Term

BASE_TIME = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """Subset of ``redis.asyncio.Redis`` backed by dicts, with TTLs on a fake clock.

    Values are returned as bytes, like a client created with
    ``decode_responses=False``.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.values: dict[str, bytes] = {}
        self.sets: dict[str, set[bytes]] = {}
        self.expiry: dict[str, float] = {}
        self.calls: list[str] = []

    @staticmethod
    def _encode(value) -> bytes:
        if isinstance(value, bytes):
            return value
        return str(value).encode("utf-8")

    @staticmethod
    def _key(key) -> str:
        return key.decode("utf-8") if isinstance(key, bytes) else key

    def _purge(self, key: str) -> None:
        deadline = self.expiry.get(key)
        if deadline is not None and self.clock() >= deadline:
            self.values.pop(key, None)
            self.sets.pop(key, None)
            self.expiry.pop(key, None)

    def _live_keys(self) -> list[str]:
        for key in list(self.values) + list(self.sets):
            self._purge(key)
        return list(self.values) + list(self.sets)

    async def get(self, key):
        key = self._key(key)
        self.calls.append(f"get {key}")
        self._purge(key)
        return self.values.get(key)

    async def set(self, key, value):
        key = self._key(key)
        self.values[key] = self._encode(value)
        self.expiry.pop(key, None)
        return True

    async def setex(self, key, ttl, value):
        key = self._key(key)
        self.calls.append(f"setex {key}")
        self.values[key] = self._encode(value)
        self.expiry[key] = self.clock() + int(ttl)
        return True

    async def sadd(self, key, *members):
        key = self._key(key)
        self._purge(key)
        bucket = self.sets.setdefault(key, set())
        before = len(bucket)
        bucket.update(self._encode(m) for m in members)
        return len(bucket) - before

    async def smembers(self, key):
        key = self._key(key)
        self._purge(key)
        return set(self.sets.get(key, set()))

    async def expire(self, key, ttl):
        key = self._key(key)
        if key in self.values or key in self.sets:
            self.expiry[key] = self.clock() + int(ttl)
            return True
        return False

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            key = self._key(key)
            self._purge(key)
            if self.values.pop(key, None) is not None or self.sets.pop(key, None) is not None:
                removed += 1
            self.expiry.pop(key, None)
        return removed

    async def scan(self, cursor=0, match=None, count=None):
        keys = [k for k in self._live_keys() if match is None or fnmatch.fnmatch(k, match)]
        return 0, [k.encode("utf-8") for k in keys]

    async def strlen(self, key):
        key = self._key(key)
        self._purge(key)
        return len(self.values.get(key, b""))

    async def ping(self):
        return True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_redis(clock):
    return FakeRedis(clock)


@pytest.fixture
def settings():
    """Settings built explicitly so the process environment is not consulted."""
    return Settings(
        app_secret_key="test-secret-key",
        site_url="https://example.com",
        site_name="Example Site",
        site_description="Posts from Example Site",
        redis_url="redis://localhost:6379/15",
        database_url="sqlite+aiosqlite:///:memory:",
    )


@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory test database."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sessionmaker = async_sessionmaker(engine, expire_on_commit=False)

    yield sessionmaker

    await engine.dispose()


@pytest_asyncio.fixture
async def seeded_db(test_db):
    """Database with seven published posts, one draft and one page.

    Post ``n`` (1..7) is published ``n`` hours after BASE_TIME. Odd posts are in
    category "news", even posts in category "reviews"; posts 1-3 carry the tag
    "python". Post 7 has a podcast enclosure with unknown length.
    """
    async with test_db() as db:
        news = Term(taxonomy="category", slug="news", name="News")
        reviews = Term(taxonomy="category", slug="reviews", name="Reviews")
        python = Term(taxonomy="post_tag", slug="python", name="Python")
        featured = Term(taxonomy="series", slug="featured", name="Featured")
        db.add_all([news, reviews, python, featured])
        await db.flush()

        for n in range(1, 8):
            when = (BASE_TIME + timedelta(hours=n)).replace(tzinfo=None)
            record = ContentRecord(
                id=n,
                title=f"Post {n}",
                permalink=f"https://example.com/post-{n}/",
                author_name="Alice",
                body_html=f"<p>Body of post {n}.</p>",
                comment_count=n % 3,
                published_at=when,
                modified_at=when,
            )
            record.terms = [news if n % 2 else reviews]
            if n <= 3:
                record.terms.append(python)
            if n == 5:
                record.terms.append(featured)
            if n == 7:
                record.enclosures = [
                    EnclosureRecord(url="https://cdn.example.com/episode-7.mp3")
                ]
            db.add(record)

        db.add(
            ContentRecord(
                id=8,
                title="Draft",
                permalink="https://example.com/?p=8",
                status="draft",
                published_at=(BASE_TIME + timedelta(hours=20)).replace(tzinfo=None),
                modified_at=(BASE_TIME + timedelta(hours=20)).replace(tzinfo=None),
            )
        )
        db.add(
            ContentRecord(
                id=9,
                title="About",
                permalink="https://example.com/about/",
                content_type="page",
                published_at=(BASE_TIME + timedelta(hours=30)).replace(tzinfo=None),
                modified_at=(BASE_TIME + timedelta(hours=30)).replace(tzinfo=None),
            )
        )
        await db.commit()
    return test_db


def make_item(n: int, **overrides) -> ContentItem:
    """A content item published ``n`` hours after BASE_TIME."""
    when = BASE_TIME + timedelta(hours=n)
    fields = dict(
        id=n,
        title=f"Post {n}",
        permalink=f"https://example.com/post-{n}/",
        published_at=when,
        modified_at=when,
        author_name="Alice",
        body_html=f"<p>Body of post {n}.</p>",
        categories=["News"],
        tags=["python"],
    )
    fields.update(overrides)
    return ContentItem(**fields)


@pytest.fixture
def sample_items():
    """Five items, newest first."""
    return [make_item(n) for n in range(5, 0, -1)]


@pytest.fixture
def podcast_item():
    return make_item(
        9,
        enclosures=[
            Enclosure(url="https://cdn.example.com/ep9.mp3", mime_type="audio/mpeg", length_bytes=0)
        ],
    )


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def base_time():
    return BASE_TIME
