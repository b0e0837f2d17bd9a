"""Shared test fixtures."""
import json
import threading
from collections import deque
from contextlib import ExitStack
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base


# Modules that bind get_session at import time; each needs its own patch.
SESSION_BINDINGS = (
    'app.database.get_session',
    'app.services.db.get_session',
    'app.services.stats.get_session',
    'app.pipeline.persistence.get_session',
)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    import app.models.business
    import app.models.scrape_run
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Session for arranging and inspecting rows. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_engine):
    """
    Route every get_session() call to a fresh session on the test engine.

    Each call returns a new session so that close() inside production code
    does not invalidate the session the test is holding.
    """
    TestSession = sessionmaker(bind=db_engine)
    with ExitStack() as stack:
        for target in SESSION_BINDINGS:
            stack.enter_context(patch(target, side_effect=lambda: TestSession()))
        yield TestSession


# ── Redis ────────────────────────────────────────────────────────────────────

class FakePubSub:
    """Just enough of redis-py's PubSub for the relay and the SSE route."""

    def __init__(self, redis):
        self.redis = redis
        self.channels = []
        self.pending = deque()
        self.closed = False

    def subscribe(self, *channels):
        for channel in channels:
            self.channels.append(channel)
            self.redis.subscribers.setdefault(channel, []).append(self)
            self.pending.append({'type': 'subscribe', 'channel': channel, 'data': 1})

    def unsubscribe(self, *channels):
        for channel in channels or list(self.channels):
            subs = self.redis.subscribers.get(channel, [])
            if self in subs:
                subs.remove(self)
        self.channels = [c for c in self.channels if channels and c not in channels]

    def get_message(self, ignore_subscribe_messages=False, timeout=0.0):
        while self.pending:
            message = self.pending.popleft()
            if ignore_subscribe_messages and message['type'] == 'subscribe':
                continue
            return message
        return None

    def close(self):
        self.closed = True


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the app uses."""

    def __init__(self):
        self.store = {}
        self.zsets = {}
        self.published = []
        self.subscribers = {}
        self._lock = threading.Lock()

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value
        return True

    def zadd(self, key, mapping):
        self.zsets.setdefault(key, {}).update(mapping)
        return len(mapping)

    def zrevrange(self, key, start, end):
        ranked = sorted(self.zsets.get(key, {}).items(), key=lambda kv: kv[1], reverse=True)
        ids = [member for member, _ in ranked]
        return ids[start:] if end == -1 else ids[start:end + 1]

    def publish(self, channel, message):
        with self._lock:
            self.published.append((channel, message))
            subs = list(self.subscribers.get(channel, []))
        for sub in subs:
            sub.pending.append({'type': 'message', 'channel': channel, 'data': message})
        return len(subs)

    def pubsub(self):
        return FakePubSub(self)

    def envelopes(self, channel=None):
        """Decoded JSON envelopes published so far (optionally for one channel)."""
        with self._lock:
            published = list(self.published)
        return [json.loads(m) for c, m in published if channel is None or c == channel]


@pytest.fixture
def fake_redis():
    """FakeRedis patched in wherever the app holds a Redis client."""
    fake = FakeRedis()
    targets = (
        'app.extensions.redis_client',
        'app.models.run.r',
        'app.pipeline.manager.redis_client',
        'app.routes.scrape.redis_client',
    )
    with ExitStack() as stack:
        for target in targets:
            stack.enter_context(patch(target, fake))
        yield fake


# ── Flask ────────────────────────────────────────────────────────────────────

@pytest.fixture
def app(fake_redis):
    """Flask test app."""
    from app import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


# ── Factories ────────────────────────────────────────────────────────────────

@pytest.fixture
def make_place():
    """Factory fixture — builds a raw Google Maps actor record."""
    def _make(title='Cafe Blloku', **overrides):
        place = dict(
            title=title,
            phone='+355 69 123 4567',
            phoneUnformatted='+355691234567',
            categoryName='Cafe',
            categories=['Cafe', 'Coffee shop'],
            address='Rruga Pjeter Bogdani, Tirana',
            city='Tirana',
            countryCode='AL',
            location={'lat': 41.3189, 'lng': 19.8152},
            totalScore=4.6,
            reviewsCount=212,
            url='https://www.google.com/maps/place/?q=place_id:abc',
            website='https://cafeblloku.al',
            emails=['info@cafeblloku.al'],
            instagrams=['https://instagram.com/cafeblloku'],
            isAdvertisement=False,
        )
        place.update(overrides)
        return place
    return _make


@pytest.fixture
def make_business(db_session):
    """Factory fixture — inserts a Business row and returns it."""
    from app.models.business import Business

    def _make(name='Cafe Blloku', **overrides):
        fields = dict(name=name, latitude=41.3275, longitude=19.8187)
        fields.update(overrides)
        business = Business(**fields)
        db_session.add(business)
        db_session.commit()
        return business
    return _make
