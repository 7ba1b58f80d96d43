"""Shared test fixtures."""
from datetime import datetime, timedelta

import pytest
from unittest.mock import patch, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import Base
from app.lifecycle.base import DeliveryResult, Submission


# Modules that open their own sessions via get_session()
SESSION_USERS = (
    'app.services.store.get_session',
    'app.services.configurations.get_session',
    'app.services.analytics.get_session',
)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created, shared by every session."""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import app.models.lead
    import app.models.classification_entry
    import app.models.configuration
    import app.models.analytics_event
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Session for test assertions and direct row setup."""
    Session = sessionmaker(bind=db_engine, expire_on_commit=False)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_engine):
    """Route every service's get_session() to a fresh session on the test engine.

    Services commit and close their own sessions, so each call gets its own.
    """
    TestSession = sessionmaker(bind=db_engine, expire_on_commit=False)
    patches = [patch(target, side_effect=lambda: TestSession()) for target in SESSION_USERS]
    for p in patches:
        p.start()
    yield TestSession
    for p in patches:
        p.stop()


@pytest.fixture(autouse=True)
def reset_config_cache():
    from app.services.configurations import invalidate_cache
    invalidate_cache()
    yield
    invalidate_cache()


@pytest.fixture
def mock_redis():
    """Mock Redis client. Returns a MagicMock with common Redis methods."""
    mock = MagicMock()
    mock.get.return_value = None
    mock.incr.return_value = 1
    mock.hgetall.return_value = {}
    with patch('app.extensions.redis_client', mock):
        yield mock


@pytest.fixture
def app(mock_redis):
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


# ---------------------------------------------------------------------------
# Lifecycle fixtures
# ---------------------------------------------------------------------------

class FakeClock:
    """Deterministic clock; tests move time forward explicitly."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture
def active_config():
    """Factory — creates and activates a configuration; overrides merge into the defaults."""
    from app.services.configurations import create_configuration

    def _make(name='Test Config', **overrides):
        return create_configuration(name, overrides=overrides, created_by='tests', activate=True)
    return _make


@pytest.fixture
def submission():
    return Submission(
        lead_name='Ada Lovelace',
        email='ada@analytical.io',
        company='Analytical Engines',
        message='We need a platform for our next.js storefront, about 40 engineers.',
    )


@pytest.fixture
def submission_payload():
    return {
        'lead_name': 'Ada Lovelace',
        'email': 'ada@analytical.io',
        'company': 'Analytical Engines',
        'message': 'We need a platform for our next.js storefront, about 40 engineers.',
    }


@pytest.fixture
def send():
    """Delivery stub that always succeeds."""
    return MagicMock(return_value=DeliveryResult(True, 'inbound-test@example.com',
                                                 test_mode=True, message_id='msg-1'))


@pytest.fixture
def generate():
    return MagicMock(return_value='<p>Thanks for the detail on your storefront.</p>')


@pytest.fixture
def make_lifecycle(send, generate, clock):
    """Factory — LeadLifecycle on the test database with external calls stubbed."""
    from app.lifecycle.controller import LeadLifecycle

    def _make(rng=lambda: 0.0, **overrides):
        kwargs = dict(
            send=send,
            generate=generate,
            notifier=MagicMock(),
            dispatch=MagicMock(),
            rng=rng,
            clock=clock,
        )
        kwargs.update(overrides)
        return LeadLifecycle(**kwargs)
    return _make
