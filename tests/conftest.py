import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from receptionist.config import Settings
from receptionist.database import build_session_factory, init_db
from receptionist.main import create_app
from receptionist.services.live_notifier import LiveNotifier
from tests.factories import TENANT_ID
from tests.fakes import FakeConnection, FakeProvider


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        database_url="sqlite://",
        openai_api_key=None,
        redis_url=None,
        alert_bot_token=None,
        alert_chat_id=None,
        completion_timeout_seconds=1.0,
        public_base_url="https://receptionist.example.com",
    )


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def notifier():
    return LiveNotifier()


@pytest.fixture
def live_connection(notifier):
    connection = FakeConnection()
    notifier.subscribe(connection, TENANT_ID)
    return connection


@pytest.fixture
def app(test_settings, engine, provider, notifier):
    return create_app(settings=test_settings, engine=engine, llm_provider=provider, notifier=notifier)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
