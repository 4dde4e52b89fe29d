"""
Shared pytest fixtures.

Uses a SQLite file database so no Postgres is required for tests. Every
table is emptied after each test.
"""
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from mindwell.db.base import Base, get_db
from mindwell.main import app
from mindwell.models.user import User
from mindwell.services.notifications import NotificationDispatcher, set_dispatcher

SQLITE_URL = "sqlite:///./test_mindwell.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Fixed reference instant for time-dependent tests (a Tuesday, mid-day UTC).
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@event.listens_for(engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    # pysqlite defers BEGIN on its own; hand transaction control to SQLAlchemy
    # so SAVEPOINTs (badge inserts) behave as on Postgres.
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


class RecordingDispatcher(NotificationDispatcher):
    """Keeps every message instead of delivering it."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict] = []
        self.fail = fail

    @property
    def name(self) -> str:
        return "recording"

    def send(self, user_id, title, body, data):
        if self.fail:
            raise RuntimeError("push gateway down")
        self.sent.append({"user_id": user_id, "title": title, "body": body, "data": data})

    def types(self) -> list[str]:
        return [m["data"]["type"] for m in self.sent]


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def dispatcher():
    recorder = RecordingDispatcher()
    previous = set_dispatcher(recorder)
    yield recorder
    set_dispatcher(previous)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def user(db):
    u = User(external_id="user-1")
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@pytest.fixture()
def headers():
    return {"X-User-Id": "user-1"}


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
