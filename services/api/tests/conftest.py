from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import ca_api.models  # noqa: F401
from ca_api.core.config import get_settings
from ca_api.db.session import get_db
from ca_api.main import app
from ca_api.models.base import Base

ICAL_URL = "https://example.com/feed.ics"


def _enable_sqlite_foreign_keys(engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record):
        dbapi_connection.execute("PRAGMA foreign_keys=ON")


@pytest.fixture(autouse=True)
def test_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    # 降低迭代次数加快测试；默认不做真实网络探测。
    monkeypatch.setenv("CA_CREDENTIAL_HASH_ITERATIONS", "1000")
    monkeypatch.setenv("CA_ICAL_PROBE_ENABLED", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    _enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def file_engine(tmp_path):
    """多连接场景（并发消费）使用文件数据库。"""
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'auth.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        future=True,
    )
    _enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return sessionmaker(bind=sqlite_engine, autoflush=False, autocommit=False, class_=Session)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def api_client(session_factory) -> Generator[TestClient, None, None]:
    app.dependency_overrides.clear()

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def serialized_engine(tmp_path):
    """写事务以 BEGIN IMMEDIATE 开启的文件数据库，用于多线程并发场景。"""
    engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'serialized.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
        future=True,
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()
