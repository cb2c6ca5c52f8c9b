import os
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from academy_ledger.infrastructure.db import models  # noqa: F401
from academy_ledger.infrastructure.db.session import Base, enable_sqlite_foreign_keys, get_db
from academy_ledger.infrastructure.notifications.webhook_client import get_notifier
from academy_ledger.main import app
from tests.helpers.fakes import FakeNotifier, FakeRedisClient

USE_POSTGRES = os.environ.get("TEST_DATABASE", "sqlite").lower() == "postgres"


def run_migrations(database_url: str) -> None:
    from academy_ledger.config import settings

    os.environ["DATABASE_URL"] = database_url
    settings.database_url = database_url
    alembic_config = Config(str(Path(__file__).resolve().parents[1] / "alembic.ini"))
    command.upgrade(alembic_config, "head")


@pytest.fixture(scope="session")
def engine():
    if USE_POSTGRES:
        from testcontainers.postgres import PostgresContainer

        with PostgresContainer("postgres:16-alpine") as postgres:
            url = postgres.get_connection_url().replace("postgresql://", "postgresql+psycopg2://", 1)
            engine = create_engine(url, future=True)
            run_migrations(database_url=url)
            try:
                yield engine
            finally:
                engine.dispose()
        return

    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(autouse=True)
def clean_database(engine):
    if not USE_POSTGRES:
        Base.metadata.drop_all(bind=engine)
        Base.metadata.create_all(bind=engine)
        return
    with engine.begin() as connection:
        tables = connection.execute(
            text(
                """
                SELECT tablename
                FROM pg_tables
                WHERE schemaname = 'public' AND tablename <> 'alembic_version'
                ORDER BY tablename
                """
            )
        ).scalars().all()
        if tables:
            quoted_tables = ", ".join(f'"{table}"' for table in tables)
            connection.execute(text(f"TRUNCATE TABLE {quoted_tables} RESTART IDENTITY CASCADE"))


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    client = FakeRedisClient()
    monkeypatch.setattr("academy_ledger.infrastructure.cache.cache_service.get_redis_client", lambda: client)
    monkeypatch.setattr("academy_ledger.interfaces.api.v1.routes.ping.get_redis_client", lambda: client)
    return client


@pytest.fixture
def db_session(engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def client(db_session, notifier):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
