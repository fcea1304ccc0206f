import os

import pytest

os.environ.setdefault("LOG_JSON", "false")


@pytest.fixture
def db_session(tmp_path, monkeypatch):
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")

    from homecare.config import get_settings
    from homecare.database import reset_engine, get_engine, get_sessionmaker
    from homecare.models.base import Base

    get_settings.cache_clear()
    reset_engine()
    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    SessionLocal = get_sessionmaker()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        reset_engine()
        get_settings.cache_clear()


@pytest.fixture
def client(db_session):
    from fastapi.testclient import TestClient
    from homecare.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client
