import pytest
import os
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")

import salondesk.models  # noqa: F401
from salondesk.core.config import settings
from salondesk.core.deps import get_db
from salondesk.db.base import Base
from salondesk.main import app


def _make_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine, sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session():
    engine, session_local = _make_session_factory()
    db = session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def strict_visit_stock():
    original = settings.enforce_stock_on_visit_close
    settings.enforce_stock_on_visit_close = True
    yield
    settings.enforce_stock_on_visit_close = original


@pytest.fixture()
def test_context():
    engine, session_local = _make_session_factory()

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
