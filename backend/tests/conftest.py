"""Test fixtures: an in-memory database and fresh rate limiters per test."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import rmadesk.models  # noqa: F401
from rmadesk.core import database as db_module
from rmadesk.core.database import Base
from rmadesk.routers import rma_cases

# One shared connection, so every session sees the same in-memory database.
_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)


@pytest.fixture(autouse=True)
def rma_database(monkeypatch):
    """Point the app at the in-memory engine and rebuild the schema around each test."""
    monkeypatch.setattr(db_module, "engine", _engine)
    monkeypatch.setattr(db_module, "SessionLocal", _SessionLocal)
    Base.metadata.create_all(bind=_engine)
    yield
    Base.metadata.drop_all(bind=_engine)


@pytest.fixture(autouse=True)
def fresh_rate_limiters():
    for limiter in (rma_cases.rma_rate_limiter, rma_cases.ai_rate_limiter):
        limiter.reset()
    yield


@pytest.fixture
def db_session():
    session = _SessionLocal()
    try:
        yield session
    finally:
        session.close()
