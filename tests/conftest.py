"""Shared fixtures: an in-memory database and an API client bound to it."""
from __future__ import annotations

import os

# Settings are read at import time; keep tests off any real database.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from bounce_service.api.app import app
from bounce_service.db import models
from bounce_service.db.session import get_db


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def client(db_session):
    def _get_test_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_test_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_bounce(db_session):
    def _make(**fields) -> models.Bounce:
        fields.setdefault("email", "bounced@mailhost.org")
        fields.setdefault("source", "api")
        fields.setdefault("meta", {})
        bounce = models.Bounce(**fields)
        db_session.add(bounce)
        db_session.commit()
        db_session.refresh(bounce)
        return bounce

    return _make
