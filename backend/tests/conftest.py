"""
conftest.py — Shared Test Fixtures
====================================

Every test gets a fresh in-memory SQLite database. The FastAPI app is
pointed at it through a `get_db` override, and outbound providers are
switched off (mock renders, no stock media, no LLM keys).
"""

import sys
import os
import time
from contextlib import contextmanager
from datetime import datetime, timezone

import httpx
import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add backend to path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import JWT_SECRET, JWT_ALGORITHM, JWT_AUDIENCE
from database import Base, get_db
import models
from main import app


USER_ID = "user-0001"
USER_EMAIL = "creator@example.com"
ADMIN_ID = "admin-0001"
ADMIN_EMAIL = "admin@example.com"


def make_token(user_id: str = USER_ID, email: str = USER_EMAIL, expires_in: int = 3600, **claims) -> str:
    payload = {
        "sub": user_id,
        "email": email,
        "aud": JWT_AUDIENCE,
        "role": "authenticated",
        "exp": int(time.time()) + expires_in,
        "user_metadata": {"full_name": "Test Creator"},
    }
    payload.update(claims)
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def auth_headers(user_id: str = USER_ID, email: str = USER_EMAIL) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}


def mock_async_client(monkeypatch, handler):
    """Route every httpx.AsyncClient created by the code under test to `handler`."""
    real_client = httpx.AsyncClient

    def factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", factory)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture(autouse=True)
def offline_providers(monkeypatch):
    """No real third-party calls from any test."""
    import services.render as render
    import services.stock_media as stock_media
    import services.scene_generator as scene_generator
    import services.speech as speech
    import services.tasks as tasks

    monkeypatch.setattr(render, "SHOTSTACK_API_KEY", "")
    monkeypatch.setattr(stock_media, "PEXELS_API_KEY", "")
    monkeypatch.setattr(scene_generator, "GEMINI_API_KEY", "")
    monkeypatch.setattr(scene_generator, "ANTHROPIC_API_KEY", "")
    monkeypatch.setattr(scene_generator, "OPENAI_API_KEY", "")
    monkeypatch.setattr(speech, "ELEVEN_LABS_API_KEY", "")

    queued = []
    monkeypatch.setattr(tasks.poll_render_status_task, "delay", lambda project_id: queued.append(project_id))
    return queued


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def profile(db):
    user = models.Profile(id=USER_ID, email=USER_EMAIL, username="creator")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def admin(db):
    user = models.Profile(id=ADMIN_ID, email=ADMIN_EMAIL, username="admin")
    db.add(user)
    db.add(models.AdminUser(user_id=ADMIN_ID, role="admin", is_active=True))
    db.commit()
    return user


@pytest.fixture
def session_scope_db(db, monkeypatch):
    """Make Celery tasks use the test database."""
    import services.tasks as tasks

    @contextmanager
    def scope():
        yield db
        db.commit()

    monkeypatch.setattr(tasks, "session_scope", scope)
    return db


def add_project(db, user_id: str = USER_ID, created_at: datetime = None, **fields) -> models.VideoProject:
    project = models.VideoProject(
        user_id=user_id,
        title=fields.pop("title", "Launch video"),
        prompt=fields.pop("prompt", "A short product launch video"),
        created_at=created_at or datetime.now(timezone.utc),
        **fields,
    )
    db.add(project)
    db.commit()
    db.refresh(project)
    return project
