import os
from datetime import datetime, timezone

# Ensure JWT_SECRET exists before importing app.main (it calls require_jwt_secret() at import time).
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")

from contextlib import contextmanager
import importlib
import io

import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.base import Base
from app.core import config as app_config
from app.core.security import hash_password

# Import models so they register with SQLAlchemy metadata.
from app.models.user import User  # noqa: F401
from app.models.document import Document  # noqa: F401
from app.models.refresh_token import RefreshToken  # noqa: F401

from app.core.database import get_db
from app.dependencies.auth import get_current_user
from app.services.ai_gateway import ChatReply
from app.services.scanner import DocumentScanner, ScanVerdict, get_document_scanner


def client_error(operation: str, code: str = "500") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


class FakeS3Client:
    """In-memory stand-in for the boto3 S3 client used by app.services.s3."""

    def __init__(self):
        self.objects: dict[str, dict] = {}
        self.fail_on: set[str] = set()

    def _maybe_fail(self, operation: str):
        if operation in self.fail_on:
            raise client_error(operation)

    def put_object(self, Bucket, Key, Body, ContentType=None):  # noqa: N803
        self._maybe_fail("put_object")
        self.objects[Key] = {"Body": bytes(Body), "ContentType": ContentType}
        return {"ok": True}

    def get_object(self, Bucket, Key):  # noqa: N803
        self._maybe_fail("get_object")
        if Key not in self.objects:
            raise client_error("GetObject", code="NoSuchKey")
        return {"Body": io.BytesIO(self.objects[Key]["Body"])}

    def delete_object(self, Bucket, Key):  # noqa: N803
        self._maybe_fail("delete_object")
        self.objects.pop(Key, None)
        return {"ok": True}

    def get_paginator(self, name):
        assert name == "list_objects_v2"
        objects = self.objects

        class _Paginator:
            def paginate(self, Bucket, Prefix):  # noqa: N803
                keys = sorted(k for k in objects if k.startswith(Prefix))
                yield {"Contents": [{"Key": k} for k in keys]}

        return _Paginator()


class FakeChatClient:
    """Returns a canned model reply (or raises) and records every prompt."""

    def __init__(self, reply: str = '{"isSafe": true, "warnings": []}', exc: Exception | None = None):
        self.reply = reply
        self.exc = exc
        self.calls: list[dict] = []

    def chat(self, *, system_prompt: str, user_content: str) -> ChatReply:
        self.calls.append({"system_prompt": system_prompt, "user_content": user_content})
        if self.exc:
            raise self.exc
        return ChatReply(model="test-model", content=self.reply)


class FakeScanner:
    """Scanner double for route tests: returns a fixed verdict or raises."""

    def __init__(self):
        self.verdict = ScanVerdict(is_safe=True, warnings=())
        self.exc: Exception | None = None
        self.calls: list[dict] = []

    def scan(self, *, content: str, file_name: str, file_type: str) -> ScanVerdict:
        self.calls.append({"content": content, "file_name": file_name, "file_type": file_type})
        if self.exc:
            raise self.exc
        return self.verdict


@pytest.fixture(scope="session")
def db_engine():
    # In-memory SQLite for fast, isolated tests.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def db_session(db_engine):
    # The in-memory DB persists across tests (StaticPool); reset schema per test.
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def fake_s3(monkeypatch):
    """
    Stub the S3 client used by app.services.s3 so tests never require AWS creds/network.
    """
    from app.services import s3 as s3_service

    fake = FakeS3Client()
    monkeypatch.setattr(s3_service, "_client", lambda: fake)
    app_config.settings.S3_BUCKET_NAME = app_config.settings.S3_BUCKET_NAME or "test-bucket"
    app_config.settings.AWS_REGION = app_config.settings.AWS_REGION or "us-east-1"
    return fake


@pytest.fixture(autouse=True)
def _reset_mutable_settings():
    """
    Tests tweak the process-global settings object; restore values after each test.
    """
    keys = [
        "MAX_UPLOAD_BYTES",
        "PDF_SCAN_PREVIEW_CHARS",
        "SHARE_LINK_TTL_HOURS",
        "S3_PREFIX",
        "FRONTEND_BASE_URL",
        "AI_GATEWAY_API_KEY",
        "ENABLE_RATE_LIMITING",
        "PASSWORD_MIN_LENGTH",
    ]
    original = {k: getattr(app_config.settings, k) for k in keys}
    try:
        yield
    finally:
        for k, v in original.items():
            setattr(app_config.settings, k, v)
        app_config.settings.ENABLE_RATE_LIMITING = False


@pytest.fixture()
def app(db_session):
    app_config.settings.JWT_SECRET = app_config.settings.JWT_SECRET or "test_jwt_secret"
    app_config.settings.ENABLE_RATE_LIMITING = False

    # SlowAPI decorators bind at import time, so reload the routes + app with rate limiting disabled.
    import app.routes.documents as documents_routes
    import app.main as main

    importlib.reload(documents_routes)
    importlib.reload(main)
    fastapi_app = main.app

    def override_get_db():
        yield db_session
    fastapi_app.dependency_overrides[get_db] = override_get_db
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def scanner(app):
    """
    FakeScanner wired into every route that asks for get_document_scanner.
    """
    fake = FakeScanner()
    app.dependency_overrides[get_document_scanner] = lambda: fake
    return fake


@pytest.fixture()
def chat_client(app):
    """
    Real DocumentScanner (prompting + reply extraction) over a canned model reply.
    """
    fake = FakeChatClient()
    app.dependency_overrides[get_document_scanner] = lambda: DocumentScanner(client=fake)
    return fake


@pytest.fixture()
def users(db_session):
    """
    Two distinct active users for ownership / isolation tests.
    """
    user_a = User(
        email="test@example.com",
        password_hash=hash_password("test_password_123"),
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    user_b = User(
        email="other@example.com",
        password_hash=hash_password("test_password_123"),
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )
    db_session.add_all([user_a, user_b])
    db_session.commit()
    db_session.refresh(user_a)
    db_session.refresh(user_b)
    return user_a, user_b


@pytest.fixture()
def client(app, users):
    """
    Default client authenticated as user_a.
    """
    user_a, _ = users
    app.dependency_overrides[get_current_user] = lambda: user_a
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture()
def anon_client(app):
    """
    Client with no auth override: real bearer-token validation applies.
    """
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def client_for(app):
    """
    Context manager to create a client authenticated as an arbitrary user.

    Usage:
        with client_for(user) as c:
            ...
    """

    @contextmanager
    def _client_for(user: User):
        app.dependency_overrides[get_current_user] = lambda: user
        with TestClient(app) as c:
            yield c
        app.dependency_overrides.pop(get_current_user, None)

    return _client_for
