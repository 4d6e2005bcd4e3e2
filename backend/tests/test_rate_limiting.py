from __future__ import annotations

import importlib

from fastapi.testclient import TestClient

from app.core import config as app_config
from app.core.security import hash_password
from app.core.database import get_db
from app.dependencies.auth import get_current_user
from app.models.user import User
from app.services.scanner import get_document_scanner

from conftest import FakeScanner


def test_rate_limiting_returns_429_when_enabled(db_session):
    """
    Enable SlowAPI rate limiting and assert uploads return 429 after exceeding the limit.

    Note: rate limit decorators are applied at import time, so we reload the app + routes
    after toggling settings.ENABLE_RATE_LIMITING.
    """
    import app.core.rate_limit as rate_limit
    import app.routes.documents as documents_routes
    import app.main as main

    # SlowAPI decorators bind at import time. Module state is restored at the end
    # so other tests don't inherit rate-limited routes.
    try:
        app_config.settings.ENABLE_RATE_LIMITING = True

        # Fresh limiter instance, then routes + app bound to it.
        importlib.reload(rate_limit)
        importlib.reload(documents_routes)
        importlib.reload(main)

        app = main.app

        user = User(
            email="rl@example.com",
            password_hash=hash_password("test_password_123"),
            is_active=True,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)

        def override_get_db():
            yield db_session

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_document_scanner] = lambda: FakeScanner()

        with TestClient(app) as client:
            # Limit is 10/minute on upload: first 10 ok, 11th blocked.
            statuses: list[int] = []
            for i in range(11):
                r = client.post("/documents", files={"file": (f"a{i}.txt", b"hello", "text/plain")})
                statuses.append(r.status_code)

            assert statuses[:10] == [200] * 10, statuses
            assert statuses[10] == 429, statuses
            body = r.json()
            assert body.get("error") == "RATE_LIMITED"
            assert isinstance(body.get("message"), str) and body["message"]
    finally:
        # Restore global config and module bindings for the rest of the test suite.
        app_config.settings.ENABLE_RATE_LIMITING = False
        importlib.reload(rate_limit)
        importlib.reload(documents_routes)
        importlib.reload(main)
