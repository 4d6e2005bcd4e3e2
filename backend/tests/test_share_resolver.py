from __future__ import annotations

from datetime import datetime, timedelta, timezone

from app.models.document import Document

UNAVAILABLE = "Document not found or link has expired"


def _seed_shared(db_session, fake_s3, user, *, token: str, expires_at: datetime, body: bytes = b"hello world"):
    path = f"{user.id}/1700000000000-report.pdf"
    fake_s3.objects[path] = {"Body": body, "ContentType": "application/pdf"}
    doc = Document(
        user_id=user.id,
        file_name="report.pdf",
        file_type="application/pdf",
        file_size=len(body),
        storage_path=path,
        share_token=token,
        share_expires_at=expires_at,
        is_safe=True,
        created_at=datetime.now(timezone.utc),
    )
    db_session.add(doc)
    db_session.commit()
    return doc


def test_valid_token_resolves_without_auth(anon_client, users, db_session, fake_s3):
    user_a, _ = users
    _seed_shared(db_session, fake_s3, user_a, token="tok-valid", expires_at=datetime.now(timezone.utc) + timedelta(hours=1))

    res = anon_client.get("/share/tok-valid")
    assert res.status_code == 200
    body = res.json()
    assert body["file_name"] == "report.pdf"
    assert body["file_type"] == "application/pdf"
    assert body["file_size"] == len(b"hello world")
    assert "storage_path" not in body
    assert "share_token" not in body


def test_expired_and_unknown_tokens_look_the_same(anon_client, users, db_session, fake_s3):
    user_a, _ = users
    doc = _seed_shared(
        db_session, fake_s3, user_a, token="tok-old", expires_at=datetime.now(timezone.utc) - timedelta(seconds=1)
    )

    expired = anon_client.get("/share/tok-old")
    unknown = anon_client.get("/share/never-issued")
    assert expired.status_code == unknown.status_code == 404
    assert expired.json() == unknown.json() == {"error": "NOT_FOUND", "message": UNAVAILABLE}

    # Expired tokens are not purged.
    db_session.refresh(doc)
    assert doc.share_token == "tok-old"


def test_download_streams_blob(anon_client, users, db_session, fake_s3):
    user_a, _ = users
    _seed_shared(
        db_session,
        fake_s3,
        user_a,
        token="tok-dl",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        body=b"%PDF-1.7 content",
    )

    res = anon_client.get("/share/tok-dl/download")
    assert res.status_code == 200
    assert res.content == b"%PDF-1.7 content"
    assert res.headers["content-type"].startswith("application/pdf")
    assert "attachment" in res.headers["content-disposition"]
    assert "report.pdf" in res.headers["content-disposition"]


def test_download_with_expired_token_is_unavailable(anon_client, users, db_session, fake_s3):
    user_a, _ = users
    _seed_shared(db_session, fake_s3, user_a, token="tok-gone", expires_at=datetime.now(timezone.utc) - timedelta(hours=1))
    res = anon_client.get("/share/tok-gone/download")
    assert res.status_code == 404


def test_download_with_missing_blob_is_502(anon_client, users, db_session, fake_s3):
    user_a, _ = users
    doc = _seed_shared(db_session, fake_s3, user_a, token="tok-orphan", expires_at=datetime.now(timezone.utc) + timedelta(hours=1))
    fake_s3.objects.pop(doc.storage_path)

    res = anon_client.get("/share/tok-orphan/download")
    assert res.status_code == 502
