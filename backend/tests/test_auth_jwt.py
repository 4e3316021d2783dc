from dataclasses import replace
from datetime import datetime, timedelta, timezone

from jose import jwt

from notes_service.utils.jwt_auth import create_access_token, decode_token


def test_token_round_trip(settings):
    token = create_access_token("userA", settings)
    payload = decode_token(token, settings)
    assert payload["sub"] == "userA"
    assert payload["exp"] - payload["iat"] == settings.jwt_exp_minutes * 60


def test_token_lifetime_follows_settings(settings):
    short = replace(settings, jwt_exp_minutes=2)
    payload = decode_token(create_access_token("userA", short), short)
    assert payload["exp"] - payload["iat"] == 120


def test_protected_requires_bearer_token(client, auth):
    # no auth at all
    r = client.get("/notes")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "unauthorized"

    # an owner id header is not an identity
    r = client.get("/notes", headers={"X-User-Id": "userA"})
    assert r.status_code == 401

    r = client.get("/notes", headers=auth("userA"))
    assert r.status_code == 200


def test_token_signed_with_other_secret_is_rejected(client):
    forged = jwt.encode({"sub": "userA"}, "not-the-secret", algorithm="HS256")
    r = client.get("/notes", headers={"Authorization": f"Bearer {forged}"})
    assert r.status_code == 401


def test_expired_token_is_rejected(client):
    past = datetime.now(timezone.utc) - timedelta(minutes=5)
    expired = jwt.encode(
        {"sub": "userA", "exp": int(past.timestamp())},
        "dev-secret-for-tests",
        algorithm="HS256",
    )
    r = client.get("/notes", headers={"Authorization": f"Bearer {expired}"})
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Invalid or expired token"


def test_token_without_subject_is_rejected(client):
    token = jwt.encode({"scope": "notes"}, "dev-secret-for-tests", algorithm="HS256")
    r = client.get("/notes", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
