import uuid
from datetime import timedelta

import jwt

from catalog_shared.config import config

from tests.conftest import auth, make_token

PROTECTED = "/api/v1/partner/establishments"


async def test_missing_token(client):
    r = await client.get(PROTECTED)
    assert r.status_code == 401
    assert r.json() == {
        "success": False,
        "error": {"code": "MISSING_TOKEN", "message": "No authorization token provided"},
    }


async def test_invalid_header_format(client, partner):
    r = await client.get(PROTECTED, headers={"Authorization": f"Token {make_token(partner)}"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "INVALID_TOKEN_FORMAT"


async def test_expired_token(client, partner):
    token = make_token(partner, expires_in=timedelta(minutes=-5))
    r = await client.get(PROTECTED, headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "TOKEN_EXPIRED"


async def test_malformed_token(client):
    r = await client.get(PROTECTED, headers={"Authorization": "Bearer not.a.jwt"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "MALFORMED_TOKEN"


async def test_wrong_signature(client, partner):
    token = jwt.encode({"userId": str(partner.id)}, "another-secret", algorithm=config.JWT_ALGORITHM)
    r = await client.get(PROTECTED, headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "MALFORMED_TOKEN"


async def test_unknown_user(client):
    token = jwt.encode({"userId": str(uuid.uuid4())}, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM)
    r = await client.get(PROTECTED, headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "USER_NOT_FOUND"


async def test_inactive_user(client, create_user):
    user = await create_user("partner", is_active=False)
    r = await client.get(PROTECTED, headers=auth(user))
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "USER_INACTIVE"


async def test_role_comes_from_database(client, create_user):
    user = await create_user("user")
    token = jwt.encode(
        {"userId": str(user.id), "role": "admin"}, config.JWT_SECRET_KEY, algorithm=config.JWT_ALGORITHM
    )
    r = await client.get("/api/v1/admin/audit-log", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 403
    assert r.json()["error"]["details"]["your_role"] == "user"


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["database"] == "connected"
