"""Tests for bearer token decoding."""

from datetime import datetime, timedelta, timezone

from app.config import get_settings
from jose import jwt

BANK = {
    "amount": "10.00",
    "bank_name": "Maybank",
    "bank_code": "MBBEMYKL",
    "account_number": "114012345678",
    "account_holder": "Aisyah",
}


def _token(user_id: str, **claims) -> dict:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "aud": settings.jwt_audience,
        "exp": now + timedelta(minutes=5),
        "iat": now,
        "role": "authenticated",
        **claims,
    }
    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


def test_role_from_app_metadata(client, founder_id, order):
    headers = _token(founder_id, app_metadata={"role": "founder"})

    response = client.get("/api/v1/orders", headers=headers)

    assert [o["id"] for o in response.json()["orders"]] == [order.id]


def test_user_metadata_role_ignored(client, provider, founder_id):
    headers = _token(founder_id, user_metadata={"role": "talent"}, app_metadata={"role": "founder"})

    response = client.post("/api/v1/wallet/withdrawals", json=BANK, headers=headers)

    assert response.status_code == 403
    assert provider.calls == []


def test_token_without_app_role_is_not_a_talent(client, provider, talent_id):
    headers = _token(talent_id, user_metadata={"role": "talent"})

    response = client.post("/api/v1/wallet/withdrawals", json=BANK, headers=headers)

    assert response.status_code == 403
    assert provider.calls == []


def test_wrong_audience_rejected(client, founder_id):
    headers = _token(founder_id, aud="anon", app_metadata={"role": "founder"})

    response = client.get("/api/v1/wallet/balance", headers=headers)

    assert response.status_code == 401
