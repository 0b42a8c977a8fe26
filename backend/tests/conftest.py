"""Pytest configuration and fixtures."""

import os
import secrets
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)

from app.database import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.rate_limit import limiter  # noqa: E402
from app.services import (  # noqa: E402
    get_charge_verifier,
    get_media_storage,
    get_notifier,
    get_payout_provider,
    get_storage,
)
from fastapi.testclient import TestClient  # noqa: E402

from talentpay.config import CommerceConfig  # noqa: E402
from talentpay.errors import ProviderError  # noqa: E402
from talentpay.orders.models import Campaign, CampaignApplication  # noqa: E402
from talentpay.orders.service import OrderService  # noqa: E402
from talentpay.payouts.provider import ChargeVerification, PayoutResult  # noqa: E402
from talentpay.storage.memory import InMemoryCommerceStorage  # noqa: E402
from talentpay.wallet.models import Profile, ProfileRole  # noqa: E402

FOUNDER_ID = "usr_TEST_FOUNDER_0001"
TALENT_ID = "usr_TEST_TALENT_0001"
OUTSIDER_ID = "usr_TEST_OUTSIDER_0001"

CAMPAIGN_ROW = {
    "id": "campaign-1",
    "founder_id": FOUNDER_ID,
    "title": "Glow Serum Launch",
    "rate_level": 2,
    "duration": "30sec",
    "status": "active",
}

REVIEW_MEDIA = [
    {"url": "https://test.supabase.co/storage/v1/object/public/review-submissions/t/1.jpg", "type": "image"},
]


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def send(self, notification) -> None:
        self.sent.append(notification)


class FakeMediaStorage:
    def __init__(self):
        self.deleted = []
        self.failing = set()

    def delete(self, url: str) -> None:
        if url in self.failing:
            raise ConnectionError("storage unavailable")
        self.deleted.append(url)


class FakePayoutProvider:
    """Succeeds unless ``error`` is set."""

    def __init__(self):
        self.calls = []
        self.error: ProviderError | None = None

    def submit_payout(self, amount, currency, bank, reference) -> PayoutResult:
        self.calls.append({"amount": amount, "reference": reference})
        if self.error is not None:
            raise self.error
        return PayoutResult(external_id=f"chip-{len(self.calls)}", status="successful", raw_status="successful")


class FakeChargeVerifier:
    """Confirms every charge except those listed in ``unpaid``."""

    def __init__(self):
        self.unpaid = set()
        self.calls = []

    def verify_charge(self, charge_reference, expected_amount, expected_currency, expected_payer):
        self.calls.append(charge_reference)
        if charge_reference in self.unpaid:
            return ChargeVerification(
                success=False,
                charge_reference=charge_reference,
                error="Charge not found",
                error_code="CHARGE_NOT_FOUND",
            )
        return ChargeVerification(
            success=True,
            charge_reference=charge_reference,
            status="paid",
            amount=expected_amount,
            currency=expected_currency,
            payer_reference=expected_payer,
        )


@pytest.fixture(autouse=True)
def disable_rate_limits():
    """Turn rate limiting off for the duration of a test."""
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def storage():
    storage = InMemoryCommerceStorage()
    storage.save_profile(
        Profile(id=FOUNDER_ID, role=ProfileRole.FOUNDER, name="Aisyah", wallet_balance=Decimal("110.00"))
    )
    storage.save_profile(Profile(id=TALENT_ID, role=ProfileRole.TALENT, name="Farid"))
    storage.save_application(
        CampaignApplication(id="application-1", campaign_id=CAMPAIGN_ROW["id"], talent_id=TALENT_ID)
    )
    return storage


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def media():
    return FakeMediaStorage()


@pytest.fixture
def provider():
    return FakePayoutProvider()


@pytest.fixture
def charges():
    return FakeChargeVerifier()


@pytest.fixture
def client(storage, notifier, media, provider, charges):
    """Test client wired to in-memory storage and fake collaborators."""
    app.dependency_overrides[get_db] = lambda: MagicMock()
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_media_storage] = lambda: media
    app.dependency_overrides[get_payout_provider] = lambda: provider
    app.dependency_overrides[get_charge_verifier] = lambda: charges
    yield TestClient(app)
    app.dependency_overrides.clear()


def _headers(user_id: str, role: str) -> dict:
    from app.auth import create_access_token
    from app.config import get_settings

    token = create_access_token(get_settings(), user_id=user_id, role=role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def founder_headers():
    return _headers(FOUNDER_ID, "founder")


@pytest.fixture
def talent_headers():
    return _headers(TALENT_ID, "talent")


@pytest.fixture
def outsider_headers():
    return _headers(OUTSIDER_ID, "talent")


@pytest.fixture
def order_service(storage, notifier):
    return OrderService(storage=storage, config=CommerceConfig(), notifier=notifier)


@pytest.fixture
def order(order_service):
    return order_service.create_order(Campaign.from_dict(CAMPAIGN_ROW), TALENT_ID, actor_id=FOUNDER_ID)


@pytest.fixture
def reviewed_order(order_service, order):
    order_service.ship_order(order.id, FOUNDER_ID, tracking_number="JT0001", courier="J&T")
    order_service.mark_delivered(order.id)
    return order_service.submit_review(order.id, TALENT_ID, REVIEW_MEDIA)


@pytest.fixture
def founder_id():
    return FOUNDER_ID


@pytest.fixture
def talent_id():
    return TALENT_ID


@pytest.fixture
def campaign_row():
    return dict(CAMPAIGN_ROW)
