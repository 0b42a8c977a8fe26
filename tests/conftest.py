"""
Pytest fixtures and test doubles for TalentPay tests.
"""

from collections import Counter
from decimal import Decimal
from typing import Dict, List, Optional, Set

import pytest

from talentpay.config import CommerceConfig
from talentpay.errors import ProviderError
from talentpay.orders.models import Campaign, CampaignApplication, Order
from talentpay.orders.service import OrderService
from talentpay.payouts.provider import ChargeVerification, PayoutResult
from talentpay.settlement.service import SettlementService
from talentpay.storage.memory import InMemoryCommerceStorage
from talentpay.wallet.models import BankDetails, Profile, ProfileRole
from talentpay.wallet.service import WalletService

FOUNDER_ID = "founder-1"
TALENT_ID = "talent-1"

REVIEW_MEDIA = [
    {"url": "https://proj.supabase.co/storage/v1/object/public/review-submissions/talent-1/1_a.jpg", "type": "image"},
    {"url": "https://proj.supabase.co/storage/v1/object/public/review-submissions/talent-1/2_b.mp4", "type": "video"},
]


class FlakyStorage:
    """Delegates to in-memory storage, raising on chosen calls.

    ``fail("save_transaction", on_call=2)`` makes the second
    save_transaction call raise ConnectionError.
    """

    def __init__(self, inner: InMemoryCommerceStorage):
        self.inner = inner
        self.calls: Counter = Counter()
        self.failures: Dict[str, Set[int]] = {}

    def fail(self, method: str, on_call: int = 1, times: int = 1) -> None:
        self.failures[method] = set(range(on_call, on_call + times))

    def __getattr__(self, name):
        attr = getattr(self.inner, name)
        if not callable(attr):
            return attr

        def wrapper(*args, **kwargs):
            self.calls[name] += 1
            if self.calls[name] in self.failures.get(name, ()):
                raise ConnectionError(f"injected failure in {name} (call {self.calls[name]})")
            return attr(*args, **kwargs)

        return wrapper


class RecordingNotifier:
    """Collects notifications instead of sending them."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, notification) -> None:
        if self.fail:
            raise RuntimeError("notification backend down")
        self.sent.append(notification)

    def titles_for(self, user_id: str) -> List[str]:
        return [n.title for n in self.sent if n.user_id == user_id]


class RecordingMediaStorage:
    """Records delete requests; URLs in ``failing`` raise."""

    def __init__(self, failing: Optional[Set[str]] = None):
        self.deleted: List[str] = []
        self.failing = failing or set()

    def delete(self, url: str) -> None:
        if url in self.failing:
            raise ConnectionError(f"storage unavailable for {url}")
        self.deleted.append(url)


class ScriptedPayoutProvider:
    """Payout provider that replays a script of outcomes.

    Each entry is either a PayoutResult or a ProviderError to raise. Once
    the script is exhausted every call succeeds.
    """

    def __init__(self, script: Optional[list] = None):
        self.script = list(script or [])
        self.calls: List[dict] = []

    def submit_payout(self, amount, currency, bank, reference) -> PayoutResult:
        self.calls.append({"amount": amount, "currency": currency, "bank": bank, "reference": reference})
        outcome = self.script.pop(0) if self.script else None
        if isinstance(outcome, ProviderError):
            raise outcome
        if outcome is not None:
            return outcome
        return PayoutResult(external_id=f"chip-{len(self.calls)}", status="successful", raw_status="successful")


class ScriptedChargeVerifier:
    """Confirms every charge unless told otherwise.

    ``outcomes`` maps a charge reference to the ChargeVerification to
    return, or a ProviderError to raise.
    """

    def __init__(self):
        self.outcomes: Dict[str, object] = {}
        self.calls: List[str] = []

    def verify_charge(self, charge_reference, expected_amount, expected_currency, expected_payer):
        self.calls.append(charge_reference)
        outcome = self.outcomes.get(charge_reference)
        if isinstance(outcome, ProviderError):
            raise outcome
        if outcome is not None:
            return outcome
        return ChargeVerification(
            success=True,
            charge_reference=charge_reference,
            status="paid",
            amount=expected_amount,
            currency=expected_currency,
            payer_reference=expected_payer,
        )


@pytest.fixture
def storage():
    """Create in-memory storage for testing."""
    return InMemoryCommerceStorage()


@pytest.fixture
def config():
    """Create test configuration."""
    return CommerceConfig()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def media():
    return RecordingMediaStorage()


@pytest.fixture
def provider():
    return ScriptedPayoutProvider()


@pytest.fixture
def charges():
    return ScriptedChargeVerifier()


@pytest.fixture
def sleeps():
    """Backoff delays requested by the wallet service."""
    return []


@pytest.fixture
def order_service(storage, config, notifier):
    return OrderService(storage=storage, config=config, notifier=notifier)


@pytest.fixture
def settlement_service(storage, config, media, notifier):
    return SettlementService(storage=storage, config=config, media=media, notifier=notifier)


@pytest.fixture
def wallet_service(storage, config, provider, notifier, sleeps, charges):
    return WalletService(
        storage=storage,
        config=config,
        payout_provider=provider,
        notifier=notifier,
        sleep=sleeps.append,
        charge_verifier=charges,
    )


@pytest.fixture
def founder(storage):
    """Founder with RM110.00, enough for one RM100 settlement."""
    profile = Profile(id=FOUNDER_ID, role=ProfileRole.FOUNDER, name="Aisyah", wallet_balance=Decimal("110.00"))
    storage.save_profile(profile)
    return profile


@pytest.fixture
def talent(storage):
    profile = Profile(id=TALENT_ID, role=ProfileRole.TALENT, name="Farid")
    storage.save_profile(profile)
    return profile


@pytest.fixture
def campaign():
    """Rate level 2, 30 second video: RM100.00."""
    return Campaign(
        id="campaign-1",
        founder_id=FOUNDER_ID,
        title="Glow Serum Launch",
        rate_level=2,
        duration="30sec",
    )


@pytest.fixture
def application(storage, campaign, talent):
    """The talent's pending application to the campaign."""
    pending = CampaignApplication(id="application-1", campaign_id=campaign.id, talent_id=talent.id)
    storage.save_application(pending)
    return pending


@pytest.fixture
def bank():
    return BankDetails(
        bank_name="Maybank",
        bank_code="MBBEMYKL",
        account_number="114012345678",
        account_holder="Farid Rahman",
    )


@pytest.fixture
def order(order_service, campaign, founder, talent, application) -> Order:
    """Freshly created order awaiting shipment."""
    return order_service.create_order(campaign, TALENT_ID, actor_id=FOUNDER_ID)


@pytest.fixture
def reviewed_order(order_service, order) -> Order:
    """Order with a submitted review awaiting the founder's decision."""
    order_service.ship_order(order.id, FOUNDER_ID, tracking_number="JT0001", courier="J&T")
    order_service.mark_delivered(order.id)
    return order_service.submit_review(order.id, TALENT_ID, REVIEW_MEDIA, notes="First cut")


@pytest.fixture
def flaky_storage(storage):
    """Fault-injecting view over the same in-memory records."""
    return FlakyStorage(storage)
