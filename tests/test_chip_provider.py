"""Tests for the CHIP payout provider."""

import json
from decimal import Decimal

import httpx
import pytest

from talentpay.errors import ProviderError
from talentpay.payouts.chip import ChipChargeVerifier, ChipPayoutProvider


def make_provider(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ChipPayoutProvider(
        brand_id="brand-1",
        secret_key="sk_test",
        endpoint="https://chip.test/api/v1/charges",
        client=client,
    )


def submit(provider, bank):
    return provider.submit_payout(Decimal("45.00"), "MYR", bank, reference="w-123")


class TestChipPayoutProvider:
    def test_successful_payout(self, bank):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json={"id": 98765, "status": "successful"})

        result = submit(make_provider(handler), bank)

        assert result.external_id == "98765"
        assert result.status == "successful"
        request = seen["request"]
        assert request.headers["Authorization"] == "Bearer sk_test"
        assert request.headers["X-Brand-Id"] == "brand-1"
        body = json.loads(request.content)
        assert body["amount"] == "45.00"
        assert body["currency"] == "MYR"
        assert body["reference"] == "Withdrawal-w-123"
        assert body["bank_details"]["account_holder_name"] == "Farid Rahman"
        assert body["bank_details"]["account_number"] == "114012345678"

    def test_server_error_is_retryable(self, bank):
        provider = make_provider(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(ProviderError) as exc_info:
            submit(provider, bank)

        assert exc_info.value.retryable
        assert exc_info.value.status_code == 503

    def test_client_error_is_terminal(self, bank):
        provider = make_provider(lambda request: httpx.Response(400, json={"detail": "Invalid bank code"}))

        with pytest.raises(ProviderError, match="Invalid bank code") as exc_info:
            submit(provider, bank)

        assert not exc_info.value.retryable
        assert exc_info.value.status_code == 400

    def test_timeout_is_retryable(self, bank):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(ProviderError, match="timed out") as exc_info:
            submit(make_provider(handler), bank)

        assert exc_info.value.retryable

    def test_connection_error_is_retryable(self, bank):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ProviderError) as exc_info:
            submit(make_provider(handler), bank)

        assert exc_info.value.retryable

    def test_unsuccessful_status_is_terminal(self, bank):
        provider = make_provider(
            lambda request: httpx.Response(200, json={"id": 1, "status": "error", "message": "Account closed"})
        )

        with pytest.raises(ProviderError, match="Account closed") as exc_info:
            submit(provider, bank)

        assert not exc_info.value.retryable

    def test_missing_payout_id(self, bank):
        provider = make_provider(lambda request: httpx.Response(200, json={"status": "successful"}))

        with pytest.raises(ProviderError, match="missing payout id"):
            submit(provider, bank)

    def test_credentials_required(self):
        with pytest.raises(ValueError):
            ChipPayoutProvider(brand_id="", secret_key="sk_test")

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CHIP_BRAND_ID", "brand-env")
        monkeypatch.setenv("CHIP_SECRET_KEY", "sk_env")
        monkeypatch.setenv("CHIP_API_ENDPOINT", "https://sandbox.chip.test/charges")

        provider = ChipPayoutProvider.from_env(client=httpx.Client())

        assert provider.brand_id == "brand-env"
        assert provider.endpoint == "https://sandbox.chip.test/charges"
        provider.close()


def make_verifier(handler):
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return ChipChargeVerifier(
        brand_id="brand-1",
        secret_key="sk_test",
        endpoint="https://chip.test/api/v1/purchases/",
        client=client,
    )


def purchase(status="paid", total=5000, currency="MYR", reference="founder-1"):
    return {
        "id": "pur_123",
        "status": status,
        "reference": reference,
        "purchase": {"total": total, "currency": currency},
    }


def verify(verifier, amount="50.00", reference="pur_123"):
    return verifier.verify_charge(
        reference,
        expected_amount=Decimal(amount),
        expected_currency="MYR",
        expected_payer="founder-1",
    )


class TestChipChargeVerifier:
    def test_paid_charge_verified(self):
        seen = {}

        def handler(request):
            seen["request"] = request
            return httpx.Response(200, json=purchase())

        result = verify(make_verifier(handler))

        assert result.success
        assert result.amount == Decimal("50.00")
        assert result.payer_reference == "founder-1"
        request = seen["request"]
        assert request.method == "GET"
        assert str(request.url) == "https://chip.test/api/v1/purchases/pur_123/"
        assert request.headers["Authorization"] == "Bearer sk_test"

    @pytest.mark.parametrize(
        "body, error_code",
        [
            (purchase(status="created"), "CHARGE_NOT_PAID"),
            (purchase(reference="founder-2"), "PAYER_MISMATCH"),
            (purchase(currency="SGD"), "CURRENCY_MISMATCH"),
            (purchase(total=4999), "AMOUNT_MISMATCH"),
        ],
    )
    def test_mismatched_charge_not_verified(self, body, error_code):
        result = verify(make_verifier(lambda request: httpx.Response(200, json=body)))

        assert not result.success
        assert result.error_code == error_code

    def test_unknown_charge(self):
        result = verify(make_verifier(lambda request: httpx.Response(404, json={"detail": "Not found"})))

        assert not result.success
        assert result.error_code == "CHARGE_NOT_FOUND"

    def test_reference_cannot_escape_the_purchase_path(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.raw_path
            return httpx.Response(404)

        verify(make_verifier(handler), reference="../payouts")

        assert seen["path"] == b"/api/v1/purchases/..%2Fpayouts/"

    def test_server_error_is_retryable(self):
        verifier = make_verifier(lambda request: httpx.Response(502))

        with pytest.raises(ProviderError) as exc_info:
            verify(verifier)

        assert exc_info.value.retryable

    def test_auth_failure_is_terminal(self):
        verifier = make_verifier(lambda request: httpx.Response(401, json={"detail": "bad key"}))

        with pytest.raises(ProviderError) as exc_info:
            verify(verifier)

        assert not exc_info.value.retryable
        assert exc_info.value.status_code == 401

    def test_network_error_is_retryable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderError) as exc_info:
            verify(make_verifier(handler))

        assert exc_info.value.retryable
