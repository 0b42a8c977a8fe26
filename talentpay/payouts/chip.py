"""
CHIP payment gateway integration.

Sends withdrawals to CHIP and looks up the card charges that fund
founder wallets. Credentials come from CHIP_BRAND_ID and CHIP_SECRET_KEY;
the endpoints can be overridden with CHIP_API_ENDPOINT and
CHIP_PURCHASES_ENDPOINT for the sandbox.
"""

import logging
import os
from decimal import Decimal
from typing import Optional
from urllib.parse import quote

import httpx

from talentpay.errors import ProviderError
from talentpay.payouts.provider import ChargeVerification, PayoutResult
from talentpay.pii import redact_pii
from talentpay.pricing import to_money
from talentpay.wallet.models import BankDetails

logger = logging.getLogger(__name__)

DEFAULT_CHIP_ENDPOINT = "https://gate.chip-in.asia/api/v1/charges"
DEFAULT_CHIP_PURCHASES_ENDPOINT = "https://gate.chip-in.asia/api/v1/purchases"

# CHIP reports a completed transfer as "successful"
CHIP_SUCCESS_STATUS = "successful"

# A card purchase whose funds were captured
CHIP_PAID_STATUS = "paid"


def _chip_headers(brand_id: str, secret_key: str) -> dict:
    return {
        "Authorization": f"Bearer {secret_key}",
        "X-Brand-Id": brand_id,
        "Content-Type": "application/json",
    }


def _json(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class ChipPayoutProvider:
    """Payout provider backed by the CHIP REST API."""

    def __init__(
        self,
        brand_id: str,
        secret_key: str,
        endpoint: str = DEFAULT_CHIP_ENDPOINT,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        if not brand_id or not secret_key:
            raise ValueError("CHIP brand_id and secret_key are required")
        self.brand_id = brand_id
        self.secret_key = secret_key
        self.endpoint = endpoint
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_env(cls, client: Optional[httpx.Client] = None) -> "ChipPayoutProvider":
        return cls(
            brand_id=os.environ.get("CHIP_BRAND_ID", ""),
            secret_key=os.environ.get("CHIP_SECRET_KEY", ""),
            endpoint=os.environ.get("CHIP_API_ENDPOINT", DEFAULT_CHIP_ENDPOINT),
            client=client,
        )

    def close(self) -> None:
        self._client.close()

    def submit_payout(
        self,
        amount: Decimal,
        currency: str,
        bank: BankDetails,
        reference: str,
    ) -> PayoutResult:
        """Submit a payout to CHIP.

        Raises:
            ProviderError: retryable for network errors and 5xx responses,
                terminal for 4xx responses and non-successful statuses
        """
        payload = {
            "amount": str(amount),
            "currency": currency,
            "bank_details": {
                "bank_name": bank.bank_name,
                "bank_code": bank.bank_code,
                "account_number": bank.account_number,
                "account_holder_name": bank.account_holder,
            },
            "reference": f"Withdrawal-{reference}",
        }
        headers = _chip_headers(self.brand_id, self.secret_key)

        logger.info(
            f"CHIP payout request | reference={reference} | amount={amount} {currency} | "
            f"account={bank.masked_account_number}"
        )
        try:
            response = self._client.post(self.endpoint, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise ProviderError(f"CHIP request timed out: {e}", retryable=True) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"CHIP request failed: {e}", retryable=True) from e

        if response.status_code >= 500:
            raise ProviderError(
                f"CHIP server error {response.status_code}",
                retryable=True,
                status_code=response.status_code,
            )

        data = _json(response)
        if response.status_code >= 400:
            message = data.get("detail") or data.get("message") or f"HTTP {response.status_code}"
            logger.warning(f"CHIP payout rejected | reference={reference} | error={redact_pii(str(message))}")
            raise ProviderError(
                f"CHIP rejected payout: {message}",
                retryable=False,
                status_code=response.status_code,
            )

        external_id = data.get("id")
        status = data.get("status")
        if not external_id:
            raise ProviderError("CHIP response missing payout id", retryable=False, status_code=response.status_code)
        if status != CHIP_SUCCESS_STATUS:
            message = data.get("detail") or data.get("message") or f"status {status}"
            raise ProviderError(
                f"CHIP payout not successful: {message}",
                retryable=False,
                status_code=response.status_code,
            )

        logger.info(f"CHIP payout accepted | reference={reference} | chip_id={external_id}")
        return PayoutResult(external_id=str(external_id), status=status, raw_status=status)


class ChipChargeVerifier:
    """Looks up CHIP card purchases before a wallet top-up is credited.

    The web app creates each top-up purchase with ``reference`` set to the
    founder's profile ID, which is how the payer is matched here.
    """

    def __init__(
        self,
        brand_id: str,
        secret_key: str,
        endpoint: str = DEFAULT_CHIP_PURCHASES_ENDPOINT,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ):
        if not brand_id or not secret_key:
            raise ValueError("CHIP brand_id and secret_key are required")
        self.brand_id = brand_id
        self.secret_key = secret_key
        self.endpoint = endpoint.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_env(cls, client: Optional[httpx.Client] = None) -> "ChipChargeVerifier":
        return cls(
            brand_id=os.environ.get("CHIP_BRAND_ID", ""),
            secret_key=os.environ.get("CHIP_SECRET_KEY", ""),
            endpoint=os.environ.get("CHIP_PURCHASES_ENDPOINT", DEFAULT_CHIP_PURCHASES_ENDPOINT),
            client=client,
        )

    def close(self) -> None:
        self._client.close()

    def verify_charge(
        self,
        charge_reference: str,
        expected_amount: Decimal,
        expected_currency: str,
        expected_payer: str,
    ) -> ChargeVerification:
        """Check that a CHIP purchase is paid, for this amount, by this payer.

        Raises:
            ProviderError: retryable for network errors and 5xx responses,
                terminal for other unexpected responses
        """
        url = f"{self.endpoint}/{quote(charge_reference, safe='')}/"
        try:
            response = self._client.get(url, headers=_chip_headers(self.brand_id, self.secret_key))
        except httpx.TimeoutException as e:
            raise ProviderError(f"CHIP request timed out: {e}", retryable=True) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"CHIP request failed: {e}", retryable=True) from e

        if response.status_code >= 500:
            raise ProviderError(
                f"CHIP server error {response.status_code}",
                retryable=True,
                status_code=response.status_code,
            )
        if response.status_code == 404:
            return ChargeVerification(
                success=False,
                charge_reference=charge_reference,
                error="Charge not found",
                error_code="CHARGE_NOT_FOUND",
            )
        if response.status_code >= 400:
            raise ProviderError(
                f"CHIP charge lookup failed: HTTP {response.status_code}",
                retryable=False,
                status_code=response.status_code,
            )

        data = _json(response)
        purchase = data.get("purchase") or {}
        status = data.get("status")
        currency = purchase.get("currency")
        payer = data.get("reference")
        amount = None
        if purchase.get("total") is not None:
            # CHIP totals are in sen
            amount = to_money(Decimal(str(purchase["total"])) / 100)

        def _result(success: bool, error: Optional[str] = None, error_code: Optional[str] = None):
            return ChargeVerification(
                success=success,
                charge_reference=charge_reference,
                status=status,
                amount=amount,
                currency=currency,
                payer_reference=payer,
                error=error,
                error_code=error_code,
            )

        if status != CHIP_PAID_STATUS:
            return _result(False, f"Charge is {status or 'unknown'}, not paid", "CHARGE_NOT_PAID")
        if payer != expected_payer:
            return _result(False, "Charge was made for a different account", "PAYER_MISMATCH")
        if currency != expected_currency:
            return _result(False, f"currency: expected {expected_currency}, got {currency}", "CURRENCY_MISMATCH")
        if amount != to_money(expected_amount):
            return _result(False, f"amount: expected {expected_amount}, got {amount}", "AMOUNT_MISMATCH")

        logger.info(f"CHIP charge verified | charge={charge_reference} | amount={amount} {currency}")
        return _result(True)
