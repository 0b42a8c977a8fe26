"""Wallet routes for TalentPay.

Founders top up and spend their wallet balance; talents withdraw their
earnings to a bank account through CHIP.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from talentpay.wallet.models import BankDetails, Withdrawal, WithdrawalStatus

from ..auth import CurrentUser
from ..logging_config import get_logger
from ..rate_limit import MONEY_LIMIT, READ_LIMIT, limiter
from ..services import PayoutWalletServiceDep, TopUpWalletServiceDep, WalletServiceDep

logger = get_logger("talentpay.routes.wallet")
router = APIRouter(prefix="/wallet", tags=["wallet"])


# =============================================================================
# Request/Response Models
# =============================================================================

WithdrawalStatusName = Literal["pending", "approved", "paid", "rejected"]


class BalanceResponse(BaseModel):
    user_id: str
    wallet_balance: Decimal
    total_earnings: Decimal


class BalanceCheckResponse(BaseModel):
    """Whether the wallet covers an amount."""

    required: Decimal
    available: Decimal
    sufficient: bool
    shortfall: Decimal


class TransactionResponse(BaseModel):
    id: str
    type: Literal["credit", "debit"]
    amount: Decimal
    category: str
    description: str
    related_order_id: str | None = None
    related_withdrawal_id: str | None = None
    created_at: datetime


class TopUpRequest(BaseModel):
    """Credit the wallet for a paid CHIP purchase.

    ``charge_reference`` is the CHIP purchase ID.
    """

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    charge_reference: str = Field(..., min_length=1, max_length=200)


class TopUpResponse(BaseModel):
    transaction: TransactionResponse
    wallet_balance: Decimal
    duplicate: bool


class WithdrawalRequest(BaseModel):
    """Withdraw earnings to a bank account."""

    amount: Decimal = Field(..., gt=0, decimal_places=2)
    bank_name: str = Field(..., min_length=1)
    bank_code: str = Field(..., min_length=1)
    account_number: str = Field(..., min_length=1, max_length=30)
    account_holder: str = Field(..., min_length=1)

    def bank_details(self) -> BankDetails:
        return BankDetails(
            bank_name=self.bank_name,
            bank_code=self.bank_code,
            account_number=self.account_number,
            account_holder=self.account_holder,
        )


class WithdrawalResponse(BaseModel):
    """Withdrawal details; the account number is masked."""

    id: str
    amount: Decimal
    admin_fee: Decimal
    net_amount: Decimal
    bank_name: str
    account_number: str
    account_holder: str
    status: WithdrawalStatusName
    requested_at: datetime
    processed_at: datetime | None = None
    chip_payout_id: str | None = None
    chip_error_message: str | None = None

    @classmethod
    def from_withdrawal(cls, withdrawal: Withdrawal) -> "WithdrawalResponse":
        return cls(
            id=withdrawal.id,
            amount=withdrawal.amount,
            admin_fee=withdrawal.admin_fee,
            net_amount=withdrawal.net_amount,
            bank_name=withdrawal.bank_name,
            account_number=withdrawal.bank_details.masked_account_number,
            account_holder=withdrawal.account_holder,
            status=withdrawal.status,
            requested_at=withdrawal.requested_at,
            processed_at=withdrawal.processed_at,
            chip_payout_id=withdrawal.chip_payout_id,
            chip_error_message=withdrawal.chip_error_message,
        )


# =============================================================================
# Routes
# =============================================================================


@router.get("/balance", response_model=BalanceResponse)
@limiter.limit(READ_LIMIT)
async def get_balance(
    request: Request,
    auth: CurrentUser,
    service: WalletServiceDep,
):
    """Get the caller's wallet balance and total earnings."""
    logger.info(f"GET /wallet/balance | {auth.user_id}")
    balance = await asyncio.to_thread(service.get_balance, auth.user_id)
    return BalanceResponse(
        user_id=balance.user_id,
        wallet_balance=balance.wallet_balance,
        total_earnings=balance.total_earnings,
    )


@router.get("/balance/check", response_model=BalanceCheckResponse)
@limiter.limit(READ_LIMIT)
async def check_balance(
    request: Request,
    auth: CurrentUser,
    service: WalletServiceDep,
    amount: Decimal = Query(..., gt=0),
):
    """Check whether the caller's wallet covers ``amount``."""
    logger.info(f"GET /wallet/balance/check | amount={amount} | {auth.user_id}")
    check = await asyncio.to_thread(service.check_sufficient_balance, auth.user_id, amount)
    return BalanceCheckResponse(
        required=check.required,
        available=check.available,
        sufficient=check.sufficient,
        shortfall=check.shortfall,
    )


@router.get("/transactions", response_model=list[TransactionResponse])
@limiter.limit(READ_LIMIT)
async def list_transactions(
    request: Request,
    auth: CurrentUser,
    service: WalletServiceDep,
    limit: int = Query(50, ge=1, le=200),
):
    """Get the caller's statement, newest first."""
    logger.info(f"GET /wallet/transactions | {auth.user_id}")
    txns = await asyncio.to_thread(service.list_transactions, auth.user_id, limit)
    return [TransactionResponse(**t.to_dict()) for t in txns]


@router.post("/topups", response_model=TopUpResponse)
@limiter.limit(MONEY_LIMIT)
async def top_up(
    request: Request,
    body: TopUpRequest,
    auth: CurrentUser,
    service: TopUpWalletServiceDep,
):
    """
    Credit the founder's wallet for a completed card charge.

    The charge is looked up at CHIP first; a charge that is unpaid, for
    another amount or made by another account responds 400 and credits
    nothing.

    Replaying the same charge_reference returns the original
    transaction with ``duplicate`` set.
    """
    log_prefix = f"{auth.user_id}"
    logger.info(f"POST /wallet/topups | amount={body.amount} | {log_prefix}")

    result = await asyncio.to_thread(service.top_up, auth.user_id, body.amount, body.charge_reference)
    return TopUpResponse(
        transaction=TransactionResponse(**result.transaction.to_dict()),
        wallet_balance=result.wallet_balance,
        duplicate=result.duplicate,
    )


@router.post("/withdrawals", response_model=WithdrawalResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(MONEY_LIMIT)
async def request_withdrawal(
    request: Request,
    body: WithdrawalRequest,
    auth: CurrentUser,
    service: PayoutWalletServiceDep,
):
    """
    Withdraw earnings to a bank account.

    The full amount is deducted from earnings; the bank receives the
    amount less the admin fee. Responds 402 when earnings are too low
    and 502 when CHIP rejects the payout.
    """
    log_prefix = f"{auth.user_id}"
    logger.info(f"POST /wallet/withdrawals | amount={body.amount} | {log_prefix}")

    if not auth.is_talent:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only talents can withdraw earnings",
        )

    withdrawal = await asyncio.to_thread(
        service.request_withdrawal, auth.user_id, body.amount, body.bank_details()
    )
    logger.info(f"Withdrawal {withdrawal.id} {withdrawal.status} | {log_prefix}")
    return WithdrawalResponse.from_withdrawal(withdrawal)


@router.get("/withdrawals", response_model=list[WithdrawalResponse])
@limiter.limit(READ_LIMIT)
async def list_withdrawals(
    request: Request,
    auth: CurrentUser,
    service: WalletServiceDep,
    status_filter: WithdrawalStatusName | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
):
    """List the caller's withdrawals, newest first."""
    logger.info(f"GET /wallet/withdrawals | status={status_filter} | {auth.user_id}")
    withdrawal_status = WithdrawalStatus(status_filter) if status_filter else None
    withdrawals = await asyncio.to_thread(service.list_withdrawals, auth.user_id, withdrawal_status, limit)
    return [WithdrawalResponse.from_withdrawal(w) for w in withdrawals]


@router.get("/withdrawals/{withdrawal_id}", response_model=WithdrawalResponse)
@limiter.limit(READ_LIMIT)
async def get_withdrawal(
    request: Request,
    withdrawal_id: str,
    auth: CurrentUser,
    service: WalletServiceDep,
):
    """Get one of the caller's withdrawals."""
    logger.info(f"GET /wallet/withdrawals/{withdrawal_id} | {auth.user_id}")
    withdrawal = await asyncio.to_thread(service.get_withdrawal, withdrawal_id, auth.user_id)
    return WithdrawalResponse.from_withdrawal(withdrawal)
