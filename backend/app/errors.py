"""Map TalentPay service errors to HTTP responses."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from talentpay.errors import (
    ApplicationNotPendingError,
    CommerceError,
    DuplicateOrderError,
    InsufficientBalance,
    InvalidTransition,
    LedgerWriteFailure,
    NotFoundError,
    ProviderError,
    StorageConflictError,
    UnauthorizedError,
    ValidationError,
)

from .logging_config import get_logger

logger = get_logger("talentpay.errors")

# Checked in order; first match wins
ERROR_STATUS_CODES = [
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (UnauthorizedError, status.HTTP_403_FORBIDDEN),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (InsufficientBalance, status.HTTP_402_PAYMENT_REQUIRED),
    (DuplicateOrderError, status.HTTP_409_CONFLICT),
    (ApplicationNotPendingError, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (StorageConflictError, status.HTTP_409_CONFLICT),
    (ProviderError, status.HTTP_502_BAD_GATEWAY),
    (LedgerWriteFailure, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_code_for(exc: CommerceError) -> int:
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def commerce_error_handler(request: Request, exc: CommerceError) -> JSONResponse:
    """Render a CommerceError as ``{"detail", "error"}``."""
    code = status_code_for(exc)
    body = {"detail": str(exc), "error": exc.code}
    if isinstance(exc, InsufficientBalance):
        body["shortfall"] = str(exc.shortfall)
    if isinstance(exc, LedgerWriteFailure):
        body["rolled_back"] = exc.rolled_back

    if code >= 500:
        logger.error(f"{request.method} {request.url.path} | {exc.code} | {exc}")
    else:
        logger.info(f"{request.method} {request.url.path} | {code} {exc.code}")
    return JSONResponse(status_code=code, content=body)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CommerceError, commerce_error_handler)
