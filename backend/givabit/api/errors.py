"""Maps core errors onto HTTP responses."""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from givabit.core.errors import (
    AllocationExhausted,
    GatedLinkError,
    InvalidInput,
    LedgerFailure,
    LedgerTimeout,
    NotFound,
    ProducerFailure,
    ProducerNotConfigured,
    StoreFailure,
)

logger = logging.getLogger(__name__)

# (error class, status, label, ledger state); first match wins, so subclasses go first
_MAPPING = [
    (InvalidInput, 400, None, None),
    (NotFound, 404, None, None),
    (LedgerTimeout, 504, "Smart contract transaction not confirmed in time", "unknown"),
    (LedgerFailure, 502, "Smart contract interaction failed", "not_confirmed"),
    (StoreFailure, 500, "Ledger updated but database write failed", "confirmed"),
    (AllocationExhausted, 503, "Could not allocate short codes", "confirmed"),
    (ProducerNotConfigured, 503, "AI service not configured", None),
    (ProducerFailure, 502, "Failed to generate any social posts from AI", None),
]


def error_payload(exc: GatedLinkError) -> tuple[int, dict]:
    for cls, status, label, ledger_state in _MAPPING:
        if isinstance(exc, cls):
            break
    else:
        status, label, ledger_state = 500, "Internal error", None

    body = {"error": label or exc.detail, "details": exc.detail}
    if ledger_state:
        body["ledgerState"] = ledger_state
    if exc.tx_hash:
        body["transactionHash"] = exc.tx_hash
    return status, body


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(GatedLinkError)
    async def _gated_link_error(request: Request, exc: GatedLinkError) -> JSONResponse:
        status, body = error_payload(exc)
        if status >= 500:
            logger.error("[api] %s %s -> %s %s", request.method, request.url.path, status, body)
        return JSONResponse(status_code=status, content=body)
