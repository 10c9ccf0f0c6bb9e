"""Error taxonomy for the gated link core.

Every error carries a human readable ``detail``. Errors raised after a
confirmed ledger write carry the ledger transaction hash so callers can tell
"nothing happened" apart from "ledger succeeded, store may be behind".
"""
from __future__ import annotations

from typing import Optional


class GatedLinkError(Exception):
    """Base class for all core errors."""

    def __init__(self, detail: str, *, tx_hash: Optional[str] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.tx_hash = tx_hash


class InvalidInput(GatedLinkError):
    """Client data failed validation. No side effect occurred."""


class NotFound(GatedLinkError):
    """Lookup miss. No side effect occurred."""


class LedgerFailure(GatedLinkError):
    """The ledger call did not confirm. The store was not touched."""


class LedgerTimeout(LedgerFailure):
    """Confirmation wait timed out. The transaction may still land."""


class StoreFailure(GatedLinkError):
    """A store write failed after the ledger confirmed (ledger ahead of store)."""


class AllocationExhausted(GatedLinkError):
    """Short-code collisions exhausted the retry budget."""


class ProducerFailure(GatedLinkError):
    """An enrichment producer failed."""


class AllProducersFailed(ProducerFailure):
    """Every per-platform copy generation attempt failed."""


class ProducerNotConfigured(GatedLinkError):
    """The copy generator has no credentials."""
