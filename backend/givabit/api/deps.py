# Long-lived handles are built once in main.py's startup hook and kept on app.state.
from fastapi import Request

from givabit.services.enrichment import EnrichmentCache
from givabit.services.ledger import LedgerClient
from givabit.services.lifecycle import LinkLifecycleManager


def get_lifecycle(request: Request) -> LinkLifecycleManager:
    return request.app.state.lifecycle


def get_enrichment(request: Request) -> EnrichmentCache:
    return request.app.state.enrichment


def get_ledger(request: Request) -> LedgerClient:
    return request.app.state.ledger
