from fastapi import APIRouter, Depends

from givabit.api.deps import get_ledger, get_lifecycle
from givabit.services.ledger import LedgerClient
from givabit.services.lifecycle import LinkLifecycleManager

router = APIRouter()


@router.get("/ledger/{link_hash}", response_model=dict)
async def debug_ledger(
    link_hash: str,
    lifecycle: LinkLifecycleManager = Depends(get_lifecycle),
    ledger: LedgerClient = Depends(get_ledger),
):
    """
    Probe showing the contract's view of a link next to the database row,
    to spot ledger/store drift after a partial failure.
    """
    row = await lifecycle.store.get_by_hash(link_hash)
    chain = await ledger.get_details(link_hash)

    db = None
    if row is not None:
        db = {
            "creatorAddress": row.creator_address,
            "priceInERC20": row.price_in_smallest_unit,
            "isActive": row.is_active,
            "transactionHash": row.creation_tx_hash,
            "statusUpdateTransactionHash": row.status_update_tx_hash,
            "updatedAt": row.updated_at.isoformat() if row.updated_at else None,
        }
    return {
        "linkId": link_hash,
        "ledger": {
            "creatorAddress": chain.creator_address,
            "priceInERC20": chain.price_in_smallest_unit,
            "isActive": chain.is_active,
        },
        "db": db,
        "inSync": db is not None
        and db["isActive"] == chain.is_active
        and db["creatorAddress"] == chain.creator_address
        and db["priceInERC20"] == chain.price_in_smallest_unit,
    }
