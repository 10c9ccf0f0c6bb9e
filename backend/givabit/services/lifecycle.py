"""Creation and activation workflows: ledger first, store second."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from givabit.core.errors import (
    AllocationExhausted,
    InvalidInput,
    LedgerFailure,
    LedgerTimeout,
    NotFound,
    StoreFailure,
)
from givabit.crud.gated_links import DuplicateLinkHash, GatedLinkStore, ShortCodeCollision
from givabit.models.gated_link import GatedLink
from givabit.services.ledger import LedgerClient, LedgerReceipt
from givabit.services.link_hash import LinkHasher
from givabit.services.shortcode import ShortCodeAllocator

logger = logging.getLogger(__name__)

# added to the receipt wait so the ledger client times out first, with its tx hash
SUBMIT_MARGIN = 30.0

# optional descriptive fields a creator may send along with the link
CREATION_METADATA_FIELDS = {
    "description",
    "author_name",
    "author_profile_picture_url",
    "content_vignette_url",
    "publication_date",
}


@dataclass
class CreatedLink:
    record: GatedLink
    tx_hash: str


@dataclass
class ActivityChange:
    link_hash: str
    is_active: bool
    tx_hash: str


def _blank(v: Optional[str]) -> bool:
    return v is None or not str(v).strip()


class LinkLifecycleManager:
    def __init__(
        self,
        store: GatedLinkStore,
        ledger: LedgerClient,
        *,
        hasher: Optional[LinkHasher] = None,
        allocator: Optional[ShortCodeAllocator] = None,
        max_attempts: int = 5,
        confirm_timeout: Optional[float] = None,
        submit_margin: float = SUBMIT_MARGIN,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.hasher = hasher or LinkHasher()
        self.allocator = allocator or ShortCodeAllocator()
        self.max_attempts = max_attempts
        self.confirm_timeout = confirm_timeout
        self.submit_margin = submit_margin

    # ---------- creation ----------
    async def create_link(
        self,
        url: str,
        price: str,
        creator_address: str,
        title: Optional[str] = None,
        *,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CreatedLink:
        missing = [
            name for name, v in (("url", url), ("priceInERC20", price), ("creatorAddress", creator_address))
            if _blank(v)
        ]
        if missing:
            raise InvalidInput(f"Missing required fields: {', '.join(missing)}")
        price = str(price).strip()
        if not (price.isascii() and price.isdigit()):
            raise InvalidInput("priceInERC20 must be a non-negative integer in the token's smallest unit")
        price = str(int(price))
        extra = {k: v for k, v in (metadata or {}).items() if k in CREATION_METADATA_FIELDS}

        creator = creator_address.strip().lower()
        link_hash = self.hasher.hash(url)
        buy_code, access_code = self.allocator.allocate(), self.allocator.allocate()

        receipt = await self._confirm(
            self.ledger.create_link(link_hash, creator, price, True), "createLink"
        )

        for attempt in range(1, self.max_attempts + 1):
            values = {
                "original_url": url,
                "link_hash": link_hash,
                "buy_short_code": buy_code,
                "access_short_code": access_code,
                "title": title,
                "creator_address": creator,
                "price_in_smallest_unit": price,
                "creation_tx_hash": receipt.tx_hash,
                "is_active": True,
                **extra,
            }
            try:
                record = await self.store.insert(values)
            except ShortCodeCollision:
                logger.warning("[links] short code collision for %s (attempt %d/%d)", link_hash, attempt, self.max_attempts)
                buy_code, access_code = self.allocator.allocate(), self.allocator.allocate()
                continue
            except DuplicateLinkHash as exc:
                logger.error("[links] ledger tx %s confirmed but %s already stored", receipt.tx_hash, link_hash)
                raise StoreFailure(
                    "A link for this URL is already registered in the database",
                    tx_hash=receipt.tx_hash,
                ) from exc
            except SQLAlchemyError as exc:
                logger.error("[links] ledger tx %s confirmed but store insert failed: %s", receipt.tx_hash, exc)
                raise StoreFailure(
                    f"Failed to store link details in database: {exc}", tx_hash=receipt.tx_hash
                ) from exc

            logger.info("[links] created %s buy=%s access=%s tx=%s", link_hash, buy_code, access_code, receipt.tx_hash)
            return CreatedLink(record=record, tx_hash=receipt.tx_hash)

        raise AllocationExhausted(
            f"Could not allocate unique short codes after {self.max_attempts} attempts",
            tx_hash=receipt.tx_hash,
        )

    # ---------- status ----------
    async def set_activity(self, link_hash: str, is_active: bool) -> ActivityChange:
        if not isinstance(is_active, bool):
            raise InvalidInput("isActive (boolean) is required")
        if await self.store.get_by_hash(link_hash) is None:
            raise NotFound("Link not found with the provided hash.")

        receipt = await self._confirm(self.ledger.set_activity(link_hash, is_active), "setLinkActivity")

        try:
            touched = await self.store.update_activity(link_hash, is_active, receipt.tx_hash)
        except SQLAlchemyError as exc:
            logger.error("[links] ledger tx %s confirmed but status update failed for %s: %s", receipt.tx_hash, link_hash, exc)
            raise StoreFailure(
                f"Failed to update link status in database: {exc}", tx_hash=receipt.tx_hash
            ) from exc
        if touched == 0:
            raise StoreFailure("Link row vanished before its status could be updated", tx_hash=receipt.tx_hash)

        logger.info("[links] %s is_active=%s tx=%s", link_hash, is_active, receipt.tx_hash)
        return ActivityChange(link_hash=link_hash, is_active=is_active, tx_hash=receipt.tx_hash)

    # ---------- reads ----------
    async def get_by_buy_short_code(self, code: str) -> GatedLink:
        link = await self.store.get_by_buy_short_code(code)
        if link is None:
            raise NotFound("Purchase link not found.")
        return link

    async def get_by_access_short_code(self, code: str) -> GatedLink:
        link = await self.store.get_by_access_short_code(code)
        if link is None:
            raise NotFound("Content not found")
        return link

    async def list_by_creator(self, creator_address: str) -> List[GatedLink]:
        if _blank(creator_address) or not creator_address.startswith("0x"):
            raise InvalidInput("Invalid creatorAddress format.")
        return await self.store.list_by_creator(creator_address.lower())

    # ---------- helpers ----------
    async def _confirm(self, call, name: str) -> LedgerReceipt:
        try:
            if self.confirm_timeout:
                return await asyncio.wait_for(call, self.confirm_timeout + self.submit_margin)
            return await call
        except asyncio.TimeoutError as exc:
            raise LedgerTimeout(f"{name} not confirmed within {self.confirm_timeout + self.submit_margin:.0f}s; it may still be mined") from exc
        except LedgerFailure:
            raise
        except Exception as exc:
            raise LedgerFailure(f"Smart contract interaction failed: {exc}") from exc
