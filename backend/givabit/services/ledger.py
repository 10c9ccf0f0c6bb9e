from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from web3 import Web3
from web3.exceptions import TimeExhausted
from web3.middleware import SignAndSendRawMiddlewareBuilder

from givabit.core.config import Settings
from givabit.core.errors import LedgerFailure, LedgerTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerReceipt:
    tx_hash: str
    block_number: Optional[int] = None


@dataclass(frozen=True)
class LedgerLinkDetails:
    link_hash: str
    creator_address: str
    price_in_smallest_unit: str
    is_active: bool


class LedgerClient(Protocol):
    """Submits contract writes and returns only once they are confirmed."""

    async def create_link(
        self, link_hash: str, creator_address: str, price: str, active: bool
    ) -> LedgerReceipt: ...

    async def set_activity(self, link_hash: str, is_active: bool) -> LedgerReceipt: ...

    async def get_details(self, link_hash: str) -> LedgerLinkDetails: ...


# GatedLinkAccessManager (subset used by the server)
CONTRACT_ABI = [
    {
        "type": "function",
        "name": "createLink",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_linkId", "type": "bytes32"},
            {"name": "_creator", "type": "address"},
            {"name": "_priceInERC20", "type": "uint256"},
            {"name": "_initialIsActive", "type": "bool"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "setLinkActivity",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_linkId", "type": "bytes32"},
            {"name": "_isActive", "type": "bool"},
        ],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "getLinkDetails",
        "stateMutability": "view",
        "inputs": [{"name": "_linkId", "type": "bytes32"}],
        "outputs": [
            {
                "name": "link",
                "type": "tuple",
                "components": [
                    {"name": "linkId", "type": "bytes32"},
                    {"name": "creator", "type": "address"},
                    {"name": "priceInERC20", "type": "uint256"},
                    {"name": "isActive", "type": "bool"},
                ],
            }
        ],
    },
]


class Web3LedgerClient:
    """
    LedgerClient backed by web3.py and a server wallet.

    Signing is done by web3's sign-and-send middleware; calls block on the
    receipt for at most ``confirm_timeout`` seconds and run in a worker thread.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: Optional[str],
        private_key: Optional[str],
        *,
        confirm_timeout: float = 120.0,
    ) -> None:
        self.confirm_timeout = confirm_timeout
        self.w3 = Web3(Web3.HTTPProvider(rpc_url))
        self.account = None
        self.contract = None

        if private_key:
            self.account = self.w3.eth.account.from_key(private_key)
            self.w3.middleware_onion.inject(SignAndSendRawMiddlewareBuilder.build(self.account), layer=0)
        if contract_address:
            self.contract = self.w3.eth.contract(
                address=Web3.to_checksum_address(contract_address), abi=CONTRACT_ABI
            )
        if self.account is None or self.contract is None:
            logger.warning("[ledger] SERVER_WALLET_PRIVATE_KEY or CONTRACT_ADDRESS missing; ledger writes will fail")

    @classmethod
    def from_settings(cls, settings: Settings) -> "Web3LedgerClient":
        return cls(
            settings.AVALANCHE_RPC_URL,
            settings.CONTRACT_ADDRESS,
            settings.SERVER_WALLET_PRIVATE_KEY,
            confirm_timeout=settings.LEDGER_CONFIRM_TIMEOUT,
        )

    # ---------- public (async) ----------
    async def create_link(self, link_hash: str, creator_address: str, price: str, active: bool) -> LedgerReceipt:
        logger.info("[ledger] createLink %s creator=%s price=%s", link_hash, creator_address, price)
        return await asyncio.to_thread(self._create_link, link_hash, creator_address, price, active)

    async def set_activity(self, link_hash: str, is_active: bool) -> LedgerReceipt:
        logger.info("[ledger] setLinkActivity %s -> %s", link_hash, is_active)
        return await asyncio.to_thread(self._set_activity, link_hash, is_active)

    async def get_details(self, link_hash: str) -> LedgerLinkDetails:
        return await asyncio.to_thread(self._get_details, link_hash)

    # ---------- blocking ----------
    def _require_ready(self) -> None:
        if self.account is None or self.contract is None:
            raise LedgerFailure(
                "Blockchain interaction module is not properly initialized. Check private key and contract address."
            )

    def _create_link(self, link_hash: str, creator_address: str, price: str, active: bool) -> LedgerReceipt:
        self._require_ready()
        try:
            fn = self.contract.functions.createLink(
                Web3.to_bytes(hexstr=link_hash),
                Web3.to_checksum_address(creator_address),
                int(price),
                active,
            )
        except ValueError as exc:
            raise LedgerFailure(f"Invalid createLink arguments: {exc}") from exc
        return self._transact(fn, "createLink")

    def _set_activity(self, link_hash: str, is_active: bool) -> LedgerReceipt:
        self._require_ready()
        fn = self.contract.functions.setLinkActivity(Web3.to_bytes(hexstr=link_hash), is_active)
        return self._transact(fn, "setLinkActivity")

    def _get_details(self, link_hash: str) -> LedgerLinkDetails:
        if self.contract is None:
            raise LedgerFailure("CONTRACT_ADDRESS is not configured")
        try:
            link_id, creator, price, is_active = self.contract.functions.getLinkDetails(
                Web3.to_bytes(hexstr=link_hash)
            ).call()
        except Exception as exc:
            raise LedgerFailure(f"Failed to read link details from blockchain: {exc}") from exc
        return LedgerLinkDetails(
            link_hash=Web3.to_hex(link_id),
            creator_address=str(creator).lower(),
            price_in_smallest_unit=str(price),
            is_active=bool(is_active),
        )

    def _transact(self, fn, name: str) -> LedgerReceipt:
        tx_hash = None
        try:
            tx_hash = Web3.to_hex(fn.transact({"from": self.account.address}))
            logger.info("[ledger] %s sent: %s", name, tx_hash)
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.confirm_timeout)
        except TimeExhausted as exc:
            raise LedgerTimeout(
                f"{name} not confirmed within {self.confirm_timeout:.0f}s; it may still be mined",
                tx_hash=tx_hash,
            ) from exc
        except Exception as exc:
            logger.error("[ledger] %s failed: %s", name, exc)
            raise LedgerFailure(f"Failed to {name} on blockchain: {exc}", tx_hash=tx_hash) from exc

        if receipt.get("status") != 1:
            raise LedgerFailure(f"{name} transaction reverted", tx_hash=tx_hash)
        logger.info("[ledger] %s confirmed: %s (block %s)", name, tx_hash, receipt.get("blockNumber"))
        return LedgerReceipt(tx_hash=tx_hash, block_number=receipt.get("blockNumber"))
