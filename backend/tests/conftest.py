"""Pytest configuration and fixtures."""
import asyncio
from typing import Any, Dict, List, Optional

import httpx
import pytest

from givabit.core.errors import LedgerFailure
from givabit.crud.gated_links import GatedLinkStore
from givabit.db.base import create_all
from givabit.db.session import build_engine, build_sessionmaker
from givabit.services.enrichment import EnrichmentCache
from givabit.services.ledger import LedgerLinkDetails, LedgerReceipt
from givabit.services.lifecycle import LinkLifecycleManager
from givabit.services.llm import SocialContent
from givabit.services.scraper.metadata import MetadataRouter

BASE_URL = "https://givabit.test"


class FakeLedger:
    """In-memory contract: records calls, can be told to fail or stall."""

    def __init__(self) -> None:
        self.calls: List[tuple] = []
        self.links: Dict[str, LedgerLinkDetails] = {}
        self.error: Optional[Exception] = None
        self.delay = 0.0
        self._tx = 0

    def _receipt(self) -> LedgerReceipt:
        self._tx += 1
        return LedgerReceipt(tx_hash=f"0x{self._tx:064x}", block_number=self._tx)

    async def _settle(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def create_link(self, link_hash: str, creator_address: str, price: str, active: bool) -> LedgerReceipt:
        self.calls.append(("create_link", link_hash, creator_address, price, active))
        await self._settle()
        self.links[link_hash] = LedgerLinkDetails(link_hash, creator_address.lower(), price, active)
        return self._receipt()

    async def set_activity(self, link_hash: str, is_active: bool) -> LedgerReceipt:
        self.calls.append(("set_activity", link_hash, is_active))
        await self._settle()
        old = self.links[link_hash]
        self.links[link_hash] = LedgerLinkDetails(link_hash, old.creator_address, old.price_in_smallest_unit, is_active)
        return self._receipt()

    async def get_details(self, link_hash: str) -> LedgerLinkDetails:
        if link_hash not in self.links:
            raise LedgerFailure("link does not exist on chain")
        return self.links[link_hash]


class FakeFetcher:
    def __init__(self, title: Optional[str] = "Fetched title") -> None:
        self.calls: List[str] = []
        self.error: Optional[Exception] = None
        self.data: Dict[str, Any] = {
            "title": title,
            "description": "Fetched description",
            "author_name": "Some Author",
            "author_profile_picture_url": None,
            "content_vignette_url": "https://cdn.example.com/thumb.jpg",
            "publication_date": None,
            "extracted_metadata": {"source": "fake"},
        }

    async def fetch(self, url: str) -> Dict[str, Any]:
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return dict(self.data)


class FakeCopyGenerator:
    model = "fake-model"

    def __init__(self) -> None:
        self.calls: List[str] = []
        self.failing: set = set()
        self.empty: set = set()

    async def generate(self, platform: str, content: SocialContent, variations: int = 1) -> List[str]:
        self.calls.append(platform)
        await asyncio.sleep(0)
        if platform in self.failing:
            raise RuntimeError(f"{platform} quota exceeded")
        if platform in self.empty:
            return []
        return [f"{platform} #{i + 1}: {content.title} {content.buy_link}" for i in range(variations)]


@pytest.fixture
async def engine(tmp_path):
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'givabit-test.sqlite3'}")
    await create_all(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def store(engine) -> GatedLinkStore:
    return GatedLinkStore(build_sessionmaker(engine))


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def lifecycle(store, ledger) -> LinkLifecycleManager:
    return LinkLifecycleManager(store, ledger, confirm_timeout=5)


@pytest.fixture
def page_fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def youtube_fetcher() -> FakeFetcher:
    return FakeFetcher(title="Video title")


@pytest.fixture
def copy_generator() -> FakeCopyGenerator:
    return FakeCopyGenerator()


@pytest.fixture
def enrichment(store, youtube_fetcher, page_fetcher, copy_generator) -> EnrichmentCache:
    return EnrichmentCache(
        store,
        MetadataRouter(youtube_fetcher, page_fetcher),
        copy_generator,
        base_url=BASE_URL,
    )


@pytest.fixture
async def client(engine, ledger, youtube_fetcher, page_fetcher, copy_generator):
    from givabit.main import app, wire

    wire(
        app,
        engine=engine,
        ledger=ledger,
        metadata=MetadataRouter(youtube_fetcher, page_fetcher),
        copy_generator=copy_generator,
    )
    app.state.enrichment.base_url = BASE_URL
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
