"""Read-through cache for scraped metadata and generated social copy. Only force=True refreshes."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from sqlalchemy.exc import SQLAlchemyError

from givabit.core.errors import AllProducersFailed, InvalidInput, NotFound, ProducerNotConfigured
from givabit.crud.gated_links import GatedLinkStore
from givabit.models.gated_link import GatedLink, as_row
from givabit.services.llm import CopyGenerator, SocialContent
from givabit.services.scraper.metadata import MetadataRouter, placeholder_metadata

logger = logging.getLogger(__name__)

DEFAULT_PLATFORMS = ("X", "Instagram", "Facebook", "Telegram", "Discord")
MAX_VARIATIONS = 5

_METADATA_FIELDS = (
    "description",
    "author_name",
    "author_profile_picture_url",
    "content_vignette_url",
    "publication_date",
    "extracted_metadata",
)


@dataclass
class EnrichedLink:
    record: GatedLink
    source: str  # "cache" | "fetched"


@dataclass
class SocialCopy:
    record: GatedLink
    posts: Dict[str, List[Dict[str, Any]]]
    source: str  # "cache" | "generated"
    buy_link: str


class EnrichmentCache:
    def __init__(
        self,
        store: GatedLinkStore,
        metadata: MetadataRouter,
        copy_generator: Optional[CopyGenerator] = None,
        *,
        base_url: str = "",
        platforms: Optional[List[str]] = None,
    ) -> None:
        self.store = store
        self.metadata = metadata
        self.copy_generator = copy_generator
        self.base_url = base_url.rstrip("/")
        self.platforms = list(platforms or DEFAULT_PLATFORMS)

    def buy_link(self, buy_short_code: str) -> str:
        return f"{self.base_url}/buy/{buy_short_code}"

    # ---------- metadata ----------
    async def get_enrichment(self, buy_short_code: str, force: bool = False) -> EnrichedLink:
        link = await self._load(buy_short_code)
        if not force and link.title is not None:
            logger.info("[enrich] cache hit for %s", buy_short_code)
            return EnrichedLink(record=link, source="cache")

        logger.info("[enrich] refreshing %s (force=%s): %s", buy_short_code, force, link.original_url)
        data = await self._fetch_metadata(link.original_url)

        row = as_row(link)
        row["title"] = data.get("title") or link.title
        for field in _METADATA_FIELDS:
            row[field] = data.get(field)
        return EnrichedLink(record=await self._replace(row), source="fetched")

    async def preview(self, url: str, creator_address: str) -> Dict[str, Any]:
        """Metadata for a URL that has not been registered yet. Touches nothing."""
        if not url or not creator_address:
            raise InvalidInput("Missing required fields: url, creatorAddress")
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidInput("Invalid URL format.")
        if not creator_address.startswith("0x"):
            raise InvalidInput("Invalid creatorAddress format.")

        data = await self._fetch_metadata(url)
        return {**data, "original_url": url, "creator_address": creator_address.lower()}

    # ---------- social copy ----------
    async def generate_social_copy(
        self, buy_short_code: str, force: bool = False, variations: int = 1
    ) -> SocialCopy:
        link = await self._load(buy_short_code)
        buy_link = self.buy_link(link.buy_short_code)
        if not force and link.ai_social_posts:
            logger.info("[social] cache hit for %s", buy_short_code)
            return SocialCopy(record=link, posts=link.ai_social_posts, source="cache", buy_link=buy_link)

        if self.copy_generator is None:
            raise ProducerNotConfigured("AI service not configured.")

        variations = max(1, min(int(variations or 1), MAX_VARIATIONS))
        content = SocialContent(
            title=link.title or "Exclusive Content",
            description=link.description or "Check out this amazing piece of content!",
            buy_link=buy_link,
            author_name=link.author_name,
        )
        logger.info("[social] generating for %s on %s (force=%s)", buy_short_code, ",".join(self.platforms), force)

        results = await asyncio.gather(
            *(self.copy_generator.generate(p, content, variations) for p in self.platforms),
            return_exceptions=True,
        )

        generated_at = datetime.now(timezone.utc).isoformat()
        posts: Dict[str, List[Dict[str, Any]]] = {}
        for platform, result in zip(self.platforms, results):
            if isinstance(result, BaseException):
                logger.warning("[social] %s failed for %s: %s", platform, buy_short_code, result)
                continue
            if not result:
                logger.warning("[social] %s returned no posts for %s", platform, buy_short_code)
                continue
            posts[platform.lower()] = [
                {"text": text, "generated_at": generated_at, "model_used": self.copy_generator.model}
                for text in result
            ]

        if not posts:
            raise AllProducersFailed(
                "All platform generation attempts either failed or returned no content."
            )

        row = as_row(link)
        row["ai_social_posts"] = posts
        return SocialCopy(record=await self._replace(row), posts=posts, source="generated", buy_link=buy_link)

    # ---------- helpers ----------
    async def _load(self, buy_short_code: str) -> GatedLink:
        link = await self.store.get_by_buy_short_code(buy_short_code)
        if link is None:
            raise NotFound("Link not found with the provided buy_short_code.")
        return link

    async def _fetch_metadata(self, url: str) -> Dict[str, Any]:
        try:
            return await self.metadata.fetch(url)
        except Exception as exc:
            logger.exception("[enrich] metadata producer raised for %s", url)
            return placeholder_metadata(url, str(exc))

    async def _replace(self, row: Dict[str, Any]) -> GatedLink:
        try:
            return await self.store.replace(row)
        except SQLAlchemyError:
            # serve the freshly produced data; the next call will produce again
            logger.exception("[enrich] could not persist refreshed record %s", row["link_hash"])
            return GatedLink(**row)
