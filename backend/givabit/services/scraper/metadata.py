from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional, Protocol

import googleapiclient.discovery
import requests
from bs4 import BeautifulSoup
from dateutil import parser as dateparse
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from givabit.core.config import Settings

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# URL sniffing
# -----------------------------------------------------------------------------
_YOUTUBE_ID_RE = re.compile(r"^.*(youtu\.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")


def extract_youtube_video_id(url: str) -> Optional[str]:
    m = _YOUTUBE_ID_RE.match(url or "")
    if m and len(m.group(2)) == 11:
        return m.group(2)
    return None


def _parse_date(text: Optional[str]) -> Optional[datetime]:
    if not text:
        return None
    try:
        return dateparse.parse(text)
    except (ValueError, OverflowError):
        return None


def empty_metadata() -> Dict[str, Any]:
    return {
        "title": None,
        "description": None,
        "author_name": None,
        "author_profile_picture_url": None,
        "content_vignette_url": None,
        "publication_date": None,
        "extracted_metadata": None,
    }


def placeholder_metadata(url: str, reason: str) -> Dict[str, Any]:
    """Degraded record used whenever extraction fails."""
    data = empty_metadata()
    video_id = extract_youtube_video_id(url)
    if video_id:
        data["title"] = f"YouTube Video (ID: {video_id})"
    else:
        data["title"] = f"Web Page at {url[:50]}..."
    data["description"] = f"Could not fetch details: {reason}"
    data["extracted_metadata"] = {"source": "placeholder", "error": reason}
    return data


class MetadataFetcher(Protocol):
    """Best-effort metadata extraction. Never raises."""

    async def fetch(self, url: str) -> Dict[str, Any]: ...


# -----------------------------------------------------------------------------
# YouTube Data API
# -----------------------------------------------------------------------------
class YouTubeFetcher:
    def __init__(self, api_key: Optional[str]) -> None:
        self.api_key = api_key

    def _client(self):
        # one Resource per lookup: its httplib2 transport must not be shared across threads
        return googleapiclient.discovery.build(
            "youtube", "v3", developerKey=self.api_key, cache_discovery=False
        )

    async def fetch(self, url: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self._fetch, url)

    def _fetch(self, url: str) -> Dict[str, Any]:
        video_id = extract_youtube_video_id(url) or "unknown_id"
        if not self.api_key:
            logger.warning("[enrich] YOUTUBE_API_KEY not configured; cannot fetch video %s", video_id)
            data = placeholder_metadata(url, "API key not configured")
            data["description"] = "API key not configured to fetch full details."
            return data
        try:
            resp = self._client().videos().list(part="snippet,contentDetails", id=video_id).execute()
            items = resp.get("items") or []
            if not items:
                raise LookupError("Video not found or API error.")
            video = items[0]
            snippet = video.get("snippet") or {}
            thumbs = snippet.get("thumbnails") or {}
            thumb = next(
                (thumbs[k]["url"] for k in ("maxres", "high", "medium", "default") if k in thumbs),
                None,
            )
            data = empty_metadata()
            data.update({
                "title": snippet.get("title"),
                "description": snippet.get("description"),
                "author_name": snippet.get("channelTitle"),
                "content_vignette_url": thumb,
                "publication_date": _parse_date(snippet.get("publishedAt")),
                "extracted_metadata": {
                    "source": "youtube",
                    "video_id": video_id,
                    "channel_id": snippet.get("channelId"),
                    "duration": (video.get("contentDetails") or {}).get("duration"),
                },
            })
            return data
        except Exception as exc:
            logger.exception("[enrich] YouTube lookup failed for %s", url)
            return placeholder_metadata(url, str(exc))


# -----------------------------------------------------------------------------
# Generic pages (OpenGraph / Twitter / <meta> tags)
# -----------------------------------------------------------------------------
class PageFetcher:
    def __init__(self, user_agent: str, *, connect_timeout: int = 6, read_timeout: int = 20) -> None:
        self.headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }
        self.timeout = (connect_timeout, read_timeout)
        self.session = requests.Session()
        retry = Retry(
            total=3,
            connect=3,
            read=3,
            backoff_factor=0.6,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=frozenset(["GET"]),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    async def fetch(self, url: str) -> Dict[str, Any]:
        return await asyncio.to_thread(self._fetch, url)

    def _fetch(self, url: str) -> Dict[str, Any]:
        try:
            resp = self.session.get(url, headers=self.headers, timeout=self.timeout)
            if resp.status_code != 200:
                raise requests.HTTPError(f"HTTP {resp.status_code}")
            return parse_page_metadata(resp.text, final_url=resp.url)
        except Exception as exc:
            logger.exception("[enrich] page metadata fetch failed for %s", url)
            return placeholder_metadata(url, str(exc))


def parse_page_metadata(html: str, *, final_url: Optional[str] = None) -> Dict[str, Any]:
    soup = BeautifulSoup(html, "html.parser")

    def meta(name: str) -> Optional[str]:
        tag = soup.find("meta", attrs={"name": name}) or soup.find("meta", attrs={"property": name})
        content = (tag.get("content") or "").strip() if tag else ""
        return content or None

    page_title = soup.title.get_text(strip=True) if soup.title else None
    title = meta("og:title") or meta("twitter:title") or page_title
    image = meta("og:image:secure_url") or meta("og:image") or meta("twitter:image")
    canonical = soup.find("link", attrs={"rel": "canonical"})

    data = empty_metadata()
    data.update({
        "title": title or "Untitled Page",
        "description": meta("og:description") or meta("twitter:description") or meta("description"),
        "author_name": meta("author") or meta("og:site_name"),
        "content_vignette_url": image,
        "publication_date": _parse_date(meta("article:published_time") or meta("og:updated_time")),
        "extracted_metadata": {
            "source": "page",
            "site_name": meta("og:site_name"),
            "type": meta("og:type"),
            "canonical_url": canonical.get("href") if canonical else None,
            "final_url": final_url,
        },
    })
    return data


# -----------------------------------------------------------------------------
# Router
# -----------------------------------------------------------------------------
class MetadataRouter:
    """Routes video-platform URLs to the YouTube fetcher, everything else to the page scraper."""

    def __init__(self, youtube: MetadataFetcher, page: MetadataFetcher) -> None:
        self.youtube = youtube
        self.page = page

    @classmethod
    def from_settings(cls, settings: Settings) -> "MetadataRouter":
        return cls(
            YouTubeFetcher(settings.YOUTUBE_API_KEY),
            PageFetcher(
                settings.USER_AGENT,
                connect_timeout=settings.SCRAPE_CONNECT_TIMEOUT,
                read_timeout=settings.SCRAPE_READ_TIMEOUT,
            ),
        )

    def for_url(self, url: str) -> MetadataFetcher:
        return self.youtube if extract_youtube_video_id(url) else self.page

    async def fetch(self, url: str) -> Dict[str, Any]:
        return await self.for_url(url).fetch(url)
