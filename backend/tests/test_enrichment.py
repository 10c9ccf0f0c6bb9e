"""Read-through metadata cache and per-platform social copy."""
import pytest
from sqlalchemy.exc import OperationalError

from givabit.core.errors import AllProducersFailed, InvalidInput, NotFound, ProducerNotConfigured
from givabit.services.enrichment import EnrichmentCache
from givabit.services.scraper.metadata import MetadataRouter

YOUTUBE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


async def _create(lifecycle, url="https://example.com/a", title=None):
    return (await lifecycle.create_link(url, "100", "0xABC", title)).record


async def test_create_then_enrich_keeps_immutable_fields(lifecycle, enrichment):
    record = await _create(lifecycle)

    result = await enrichment.get_enrichment(record.buy_short_code)

    enriched = result.record
    assert result.source == "fetched"
    assert enriched.id == record.id
    assert enriched.original_url == "https://example.com/a"
    assert enriched.link_hash == record.link_hash
    assert enriched.buy_short_code == record.buy_short_code
    assert enriched.access_short_code == record.access_short_code
    assert enriched.creator_address == "0xabc"
    assert enriched.price_in_smallest_unit == "100"
    assert enriched.creation_tx_hash == record.creation_tx_hash
    assert enriched.is_active is True
    assert enriched.title == "Fetched title"


async def test_second_read_is_served_from_cache(lifecycle, enrichment, page_fetcher):
    record = await _create(lifecycle)

    first = await enrichment.get_enrichment(record.buy_short_code)
    second = await enrichment.get_enrichment(record.buy_short_code)

    assert first.source == "fetched"
    assert second.source == "cache"
    assert second.record.title == first.record.title
    assert len(page_fetcher.calls) == 1


async def test_title_given_at_creation_counts_as_enriched(lifecycle, enrichment, page_fetcher):
    record = await _create(lifecycle, title="Creator title")

    result = await enrichment.get_enrichment(record.buy_short_code)

    assert result.source == "cache"
    assert result.record.title == "Creator title"
    assert page_fetcher.calls == []


async def test_force_always_invokes_producer(lifecycle, enrichment, page_fetcher):
    record = await _create(lifecycle, title="Creator title")

    for _ in range(3):
        result = await enrichment.get_enrichment(record.buy_short_code, force=True)
        assert result.source == "fetched"

    assert len(page_fetcher.calls) == 3


async def test_fetcher_exception_degrades_to_placeholder(lifecycle, enrichment, page_fetcher, store):
    record = await _create(lifecycle, url="https://bad.example")
    page_fetcher.error = RuntimeError("net::ERR_NAME_NOT_RESOLVED")

    result = await enrichment.get_enrichment(record.buy_short_code)

    assert result.record.title == "Web Page at https://bad.example..."
    assert "ERR_NAME_NOT_RESOLVED" in result.record.description
    stored = await store.get_by_hash(record.link_hash)
    assert stored.title == result.record.title


async def test_youtube_urls_use_video_fetcher(lifecycle, enrichment, youtube_fetcher, page_fetcher):
    record = await _create(lifecycle, url=YOUTUBE_URL)

    result = await enrichment.get_enrichment(record.buy_short_code)

    assert result.record.title == "Video title"
    assert youtube_fetcher.calls == [YOUTUBE_URL]
    assert page_fetcher.calls == []


async def test_empty_fetched_title_keeps_existing_title(lifecycle, enrichment, page_fetcher):
    record = await _create(lifecycle, title="Creator title")
    page_fetcher.data["title"] = None

    result = await enrichment.get_enrichment(record.buy_short_code, force=True)

    assert result.record.title == "Creator title"
    assert result.record.description == "Fetched description"


async def test_replace_carries_latest_status(lifecycle, enrichment, store):
    record = await _create(lifecycle)
    change = await lifecycle.set_activity(record.link_hash, False)

    result = await enrichment.get_enrichment(record.buy_short_code, force=True)

    assert result.record.is_active is False
    assert result.record.status_update_tx_hash == change.tx_hash
    stored = await store.get_by_hash(record.link_hash)
    assert stored.is_active is False
    assert stored.status_update_tx_hash == change.tx_hash
    assert stored.creation_tx_hash == record.creation_tx_hash
    assert stored.id == record.id


async def test_persist_failure_serves_fresh_data_unsaved(lifecycle, enrichment, page_fetcher, store, monkeypatch):
    record = await _create(lifecycle)

    async def db_down(row):
        raise OperationalError("statement", {}, Exception("database is locked"))

    monkeypatch.setattr(enrichment.store, "replace", db_down)

    first = await enrichment.get_enrichment(record.buy_short_code)
    second = await enrichment.get_enrichment(record.buy_short_code)

    assert first.source == "fetched"
    assert first.record.title == "Fetched title"
    assert second.source == "fetched"
    assert len(page_fetcher.calls) == 2
    assert (await store.get_by_hash(record.link_hash)).title is None


async def test_unknown_short_code(enrichment):
    with pytest.raises(NotFound):
        await enrichment.get_enrichment("nope123")
    with pytest.raises(NotFound):
        await enrichment.generate_social_copy("nope123")


async def test_access_code_is_not_a_buy_code(lifecycle, enrichment):
    record = await _create(lifecycle)
    with pytest.raises(NotFound):
        await enrichment.get_enrichment(record.access_short_code)


async def test_preview_does_not_touch_store(enrichment, page_fetcher, store):
    data = await enrichment.preview("https://example.com/new", "0xDEF")

    assert data["creator_address"] == "0xdef"
    assert data["original_url"] == "https://example.com/new"
    assert data["title"] == "Fetched title"
    assert await store.list_by_creator("0xdef") == []


@pytest.mark.parametrize(
    "url,creator",
    [("not a url", "0xabc"), ("ftp://example.com/x", "0xabc"), ("https://example.com", "abc"), ("", "0xabc")],
)
async def test_preview_validation(enrichment, page_fetcher, url, creator):
    with pytest.raises(InvalidInput):
        await enrichment.preview(url, creator)
    assert page_fetcher.calls == []


# ---------- social copy ----------
async def test_partial_platform_failure_keeps_successes(lifecycle, enrichment, copy_generator, store):
    record = await _create(lifecycle, title="Great video")
    copy_generator.failing = {"Instagram", "Discord"}

    result = await enrichment.generate_social_copy(record.buy_short_code)

    assert result.source == "generated"
    assert set(result.posts) == {"x", "facebook", "telegram"}
    post = result.posts["x"][0]
    assert post["model_used"] == "fake-model"
    assert "Great video" in post["text"]
    assert result.buy_link in post["text"]
    assert sorted(copy_generator.calls) == sorted(["X", "Instagram", "Facebook", "Telegram", "Discord"])

    stored = await store.get_by_hash(record.link_hash)
    assert set(stored.ai_social_posts) == {"x", "facebook", "telegram"}


async def test_social_copy_is_cached(lifecycle, enrichment, copy_generator):
    record = await _create(lifecycle)

    first = await enrichment.generate_social_copy(record.buy_short_code)
    second = await enrichment.generate_social_copy(record.buy_short_code)

    assert first.source == "generated"
    assert second.source == "cache"
    assert second.posts == first.posts
    assert len(copy_generator.calls) == 5


async def test_social_copy_force_regenerates(lifecycle, enrichment, copy_generator):
    record = await _create(lifecycle)

    await enrichment.generate_social_copy(record.buy_short_code)
    again = await enrichment.generate_social_copy(record.buy_short_code, force=True, variations=2)

    assert again.source == "generated"
    assert len(again.posts["telegram"]) == 2
    assert len(copy_generator.calls) == 10


async def test_empty_platform_output_is_omitted(lifecycle, enrichment, copy_generator):
    record = await _create(lifecycle)
    copy_generator.empty = {"X"}

    result = await enrichment.generate_social_copy(record.buy_short_code)

    assert "x" not in result.posts
    assert len(result.posts) == 4


async def test_all_platforms_failing(lifecycle, enrichment, copy_generator, store):
    record = await _create(lifecycle)
    copy_generator.failing = {"X", "Instagram", "Facebook"}
    copy_generator.empty = {"Telegram", "Discord"}

    with pytest.raises(AllProducersFailed):
        await enrichment.generate_social_copy(record.buy_short_code)

    stored = await store.get_by_hash(record.link_hash)
    assert stored.ai_social_posts is None


async def test_social_copy_without_generator(lifecycle, store, youtube_fetcher, page_fetcher):
    cache = EnrichmentCache(store, MetadataRouter(youtube_fetcher, page_fetcher), None)
    record = await _create(lifecycle)

    with pytest.raises(ProducerNotConfigured):
        await cache.generate_social_copy(record.buy_short_code)


async def test_social_copy_does_not_clobber_metadata(lifecycle, enrichment):
    record = await _create(lifecycle)
    await enrichment.get_enrichment(record.buy_short_code)

    result = await enrichment.generate_social_copy(record.buy_short_code)

    assert result.record.title == "Fetched title"
    assert result.record.description == "Fetched description"
    cached = await enrichment.get_enrichment(record.buy_short_code)
    assert cached.source == "cache"
    assert cached.record.ai_social_posts == result.posts
