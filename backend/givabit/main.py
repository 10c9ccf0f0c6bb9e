import logging
import os
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncEngine

from givabit.api.errors import install_error_handlers
from givabit.api.routes.debug import router as debug_router
from givabit.api.routes.health import router as health_router
from givabit.api.routes.links import router as links_router

from givabit.core.config import Settings, settings
from givabit.crud.gated_links import GatedLinkStore
from givabit.db.base import create_all
from givabit.db.session import build_engine, build_sessionmaker
from givabit.services.enrichment import EnrichmentCache
from givabit.services.ledger import LedgerClient, Web3LedgerClient
from givabit.services.lifecycle import LinkLifecycleManager
from givabit.services.llm import CopyGenerator, build_copy_generator
from givabit.services.scraper.metadata import MetadataRouter
from givabit.services.shortcode import ShortCodeAllocator

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def _parse_origins(env_value: str) -> list[str]:
    if not env_value:
        return []
    raw = [p.strip() for p in env_value.replace("\n", ",").split(",")]
    cleaned = []
    for v in raw:
        if not v:
            continue
        v = v.rstrip("/")
        if v not in cleaned:
            cleaned.append(v)
    return cleaned


def wire(
    app: FastAPI,
    *,
    engine: AsyncEngine,
    ledger: LedgerClient,
    metadata: MetadataRouter,
    copy_generator: Optional[CopyGenerator],
    cfg: Settings = settings,
) -> None:
    """Build the shared handles once and hang them on app.state."""
    store = GatedLinkStore(build_sessionmaker(engine))
    app.state.engine = engine
    app.state.ledger = ledger
    app.state.lifecycle = LinkLifecycleManager(
        store,
        ledger,
        allocator=ShortCodeAllocator(cfg.SHORT_CODE_LENGTH),
        max_attempts=cfg.SHORT_CODE_MAX_ATTEMPTS,
        confirm_timeout=cfg.LEDGER_CONFIRM_TIMEOUT,
    )
    app.state.enrichment = EnrichmentCache(
        store,
        metadata,
        copy_generator,
        base_url=cfg.GIVABIT_BASE_URL,
        platforms=cfg.social_platforms_list,
    )


app = FastAPI(title="GivaBit Gated Links API", version="1.0")

allowed_origins = _parse_origins(os.getenv("CORS_ORIGIN", "")) or settings.cors_origins_list

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"],
    allow_headers=["*"],
)

install_error_handlers(app)

app.include_router(health_router, tags=["health"])
app.include_router(links_router, tags=["links"])
app.include_router(debug_router, prefix="/api/debug", tags=["debug"])


@app.on_event("startup")
async def _startup() -> None:
    engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    await create_all(engine)
    wire(
        app,
        engine=engine,
        ledger=Web3LedgerClient.from_settings(settings),
        metadata=MetadataRouter.from_settings(settings),
        copy_generator=build_copy_generator(settings.OPENAI_API_KEY, settings.SOCIAL_LLM_MODEL),
    )
    logger.info("[startup] base url %s, CORS allow_origins=%s", settings.GIVABIT_BASE_URL, allowed_origins)


@app.on_event("shutdown")
async def _shutdown() -> None:
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.dispose()
