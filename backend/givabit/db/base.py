from sqlalchemy.ext.asyncio import AsyncEngine

from givabit.models.base import Base


def _import_models() -> None:
    """Import all models so their metadata is registered on Base."""
    import givabit.models.gated_link     # noqa: F401


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables for the registered models."""
    _import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
