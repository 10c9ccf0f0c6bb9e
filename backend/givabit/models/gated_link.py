# givabit/models/gated_link.py
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from givabit.models.base import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class GatedLink(Base):
    __tablename__ = "gated_links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    original_url = Column(Text, nullable=False)

    # keccak256(original_url), the contract-side bytes32 link id
    link_hash = Column(String(66), unique=True, nullable=False)
    buy_short_code = Column(String(32), unique=True, nullable=False)
    access_short_code = Column(String(32), unique=True, nullable=False)

    # enrichment (scraped / generated)
    title = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    author_name = Column(Text, nullable=True)
    author_profile_picture_url = Column(Text, nullable=True)
    content_vignette_url = Column(Text, nullable=True)
    publication_date = Column(DateTime(timezone=True), nullable=True)
    extracted_metadata = Column(JSON, nullable=True)
    ai_social_posts = Column(JSON, nullable=True)

    # always stored lower-cased
    creator_address = Column(String(64), index=True, nullable=False)
    price_in_smallest_unit = Column(String(80), nullable=False)

    creation_tx_hash = Column(String(80), nullable=True)
    status_update_tx_hash = Column(String(80), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)


ENRICHMENT_FIELDS = (
    "title",
    "description",
    "author_name",
    "author_profile_picture_url",
    "content_vignette_url",
    "publication_date",
    "extracted_metadata",
    "ai_social_posts",
)


def as_row(link: GatedLink) -> dict:
    """Column values of ``link`` keyed by column name."""
    return {c.name: getattr(link, c.key) for c in GatedLink.__table__.columns}
