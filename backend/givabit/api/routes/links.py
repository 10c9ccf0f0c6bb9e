import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import RedirectResponse

from givabit.api.deps import get_enrichment, get_lifecycle
from givabit.core.config import settings
from givabit.models.gated_link import GatedLink
from givabit.schemas.links import (
    BuyDetailsOut,
    CreatorLinkOut,
    CreatorLinksOut,
    GatedLinkCreate,
    GatedLinkCreated,
    LinkIntent,
    LinkIntentOut,
    LinkStatusOut,
    LinkStatusUpdate,
    MetadataOut,
    SocialPostsOut,
)
from givabit.services.enrichment import EnrichmentCache
from givabit.services.lifecycle import LinkLifecycleManager

logger = logging.getLogger(__name__)
router = APIRouter()


def _metadata_out(link: GatedLink, source: str) -> MetadataOut:
    return MetadataOut(
        linkId=link.link_hash,
        buyShortCode=link.buy_short_code,
        originalUrl=link.original_url,
        title=link.title,
        description=link.description,
        authorName=link.author_name or None,
        authorProfilePictureUrl=link.author_profile_picture_url,
        contentVignetteUrl=link.content_vignette_url,
        publicationDate=link.publication_date,
        creatorAddress=link.creator_address,
        priceInERC20=link.price_in_smallest_unit,
        isActive=link.is_active,
        source=source,
    )


# ---------- lifecycle ----------
@router.post("/create-gated-link", response_model=GatedLinkCreated, status_code=status.HTTP_201_CREATED)
async def create_gated_link(
    payload: GatedLinkCreate,
    lifecycle: LinkLifecycleManager = Depends(get_lifecycle),
    enrichment: EnrichmentCache = Depends(get_enrichment),
):
    created = await lifecycle.create_link(
        payload.url,
        None if payload.priceInERC20 is None else str(payload.priceInERC20),
        payload.creatorAddress,
        payload.title,
        metadata={
            "description": payload.description,
            "author_name": payload.authorName,
            "author_profile_picture_url": payload.authorProfilePictureUrl,
            "content_vignette_url": payload.contentVignetteUrl,
            "publication_date": payload.publicationDate,
        },
    )
    link = created.record
    return GatedLinkCreated(
        linkId=link.link_hash,
        buyShortCode=link.buy_short_code,
        accessShortCode=link.access_short_code,
        originalUrl=link.original_url,
        title=link.title,
        creatorAddress=link.creator_address,
        priceInERC20=link.price_in_smallest_unit,
        isActive=link.is_active,
        transactionHash=created.tx_hash,
        shareableBuyLink=enrichment.buy_link(link.buy_short_code),
        description=link.description,
        authorName=link.author_name,
        authorProfilePictureUrl=link.author_profile_picture_url,
        contentVignetteUrl=link.content_vignette_url,
        publicationDate=link.publication_date,
    )


@router.patch("/links/{link_hash}/status", response_model=LinkStatusOut)
async def update_link_status(
    link_hash: str,
    payload: LinkStatusUpdate,
    lifecycle: LinkLifecycleManager = Depends(get_lifecycle),
):
    if payload.isActive is None:
        raise HTTPException(status_code=400, detail="Invalid request body: isActive (boolean) is required.")
    change = await lifecycle.set_activity(link_hash, payload.isActive)
    return LinkStatusOut(linkId=change.link_hash, isActive=change.is_active, transactionHash=change.tx_hash)


@router.get("/links/creator/{creator_address}", response_model=CreatorLinksOut)
async def links_by_creator(
    creator_address: str,
    lifecycle: LinkLifecycleManager = Depends(get_lifecycle),
    enrichment: EnrichmentCache = Depends(get_enrichment),
):
    links = await lifecycle.list_by_creator(creator_address)
    return CreatorLinksOut(
        links=[
            CreatorLinkOut(
                linkId=r.link_hash,
                buyShortCode=r.buy_short_code,
                accessShortCode=r.access_short_code,
                originalUrl=r.original_url,
                title=r.title,
                priceInERC20=r.price_in_smallest_unit,
                isActive=r.is_active,
                createdAt=r.created_at,
                shareableBuyLink=enrichment.buy_link(r.buy_short_code),
                contentVignetteUrl=r.content_vignette_url,
                description=r.description or None,
                authorName=r.author_name or None,
            )
            for r in links
        ]
    )


# ---------- routing ----------
@router.get("/content/{access_short_code}")
async def content_redirect(access_short_code: str, lifecycle: LinkLifecycleManager = Depends(get_lifecycle)):
    # TODO: check on-chain access (checkAccess) for the caller once wallet auth exists
    link = await lifecycle.get_by_access_short_code(access_short_code)
    if not link.is_active:
        raise HTTPException(status_code=403, detail="This link is currently inactive.")
    return RedirectResponse(link.original_url, status_code=302)


@router.get("/buy/{buy_short_code}", response_model=BuyDetailsOut)
async def buy_details(buy_short_code: str, lifecycle: LinkLifecycleManager = Depends(get_lifecycle)):
    link = await lifecycle.get_by_buy_short_code(buy_short_code)
    if not link.is_active:
        raise HTTPException(status_code=403, detail="This link is currently inactive and cannot be purchased.")
    return BuyDetailsOut(
        linkId=link.link_hash,
        buyShortCode=link.buy_short_code,
        title=link.title,
        creatorAddress=link.creator_address,
        priceInERC20=link.price_in_smallest_unit,
        paymentContractAddress=settings.CONTRACT_ADDRESS,
        isActiveOnDb=link.is_active,
    )


# ---------- enrichment ----------
@router.get("/metadata/{buy_short_code}", response_model=MetadataOut)
async def link_metadata(
    buy_short_code: str,
    force: bool = Query(False),
    enrichment: EnrichmentCache = Depends(get_enrichment),
):
    result = await enrichment.get_enrichment(buy_short_code, force=force)
    return _metadata_out(result.record, result.source)


@router.post("/create-link-intent", response_model=LinkIntentOut)
async def create_link_intent(payload: LinkIntent, enrichment: EnrichmentCache = Depends(get_enrichment)):
    logger.info("[links] link intent for %s by %s", payload.url, payload.creatorAddress)
    data = await enrichment.preview(payload.url or "", payload.creatorAddress or "")
    return LinkIntentOut(
        originalUrl=data["original_url"],
        creatorAddress=data["creator_address"],
        title=data.get("title"),
        description=data.get("description"),
        authorName=data.get("author_name"),
        authorProfilePictureUrl=data.get("author_profile_picture_url"),
        contentVignetteUrl=data.get("content_vignette_url"),
        publicationDate=data.get("publication_date"),
    )


@router.get("/social/{buy_short_code}", response_model=SocialPostsOut)
async def social_posts(
    buy_short_code: str,
    force: bool = Query(False),
    variations: Optional[int] = Query(1, ge=1, le=5),
    enrichment: EnrichmentCache = Depends(get_enrichment),
):
    copy = await enrichment.generate_social_copy(buy_short_code, force=force, variations=variations or 1)
    return SocialPostsOut(
        linkId=copy.record.link_hash,
        buyShortCode=copy.record.buy_short_code,
        shareableBuyLink=copy.buy_link,
        socialPosts=copy.posts,
        source=copy.source,
    )
