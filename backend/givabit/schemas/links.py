from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, StrictBool


# ---------- IN MODELS ----------
# required fields are checked by the lifecycle manager so a missing field is a 400, not a 422
class GatedLinkCreate(BaseModel):
    url: Optional[str] = None
    priceInERC20: Optional[Union[int, str]] = None
    creatorAddress: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    authorName: Optional[str] = None
    authorProfilePictureUrl: Optional[str] = None
    contentVignetteUrl: Optional[str] = None
    publicationDate: Optional[datetime] = None

    class Config:
        extra = "ignore"


class LinkStatusUpdate(BaseModel):
    isActive: Optional[StrictBool] = None


class LinkIntent(BaseModel):
    url: Optional[str] = None
    creatorAddress: Optional[str] = None


# ---------- OUT MODELS ----------
class GatedLinkCreated(BaseModel):
    linkId: str
    buyShortCode: str
    accessShortCode: str
    originalUrl: str
    title: Optional[str] = None
    creatorAddress: str
    priceInERC20: str
    isActive: bool
    transactionHash: str
    shareableBuyLink: str
    description: Optional[str] = None
    authorName: Optional[str] = None
    authorProfilePictureUrl: Optional[str] = None
    contentVignetteUrl: Optional[str] = None
    publicationDate: Optional[datetime] = None


class LinkStatusOut(BaseModel):
    linkId: str
    isActive: bool
    message: str = "Link status updated successfully."
    transactionHash: str


class BuyDetailsOut(BaseModel):
    linkId: str
    buyShortCode: str
    title: Optional[str] = None
    creatorAddress: str
    priceInERC20: str
    paymentContractAddress: Optional[str] = None
    isActiveOnDb: bool


class CreatorLinkOut(BaseModel):
    linkId: str
    buyShortCode: str
    accessShortCode: str
    originalUrl: str
    title: Optional[str] = None
    priceInERC20: str
    isActive: bool
    createdAt: Optional[datetime] = None
    shareableBuyLink: str
    contentVignetteUrl: Optional[str] = None
    description: Optional[str] = None
    authorName: Optional[str] = None


class CreatorLinksOut(BaseModel):
    links: List[CreatorLinkOut]


class MetadataOut(BaseModel):
    linkId: str
    buyShortCode: str
    originalUrl: str
    title: Optional[str] = None
    description: Optional[str] = None
    authorName: Optional[str] = None
    authorProfilePictureUrl: Optional[str] = None
    contentVignetteUrl: Optional[str] = None
    publicationDate: Optional[datetime] = None
    creatorAddress: str
    priceInERC20: str
    isActive: bool
    source: str


class LinkIntentOut(BaseModel):
    originalUrl: str
    creatorAddress: str
    title: Optional[str] = None
    description: Optional[str] = None
    authorName: Optional[str] = None
    authorProfilePictureUrl: Optional[str] = None
    contentVignetteUrl: Optional[str] = None
    publicationDate: Optional[datetime] = None
    status: str = "metadata_extracted"


class SocialPost(BaseModel):
    text: str
    generated_at: str
    model_used: str

    class Config:
        protected_namespaces = ()  # allow the "model_used" field name


class SocialPostsOut(BaseModel):
    linkId: str
    buyShortCode: str
    shareableBuyLink: str
    socialPosts: Dict[str, List[SocialPost]]
    source: str
