"""
Database Schemas for the Payment Link Marketplace

Each Pydantic model represents a MongoDB collection or an embedded record.
Collection names: Link -> "links", Bid -> "bids", Product -> "products",
Seller -> "sellers", Order -> "orders".

Field names follow the wire format used by the frontend (camelCase ids,
``*_cents`` integer amounts).
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal, Dict, Any
from datetime import datetime

AUCTION_ACTIVE = "active"
AUCTION_FINALIZED = "finalized"

# keeps amounts and amount + increment inside a signed 64-bit Mongo int
MAX_AMOUNT_CENTS = 10 ** 12


class DigitalDownload(BaseModel):
    """Snapshot of a deliverable file"""
    storagePath: Optional[str] = Field(None, description="Object path in file storage")
    contentUrl: Optional[str] = Field(None, description="Direct content URL, if hosted elsewhere")
    filename: Optional[str] = Field(None, description="Name shown to the buyer")
    contentType: Optional[str] = Field(None, description="MIME type")
    size: Optional[int] = Field(None, ge=0, description="Size in bytes")


class Winner(BaseModel):
    email: str
    bidId: str
    amount_cents: int = Field(..., ge=0)


class Auction(BaseModel):
    """Bidding configuration and outcome, embedded in a Link"""
    enabled: bool = Field(False, description="Whether bidding is on for the link")
    endsAt: datetime = Field(..., description="Authoritative close time")
    startingPrice_cents: int = Field(0, ge=0, le=MAX_AMOUNT_CENTS, description="Floor for the first bid")
    minIncrement_cents: int = Field(100, ge=0, le=MAX_AMOUNT_CENTS, description="Minimum gap between successive bids")
    status: Literal["active", "finalized"] = Field(AUCTION_ACTIVE)
    winner: Optional[Winner] = Field(None, description="Set once, at finalization")


class Link(BaseModel):
    """One shareable checkout instance for a product"""
    linkId: str = Field(..., description="Upper-cased public identifier")
    productId: str
    sellerId: str
    expiresAt: Optional[datetime] = None
    active: bool = True
    price_cents: Optional[int] = Field(None, ge=0, le=MAX_AMOUNT_CENTS, description="Fixed amount overriding the product price")
    buyerEmail: Optional[str] = Field(None, description="Prefilled buyer for winner follow-up links")
    parentLinkId: Optional[str] = Field(None, description="Auction link a follow-up link was issued for")
    digitalDownload: Optional[DigitalDownload] = None
    auction: Optional[Auction] = None


class Bid(BaseModel):
    """A bid placed on an auction link"""
    linkId: str = Field(..., description="Link the bid belongs to")
    email: str = Field(..., description="Bidder email")
    amount_cents: int = Field(..., ge=0, le=MAX_AMOUNT_CENTS, description="Bid amount in minor units")
    createdAt: datetime


class Product(BaseModel):
    sellerId: str
    title: str = Field(..., min_length=1)
    description: str = ""
    price_cents: int = Field(..., gt=0)
    currency: str = Field("usd", description="ISO currency code, lower-cased")
    image_url: Optional[str] = None
    inventory: Optional[int] = Field(None, ge=0)
    active: bool = True
    digitalDownload: Optional[DigitalDownload] = None


class Seller(BaseModel):
    email: str
    stripeAccountId: Optional[str] = None
    stripeAccountStatus: Dict[str, Any] = Field(default_factory=dict)
    country: Optional[str] = None
    businessProfile: Optional[Dict[str, Any]] = None
    active: bool = True


class Order(BaseModel):
    orderId: str
    checkoutSessionId: str
    linkId: Optional[str] = None
    productId: Optional[str] = None
    sellerId: Optional[str] = None
    amount_total: int = 0
    currency: Optional[str] = None
    buyer_email: Optional[str] = None
    status: str = "completed"


# ----- request bodies -----

def _normalize_email(value: str) -> str:
    value = (value or "").strip().lower()
    if not value or "@" not in value:
        raise ValueError("a valid email is required")
    return value


class PlaceBidRequest(BaseModel):
    linkId: str = Field(..., min_length=1)
    email: str
    amount_cents: int = Field(..., ge=0, le=MAX_AMOUNT_CENTS, strict=True, description="Bid in minor units")

    @field_validator("linkId")
    @classmethod
    def _upper_link_id(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("linkId is required")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalize_email(v)


class AuctionConfig(BaseModel):
    enabled: bool = False
    endsAt: Optional[datetime] = None
    startingPrice_cents: Optional[int] = Field(None, ge=0, le=MAX_AMOUNT_CENTS, strict=True)
    minIncrement_cents: Optional[int] = Field(None, ge=0, le=MAX_AMOUNT_CENTS, strict=True)


class CreateLinkRequest(BaseModel):
    productId: str = Field(..., min_length=1)
    sellerId: str = Field(..., min_length=1)
    expiresAt: Optional[datetime] = None
    digitalDownload: Optional[DigitalDownload] = None
    auction: Optional[AuctionConfig] = None


class CreateProductRequest(BaseModel):
    sellerId: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    price_cents: int = Field(..., gt=0, le=MAX_AMOUNT_CENTS, strict=True)
    currency: Optional[str] = None
    image_url: Optional[str] = None
    inventory: Optional[int] = Field(None, ge=0, le=MAX_AMOUNT_CENTS)
    digitalDownload: Optional[DigitalDownload] = None


class OnboardSellerRequest(BaseModel):
    sellerId: Optional[str] = None
    email: str
    business_type: Optional[str] = None
    country: Optional[str] = None
    business_profile: Optional[Dict[str, Any]] = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalize_email(v)


class CheckoutSessionRequest(BaseModel):
    linkId: str = Field(..., min_length=1)
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class AssociateProductRequest(BaseModel):
    sellerId: str = Field(..., min_length=1)
