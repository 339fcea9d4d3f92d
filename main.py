import os
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from starlette.concurrency import run_in_threadpool

import auction
import errors
import payments
from config import Config, setup_logging
from database import as_utc, clean, create_document, ensure_indexes, generate_id, get_db, get_documents, utcnow
from errors import ApiError
from schemas import (
    AUCTION_ACTIVE,
    AUCTION_FINALIZED,
    AssociateProductRequest,
    CheckoutSessionRequest,
    CreateLinkRequest,
    CreateProductRequest,
    OnboardSellerRequest,
    PlaceBidRequest,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    try:
        ensure_indexes(get_db())
    except Exception:
        logger.exception("Could not ensure MongoDB indexes")
    yield


app = FastAPI(title="Payment Link Marketplace API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ApiError)
async def handle_api_error(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    details = [{"loc": list(e.get("loc", [])), "msg": e.get("msg")} for e in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={"error": errors.VALIDATION, "message": "invalid request", "details": details},
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": errors.INTERNAL, "message": "internal error"})


def page_url(link_id: str) -> str:
    return f"{Config.FRONTEND_BASE_URL.rstrip('/')}/p/{link_id}"


@app.get("/")
def read_root():
    return {"message": "Payment Link Marketplace API is running"}


# ----- sellers -----

@app.post("/api/sellers/onboard")
def onboard_seller(payload: OnboardSellerRequest, db: Database = Depends(get_db)):
    """Create a Stripe Express account for the seller and return its onboarding link"""
    account = payments.create_connected_account(
        payload.email, payload.country, payload.business_type, payload.business_profile,
    )
    seller_id = payload.sellerId or generate_id(10)
    seller_doc = {
        "sellerId": seller_id,
        "email": payload.email,
        "stripeAccountId": account["id"],
        "stripeAccountStatus": account.get("capabilities") or {},
        "businessProfile": payload.business_profile,
        "country": account.get("country"),
        "active": True,
        "createdAt": utcnow(),
    }
    db["sellers"].replace_one({"_id": seller_id}, seller_doc, upsert=True)
    account_link = payments.create_onboarding_link(account["id"], seller_id)
    logger.info("Seller %s onboarding started with account %s", seller_id, account["id"])
    return {"sellerId": seller_id, "stripeAccountId": account["id"], "accountLink": account_link}


@app.get("/api/sellers/{seller_id}")
def get_seller(seller_id: str, db: Database = Depends(get_db)):
    seller = db["sellers"].find_one({"_id": seller_id})
    if not seller:
        raise errors.not_found("seller")
    return {"seller": clean(seller)}


@app.get("/api/sellers/{seller_id}/metrics")
def get_seller_metrics(seller_id: str, db: Database = Depends(get_db)):
    """Stripe balance, recent payment intents and per-product sales for a seller"""
    seller = db["sellers"].find_one({"_id": seller_id})
    if not seller:
        raise errors.not_found("seller")
    if not seller.get("stripeAccountId"):
        raise ApiError(errors.VALIDATION, "seller has no stripe account")

    balance = payments.retrieve_balance(seller["stripeAccountId"])
    recent_payments = payments.list_payment_intents(seller["stripeAccountId"], limit=20)

    orders = [clean(o) for o in get_documents(db, "orders", {"sellerId": seller_id}, limit=0)]
    sales_by_product = {}
    for o in orders:
        stats = sales_by_product.setdefault(o.get("productId"), {"count": 0, "revenue_cents": 0})
        stats["count"] += 1
        stats["revenue_cents"] += o.get("amount_total") or 0

    return {
        "stripe": {"balance": balance, "recentPaymentIntents": recent_payments},
        "orders": orders,
        "salesByProduct": sales_by_product,
    }


# ----- products -----

@app.post("/api/products")
def create_product(payload: CreateProductRequest, db: Database = Depends(get_db)):
    product_id = generate_id(10)
    product = {
        "productId": product_id,
        "sellerId": payload.sellerId,
        "title": payload.title,
        "description": payload.description or "",
        "price_cents": payload.price_cents,
        "currency": (payload.currency or "usd").lower(),
        "image_url": payload.image_url,
        "inventory": payload.inventory,
        "digitalDownload": payload.digitalDownload.model_dump() if payload.digitalDownload else None,
        "active": True,
    }
    create_document(db, "products", product, doc_id=product_id)
    return {"product": clean(db["products"].find_one({"_id": product_id}))}


@app.get("/api/products/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    product = db["products"].find_one({"_id": product_id})
    if not product:
        raise errors.not_found("product")
    return {"product": clean(product)}


@app.post("/api/products/{product_id}/associate")
def associate_product(product_id: str, payload: AssociateProductRequest, db: Database = Depends(get_db)):
    """Reassign a product to another seller"""
    if not db["products"].find_one({"_id": product_id}):
        raise errors.not_found("product")
    if not db["sellers"].find_one({"_id": payload.sellerId}):
        raise errors.not_found("seller")
    db["products"].update_one({"_id": product_id}, {"$set": {"sellerId": payload.sellerId}})
    logger.info("Product %s associated with seller %s", product_id, payload.sellerId)
    return {"success": True}


# ----- links -----

@app.post("/api/links")
def create_link(payload: CreateLinkRequest, db: Database = Depends(get_db)):
    """Create a shareable payment link, optionally running as an auction"""
    product = db["products"].find_one({"_id": payload.productId})
    if not product:
        raise errors.not_found("product")
    if not db["sellers"].find_one({"_id": payload.sellerId}):
        raise errors.not_found("seller")

    now = utcnow()
    expires_at = as_utc(payload.expiresAt)
    auction_doc = None
    cfg = payload.auction
    if cfg and cfg.enabled:
        if cfg.endsAt is None:
            raise ApiError(errors.VALIDATION, "auction.endsAt is required")
        ends_at = as_utc(cfg.endsAt)
        if ends_at <= now:
            raise ApiError(errors.VALIDATION, "auction.endsAt must be in the future")
        auction_doc = {
            "enabled": True,
            "endsAt": ends_at,
            "startingPrice_cents": cfg.startingPrice_cents if cfg.startingPrice_cents is not None else product["price_cents"],
            "minIncrement_cents": cfg.minIncrement_cents if cfg.minIncrement_cents is not None else Config.DEFAULT_MIN_INCREMENT_CENTS,
            "status": AUCTION_ACTIVE,
            "winner": None,
        }
        expires_at = ends_at

    snapshot = payload.digitalDownload.model_dump() if payload.digitalDownload else product.get("digitalDownload")
    link_id = generate_id()
    link = {
        "linkId": link_id,
        "productId": payload.productId,
        "sellerId": payload.sellerId,
        "createdAt": now,
        "expiresAt": expires_at,
        "active": True,
        "digitalDownload": snapshot,
        "auction": auction_doc,
    }
    create_document(db, "links", link, doc_id=link_id)
    logger.info("Link %s created for product %s (auction=%s)", link_id, payload.productId, bool(auction_doc))
    return {"linkId": link_id, "pageUrl": page_url(link_id), "link": clean(db["links"].find_one({"_id": link_id}))}


@app.get("/api/links/{link_id}")
def get_link(link_id: str, db: Database = Depends(get_db)):
    """Link and product data for the hosted checkout page"""
    link = auction.finalize_if_due(db, auction.load_link(db, link_id))
    product = db["products"].find_one({"_id": link["productId"]})
    if not product:
        raise errors.not_found("product")
    out = clean(link)
    out["auction"] = auction.public_auction(link.get("auction"))
    out.pop("buyerEmail", None)
    return {"link": out, "product": clean(product)}


# ----- auctions -----

@app.post("/api/bids")
def place_bid(payload: PlaceBidRequest, db: Database = Depends(get_db)):
    """Place a bid if the auction is open and the amount meets the current minimum"""
    bid = auction.place_bid(db, payload.linkId, payload.email, payload.amount_cents)
    return {"ok": True, "bid": bid}


@app.get("/api/auctions/{link_id}")
def get_auction_summary(link_id: str, db: Database = Depends(get_db)):
    return auction.auction_summary(db, link_id)


# ----- checkout -----

def _is_expired(link: Optional[dict], now) -> bool:
    expires_at = as_utc((link or {}).get("expiresAt"))
    return bool(expires_at and now >= expires_at)


def _already_paid(db: Database, *link_ids) -> bool:
    ids = [i for i in link_ids if i]
    return bool(ids) and db["orders"].find_one({"linkId": {"$in": ids}}) is not None


def purchase_amount(db: Database, link: dict, product: dict, now) -> tuple:
    """Return (amount_cents, customer_email) for a checkout on this link."""
    auc = link.get("auction") or {}
    if auc.get("enabled"):
        if auc.get("status") != AUCTION_FINALIZED:
            raise ApiError(errors.AUCTION_ACTIVE, "auction is still running", auction=auction.public_auction(auc))
        winner = auc.get("winner")
        if not winner:
            raise ApiError(errors.AUCTION_ENDED, "auction ended without bids", auction=auction.public_auction(auc))
        # the winner's purchase window is the follow-up link's
        follow_up_id = auc.get("followUpLinkId")
        if follow_up_id and _is_expired(db["links"].find_one({"_id": follow_up_id}), now):
            raise ApiError(errors.LINK_EXPIRED, "winner purchase window has closed")
        if _already_paid(db, link["_id"], follow_up_id):
            raise ApiError(errors.LINK_EXPIRED, "auction has already been paid")
        return winner["amount_cents"], winner["email"]

    if link.get("active") is False or _is_expired(link, now):
        raise ApiError(errors.LINK_EXPIRED, "link has expired")
    if link.get("price_cents") is not None:
        if _already_paid(db, link["_id"], link.get("parentLinkId")):
            raise ApiError(errors.LINK_EXPIRED, "auction has already been paid")
        return link["price_cents"], link.get("buyerEmail")
    return product["price_cents"], None


@app.post("/api/create-checkout-session")
def create_checkout_session(payload: CheckoutSessionRequest, db: Database = Depends(get_db)):
    link = auction.finalize_if_due(db, auction.load_link(db, payload.linkId))
    link_id = link["_id"]

    product = db["products"].find_one({"_id": link["productId"]})
    if not product:
        raise errors.not_found("product")
    seller = db["sellers"].find_one({"_id": link.get("sellerId") or product.get("sellerId")})
    if not seller:
        raise errors.not_found("seller")
    if not seller.get("stripeAccountId"):
        raise ApiError(errors.VALIDATION, "seller has no stripe account")

    amount_cents, customer_email = purchase_amount(db, link, product, utcnow())
    origin = Config.FRONTEND_BASE_URL.rstrip("/")
    return payments.create_checkout_session(
        link_id=link_id,
        product=product,
        seller=seller,
        amount_cents=amount_cents,
        success_url=payload.success_url or f"{origin}/success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=payload.cancel_url or page_url(link_id),
        customer_email=customer_email,
    )


# ----- payment processor webhook -----

@app.post("/webhook")
async def stripe_webhook(request: Request, stripe_signature: Optional[str] = Header(None), db: Database = Depends(get_db)):
    payload = await request.body()
    # pymongo and Stripe calls block, keep them off the event loop
    return await run_in_threadpool(handle_stripe_event, db, payload, stripe_signature)


def handle_stripe_event(db: Database, payload: bytes, signature: Optional[str]) -> dict:
    event = payments.construct_event(payload, signature)

    if event["type"] == "checkout.session.completed":
        record_order(db, event["data"]["object"])
    else:
        logger.info("Unhandled event type %s", event["type"])
    return {"received": True}


def record_order(db: Database, session) -> dict:
    metadata = session.get("metadata") or {}
    order_id = session.get("payment_intent") or session["id"]
    customer = session.get("customer_details") or {}
    order = {
        "orderId": order_id,
        "checkoutSessionId": session["id"],
        "linkId": metadata.get("linkId"),
        "productId": metadata.get("productId"),
        "sellerId": metadata.get("sellerId"),
        "amount_total": session.get("amount_total") or 0,
        "currency": session.get("currency"),
        "buyer_email": customer.get("email"),
        "status": "completed",
    }
    result = db["orders"].update_one(
        {"_id": order_id},
        {"$setOnInsert": {**order, "createdAt": utcnow()}},
        upsert=True,
    )
    if result.upserted_id is None:
        logger.info("Order %s already recorded", order_id)
        return order

    if order["productId"]:
        db["products"].update_one({"_id": order["productId"]}, {"$set": {"isSold": True}})

    seller = db["sellers"].find_one({"_id": order["sellerId"]}) if order["sellerId"] else None
    if seller and seller.get("stripeAccountId"):
        try:
            transfer = payments.create_payout(
                order["amount_total"], order["currency"], seller["stripeAccountId"],
                {"productId": order["productId"], "sellerId": order["sellerId"], "orderId": order_id},
            )
            logger.info("Payout %s initiated for order %s", transfer["id"], order_id)
        except Exception:
            logger.exception("Failed to create payout for order %s", order_id)
    else:
        logger.error("Seller not found or not connected for order %s", order_id)
    logger.info("Order %s saved", order_id)
    return order


@app.get("/schema")
def get_schema_info():
    """Expose schema classes for tooling."""
    from schemas import Link, Bid, Product, Seller, Order
    return {
        "link": Link.model_json_schema(),
        "bid": Bid.model_json_schema(),
        "product": Product.model_json_schema(),
        "seller": Seller.model_json_schema(),
        "order": Order.model_json_schema(),
    }


@app.get("/test")
def test_database(db: Database = Depends(get_db)):
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }

    try:
        response["database"] = "✅ Available"
        response["database_name"] = db.name
        collections = db.list_collection_names()
        response["collections"] = collections[:10]
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
    except Exception as e:
        response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=Config.PORT)
