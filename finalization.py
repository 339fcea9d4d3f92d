"""
Turns a finalized auction's winner into something they can pay for.

Persistence errors propagate to the caller. Email delivery errors are logged
and dropped, since the auction outcome is already committed by then.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

from pymongo.database import Database

import notifications
from config import Config
from database import generate_id
from formatters import format_datetime, format_price

logger = logging.getLogger(__name__)


def has_digital(snapshot: Optional[dict]) -> bool:
    snapshot = snapshot or {}
    return bool(snapshot.get("storagePath") or snapshot.get("contentUrl"))


def checkout_url(link_id: str, digital: bool = False) -> str:
    url = f"{Config.FRONTEND_BASE_URL.rstrip('/')}/p/{link_id}"
    if digital:
        url += "?" + urlencode({"digital": 1})
    return url


def issue_winner_link(db: Database, link: dict, now: datetime) -> dict:
    """Mint the winner's fixed-price follow-up link and email them the checkout URL."""
    winner = link["auction"]["winner"]
    product = db["products"].find_one({"_id": link["productId"]}) or {}
    seller = db["sellers"].find_one({"_id": link["sellerId"]}) or {}

    snapshot = link.get("digitalDownload") or product.get("digitalDownload")
    follow_up_id = generate_id()
    follow_up = {
        "_id": follow_up_id,
        "linkId": follow_up_id,
        "productId": link["productId"],
        "sellerId": link["sellerId"],
        "createdAt": now,
        "expiresAt": now + timedelta(hours=Config.WINNER_LINK_TTL_HOURS),
        "active": True,
        "price_cents": winner["amount_cents"],
        "buyerEmail": winner["email"],
        "parentLinkId": link["_id"],
        "digitalDownload": snapshot,
        "auction": None,
    }
    db["links"].insert_one(follow_up)
    db["links"].update_one({"_id": link["_id"]}, {"$set": {"auction.followUpLinkId": follow_up_id}})
    logger.info("Issued follow-up link %s for auction %s", follow_up_id, link["_id"])

    url = checkout_url(follow_up_id, has_digital(snapshot))
    try:
        notify_winner(winner, product, url, follow_up["expiresAt"], reply_to=seller.get("email"))
    except Exception:
        logger.exception("Failed to notify auction winner for link %s", link["_id"])
    return follow_up


def notify_winner(winner: dict, product: dict, url: str, expires_at: datetime, reply_to: Optional[str] = None) -> None:
    title = product.get("title") or "your item"
    amount = format_price(winner["amount_cents"], product.get("currency", "usd"))
    body = notifications.render_email(
        title="You won the auction!",
        message=f"Your bid of {amount} for {title} was the highest.",
        details=f"Complete your purchase before {format_datetime(expires_at)}.",
        action_url=url,
    )
    notifications.send_email(winner["email"], f"You won: {title}", body, reply_to=reply_to)
