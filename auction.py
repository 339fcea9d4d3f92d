"""
Auction core: bid validation, lazy close and finalization, bid intake and
the public summary.

Auctions have no background timer. Anything that reads or writes an auction
link first calls finalize_if_due(), which closes the auction on the first
observation at or after endsAt.
"""

import logging
from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

import errors
import finalization
from config import Config
from database import as_utc, clean, utcnow
from errors import ApiError
from formatters import mask_email
from schemas import AUCTION_ACTIVE, AUCTION_FINALIZED

logger = logging.getLogger(__name__)

# amount first, then earliest bid wins a tie
BID_RANKING = [("amount_cents", DESCENDING), ("createdAt", ASCENDING), ("_id", ASCENDING)]


def minimum_required(starting_price_cents: int, min_increment_cents: int, highest_bid_cents: Optional[int] = None) -> int:
    if highest_bid_cents is None:
        return starting_price_cents
    return highest_bid_cents + min_increment_cents


def is_auction(link: dict) -> bool:
    return bool((link.get("auction") or {}).get("enabled"))


def is_due(auction: dict, now: datetime) -> bool:
    return auction.get("status") == AUCTION_ACTIVE and now >= as_utc(auction["endsAt"])


def highest_bid(db: Database, link_id: str) -> Optional[dict]:
    return db["bids"].find_one({"linkId": link_id}, sort=BID_RANKING)


def load_link(db: Database, link_id: str) -> dict:
    link = db["links"].find_one({"_id": (link_id or "").strip().upper()})
    if not link:
        raise errors.not_found("link")
    return link


def finalize_if_due(db: Database, link: dict, now: Optional[datetime] = None) -> dict:
    """Close the auction if its end time has passed; returns the current link document."""
    if not is_auction(link):
        return link
    now = now or utcnow()
    if not is_due(link["auction"], now):
        return link
    return finalize_auction(db, link, now)


def finalize_auction(db: Database, link: dict, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    link_id = link["_id"]

    top = highest_bid(db, link_id)
    winner = None
    if top:
        winner = {"email": top["email"], "bidId": str(top["_id"]), "amount_cents": top["amount_cents"]}

    # Only the request whose write flips the status gets to run the side effects.
    result = db["links"].update_one(
        {"_id": link_id, "auction.status": AUCTION_ACTIVE},
        {"$set": {
            "auction.status": AUCTION_FINALIZED,
            "auction.winner": winner,
            "auction.finalizedAt": now,
            "active": False,
        }},
    )
    finalized = db["links"].find_one({"_id": link_id})

    if result.modified_count != 1:
        logger.debug("Auction %s already finalized by another request", link_id)
        return finalized

    logger.info(
        "Auction %s finalized; winner=%s amount_cents=%s",
        link_id, mask_email(winner["email"]) if winner else None, winner["amount_cents"] if winner else None,
    )
    if winner:
        follow_up = finalization.issue_winner_link(db, finalized, now)
        finalized = db["links"].find_one({"_id": link_id}) or finalized
        logger.debug("Follow-up link %s issued for auction %s", follow_up["_id"], link_id)
    return finalized


def public_auction(auction: Optional[dict]) -> Optional[dict]:
    if auction is None:
        return None
    out = dict(auction)
    winner = out.get("winner")
    if winner:
        out["winner"] = {**winner, "email": mask_email(winner.get("email"))}
    return out


def public_bid(bid: dict) -> dict:
    return {
        "bidId": str(bid["_id"]),
        "email_masked": mask_email(bid.get("email")),
        "amount_cents": bid["amount_cents"],
        "createdAt": bid.get("createdAt"),
    }


def place_bid(db: Database, link_id: str, email: str, amount_cents: int, now: Optional[datetime] = None) -> dict:
    link = load_link(db, link_id)
    if not is_auction(link):
        raise ApiError(errors.AUCTION_NOT_ENABLED, "link is not an auction")

    link = finalize_if_due(db, link, now)
    auction = link["auction"]
    if auction.get("status") == AUCTION_FINALIZED:
        raise ApiError(errors.AUCTION_ENDED, "auction has ended", auction=public_auction(auction))

    top = highest_bid(db, link["_id"])
    highest_cents = top["amount_cents"] if top else None
    min_required = minimum_required(
        auction.get("startingPrice_cents", 0),
        auction.get("minIncrement_cents", Config.DEFAULT_MIN_INCREMENT_CENTS),
        highest_cents,
    )
    if amount_cents < min_required:
        raise ApiError(
            errors.BID_TOO_LOW,
            f"bid must be at least {min_required}",
            minRequired_cents=min_required,
            highest_cents=highest_cents or 0,
        )

    bid = {
        "_id": ObjectId(),
        "linkId": link["_id"],
        "email": email,
        "amount_cents": amount_cents,
        "createdAt": now or utcnow(),
    }
    db["bids"].insert_one(bid)
    logger.info("Bid %s accepted on %s: %s cents", bid["_id"], link["_id"], amount_cents)
    return clean(bid, "bidId")


def auction_summary(db: Database, link_id: str, now: Optional[datetime] = None) -> dict:
    link = load_link(db, link_id)
    if not is_auction(link):
        raise ApiError(errors.AUCTION_NOT_ENABLED, "link is not an auction")
    link = finalize_if_due(db, link, now)

    bids = db["bids"]
    top = highest_bid(db, link["_id"])
    recent = bids.find({"linkId": link["_id"]}).sort([("createdAt", DESCENDING), ("_id", DESCENDING)]).limit(Config.RECENT_BIDS_LIMIT)

    return {
        "auction": public_auction(link["auction"]),
        "highest_cents": top["amount_cents"] if top else 0,
        "highest_email_masked": mask_email(top["email"]) if top else None,
        "count": bids.count_documents({"linkId": link["_id"]}),
        "recent": [public_bid(b) for b in recent],
    }
