from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

import finalization
from database import ensure_indexes, get_db
from main import app


@pytest.fixture
def db():
    database = mongomock.MongoClient(tz_aware=True)["paylinks_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sent_emails(monkeypatch):
    sent = []

    def fake_send(to, subject, html_body, reply_to=None):
        sent.append({"to": to, "subject": subject, "html": html_body, "reply_to": reply_to})

    monkeypatch.setattr(finalization.notifications, "send_email", fake_send)
    return sent


@pytest.fixture
def seller(db):
    doc = {
        "_id": "SELLER0001",
        "sellerId": "SELLER0001",
        "email": "seller@example.com",
        "stripeAccountId": "acct_123",
    }
    db["sellers"].insert_one(doc)
    return doc


@pytest.fixture
def product(db, seller):
    doc = {
        "_id": "PRODUCT001",
        "productId": "PRODUCT001",
        "sellerId": seller["sellerId"],
        "title": "Signed Poster",
        "description": "Limited print",
        "price_cents": 1000,
        "currency": "usd",
        "image_url": None,
        "digitalDownload": None,
    }
    db["products"].insert_one(doc)
    return doc


@pytest.fixture
def make_auction(client, product, seller):
    def _make(starting=1000, increment=100, ends_in=timedelta(hours=1), **extra):
        body = {
            "productId": product["productId"],
            "sellerId": seller["sellerId"],
            "auction": {
                "enabled": True,
                "endsAt": (datetime.now(timezone.utc) + ends_in).isoformat(),
                "startingPrice_cents": starting,
                "minIncrement_cents": increment,
            },
            **extra,
        }
        res = client.post("/api/links", json=body)
        assert res.status_code == 200, res.text
        return res.json()["linkId"]

    return _make


@pytest.fixture
def close_auction(db):
    """Move an auction's end time into the past without finalizing it."""
    def _close(link_id, ago=timedelta(minutes=5)):
        db["links"].update_one(
            {"_id": link_id},
            {"$set": {"auction.endsAt": datetime.now(timezone.utc) - ago}},
        )

    return _close


@pytest.fixture
def place(client):
    def _place(link_id, email, amount):
        return client.post("/api/bids", json={"linkId": link_id, "email": email, "amount_cents": amount})

    return _place
