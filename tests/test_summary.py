from datetime import datetime, timedelta, timezone

from bson import ObjectId


def test_summary_of_running_auction(make_auction, place, client):
    link_id = make_auction(starting=1000, increment=100)
    place(link_id, "alice@example.com", 1000)
    place(link_id, "bob@example.com", 1200)

    res = client.get(f"/api/auctions/{link_id}")
    assert res.status_code == 200
    body = res.json()
    assert body["auction"]["status"] == "active"
    assert body["auction"]["winner"] is None
    assert body["highest_cents"] == 1200
    assert body["highest_email_masked"] == "bo****@example.com"
    assert body["count"] == 2
    assert [b["amount_cents"] for b in body["recent"]] == [1200, 1000]
    assert "email" not in body["recent"][0]


def test_summary_finalizes_ended_auction(make_auction, place, close_auction, client, db, sent_emails):
    link_id = make_auction(starting=1000)
    place(link_id, "buyer@example.com", 5000)
    close_auction(link_id)
    assert db["links"].find_one({"_id": link_id})["auction"]["status"] == "active"

    body = client.get(f"/api/auctions/{link_id}").json()
    assert body["auction"]["status"] == "finalized"
    assert body["auction"]["winner"]["amount_cents"] == 5000
    assert body["highest_cents"] == 5000
    assert body["highest_email_masked"] == "bu****@example.com"

    stored = db["links"].find_one({"_id": link_id})
    assert stored["auction"]["status"] == "finalized"
    assert stored["auction"]["winner"]["email"] == "buyer@example.com"
    assert stored["active"] is False


def test_summary_of_auction_closed_without_bids(make_auction, close_auction, client, db, sent_emails):
    link_id = make_auction()
    close_auction(link_id)

    body = client.get(f"/api/auctions/{link_id}").json()
    assert body["auction"]["status"] == "finalized"
    assert body["auction"]["winner"] is None
    assert body["highest_cents"] == 0
    assert body["highest_email_masked"] is None
    assert body["count"] == 0
    assert body["recent"] == []
    assert db["links"].count_documents({"parentLinkId": link_id}) == 0
    assert sent_emails == []


def test_recent_bids_are_bounded_and_newest_first(make_auction, client, db):
    link_id = make_auction(starting=100, increment=0)
    t0 = datetime(2030, 1, 1, tzinfo=timezone.utc)
    db["bids"].insert_many([
        {"_id": ObjectId(), "linkId": link_id, "email": f"b{i}@example.com", "amount_cents": 100 + i,
         "createdAt": t0 + timedelta(minutes=i)}
        for i in range(15)
    ])

    body = client.get(f"/api/auctions/{link_id}").json()
    assert body["count"] == 15
    assert len(body["recent"]) == 10
    assert body["recent"][0]["amount_cents"] == 114
    assert body["recent"][-1]["amount_cents"] == 105


def test_summary_requires_auction_link(client, product, seller):
    link_id = client.post(
        "/api/links", json={"productId": product["productId"], "sellerId": seller["sellerId"]},
    ).json()["linkId"]
    res = client.get(f"/api/auctions/{link_id}")
    assert res.status_code == 400
    assert res.json()["error"] == "AUCTION_NOT_ENABLED"

    assert client.get("/api/auctions/MISSING").status_code == 404
