import json

import pytest

from support import FakeGateway, checkout_body, clear_overrides, client, new_user, seed_sale
from ticketswapper.core.config import settings
from ticketswapper.core.security import hmac_sha256_hex
from ticketswapper.db.session import SessionLocal
from ticketswapper.models.notification import Notification
from ticketswapper.models.payout import Payout
from ticketswapper.models.ticket import Ticket
from ticketswapper.models.transaction import Transaction


@pytest.fixture(autouse=True)
def _reset_overrides():
    yield
    clear_overrides()


def post_event(payload, signature: str | None = None, raw: bytes | None = None):
    body = raw if raw is not None else json.dumps(payload).encode()
    headers = {"Content-Type": "application/json"}
    sig = signature if signature is not None else hmac_sha256_hex(settings.razorpay_webhook_secret, body)
    if sig:
        headers["X-Razorpay-Signature"] = sig
    return client.post("/razorpay-webhook", content=body, headers=headers)


def payment_event(event: str, payment_id: str) -> dict:
    return {"event": event, "payload": {"payment": {"entity": {"id": payment_id, "amount": 100000}}}}


def test_webhook_authentication(monkeypatch):
    event = payment_event("payment.captured", "pay_nothing")
    assert post_event(event, signature="").status_code == 400
    r = post_event(event, signature="deadbeef")
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid webhook signature"}
    assert post_event(None, raw=b"{not json").status_code == 400

    monkeypatch.setattr(settings, "razorpay_webhook_secret", None)
    assert post_event(event, signature="deadbeef").status_code == 500


def test_unknown_events_and_payments_are_acknowledged():
    r = post_event({"event": "order.paid", "payload": {}})
    assert r.status_code == 200
    assert r.json()["outcome"] == "ignored"
    r = post_event(payment_event("payment.captured", "pay_unknown"))
    assert r.status_code == 200
    assert r.json()["outcome"] == "unmatched"


def test_payment_captured_notifies_seller():
    seller_id, seller_headers = new_user()
    buyer_id, _ = new_user()
    sale = seed_sale(seller_id, buyer_id)
    r = post_event(payment_event("payment.captured", sale["payment_id"]))
    assert r.status_code == 200
    assert r.json()["outcome"] == "processed"

    db = SessionLocal()
    try:
        tx = db.get(Transaction, sale["transaction_id"])
        assert tx.status == "completed"
        assert tx.completed_at is not None
        assert db.get(Ticket, sale["ticket_id"]).status == "sold"
    finally:
        db.close()

    items = client.get("/notifications/", headers=seller_headers).json()
    assert [n["type"] for n in items] == ["payment_success"]
    assert items[0]["data"] == {"transaction_id": sale["transaction_id"]}
    assert client.get("/notifications/unread-count", headers=seller_headers).json() == {"unread": 1}
    assert client.post(f"/notifications/{items[0]['id']}/read", headers=seller_headers).status_code == 200
    assert client.get("/notifications/unread-count", headers=seller_headers).json() == {"unread": 0}


def test_payment_failed_reopens_ticket():
    seller_id, _ = new_user()
    buyer_id, buyer_headers = new_user()
    sale = seed_sale(seller_id, buyer_id)
    r = post_event(payment_event("payment.failed", sale["payment_id"]))
    assert r.status_code == 200

    db = SessionLocal()
    try:
        assert db.get(Transaction, sale["transaction_id"]).status == "failed"
        t = db.get(Ticket, sale["ticket_id"])
        assert t.status == "available"
        assert t.buyer_id is None
        assert db.get(Payout, sale["payout_id"]).status == "cancelled"
        note = db.query(Notification).filter(Notification.user_id == buyer_id).one()
        assert note.type == "payment_failure"
    finally:
        db.close()

    client.post("/notifications/mark-all-read", headers=buyer_headers)
    assert client.get("/notifications/unread-count", headers=buyer_headers).json() == {"unread": 0}


def test_refund_processed():
    seller_id, _ = new_user()
    buyer_id, _ = new_user()
    sale = seed_sale(seller_id, buyer_id)
    event = {"event": "refund.processed", "payload": {"refund": {"entity": {"id": "rfnd_1", "payment_id": sale["payment_id"]}}}}
    r = post_event(event)
    assert r.status_code == 200
    assert r.json()["outcome"] == "processed"

    db = SessionLocal()
    try:
        tx = db.get(Transaction, sale["transaction_id"])
        assert tx.status == "refunded"
        assert tx.escrow_status == "refunded"
        assert db.get(Ticket, sale["ticket_id"]).status == "available"
        assert db.get(Payout, sale["payout_id"]).status == "cancelled"
    finally:
        db.close()


def refund_event(payment_id: str) -> dict:
    return {"event": "refund.processed", "payload": {"refund": {"entity": {"id": "rfnd_x", "payment_id": payment_id}}}}


def load(model, pk):
    db = SessionLocal()
    try:
        return db.get(model, pk)
    finally:
        db.close()


def test_redelivered_refund_leaves_resold_ticket_alone():
    seller_id, _ = new_user()
    first_buyer, _ = new_user()
    second_buyer, second_headers = new_user()
    sale = seed_sale(seller_id, first_buyer)
    assert post_event(refund_event(sale["payment_id"])).json()["outcome"] == "processed"
    assert load(Ticket, sale["ticket_id"]).status == "available"

    # the ticket is bought again by someone else
    FakeGateway().install()
    r = client.post(
        "/create-razorpay-order",
        json={"ticketId": sale["ticket_id"], "amount": 1000, "sellerAmount": 950, "platformCommission": 50},
        headers=second_headers,
    )
    assert r.status_code == 200, r.text
    r = client.post("/verify-razorpay-payment", json=checkout_body(sale["ticket_id"], r.json()["orderId"]), headers=second_headers)
    assert r.status_code == 200, r.text
    second_tx_id = r.json()["transaction"]["id"]

    # the first buyer's refund and failure arrive again
    assert post_event(refund_event(sale["payment_id"])).json()["outcome"] == "duplicate"
    assert post_event(payment_event("payment.failed", sale["payment_id"])).json()["outcome"] == "duplicate"

    t = load(Ticket, sale["ticket_id"])
    assert t.status == "sold"
    assert t.buyer_id == second_buyer
    assert load(Transaction, second_tx_id).status == "completed"
    assert load(Transaction, sale["transaction_id"]).status == "refunded"


def test_failure_for_a_superseded_sale_does_not_reopen_ticket():
    seller_id, _ = new_user()
    first_buyer, _ = new_user()
    second_buyer, _ = new_user()
    sale = seed_sale(seller_id, first_buyer)
    db = SessionLocal()
    try:
        t = db.get(Ticket, sale["ticket_id"])
        t.buyer_id = second_buyer
        t.razorpay_order_id = "order_someone_else"
        db.commit()
    finally:
        db.close()

    assert post_event(payment_event("payment.failed", sale["payment_id"])).json()["outcome"] == "processed"
    assert load(Transaction, sale["transaction_id"]).status == "failed"
    t = load(Ticket, sale["ticket_id"])
    assert t.status == "sold"
    assert t.buyer_id == second_buyer


def test_late_capture_after_refund_is_ignored():
    seller_id, seller_headers = new_user()
    buyer_id, _ = new_user()
    sale = seed_sale(seller_id, buyer_id)
    post_event(refund_event(sale["payment_id"]))
    r = post_event(payment_event("payment.captured", sale["payment_id"]))
    assert r.status_code == 200
    assert r.json()["outcome"] == "duplicate"

    tx = load(Transaction, sale["transaction_id"])
    assert tx.status == "refunded"
    assert tx.escrow_status == "refunded"
    t = load(Ticket, sale["ticket_id"])
    assert t.status == "available"
    assert t.buyer_id is None
    assert load(Payout, sale["payout_id"]).status == "cancelled"
    assert client.get("/notifications/", headers=seller_headers).json() == []


def test_repeated_events_notify_once():
    seller_id, seller_headers = new_user()
    buyer_id, _ = new_user()
    sale = seed_sale(seller_id, buyer_id)
    assert post_event(payment_event("payment.captured", sale["payment_id"])).json()["outcome"] == "processed"
    assert post_event(payment_event("payment.captured", sale["payment_id"])).json()["outcome"] == "duplicate"
    assert len(client.get("/notifications/", headers=seller_headers).json()) == 1

    other = seed_sale(seller_id, buyer_id)
    assert post_event(payment_event("payment.failed", other["payment_id"])).json()["outcome"] == "processed"
    assert post_event(payment_event("payment.failed", other["payment_id"])).json()["outcome"] == "duplicate"
    db = SessionLocal()
    try:
        assert db.query(Notification).filter(Notification.user_id == buyer_id).count() == 1
    finally:
        db.close()
