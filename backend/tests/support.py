"""Helpers shared by the API tests: users, tokens, seeded rows and stubbed HTTP."""
import itertools
import json
from decimal import Decimal

import httpx
from fastapi.testclient import TestClient

from ticketswapper.main import app
from ticketswapper.core.config import settings
from ticketswapper.core.security import get_password_hash
from ticketswapper.db.session import SessionLocal
from ticketswapper.models.base import utcnow
from ticketswapper.models.payout import Payout
from ticketswapper.models.ticket import Ticket
from ticketswapper.models.transaction import Transaction
from ticketswapper.models.user import User
from ticketswapper.services.pnr import PnrValidator, get_pnr_validator
from ticketswapper.services.razorpay import RazorpayClient, get_razorpay_client, payment_signature

client = TestClient(app)
_seq = itertools.count(1)

PASSWORD = "testpass123"


def unique(prefix: str = "u") -> str:
    return f"{prefix}{next(_seq)}"


def unique_pnr() -> str:
    return f"TS{next(_seq):08d}"


def ensure_user(email: str, confirmed: bool = True, role: str = "user") -> int:
    db = SessionLocal()
    try:
        u = db.query(User).filter(User.email == email).first()
        if not u:
            u = User(
                email=email,
                full_name=email.split("@")[0],
                hashed_password=get_password_hash(PASSWORD),
                role=role,
                is_active=True,
                email_confirmed_at=utcnow() if confirmed else None,
            )
            db.add(u)
            db.commit()
            db.refresh(u)
        return u.id
    finally:
        db.close()


def login(email: str) -> dict:
    r = client.post("/auth/login-json", json={"email": email, "password": PASSWORD})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def new_user(confirmed: bool = True, role: str = "user") -> tuple[int, dict]:
    email = f"{unique('user')}@example.com"
    user_id = ensure_user(email, confirmed=confirmed, role=role)
    return user_id, login(email)


def seed_ticket(seller_id: int, price: str = "1000", status: str = "available", pnr: str | None = None,
                from_location: str = "Bangalore", to_location: str = "Chennai", transport_mode: str = "bus") -> int:
    db = SessionLocal()
    try:
        t = Ticket(
            pnr_number=pnr or unique_pnr(),
            passenger_name="Asha Rao",
            operator="redbus",
            transport_mode=transport_mode,
            from_location=from_location,
            to_location=to_location,
            departure_date="2099-01-01",
            departure_time="21:30",
            seat_number="L4",
            original_price=Decimal(price),
            selling_price=Decimal(price),
            status=status,
            verification_status="verified",
            api_provider="api_verified",
            verification_confidence=100,
            verified_at=utcnow(),
            seller_id=seller_id,
        )
        db.add(t)
        db.commit()
        return t.id
    finally:
        db.close()


def seed_sale(seller_id: int, buyer_id: int, price: str = "1000") -> dict:
    """A settled sale: sold ticket, completed transaction with escrow held, pending payout."""
    ticket_id = seed_ticket(seller_id, price=price, status="sold")
    payment_id = f"pay_{unique('seed')}"
    order_id = f"order_{unique('seed')}"
    db = SessionLocal()
    try:
        t = db.get(Ticket, ticket_id)
        t.buyer_id = buyer_id
        t.buyer_name = "Buyer"
        t.sold_at = utcnow()
        t.razorpay_order_id = order_id
        tx = Transaction(
            ticket_id=ticket_id,
            buyer_id=buyer_id,
            seller_id=seller_id,
            amount=Decimal(price),
            platform_fee=Decimal("50"),
            status="completed",
            payment_method="razorpay",
            razorpay_order_id=order_id,
            razorpay_payment_id=payment_id,
            escrow_status="held",
            completed_at=utcnow(),
        )
        db.add(tx)
        db.flush()
        p = Payout(transaction_id=tx.id, seller_id=seller_id, amount=Decimal(price) - Decimal("50"))
        db.add(p)
        db.commit()
        return {"ticket_id": ticket_id, "transaction_id": tx.id, "payout_id": p.id, "payment_id": payment_id}
    finally:
        db.close()


def record(pnr: str, **overrides) -> dict:
    data = {
        "pnr_number": pnr,
        "passenger_name": "Asha Rao",
        "bus_operator": "VRL Travels",
        "source_location": "Bangalore",
        "destination_location": "Hyderabad",
        "departure_date": "2099-02-10",
        "departure_time": "22:15",
        "seat_number": "U7",
        "ticket_price": 1200,
    }
    data.update(overrides)
    return data


def stub_validator(handler, echo_available: bool = True) -> PnrValidator:
    return PnrValidator(
        httpx.Client(transport=httpx.MockTransport(handler)),
        url=settings.pnr_api_url,
        api_key=settings.pnr_api_key,
        timeout=settings.pnr_timeout_seconds,
        echo_available=echo_available,
    )


def records_handler(records: list[dict]):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=records)
    return handler


def use_records(records: list[dict]) -> None:
    app.dependency_overrides[get_pnr_validator] = lambda: stub_validator(records_handler(records))


class FakeGateway:
    """Answers ``POST /orders`` like the gateway does and remembers what it was sent."""

    def __init__(self, status_code: int = 200, error_description: str | None = None):
        self.status_code = status_code
        self.error_description = error_description
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status_code >= 400:
            return httpx.Response(self.status_code, json={"error": {"description": self.error_description}})
        body = json.loads(request.content)
        return httpx.Response(200, json={
            "id": f"order_{unique('rzp')}",
            "entity": "order",
            "amount": body["amount"],
            "currency": body["currency"],
            "receipt": body["receipt"],
            "status": "created",
        })

    def install(self) -> "FakeGateway":
        app.dependency_overrides[get_razorpay_client] = lambda: RazorpayClient(
            httpx.Client(transport=httpx.MockTransport(self)),
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            base_url=settings.razorpay_api_base,
        )
        return self


def checkout_body(ticket_id: int, order_id: str, payment_id: str | None = None, **extra) -> dict:
    payment_id = payment_id or f"pay_{unique('chk')}"
    body = {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": payment_signature(order_id, payment_id, settings.razorpay_key_secret),
        "ticketId": ticket_id,
    }
    body.update(extra)
    return body


def clear_overrides() -> None:
    app.dependency_overrides.pop(get_pnr_validator, None)
    app.dependency_overrides.pop(get_razorpay_client, None)
