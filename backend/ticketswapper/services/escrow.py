"""Buyer/seller escrow flow: gateway order creation and checkout verification.

Amounts are handled as ``Decimal``; the platform commission is rounded half-up
to a whole currency unit and the seller receives the remainder.
"""
from __future__ import annotations

import logging
import time
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Iterable

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ticketswapper.core.config import settings
from ticketswapper.core.errors import (
    BadRequestError,
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
)
from ticketswapper.models.base import utcnow
from ticketswapper.models.payout import Payout
from ticketswapper.models.ticket import Ticket, STATUS_AVAILABLE, STATUS_RESERVED, STATUS_SOLD
from ticketswapper.models.transaction import Transaction
from ticketswapper.models.user import User
from ticketswapper.services import reservations
from ticketswapper.services.razorpay import RazorpayClient, verify_payment_signature

logger = logging.getLogger(__name__)

ORDER_FIELDS = ("ticketId", "amount", "sellerAmount", "platformCommission")
ORDER_NUMERIC_FIELDS = ("amount", "sellerAmount", "platformCommission")
VERIFY_FIELDS = ("razorpay_payment_id", "razorpay_order_id", "razorpay_signature", "ticketId")
GATEWAY_ID_MAX_LENGTH = 64
BUYER_NAME_MAX_LENGTH = 255

_WHOLE_UNIT = Decimal("1")
_CENT = Decimal("0.01")


def compute_fees(selling_price: Decimal | float | int, rate: float | None = None) -> tuple[Decimal, Decimal]:
    """Return ``(platform_commission, seller_amount)`` for a selling price."""
    price = Decimal(str(selling_price))
    rate_dec = Decimal(str(settings.platform_commission_rate if rate is None else rate))
    commission = (price * rate_dec).quantize(_WHOLE_UNIT, rounding=ROUND_HALF_UP)
    return commission, price - commission


def to_minor_units(amount: Decimal | float | int) -> int:
    return int((Decimal(str(amount)) * 100).quantize(_WHOLE_UNIT, rounding=ROUND_HALF_UP))


def missing_fields(body: dict[str, Any], names: Iterable[str]) -> list[str]:
    return [name for name in names if body.get(name) is None or body.get(name) == ""]


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_number(value: Decimal) -> int | float:
    return int(value) if value == value.to_integral_value() else float(value)


def _parse_ticket_id(value: Any) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        raise BadRequestError("Invalid ticketId")


def make_receipt() -> str:
    return f"tkt_{int(time.time() * 1000)}"


def create_order(db: Session, gateway: RazorpayClient, buyer: User, body: dict[str, Any]) -> dict[str, Any]:
    missing = missing_fields(body, ORDER_FIELDS)
    if missing:
        logger.info("Order creation rejected, missing fields: %s", missing)
        raise BadRequestError(f"Missing required fields: {', '.join(missing)}", missing=missing)
    if not all(is_number(body[name]) for name in ORDER_NUMERIC_FIELDS):
        raise BadRequestError("Invalid data types. amount, sellerAmount, and platformCommission must be numbers.")
    gateway.ensure_configured()

    ticket_id = _parse_ticket_id(body["ticketId"])
    ticket = db.get(Ticket, ticket_id)
    if not ticket:
        raise NotFoundError("Ticket not found")
    if ticket.seller_id == buyer.id:
        raise BadRequestError("You cannot buy your own ticket")
    try:
        amount = Decimal(str(body["amount"]))
    except InvalidOperation:
        raise BadRequestError("Invalid amount")
    if abs(amount - Decimal(str(ticket.selling_price))) >= _CENT:
        raise BadRequestError("Amount does not match ticket price")
    commission, seller_amount = compute_fees(ticket.selling_price)

    now = utcnow()
    if not reservations.reserve_ticket(db, ticket_id, buyer.id, now):
        db.rollback()
        raise ConflictError("Ticket is not available")
    db.commit()

    receipt = make_receipt()
    notes = {
        "ticketId": str(ticket_id),
        "sellerAmount": str(seller_amount),
        "platformCommission": str(commission),
    }
    try:
        order = gateway.create_order(to_minor_units(amount), settings.currency, receipt, notes)
    except Exception:
        reservations.release_reservation(db, ticket_id, buyer.id)
        db.commit()
        raise

    if not reservations.bind_order(db, ticket_id, buyer.id, order["id"]):
        db.rollback()
        raise ConflictError("Ticket reservation was lost, please try again")
    db.commit()
    logger.info("Ticket %s reserved by user %s with order %s", ticket_id, buyer.id, order["id"])
    return {
        "success": True,
        "orderId": order["id"],
        "amount": order.get("amount"),
        "currency": order.get("currency"),
        "razorpayKeyId": gateway.key_id,
        "receipt": order.get("receipt", receipt),
        "ticketId": ticket_id,
        "sellerAmount": _as_number(seller_amount),
        "platformCommission": _as_number(commission),
    }


def verify_payment(db: Session, buyer: User, body: dict[str, Any]) -> dict[str, Any]:
    missing = missing_fields(body, VERIFY_FIELDS)
    if missing:
        raise BadRequestError(f"Missing required fields: {', '.join(missing)}", missing=missing)
    buyer_id = body.get("buyer_id")
    if buyer_id not in (None, "") and str(buyer_id) != str(buyer.id):
        raise ForbiddenError("buyer_id does not match the authenticated user")

    key_secret = settings.razorpay_key_secret
    if not key_secret:
        raise ConfigurationError("Razorpay credentials not configured")

    payment_id = str(body["razorpay_payment_id"])
    order_id = str(body["razorpay_order_id"])
    if len(payment_id) > GATEWAY_ID_MAX_LENGTH or len(order_id) > GATEWAY_ID_MAX_LENGTH:
        raise BadRequestError("Invalid razorpay_payment_id or razorpay_order_id")
    if not verify_payment_signature(order_id, payment_id, str(body["razorpay_signature"]), key_secret):
        logger.warning("Rejected payment %s for order %s: signature mismatch", payment_id, order_id)
        raise BadRequestError("Invalid payment signature")

    ticket_id = _parse_ticket_id(body["ticketId"])
    ticket = db.get(Ticket, ticket_id)
    if not ticket:
        raise NotFoundError("Ticket not found")

    if db.query(Transaction).filter(Transaction.razorpay_payment_id == payment_id).first():
        raise ConflictError("Payment already processed")

    selling_price = Decimal(str(ticket.selling_price))
    commission, seller_amount = compute_fees(selling_price)
    buyer_name = str(body.get("buyer_name") or buyer.full_name or "Unknown Buyer").strip()[:BUYER_NAME_MAX_LENGTH]
    now = utcnow()

    # Ticket flip, transaction and payout commit together or not at all
    try:
        flipped = db.execute(
            update(Ticket)
            .where(
                Ticket.id == ticket_id,
                Ticket.razorpay_order_id == order_id,
                Ticket.reserved_by == buyer.id,
                Ticket.status.in_((STATUS_RESERVED, STATUS_AVAILABLE)),
            )
            .values(
                status=STATUS_SOLD,
                buyer_id=buyer.id,
                buyer_name=buyer_name,
                sold_at=now,
                reserved_until=None,
            )
            .execution_options(synchronize_session=False)
        )
        if flipped.rowcount != 1:
            db.rollback()
            # money was captured for a ticket we can no longer hand over
            logger.error("Payment %s for ticket %s arrived after the ticket was taken; refund required",
                         payment_id, ticket_id)
            raise ConflictError("Ticket is no longer available for this order")

        transaction = Transaction(
            ticket_id=ticket_id,
            buyer_id=buyer.id,
            seller_id=ticket.seller_id,
            amount=selling_price,
            platform_fee=commission,
            status="completed",
            payment_method="razorpay",
            razorpay_order_id=order_id,
            razorpay_payment_id=payment_id,
            escrow_status="held",
            completed_at=now,
        )
        db.add(transaction)
        db.flush()
        db.add(Payout(
            transaction_id=transaction.id,
            seller_id=ticket.seller_id,
            amount=seller_amount,
            status="pending",
            payment_method="upi",
        ))
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Duplicate settlement attempt for payment %s", payment_id)
        raise ConflictError("Payment already processed")

    logger.info("Payment %s settled: ticket %s sold to user %s", payment_id, ticket_id, buyer.id)
    return {
        "success": True,
        "message": "Payment verified successfully",
        "transaction": {
            "id": transaction.id,
            "amount": _as_number(selling_price),
            "platformCommission": _as_number(commission),
            "sellerAmount": _as_number(seller_amount),
            "status": "completed",
        },
        "ticket": {"id": ticket_id, "status": STATUS_SOLD},
    }
