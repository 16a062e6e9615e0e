"""Asynchronous gateway events (``payment.captured``, ``payment.failed``, ``refund.processed``)."""
from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy.orm import Session

from ticketswapper.core.config import settings
from ticketswapper.core.errors import AuthenticationError, BadRequestError, ConfigurationError
from ticketswapper.models.base import utcnow
from ticketswapper.models.notification import Notification
from ticketswapper.models.payout import Payout
from ticketswapper.models.ticket import Ticket, STATUS_AVAILABLE, STATUS_SOLD
from ticketswapper.models.transaction import Transaction
from ticketswapper.services.razorpay import verify_webhook_signature

logger = logging.getLogger(__name__)


def parse_webhook(body: bytes, signature: str | None) -> dict[str, Any]:
    """Authenticate and decode a raw webhook body."""
    secret = settings.razorpay_webhook_secret
    if not secret:
        raise ConfigurationError("Webhook secret not configured")
    if not signature:
        raise BadRequestError("Missing signature header")
    if not verify_webhook_signature(body, signature, secret):
        logger.warning("Rejected webhook with invalid signature")
        raise AuthenticationError("Invalid webhook signature")
    try:
        payload = json.loads(body)
    except ValueError:
        raise BadRequestError("Invalid payload")
    if not isinstance(payload, dict):
        raise BadRequestError("Invalid payload")
    return payload


def payment_id_of(payload: dict[str, Any]) -> str | None:
    entities = payload.get("payload") or {}
    payment = (entities.get("payment") or {}).get("entity") or {}
    if payment.get("id"):
        return payment["id"]
    refund = (entities.get("refund") or {}).get("entity") or {}
    return refund.get("payment_id")


TERMINAL_STATUSES = ("failed", "refunded")


def _sold_under(db: Session, transaction: Transaction) -> Ticket | None:
    """The ticket, if it is still sold under this transaction's order and buyer."""
    ticket = db.get(Ticket, transaction.ticket_id)
    if (
        ticket is None
        or ticket.status != STATUS_SOLD
        or ticket.buyer_id != transaction.buyer_id
        or ticket.razorpay_order_id != transaction.razorpay_order_id
    ):
        return None
    return ticket


def _reopen_ticket(db: Session, transaction: Transaction) -> None:
    ticket = _sold_under(db, transaction)
    if ticket is None:
        # resold or already reopened; the ticket belongs to someone else now
        logger.warning("Ticket %s no longer held by transaction %s, left untouched",
                       transaction.ticket_id, transaction.id)
        return
    ticket.status = STATUS_AVAILABLE
    ticket.buyer_id = None
    ticket.buyer_name = None
    ticket.sold_at = None
    ticket.reserved_by = None
    ticket.reserved_until = None
    ticket.razorpay_order_id = None


def _cancel_payouts(db: Session, transaction_id: int) -> None:
    db.query(Payout).filter(Payout.transaction_id == transaction_id, Payout.status == "pending").update(
        {Payout.status: "cancelled"}, synchronize_session=False
    )


def _already_notified(db: Session, user_id: int, type_: str, transaction_id: int) -> bool:
    notes = db.query(Notification).filter(Notification.user_id == user_id, Notification.type == type_).all()
    return any((n.data or {}).get("transaction_id") == transaction_id for n in notes)


def handle_payment_captured(db: Session, transaction: Transaction) -> bool:
    if transaction.status in TERMINAL_STATUSES:
        return False
    now = utcnow()
    transaction.status = "completed"
    transaction.completed_at = transaction.completed_at or now
    ticket = _sold_under(db, transaction)
    if ticket is not None:
        ticket.sold_at = ticket.sold_at or now
    if _already_notified(db, transaction.seller_id, "payment_success", transaction.id):
        return False
    db.add(Notification(
        user_id=transaction.seller_id,
        title="Payment Received!",
        type="payment_success",
        message=f"Payment of ₹{transaction.amount} has been received for your ticket.",
        data={"transaction_id": transaction.id},
    ))
    return True


def handle_payment_failed(db: Session, transaction: Transaction) -> bool:
    if transaction.status in TERMINAL_STATUSES:
        return False
    _reopen_ticket(db, transaction)
    transaction.status = "failed"
    transaction.completed_at = utcnow()
    _cancel_payouts(db, transaction.id)
    if transaction.buyer_id is not None:
        db.add(Notification(
            user_id=transaction.buyer_id,
            title="Payment Failed",
            type="payment_failure",
            message=f"Your payment of ₹{transaction.amount} has failed. Please try again.",
            data={"transaction_id": transaction.id},
        ))
    return True


def handle_refund_processed(db: Session, transaction: Transaction) -> bool:
    if transaction.status == "refunded":
        return False
    _reopen_ticket(db, transaction)
    transaction.status = "refunded"
    transaction.escrow_status = "refunded"
    transaction.completed_at = utcnow()
    _cancel_payouts(db, transaction.id)
    return True


EVENT_HANDLERS = {
    "payment.captured": handle_payment_captured,
    "payment.failed": handle_payment_failed,
    "refund.processed": handle_refund_processed,
}


def process_webhook(db: Session, payload: dict[str, Any]) -> str:
    """Apply one event. Returns ``processed``, ``duplicate``, ``ignored`` or ``unmatched``.

    Redelivered and out-of-order events are acknowledged as ``duplicate``
    without touching a transaction that already reached a final state.
    """
    event = payload.get("event")
    handler = EVENT_HANDLERS.get(event)
    if handler is None:
        logger.info("Unhandled webhook event: %s", event)
        return "ignored"
    payment_id = payment_id_of(payload)
    logger.info("Razorpay webhook received: %s (payment %s)", event, payment_id)
    transaction = None
    if payment_id:
        transaction = (
            db.query(Transaction)
            .filter(Transaction.razorpay_payment_id == payment_id)
            .with_for_update()
            .first()
        )
    if transaction is None:
        logger.warning("No transaction found for %s payment %s", event, payment_id)
        return "unmatched"
    applied = handler(db, transaction)
    db.commit()
    if not applied:
        logger.info("%s for transaction %s already applied (status %s)", event, transaction.id, transaction.status)
        return "duplicate"
    logger.info("%s processed for transaction %s", event, transaction.id)
    return "processed"
