import asyncio
import logging
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, update
from sqlalchemy.orm import Session

from ticketswapper.core.config import settings
from ticketswapper.db.session import SessionLocal
from ticketswapper.models.base import utcnow
from ticketswapper.models.ticket import Ticket, STATUS_AVAILABLE, STATUS_RESERVED

logger = logging.getLogger(__name__)


def reservable_clause(buyer_id: int, now: datetime):
    """Tickets a buyer may take: available, or reserved but expired or already theirs."""
    return or_(
        Ticket.status == STATUS_AVAILABLE,
        and_(
            Ticket.status == STATUS_RESERVED,
            or_(Ticket.reserved_until < now, Ticket.reserved_by == buyer_id),
        ),
    )


def reserve_ticket(db: Session, ticket_id: int, buyer_id: int, now: datetime | None = None) -> bool:
    """Atomically reserve a ticket for ``buyer_id``. Returns False if someone else holds it.

    The caller commits.
    """
    now = now or utcnow()
    result = db.execute(
        update(Ticket)
        .where(Ticket.id == ticket_id, Ticket.seller_id != buyer_id, reservable_clause(buyer_id, now))
        .values(
            status=STATUS_RESERVED,
            reserved_by=buyer_id,
            reserved_until=now + timedelta(minutes=settings.reservation_ttl_minutes),
            razorpay_order_id=None,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def bind_order(db: Session, ticket_id: int, buyer_id: int, order_id: str) -> bool:
    result = db.execute(
        update(Ticket)
        .where(Ticket.id == ticket_id, Ticket.reserved_by == buyer_id, Ticket.status == STATUS_RESERVED)
        .values(razorpay_order_id=order_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def release_reservation(db: Session, ticket_id: int, buyer_id: int) -> bool:
    result = db.execute(
        update(Ticket)
        .where(Ticket.id == ticket_id, Ticket.reserved_by == buyer_id, Ticket.status == STATUS_RESERVED)
        .values(status=STATUS_AVAILABLE, reserved_by=None, reserved_until=None, razorpay_order_id=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def release_expired_reservations(db: Session, now: datetime | None = None) -> int:
    """Return expired reservations to ``available``.

    ``reserved_by`` and ``razorpay_order_id`` are kept so that a payment for the
    lapsed order can still settle as long as nobody else reserved the ticket.
    """
    now = now or utcnow()
    result = db.execute(
        update(Ticket)
        .where(Ticket.status == STATUS_RESERVED, Ticket.reserved_until < now)
        .values(status=STATUS_AVAILABLE, reserved_until=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def reservation_sweeper_loop():
    await asyncio.sleep(3)
    while True:
        db = SessionLocal()
        try:
            released = release_expired_reservations(db)
            db.commit()
            if released:
                logger.info("Released %d expired reservation(s)", released)
        except Exception:
            logger.exception("Reservation sweep failed")
            db.rollback()
        finally:
            db.close()
        await asyncio.sleep(settings.reservation_sweep_seconds)
