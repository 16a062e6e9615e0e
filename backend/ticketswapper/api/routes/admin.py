import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session
import httpx

from ticketswapper.api.deps import require_roles
from ticketswapper.api.routes.ledger import payout_out, transaction_out
from ticketswapper.core.errors import ConflictError, GatewayError, NotFoundError
from ticketswapper.db.session import get_db
from ticketswapper.models.base import utcnow
from ticketswapper.models.payout import Payout
from ticketswapper.models.ticket import Ticket
from ticketswapper.models.transaction import Transaction
from ticketswapper.models.user import User
from ticketswapper.services.pnr import PnrValidator, RecordStoreError, get_pnr_validator
from ticketswapper.services.reservations import release_expired_reservations
from ticketswapper.services.ticket_sync import sync_with_external

router = APIRouter(dependencies=[Depends(require_roles("admin"))])
logger = logging.getLogger(__name__)


@router.get("/stats")
def stats(db: Session = Depends(get_db)):
    """Counts of users, tickets per status and money held in escrow."""
    tickets_by_status = dict(db.query(Ticket.status, func.count(Ticket.id)).group_by(Ticket.status).all())
    held = db.query(func.coalesce(func.sum(Transaction.amount), 0)).filter(
        Transaction.status == "completed", Transaction.escrow_status == "held"
    ).scalar()
    pending_payouts = db.query(func.coalesce(func.sum(Payout.amount), 0)).filter(Payout.status == "pending").scalar()
    return {
        "users": db.query(User).count(),
        "tickets": tickets_by_status,
        "escrow_held": float(held or 0),
        "pending_payouts": float(pending_payouts or 0),
    }


@router.get("/transactions")
def list_transactions(
    db: Session = Depends(get_db),
    status: str | None = Query(None, pattern="^(completed|failed|refunded)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
):
    q = db.query(Transaction)
    if status:
        q = q.filter(Transaction.status == status)
    total = q.count()
    items = q.order_by(Transaction.id.desc()).offset((page - 1) * page_size).limit(page_size).all()
    return {
        "items": [transaction_out(tx) for tx in items],
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": (total + page_size - 1)//page_size if total else 1,
    }


@router.post("/payouts/{payout_id}/mark-paid")
def mark_payout_paid(payout_id: int, db: Session = Depends(get_db)):
    """Record that a pending payout was disbursed to the seller.

    Releases the escrow on the underlying transaction. Only payouts of
    completed transactions can be paid; paying twice is idempotent.
    """
    p = db.get(Payout, payout_id)
    if not p:
        raise NotFoundError("Payout not found")
    if p.status == "paid":
        return payout_out(p)
    if p.status != "pending":
        raise ConflictError(f"Payout is {p.status}")
    tx = db.get(Transaction, p.transaction_id)
    if not tx or tx.status != "completed":
        raise ConflictError("Transaction is not completed")
    p.status = "paid"
    p.paid_at = utcnow()
    tx.escrow_status = "released"
    db.commit()
    db.refresh(p)
    logger.info("Payout %s marked paid (transaction %s)", p.id, tx.id)
    return payout_out(p)


@router.post("/reservations/release-expired")
def release_expired(db: Session = Depends(get_db)):
    released = release_expired_reservations(db)
    db.commit()
    return {"released": released}


@router.post("/sync-external")
def sync_external(db: Session = Depends(get_db), validator: PnrValidator = Depends(get_pnr_validator)):
    """Remove listings whose PNR disappeared from the external record store."""
    try:
        removed = sync_with_external(db, validator)
    except (httpx.HTTPError, RecordStoreError) as e:
        logger.warning("External sync aborted: %s", e)
        raise GatewayError(f"External record store unavailable: {e}")
    return {"removed": removed, "count": len(removed)}
