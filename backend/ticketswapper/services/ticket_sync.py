import logging

from sqlalchemy import exists
from sqlalchemy.orm import Session

from ticketswapper.models.ticket import Ticket, STATUS_AVAILABLE, STATUS_WITHDRAWN
from ticketswapper.models.transaction import Transaction
from ticketswapper.services.pnr import PnrValidator, normalize_pnr

logger = logging.getLogger(__name__)

# Sold and reserved tickets, and anything with a transaction, are never pruned
PRUNABLE_STATUSES = (STATUS_AVAILABLE, STATUS_WITHDRAWN)


def sync_with_external(db: Session, validator: PnrValidator) -> list[dict]:
    """Delete local listings whose PNR no longer exists in the external record store.

    Network or format errors from the record store propagate; nothing is deleted then.
    """
    records = validator.fetch_records()
    external = {normalize_pnr(str(r.get("pnr_number") or "")) for r in records if isinstance(r, dict)}
    external.discard("")

    stale = (
        db.query(Ticket)
        .filter(Ticket.status.in_(PRUNABLE_STATUSES))
        .filter(~exists().where(Transaction.ticket_id == Ticket.id))
        .order_by(Ticket.id.asc())
        .all()
    )
    removed = []
    for t in stale:
        if normalize_pnr(t.pnr_number) in external:
            continue
        removed.append({"id": t.id, "pnr_number": t.pnr_number, "seller_id": t.seller_id})
        db.delete(t)
    db.commit()
    logger.info("External sync: %d record(s) upstream, %d local listing(s) removed", len(external), len(removed))
    return removed
