from decimal import Decimal
import logging
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError

from ticketswapper.api.deps import get_current_user
from ticketswapper.core.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ticketswapper.db.session import get_db
from ticketswapper.models.base import utcnow
from ticketswapper.models.ticket import Ticket, STATUS_AVAILABLE, STATUS_RESERVED, STATUS_WITHDRAWN
from ticketswapper.models.user import User
from ticketswapper.schemas.pnr import PnrValidationResult, PnrVerifyBody
from ticketswapper.services.pnr import PnrValidator, get_pnr_validator, normalize_pnr

router = APIRouter()
logger = logging.getLogger(__name__)

DUPLICATE_LISTING = "This ticket has already been listed and cannot be listed again."

class CreateTicketBody(BaseModel):
    pnr_number: str = Field(..., min_length=1)
    passenger_name: str = ""
    operator: str = "auto"
    transport_mode: str = Field("bus", pattern="^(bus|train|plane)$")
    selling_price: float = Field(..., gt=0, description="Asking price in major currency units")

def _ticket_out(t: Ticket, include_private: bool = False) -> dict:
    data = {
        "id": t.id,
        "pnr_number": t.pnr_number,
        "operator": t.operator,
        "transport_mode": t.transport_mode,
        "from_location": t.from_location,
        "to_location": t.to_location,
        "departure_date": t.departure_date,
        "departure_time": t.departure_time,
        "seat_number": t.seat_number,
        "original_price": float(t.original_price) if t.original_price is not None else None,
        "selling_price": float(t.selling_price),
        "status": t.status,
        "verification_status": t.verification_status,
        "seller_id": t.seller_id,
        "created_at": t.created_at.isoformat() if t.created_at else None,
    }
    if include_private:
        data.update({
            "passenger_name": t.passenger_name,
            "buyer_id": t.buyer_id,
            "buyer_name": t.buyer_name,
            "api_provider": t.api_provider,
            "verification_confidence": t.verification_confidence,
            "verified_at": t.verified_at.isoformat() if t.verified_at else None,
            "sold_at": t.sold_at.isoformat() if t.sold_at else None,
        })
    return data

def _page(q, page: int, page_size: int, include_private: bool = False) -> dict:
    total = q.count()
    offset = (page - 1) * page_size
    items = [_ticket_out(t, include_private) for t in q.offset(offset).limit(page_size).all()]
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "pages": (total + page_size - 1)//page_size if total else 1,
    }

@router.post("/verify-pnr", response_model=PnrValidationResult)
def verify_pnr(
    body: PnrVerifyBody,
    user: User = Depends(get_current_user),
    validator: PnrValidator = Depends(get_pnr_validator),
):
    """Check a PNR against the external record store without listing anything."""
    return validator.validate(body.pnr, body.operator, body.passenger_name)

@router.post("", status_code=201)
@router.post("/", status_code=201)
def create_ticket(
    payload: CreateTicketBody,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    validator: PnrValidator = Depends(get_pnr_validator),
):
    """List a ticket for sale.

    The PNR is verified server-side and the trip details are taken from the
    external record, not from the request. A PNR can be listed once per
    transport mode.
    """
    pnr = normalize_pnr(payload.pnr_number)
    duplicate = db.query(Ticket.id).filter(Ticket.pnr_number == pnr, Ticket.transport_mode == payload.transport_mode).first()
    if duplicate:
        raise ConflictError(DUPLICATE_LISTING)
    result = validator.validate(pnr, payload.operator, payload.passenger_name)
    if not result.is_valid or result.ticket_data is None:
        raise BadRequestError(result.error or "Ticket verification failed", reason=result.reason)
    data = result.ticket_data
    now = utcnow()
    t = Ticket(
        pnr_number=pnr,
        passenger_name=data.passenger_name,
        operator=data.bus_operator,
        transport_mode=payload.transport_mode,
        from_location=data.from_location,
        to_location=data.to_location,
        departure_date=data.departure_date,
        departure_time=data.departure_time,
        seat_number=data.seat_number,
        original_price=Decimal(str(data.ticket_price)),
        selling_price=Decimal(str(payload.selling_price)).quantize(Decimal("0.01")),
        status=STATUS_AVAILABLE,
        verification_status="verified",
        api_provider=result.api_provider,
        verification_confidence=result.confidence,
        verified_at=now,
        seller_id=user.id,
    )
    db.add(t)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent listing of the same PNR won the race
        db.rollback()
        raise ConflictError(DUPLICATE_LISTING)
    db.refresh(t)
    logger.info("Ticket %s listed by user %s", t.id, user.id)
    return _ticket_out(t, include_private=True)

@router.get("")
@router.get("/")
def list_tickets(
    db: Session = Depends(get_db),
    from_location: str | None = None,
    to_location: str | None = None,
    departure_date: str | None = Query(None, description="YYYY-MM-DD"),
    transport_mode: str | None = Query(None, pattern="^(bus|train|plane)$"),
    min_price: float | None = Query(None, ge=0),
    max_price: float | None = Query(None, ge=0),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
):
    """Browse tickets open for purchase (including lapsed reservations)."""
    now = utcnow()
    q = db.query(Ticket).filter(or_(
        Ticket.status == STATUS_AVAILABLE,
        and_(Ticket.status == STATUS_RESERVED, Ticket.reserved_until < now),
    ))
    if from_location:
        q = q.filter(Ticket.from_location.ilike(f"%{from_location.strip()}%"))
    if to_location:
        q = q.filter(Ticket.to_location.ilike(f"%{to_location.strip()}%"))
    if departure_date:
        q = q.filter(Ticket.departure_date == departure_date)
    if transport_mode:
        q = q.filter(Ticket.transport_mode == transport_mode)
    if min_price is not None:
        q = q.filter(Ticket.selling_price >= min_price)
    if max_price is not None:
        q = q.filter(Ticket.selling_price <= max_price)
    q = q.order_by(Ticket.departure_date.asc(), Ticket.departure_time.asc(), Ticket.id.asc())
    return _page(q, page, page_size)

@router.get("/my")
def my_listings(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    status_filter: str | None = Query(None, pattern="^(available|reserved|sold|withdrawn)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
):
    q = db.query(Ticket).filter(Ticket.seller_id == user.id)
    if status_filter:
        q = q.filter(Ticket.status == status_filter)
    q = q.order_by(Ticket.created_at.desc(), Ticket.id.desc())
    return _page(q, page, page_size, include_private=True)

@router.get("/purchased")
def purchased_tickets(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
):
    q = db.query(Ticket).filter(Ticket.buyer_id == user.id).order_by(Ticket.sold_at.desc(), Ticket.id.desc())
    return _page(q, page, page_size, include_private=True)

@router.get("/{ticket_id}")
def get_ticket(ticket_id: int, db: Session = Depends(get_db)):
    t = db.get(Ticket, ticket_id)
    if not t:
        raise NotFoundError("Ticket not found")
    return _ticket_out(t)

@router.delete("/{ticket_id}")
def withdraw_ticket(ticket_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Withdraw a listing.

    Rules:
    - Only the seller can withdraw.
    - Only an available ticket can be withdrawn (409 while reserved or sold).
    - Withdrawing twice is idempotent.
    """
    t = db.get(Ticket, ticket_id)
    if not t:
        raise NotFoundError("Ticket not found")
    if t.seller_id != user.id:
        raise ForbiddenError("Forbidden")
    if t.status == STATUS_WITHDRAWN:
        return {"id": t.id, "status": t.status}
    if t.status != STATUS_AVAILABLE:
        raise ConflictError(f"Ticket is {t.status} and cannot be withdrawn")
    t.status = STATUS_WITHDRAWN
    db.commit()
    return {"id": t.id, "status": t.status}
