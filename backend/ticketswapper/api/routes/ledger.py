from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from sqlalchemy import or_

from ticketswapper.api.deps import get_current_user
from ticketswapper.db.session import get_db
from ticketswapper.models.payout import Payout
from ticketswapper.models.transaction import Transaction
from ticketswapper.models.user import User

router = APIRouter()

def transaction_out(tx: Transaction) -> dict:
    return {
        "id": tx.id,
        "ticket_id": tx.ticket_id,
        "buyer_id": tx.buyer_id,
        "seller_id": tx.seller_id,
        "amount": float(tx.amount),
        "platform_fee": float(tx.platform_fee),
        "status": tx.status,
        "escrow_status": tx.escrow_status,
        "payment_method": tx.payment_method,
        "razorpay_order_id": tx.razorpay_order_id,
        "razorpay_payment_id": tx.razorpay_payment_id,
        "created_at": tx.created_at.isoformat() if tx.created_at else None,
        "completed_at": tx.completed_at.isoformat() if tx.completed_at else None,
    }

def payout_out(p: Payout) -> dict:
    return {
        "id": p.id,
        "transaction_id": p.transaction_id,
        "seller_id": p.seller_id,
        "amount": float(p.amount),
        "status": p.status,
        "payment_method": p.payment_method,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "paid_at": p.paid_at.isoformat() if p.paid_at else None,
    }

@router.get("/transactions")
def my_transactions(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    role: str | None = Query(None, pattern="^(buyer|seller)$", description="Restrict to purchases or sales"),
    limit: int = Query(100, ge=1, le=500),
):
    q = db.query(Transaction)
    if role == "buyer":
        q = q.filter(Transaction.buyer_id == user.id)
    elif role == "seller":
        q = q.filter(Transaction.seller_id == user.id)
    else:
        q = q.filter(or_(Transaction.buyer_id == user.id, Transaction.seller_id == user.id))
    items = q.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()
    return [transaction_out(tx) for tx in items]

@router.get("/payouts")
def my_payouts(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    status_filter: str | None = Query(None, pattern="^(pending|paid|cancelled)$"),
):
    q = db.query(Payout).filter(Payout.seller_id == user.id)
    if status_filter:
        q = q.filter(Payout.status == status_filter)
    items = q.order_by(Payout.created_at.desc(), Payout.id.desc()).all()
    pending_total = sum(float(p.amount) for p in items if p.status == "pending")
    return {"items": [payout_out(p) for p in items], "pending_total": pending_total}
