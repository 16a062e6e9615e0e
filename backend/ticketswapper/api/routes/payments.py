from typing import Any

from fastapi import APIRouter, Body, Depends, Header, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ticketswapper.api.deps import get_confirmed_user
from ticketswapper.db.session import get_db
from ticketswapper.models.user import User
from ticketswapper.services import escrow, webhooks
from ticketswapper.services.razorpay import RazorpayClient, get_razorpay_client

router = APIRouter()

@router.post("/create-razorpay-order")
def create_razorpay_order(
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_confirmed_user),
    gateway: RazorpayClient = Depends(get_razorpay_client),
):
    """Reserve the ticket for the caller and open a gateway order for its price.

    Body: ``{ticketId, amount, sellerAmount, platformCommission}``; ``amount`` is in
    major currency units and must equal the ticket's selling price.
    """
    return escrow.create_order(db, gateway, user, body)

@router.post("/verify-razorpay-payment")
def verify_razorpay_payment(
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    user: User = Depends(get_confirmed_user),
):
    """Settle a completed checkout.

    The checkout signature is verified before anything is written; the ticket
    flip, the transaction and the payout are committed together.
    """
    return escrow.verify_payment(db, user, body)

@router.post("/razorpay-webhook")
async def razorpay_webhook(
    request: Request,
    db: Session = Depends(get_db),
    x_razorpay_signature: str | None = Header(None),
):
    # signature is computed over the exact raw bytes
    body = await request.body()
    payload = webhooks.parse_webhook(body, x_razorpay_signature)
    outcome = await run_in_threadpool(webhooks.process_webhook, db, payload)
    return {"success": True, "message": "Webhook processed successfully", "outcome": outcome}
