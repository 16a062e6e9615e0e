from fastapi import APIRouter

from ticketswapper.api.routes import health, auth, tickets, payments, ledger, notifications, admin

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])  # GET /
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])  # POST /login, /register, /confirm-email
api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])  # listing, browsing, PNR check
api_router.include_router(payments.router, tags=["payments"])  # POST /create-razorpay-order, /verify-razorpay-payment, /razorpay-webhook
api_router.include_router(ledger.router, tags=["ledger"])  # GET /transactions, /payouts
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])  # admin endpoints
