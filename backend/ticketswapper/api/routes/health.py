from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from ticketswapper.core.config import settings
from ticketswapper.db.session import get_db
from ticketswapper.models.base import utcnow

router = APIRouter()

@router.get("/")
def health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {
        "status": "healthy",
        "service": settings.app_name,
        "timestamp": utcnow().isoformat(),
        "checks": {
            "database": "ok",
            "razorpay": "configured" if settings.razorpay_key_id and settings.razorpay_key_secret else "not_configured",
            "webhook": "configured" if settings.razorpay_webhook_secret else "not_configured",
        },
    }
