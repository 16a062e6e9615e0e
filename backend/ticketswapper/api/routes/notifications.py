from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from datetime import datetime
from typing import Any

from ticketswapper.db.session import get_db
from ticketswapper.api.deps import get_current_user
from ticketswapper.core.errors import NotFoundError
from ticketswapper.models.notification import Notification
from ticketswapper.models.user import User

router = APIRouter()

class NotificationOut(BaseModel):
    id: int
    title: str
    type: str
    message: str
    data: dict[str, Any] | None = None
    created_at: datetime
    read: bool

    class Config:
        from_attributes = True

@router.get("/", response_model=list[NotificationOut])
def list_notifications(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    items = db.query(Notification).filter(Notification.user_id == user.id).order_by(Notification.created_at.desc(), Notification.id.desc()).limit(200).all()
    return items

@router.get("/unread-count", response_model=dict)
def unread_count(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    count = db.query(Notification).filter(Notification.user_id == user.id, Notification.read == False).count()  # noqa: E712
    return {"unread": count}

@router.post("/{notif_id}/read")
def mark_notification(notif_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    n = db.query(Notification).filter(Notification.id == notif_id, Notification.user_id == user.id).first()
    if not n:
        raise NotFoundError("Not found")
    n.read = True
    db.commit()
    return {"status": "ok"}

@router.post("/mark-all-read")
def mark_all_read(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    """Mark every notification of the caller as read."""
    db.query(Notification).filter(Notification.user_id == user.id, Notification.read == False).update({Notification.read: True})  # type: ignore  # noqa: E712
    db.commit()
    return {"status": "ok"}
