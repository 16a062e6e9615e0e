from sqlalchemy import String, Integer, ForeignKey, DateTime, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime
from decimal import Decimal

from ticketswapper.models.base import Base, utcnow

# Lifecycle: available -> reserved -> sold; reserved -> available on expiry;
# sold -> available on gateway failure/refund; available -> withdrawn by seller.
STATUS_AVAILABLE = "available"
STATUS_RESERVED = "reserved"
STATUS_SOLD = "sold"
STATUS_WITHDRAWN = "withdrawn"

TRANSPORT_MODES = ("bus", "train", "plane")

class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        UniqueConstraint("pnr_number", "transport_mode", name="uq_tickets_pnr_mode"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    pnr_number: Mapped[str] = mapped_column(String(15), index=True)
    passenger_name: Mapped[str] = mapped_column(String(255))
    operator: Mapped[str] = mapped_column(String(120))
    transport_mode: Mapped[str] = mapped_column(String(16), default="bus")
    from_location: Mapped[str] = mapped_column(String(120), index=True)
    to_location: Mapped[str] = mapped_column(String(120), index=True)
    # Kept as the external record store reports them: YYYY-MM-DD and HH:MM
    departure_date: Mapped[str] = mapped_column(String(10), index=True)
    departure_time: Mapped[str] = mapped_column(String(8))
    seat_number: Mapped[str] = mapped_column(String(64))
    original_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    selling_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    status: Mapped[str] = mapped_column(String(32), default=STATUS_AVAILABLE, index=True)
    verification_status: Mapped[str] = mapped_column(String(32), default="verified")
    api_provider: Mapped[str | None] = mapped_column(String(64), nullable=True)
    verification_confidence: Mapped[int | None] = mapped_column(Integer, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    seller_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    buyer_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    buyer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    reserved_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    reserved_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    # Gateway order bound to the latest reservation
    razorpay_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    sold_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
