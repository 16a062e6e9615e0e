import logging
from ticketswapper.db.session import engine, SessionLocal
from ticketswapper.models import user  # noqa: F401
from ticketswapper.models import ticket  # noqa: F401
from ticketswapper.models import transaction  # noqa: F401
from ticketswapper.models import payout  # noqa: F401
from ticketswapper.models import notification  # noqa: F401
from ticketswapper.models.base import Base, utcnow
from ticketswapper.models.user import User
from ticketswapper.core.config import settings
from ticketswapper.core.security import get_password_hash

logger = logging.getLogger(__name__)

def create_tables():
    """Create every table directly (tests, throwaway databases). Deployments use Alembic."""
    Base.metadata.create_all(bind=engine)

def seed_demo_data():
    db = SessionLocal()
    try:
        # Seed default admin (idempotent); admins are created already confirmed
        admin_email = (settings.seed_admin_email or "admin@example.com").lower()
        admin_pwd = settings.seed_admin_password or "Admin1234!"

        admin = db.query(User).filter(User.email == admin_email).first()
        if not admin:
            admin = User(
                email=admin_email,
                full_name="Admin",
                hashed_password=get_password_hash(admin_pwd),
                role="admin",
                is_active=True,
                email_confirmed_at=utcnow(),
            )
            db.add(admin)
            db.commit()
            logger.info("Seeded admin user %s", admin_email)
    finally:
        db.close()
