from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
import importlib.util
from ticketswapper.core.config import settings

# DATABASE_URL must be set. Postgres in every deployed environment; the test
# suite points it at a throwaway SQLite file.
SQLALCHEMY_DATABASE_URL = settings.database_url
if not SQLALCHEMY_DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable must be set")

# If the provided URL is the plain 'postgresql://' (or legacy 'postgres://') SQLAlchemy
# will try to load the default driver (psycopg2). We only depend on 'psycopg' v3
# (psycopg[binary]), so the URL is rewritten to the 'psycopg' driver if psycopg2 is absent.
psycopg2_present = importlib.util.find_spec("psycopg2") is not None

if not psycopg2_present and SQLALCHEMY_DATABASE_URL.startswith(("postgres://", "postgresql://")) and "+psycopg" not in SQLALCHEMY_DATABASE_URL:
    # Normalize legacy prefix 'postgres://' -> 'postgresql://'
    if SQLALCHEMY_DATABASE_URL.startswith("postgres://"):
        SQLALCHEMY_DATABASE_URL = "postgresql://" + SQLALCHEMY_DATABASE_URL[len("postgres://"):]
    # Inject driver
    SQLALCHEMY_DATABASE_URL = SQLALCHEMY_DATABASE_URL.replace("postgresql://", "postgresql+psycopg://", 1)

connect_args = {}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    # TestClient serves requests from a worker thread
    connect_args["check_same_thread"] = False

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=connect_args, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
