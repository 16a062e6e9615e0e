from fastapi import FastAPI
import asyncio
import logging
import os
from pathlib import Path
from fastapi.middleware.cors import CORSMiddleware

from ticketswapper.api.router import api_router
from ticketswapper.core.config import settings
from ticketswapper.core.errors import register_exception_handlers
from ticketswapper.core.logging import setup_logging
from ticketswapper.db.init_db import create_tables, seed_demo_data
from ticketswapper.services.reservations import reservation_sweeper_loop

setup_logging(settings.log_level)
logger = logging.getLogger(__name__)

def _run_migrations_if_needed():
    """Apply Alembic migrations automatically in production if enabled.

    Controlled by env var AUTO_APPLY_MIGRATIONS (default: '1'). Safe to run repeatedly.
    """
    if settings.env.lower() != "prod":
        return
    if os.getenv("AUTO_APPLY_MIGRATIONS", "1") != "1":
        return
    from alembic import command
    from alembic.config import Config
    alembic_ini = Path(__file__).resolve().parents[1] / "alembic.ini"
    if not alembic_ini.exists():
        logger.warning("[migrate] alembic.ini not found at %s, skipping auto-migrations", alembic_ini)
        return
    cfg = Config(str(alembic_ini))
    # Ensure script_location resolves correctly when launched from arbitrary CWD
    script_location = Path(__file__).resolve().parents[1] / "alembic"
    if script_location.exists():
        cfg.set_main_option("script_location", str(script_location))
    logger.info("[migrate] Applying Alembic migrations -> head ...")
    try:
        command.upgrade(cfg, "head")
    except Exception:  # pragma: no cover
        # Do not kill the app on migration failure; can be retried manually.
        logger.exception("[migrate] Migration failed")
        return
    logger.info("[migrate] Migrations applied successfully")

app = FastAPI(title=settings.app_name, version="0.1.0")

# Configurable CORS origins (CORS_ORIGINS env). If empty -> dev defaults.
origins = settings.cors_origins
logger.info("[startup] Resolved CORS origins: %s", origins)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.include_router(api_router)

@app.on_event("startup")
async def startup():
    # Seed only idempotent data (admin) AFTER migrations applied.
    _run_migrations_if_needed()
    if settings.env.lower() in {"dev", "development"}:
        create_tables()
        seed_demo_data()
    asyncio.create_task(reservation_sweeper_loop())
