"""Apply the TicketSwapper migrations by hand and report what happened.

Run from the backend directory inside an active virtual environment:
    python debug_alembic.py

Logs the resolved config and any exception raised by the upgrade."""
from alembic.config import Config
from alembic import command
import logging
import os
import sys

from ticketswapper.core.logging import setup_logging

logger = logging.getLogger("debug_alembic")

def main():
    setup_logging("DEBUG")
    here = os.path.abspath(os.path.dirname(__file__))
    ini_path = os.path.join(here, "alembic.ini")
    if not os.path.exists(ini_path):
        logger.error("alembic.ini not found at %s", ini_path)
        sys.exit(1)
    cfg = Config(ini_path)
    cfg.set_main_option("script_location", os.path.join(here, "alembic"))
    logger.info("Using alembic.ini: %s", ini_path)
    logger.info("script_location: %s", cfg.get_main_option("script_location"))
    if not os.getenv("DATABASE_URL"):
        logger.warning("DATABASE_URL env not set; the settings file value is used if present")
    try:
        logger.info("Upgrading to head...")
        command.upgrade(cfg, "head")
        logger.info("Upgrade complete")
    except Exception:
        logger.exception("Upgrade failed")
        sys.exit(2)

if __name__ == "__main__":
    main()
