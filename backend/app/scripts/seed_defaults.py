"""
Seed script: create tables and the default tax settings row
Run: python -m app.scripts.seed_defaults
"""
import logging
from sqlmodel import Session
from app.core.config import settings
from app.core.logging import setup_logging
from app.db.session import engine, create_db_and_tables
from app.services.repository import get_tax_settings

logger = logging.getLogger(__name__)


def seed_tax_settings():
    """Create tax settings if they do not exist"""
    with Session(engine) as session:
        tax_settings = get_tax_settings(session)
        logger.info(
            "Tax settings: state=%s rate=%s%% inclusive=%s",
            tax_settings.store_state,
            tax_settings.default_gst_rate,
            tax_settings.price_includes_tax,
        )


def main():
    setup_logging(settings.LOG_LEVEL)
    logger.info("Creating tables...")
    create_db_and_tables()
    logger.info("Seeding tax settings...")
    seed_tax_settings()
    logger.info("Done!")


if __name__ == "__main__":
    main()
