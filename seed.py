"""
Create the database tables and insert the default category set.

Categories are only inserted when the table is empty, so the script can be
run repeatedly:

    python seed.py
"""

from __future__ import annotations

import logging

from db import SessionLocal, engine, Base
from app.services.categories import seed_default_categories

logger = logging.getLogger("finance_tracker.seed")


def seed_database() -> int:
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        created = seed_default_categories(session)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if created:
        logger.info("Seeded %d categories", created)
    else:
        logger.info("Categories already exist, skipping seed")
    return created


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    seed_database()
