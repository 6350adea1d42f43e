# main.py
# Role: Application entry point for the finance tracker.
#       Initializes the FastAPI app, configures logging, creates database
#       tables, seeds default categories, and registers all route modules.

"""
Main FastAPI app for the personal finance tracker.

Here we only:
- configure logging
- create DB tables
- create the FastAPI app (seeding default categories on startup)
- include route modules
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from db import Base, engine, SessionLocal
from app.deps import SEED_CATEGORIES
from app.routes_root import router as root_router
from app.routes_accounts import router as accounts_router
from app.routes_categories import router as categories_router
from app.routes_transactions import router as transactions_router
from app.routes_import import router as import_router
from app.routes_dashboard import router as dashboard_router
from app.services.categories import seed_default_categories


# -------------------------------------------------------------------
# Logging & DB setup
# -------------------------------------------------------------------

logging.basicConfig(
    level=os.getenv("FINANCE_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("finance_tracker")

# Create database tables (only if they don't exist yet).
# This is safe to run on startup for SQLite and development usage.
Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if SEED_CATEGORIES:
        db = SessionLocal()
        try:
            seed_default_categories(db)
        finally:
            db.close()
    logger.info("Finance tracker started")
    yield


# FastAPI application instance
app = FastAPI(title="Finance Tracker", lifespan=lifespan)

# -------------------------------------------------------------------
# Include routers
# -------------------------------------------------------------------

# Root / landing routes
app.include_router(root_router)

# Bank accounts
app.include_router(accounts_router)

# Income / expense categories
app.include_router(categories_router)

# Transactions list and create / edit / delete
app.include_router(transactions_router)

# Excel import → reconcile, and export
app.include_router(import_router)

# Dashboard summary and analytics
app.include_router(dashboard_router)
