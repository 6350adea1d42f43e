# db.py
# Role: Database bootstrap for the FastAPI finance tracker.
#       Defines the SQLAlchemy engine, session factory, and declarative Base.
#       Reads the connection URL from the environment (.env supported) and
#       falls back to a SQLite file under <project_root>/database/.

"""
Database setup for the finance tracker.

- FINANCE_DB_URL overrides the connection URL.
- Default: SQLite database at <project_root>/database/finance.db
  (the 'database' folder is created when the default is used).
"""

import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

load_dotenv()

# Base directory of the project (where this module lives)
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Folder for the default SQLite DB
DB_DIR = os.path.join(BASE_DIR, "database")

# Full path to the default SQLite database file
DB_PATH = os.path.join(DB_DIR, "finance.db")


def get_database_url() -> str:
    url = os.getenv("FINANCE_DB_URL", "").strip()
    if url:
        return url
    os.makedirs(DB_DIR, exist_ok=True)  # ensure folder exists
    return f"sqlite:///{DB_PATH}"


DATABASE_URL = get_database_url()


def build_engine(url: str, **kwargs):
    """
    Create an engine for `url`.

    SQLite needs check_same_thread=False because FastAPI runs sync
    handlers in a threadpool.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    return create_engine(url, **kwargs)


engine = build_engine(DATABASE_URL)

# Standard session factory used via dependency injection (see app/deps.py:get_db)
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

# Declarative base class for ORM models
Base = declarative_base()
