import os
import pathlib
import sys
import tempfile
from decimal import Decimal

import pytest


REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))


def pytest_configure():
    os.environ.setdefault("FINANCE_SEED_CATEGORIES", "0")
    if os.getenv("FINANCE_DB_URL"):
        return
    temp_dir = tempfile.mkdtemp(prefix="finance-tracker-tests-")
    db_path = pathlib.Path(temp_dir) / "pytest.db"
    os.environ["FINANCE_DB_URL"] = f"sqlite:///{db_path}"


@pytest.fixture()
def sqlite_engine():
    from db import Base, engine
    import models  # noqa: F401  (registers tables)

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db(sqlite_engine):
    from db import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def api_client(db):
    from fastapi.testclient import TestClient

    from app.deps import get_db
    from main import app

    def _get_test_db():
        yield db

    app.dependency_overrides[get_db] = _get_test_db
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def make_account(db):
    from models import Account

    def _make(name="Checking", balance="0", currency="PYG"):
        account = Account(name=name, balance=Decimal(balance), currency=currency)
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    return _make


@pytest.fixture()
def make_category(db):
    from models import Category, CategoryType

    def _make(name="Comida", type=CategoryType.EXPENSE, color="#f43f5e", icon=None):
        category = Category(name=name, type=CategoryType(type), color=color, icon=icon)
        db.add(category)
        db.commit()
        db.refresh(category)
        return category

    return _make


@pytest.fixture()
def balance_of(db):
    from models import Account

    def _balance(account_id):
        db.expire_all()
        return db.get(Account, account_id).balance

    return _balance
