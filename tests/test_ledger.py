from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import inspect

from models import Category, CategoryType, Transaction, TransactionType
from app.schemas import TransactionInput
from app.services import ledger
from app.services.balance import balance_deltas, effect_of


def expense(account_id, amount, **kwargs):
    return TransactionInput(
        type=TransactionType.EXPENSE, amount=Decimal(str(amount)), account_id=account_id, **kwargs
    )


def income(account_id, amount, **kwargs):
    return TransactionInput(
        type=TransactionType.INCOME, amount=Decimal(str(amount)), account_id=account_id, **kwargs
    )


def transfer(account_id, to_account_id, amount, **kwargs):
    return TransactionInput(
        type=TransactionType.TRANSFER,
        amount=Decimal(str(amount)),
        account_id=account_id,
        to_account_id=to_account_id,
        **kwargs,
    )


def count_transactions(db):
    db.expire_all()
    return db.query(Transaction).count()


# ---- create ----

def test_income_and_expense_adjust_balance(db, make_account, balance_of):
    acc = make_account(balance="1000")

    assert ledger.create_transaction(db, income(acc.id, 250))["success"] is True
    assert ledger.create_transaction(db, expense(acc.id, 100.5))["success"] is True

    assert balance_of(acc.id) == Decimal("1149.50")


def test_expense_with_digital_tax_creates_dependent_row(db, make_account, balance_of):
    acc = make_account(name="Checking", balance="1000")

    result = ledger.create_transaction(
        db, expense(acc.id, 200, description="Netflix", apply_digital_tax=True)
    )

    assert result["success"] is True
    assert balance_of(acc.id) == Decimal("780")
    assert count_transactions(db) == 2

    parent = db.get(Transaction, result["id"])
    tax = ledger.find_tax_transaction(db, parent.id)
    assert parent.amount == Decimal("200")
    assert parent.is_digital_tax is False
    assert tax.amount == Decimal("20")
    assert tax.is_digital_tax is True
    assert tax.type == TransactionType.EXPENSE
    assert tax.parent_transaction_id == parent.id
    assert tax.account_id == acc.id
    assert tax.description == "Netflix (IVA Digital)"
    assert db.get(Category, tax.category_id).name == "IVA Digital"


def test_digital_tax_rounds_half_up(db, make_account, balance_of):
    acc = make_account(balance="100")

    result = ledger.create_transaction(db, expense(acc.id, "10.05", apply_digital_tax=True))

    tax = ledger.find_tax_transaction(db, result["id"])
    assert ledger.compute_digital_tax(Decimal("10.05")) == Decimal("1.01")
    assert tax.amount == Decimal("1.01")
    assert balance_of(acc.id) == Decimal("100") - Decimal("10.05") - Decimal("1.01")


def test_digital_tax_category_is_reused(db, make_account):
    acc = make_account(balance="100")

    ledger.create_transaction(db, expense(acc.id, 10, apply_digital_tax=True))
    ledger.create_transaction(db, expense(acc.id, 20, apply_digital_tax=True))

    assert db.query(Category).filter(Category.name == "IVA Digital").count() == 1


def test_digital_tax_ignored_for_income(db, make_account, balance_of):
    acc = make_account(balance="0")

    ledger.create_transaction(db, income(acc.id, 100, apply_digital_tax=True))

    assert count_transactions(db) == 1
    assert balance_of(acc.id) == Decimal("100")


def test_transfer_moves_balance_without_category(db, make_account, make_category, balance_of):
    a = make_account(name="A", balance="100")
    b = make_account(name="B", balance="0")
    cat = make_category()

    result = ledger.create_transaction(db, transfer(a.id, b.id, 50, category_id=cat.id))

    assert result["success"] is True
    assert balance_of(a.id) == Decimal("50")
    assert balance_of(b.id) == Decimal("50")
    assert count_transactions(db) == 1
    assert db.get(Transaction, result["id"]).category_id is None


def test_destination_dropped_for_non_transfer(db, make_account, balance_of):
    a = make_account(name="A", balance="0")
    b = make_account(name="B", balance="0")

    result = ledger.create_transaction(db, income(a.id, 10, to_account_id=b.id))

    assert db.get(Transaction, result["id"]).to_account_id is None
    assert balance_of(b.id) == Decimal("0")


def test_date_defaults_to_now(db, make_account):
    acc = make_account()
    before = datetime.now()

    result = ledger.create_transaction(db, income(acc.id, 1))

    assert db.get(Transaction, result["id"]).date >= before.replace(microsecond=0)


@pytest.mark.parametrize(
    "payload, message",
    [
        (TransactionInput(amount=Decimal("10"), account_id=1), ledger.ERR_REQUIRED),
        (TransactionInput(type=TransactionType.INCOME, account_id=1), ledger.ERR_REQUIRED),
        (TransactionInput(type=TransactionType.INCOME, amount=Decimal("10")), ledger.ERR_REQUIRED),
        (
            TransactionInput(type=TransactionType.EXPENSE, amount=Decimal("-5"), account_id=1),
            ledger.ERR_AMOUNT,
        ),
        (
            TransactionInput(type=TransactionType.EXPENSE, amount=Decimal("0.004"), account_id=1),
            ledger.ERR_AMOUNT,
        ),
        (
            TransactionInput(type=TransactionType.TRANSFER, amount=Decimal("5"), account_id=1),
            ledger.ERR_DESTINATION_REQUIRED,
        ),
        (
            TransactionInput(
                type=TransactionType.TRANSFER, amount=Decimal("5"), account_id=1, to_account_id=1
            ),
            ledger.ERR_SAME_ACCOUNT,
        ),
        (
            TransactionInput(type=TransactionType.INCOME, amount=Decimal("5"), account_id=999),
            ledger.ERR_ACCOUNT_NOT_FOUND,
        ),
        (
            TransactionInput(
                type=TransactionType.TRANSFER, amount=Decimal("5"), account_id=1, to_account_id=999
            ),
            ledger.ERR_DESTINATION_NOT_FOUND,
        ),
    ],
)
def test_create_rejects_invalid_input_without_writing(db, make_account, balance_of, payload, message):
    acc = make_account(balance="100")
    assert acc.id == 1

    result = ledger.create_transaction(db, payload)

    assert result == {"error": message}
    assert count_transactions(db) == 0
    assert balance_of(acc.id) == Decimal("100")


def test_amount_rounds_half_up_before_storage(db, make_account, balance_of):
    acc = make_account(balance="100")

    result = ledger.create_transaction(db, expense(acc.id, "0.005"))

    assert db.get(Transaction, result["id"]).amount == Decimal("0.01")
    assert balance_of(acc.id) == Decimal("99.99")


def test_category_must_exist_and_match_type(db, make_account, make_category, balance_of):
    acc = make_account(balance="100")
    food = make_category(name="Comida", type=CategoryType.EXPENSE)
    pay = make_category(name="Salario", type=CategoryType.INCOME)

    assert ledger.create_transaction(db, expense(acc.id, 5, category_id=9999)) == {
        "error": ledger.ERR_CATEGORY_NOT_FOUND
    }
    assert ledger.create_transaction(db, income(acc.id, 5, category_id=food.id)) == {
        "error": ledger.ERR_CATEGORY_TYPE
    }
    assert count_transactions(db) == 0
    assert balance_of(acc.id) == Decimal("100")

    tx_id = ledger.create_transaction(db, expense(acc.id, 5, category_id=food.id))["id"]
    assert ledger.update_transaction(db, tx_id, expense(acc.id, 5, category_id=pay.id)) == {
        "error": ledger.ERR_CATEGORY_TYPE
    }
    assert db.get(Transaction, tx_id).category_id == food.id


def test_create_rolls_back_when_tax_insert_fails(db, make_account, balance_of, monkeypatch):
    acc = make_account(balance="1000")

    def boom(db, parent):
        raise RuntimeError("disk full")

    monkeypatch.setattr(ledger, "_create_tax_transaction", boom)

    with pytest.raises(RuntimeError):
        ledger.create_transaction(db, expense(acc.id, 200, apply_digital_tax=True))

    assert count_transactions(db) == 0
    assert balance_of(acc.id) == Decimal("1000")


# ---- update ----

def test_update_reverts_old_effect_and_applies_new(db, make_account, balance_of):
    a = make_account(name="A", balance="100")
    b = make_account(name="B", balance="0")

    tx_id = ledger.create_transaction(db, expense(a.id, 30))["id"]
    result = ledger.update_transaction(db, tx_id, transfer(a.id, b.id, 40))

    assert result["success"] is True
    assert balance_of(a.id) == Decimal("60")
    assert balance_of(b.id) == Decimal("40")

    updated = db.get(Transaction, tx_id)
    assert updated.type == TransactionType.TRANSFER
    assert updated.to_account_id == b.id


def test_update_can_move_transaction_to_other_account(db, make_account, balance_of):
    a = make_account(name="A", balance="0")
    b = make_account(name="B", balance="0")

    tx_id = ledger.create_transaction(db, income(a.id, 75))["id"]
    ledger.update_transaction(db, tx_id, income(b.id, 75))

    assert balance_of(a.id) == Decimal("0")
    assert balance_of(b.id) == Decimal("75")


def test_update_replaces_tax_row(db, make_account, balance_of):
    acc = make_account(balance="1000")

    tx_id = ledger.create_transaction(db, expense(acc.id, 200, apply_digital_tax=True))["id"]
    old_tax = ledger.find_tax_transaction(db, tx_id)

    ledger.update_transaction(db, tx_id, expense(acc.id, 300, apply_digital_tax=True))

    # SQLite may hand the replacement the same rowid, so compare row state instead
    assert inspect(old_tax).was_deleted
    new_tax = ledger.find_tax_transaction(db, tx_id)
    assert new_tax is not old_tax
    assert new_tax.amount == Decimal("30")
    assert count_transactions(db) == 2
    assert balance_of(acc.id) == Decimal("670")


def test_update_without_tax_removes_existing_tax_row(db, make_account, balance_of):
    acc = make_account(balance="1000")

    tx_id = ledger.create_transaction(db, expense(acc.id, 200, apply_digital_tax=True))["id"]
    ledger.update_transaction(db, tx_id, expense(acc.id, 200))

    assert ledger.find_tax_transaction(db, tx_id) is None
    assert count_transactions(db) == 1
    assert balance_of(acc.id) == Decimal("800")


def test_update_adds_tax_to_plain_expense(db, make_account, balance_of):
    acc = make_account(balance="1000")

    tx_id = ledger.create_transaction(db, expense(acc.id, 200))["id"]
    ledger.update_transaction(db, tx_id, expense(acc.id, 200, apply_digital_tax=True))

    assert ledger.find_tax_transaction(db, tx_id).amount == Decimal("20")
    assert balance_of(acc.id) == Decimal("780")


def test_update_tax_row_directly_is_rejected(db, make_account, balance_of):
    acc = make_account(balance="1000")
    tx_id = ledger.create_transaction(db, expense(acc.id, 200, apply_digital_tax=True))["id"]
    tax = ledger.find_tax_transaction(db, tx_id)

    result = ledger.update_transaction(db, tax.id, expense(acc.id, 1))

    assert result == {"error": ledger.ERR_TAX_EDIT}
    assert balance_of(acc.id) == Decimal("780")
    db.expire_all()
    assert db.get(Transaction, tax.id).amount == Decimal("20")


def test_update_with_invalid_input_changes_nothing(db, make_account, balance_of):
    acc = make_account(balance="100")
    tx_id = ledger.create_transaction(db, expense(acc.id, 10))["id"]

    result = ledger.update_transaction(db, tx_id, transfer(acc.id, acc.id, 10))

    assert result == {"error": ledger.ERR_SAME_ACCOUNT}
    assert balance_of(acc.id) == Decimal("90")


def test_update_missing_transaction(db):
    assert ledger.update_transaction(db, 42, income(1, 1)) == {"error": ledger.ERR_NOT_FOUND}


# ---- delete ----

def test_delete_reverts_effect(db, make_account, balance_of):
    a = make_account(name="A", balance="100")
    b = make_account(name="B", balance="0")
    tx_id = ledger.create_transaction(db, transfer(a.id, b.id, 50))["id"]

    assert ledger.delete_transaction(db, tx_id) == {"success": True}

    assert balance_of(a.id) == Decimal("100")
    assert balance_of(b.id) == Decimal("0")
    assert count_transactions(db) == 0


def test_delete_parent_removes_tax_row_and_both_effects(db, make_account, balance_of):
    acc = make_account(balance="1000")
    tx_id = ledger.create_transaction(db, expense(acc.id, 200, apply_digital_tax=True))["id"]

    ledger.delete_transaction(db, tx_id)

    assert count_transactions(db) == 0
    assert balance_of(acc.id) == Decimal("1000")


def test_delete_tax_row_directly_is_rejected(db, make_account, balance_of):
    acc = make_account(balance="1000")
    tx_id = ledger.create_transaction(db, expense(acc.id, 200, apply_digital_tax=True))["id"]
    tax = ledger.find_tax_transaction(db, tx_id)

    result = ledger.delete_transaction(db, tax.id)

    assert result == {"error": ledger.ERR_TAX_DELETE}
    assert count_transactions(db) == 2
    assert balance_of(acc.id) == Decimal("780")


def test_delete_missing_transaction(db):
    assert ledger.delete_transaction(db, 7) == {"error": ledger.ERR_NOT_FOUND}


# ---- derived cache ----

def test_balances_match_sum_of_transaction_effects(db, make_account, balance_of):
    a = make_account(name="A", balance="0")
    b = make_account(name="B", balance="0")

    ids = [
        ledger.create_transaction(db, income(a.id, 500))["id"],
        ledger.create_transaction(db, expense(a.id, 120, apply_digital_tax=True))["id"],
        ledger.create_transaction(db, transfer(a.id, b.id, 80))["id"],
        ledger.create_transaction(db, expense(b.id, "19.99"))["id"],
        ledger.create_transaction(db, income(b.id, 7, description="refund"))["id"],
    ]
    ledger.update_transaction(db, ids[0], income(a.id, 650))
    ledger.update_transaction(db, ids[3], expense(b.id, "33.33", apply_digital_tax=True))
    ledger.delete_transaction(db, ids[2])
    ledger.update_transaction(db, ids[1], transfer(a.id, b.id, 45))
    ledger.delete_transaction(db, ids[4])

    db.expire_all()
    expected = {a.id: Decimal("0"), b.id: Decimal("0")}
    for tx in db.query(Transaction).all():
        for account_id, delta in balance_deltas(effect_of(tx)).items():
            expected[account_id] += delta

    assert balance_of(a.id) == expected[a.id]
    assert balance_of(b.id) == expected[b.id]
    assert expected[a.id] == Decimal("605")
    assert expected[b.id] == Decimal("45") - Decimal("33.33") - Decimal("3.33")


def test_get_transactions_orders_by_date_and_filters_by_account(db, make_account):
    a = make_account(name="A")
    b = make_account(name="B")
    ledger.create_transaction(db, income(a.id, 1, date=datetime(2025, 1, 1)))
    ledger.create_transaction(db, income(a.id, 2, date=datetime(2025, 3, 1)))
    ledger.create_transaction(db, transfer(b.id, a.id, 3, date=datetime(2025, 2, 1)))
    ledger.create_transaction(db, income(b.id, 4, date=datetime(2025, 4, 1)))

    for_a = ledger.get_transactions(db, account_id=a.id)
    assert [t.amount for t in for_a] == [Decimal("2"), Decimal("3"), Decimal("1")]

    assert len(ledger.get_transactions(db, limit=2)) == 2


def test_find_tax_transactions_by_parent(db, make_account):
    acc = make_account(balance="1000")
    taxed = ledger.create_transaction(db, expense(acc.id, 100, apply_digital_tax=True))["id"]
    plain = ledger.create_transaction(db, expense(acc.id, 50))["id"]

    taxes = ledger.find_tax_transactions(db, [taxed, plain])

    assert list(taxes) == [taxed]
    assert taxes[taxed].amount == Decimal("10")
    assert ledger.find_tax_transactions(db, []) == {}
