import os
import sys
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from shoptrack.db.session import Base
from shoptrack.core.errors import StockError
from shoptrack.crud.partners import create_partner
from shoptrack.crud.products import create_product, get_product
from shoptrack.crud.transactions import (
    create_transaction,
    delete_transaction,
    get_transaction,
    list_transactions,
    update_transaction,
)
from shoptrack.models.transaction import Transaction

from shoptrack import models  # noqa: F401


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def cable(db_session):
    return create_product(
        db_session,
        {"type": "sku", "name": "HDMI cable", "category": "Cables", "price": "3.10", "stock": 5},
    )


def _count(db):
    return db.execute(select(func.count()).select_from(Transaction)).scalar_one()


def test_purchase_adds_stock_and_computes_total(db_session, cable):
    txn = create_transaction(
        db_session,
        {"product_id": cable.id, "type": "purchase", "quantity": 4, "price": Decimal("3.10"), "party": "Depot"},
    )

    assert txn.total_amount == Decimal("12.40")
    assert txn.party == "Depot"
    assert txn.product_name == "HDMI cable"
    assert get_product(db_session, cable.id).stock == 9


def test_sale_without_partner_is_booked_to_walk_in(db_session, cable):
    txn = create_transaction(
        db_session,
        {"product_id": cable.id, "type": "sale", "quantity": 2, "price": Decimal("7.99"), "partner_id": "CUSTOMER"},
    )

    assert txn.partner_id is None
    assert txn.party == "Walk-in customer"
    assert txn.total_amount == Decimal("15.98")
    assert get_product(db_session, cable.id).stock == 3


def test_party_defaults_to_partner_name(db_session, cable):
    partner = create_partner(db_session, {"type": "individual", "name": "Faisal", "phone": "1"})

    txn = create_transaction(
        db_session,
        {"product_id": cable.id, "type": "sale", "quantity": 1, "price": Decimal("8"), "partner_id": partner.id},
    )

    assert txn.partner_id == partner.id
    assert txn.party == "Faisal"


def test_overselling_is_rejected_without_writes(db_session, cable):
    with pytest.raises(StockError) as excinfo:
        create_transaction(
            db_session,
            {"product_id": cable.id, "type": "sale", "quantity": 6, "price": Decimal("7")},
        )

    assert excinfo.value.code == "insufficient_stock"
    assert excinfo.value.details["available"] == 5
    assert _count(db_session) == 0
    assert get_product(db_session, cable.id).stock == 5


def test_unknown_partner_rolls_back(db_session, cable):
    with pytest.raises(ValueError):
        create_transaction(
            db_session,
            {"product_id": cable.id, "type": "purchase", "quantity": 1, "price": Decimal("1"), "partner_id": "ghost"},
        )

    assert _count(db_session) == 0


def test_total_amount_stays_exact_after_repeated_edits(db_session, cable):
    txn = create_transaction(
        db_session,
        {"product_id": cable.id, "type": "sale", "quantity": 1, "price": Decimal("0.10")},
    )

    for quantity, price in [(3, Decimal("0.10")), (2, Decimal("19.99")), (4, Decimal("0.33"))]:
        txn = update_transaction(db_session, txn, {"quantity": quantity, "price": price})
        assert txn.total_amount == txn.price * txn.quantity

    assert txn.total_amount == Decimal("1.32")
    assert get_product(db_session, cable.id).stock == 1


def test_update_rejects_changes_that_break_stock(db_session, cable):
    txn = create_transaction(
        db_session,
        {"product_id": cable.id, "type": "sale", "quantity": 2, "price": Decimal("5")},
    )

    with pytest.raises(StockError):
        update_transaction(db_session, txn, {"quantity": 9, "price": Decimal("5")})

    db_session.expire_all()
    assert get_transaction(db_session, txn.id).quantity == 2
    assert get_product(db_session, cable.id).stock == 3


def test_delete_reverses_the_stock_effect(db_session, cable):
    purchase = create_transaction(
        db_session,
        {"product_id": cable.id, "type": "purchase", "quantity": 10, "price": Decimal("2")},
    )
    assert get_product(db_session, cable.id).stock == 15

    delete_transaction(db_session, purchase)

    assert _count(db_session) == 0
    assert get_product(db_session, cable.id).stock == 5


def test_deleting_a_purchase_that_was_already_sold_is_rejected(db_session, cable):
    purchase = create_transaction(
        db_session,
        {"product_id": cable.id, "type": "purchase", "quantity": 10, "price": Decimal("2")},
    )
    create_transaction(
        db_session,
        {"product_id": cable.id, "type": "sale", "quantity": 12, "price": Decimal("6")},
    )

    with pytest.raises(StockError):
        delete_transaction(db_session, purchase)

    assert _count(db_session) == 2


def test_lend_out_and_return_rows_are_booked_at_zero(db_session, cable):
    lend = create_transaction(
        db_session,
        {"product_id": cable.id, "type": "lend-out", "quantity": 2, "price": Decimal("50"), "party": "Studio"},
    )
    assert lend.price == Decimal("0.00")
    assert lend.total_amount == Decimal("0.00")

    lend = update_transaction(db_session, lend, {"quantity": 3, "price": Decimal("40")})
    assert lend.quantity == 3
    assert lend.total_amount == Decimal("0.00")

    back = create_transaction(
        db_session,
        {"product_id": cable.id, "type": "return", "quantity": 3, "price": Decimal("9.99"), "party": "Studio"},
    )
    assert back.total_amount == Decimal("0.00")
    assert get_product(db_session, cable.id).stock == 5


def test_list_transactions_filters(db_session, cable):
    create_transaction(
        db_session,
        {
            "product_id": cable.id,
            "type": "purchase",
            "quantity": 1,
            "price": Decimal("2"),
            "party": "Depot",
            "date": datetime(2024, 1, 10, 9, 30, tzinfo=timezone.utc),
        },
    )
    create_transaction(
        db_session,
        {
            "product_id": cable.id,
            "type": "sale",
            "quantity": 1,
            "price": Decimal("6"),
            "party": "Rehan",
            "date": datetime(2024, 2, 1, 15, 0, tzinfo=timezone.utc),
        },
    )

    rows, total = list_transactions(db_session)
    assert total == 2
    assert [row.type for row in rows] == ["sale", "purchase"]

    rows, total = list_transactions(db_session, txn_type="purchase")
    assert [row.party for row in rows] == ["Depot"]

    rows, total = list_transactions(db_session, q="reh")
    assert [row.party for row in rows] == ["Rehan"]

    rows, total = list_transactions(db_session, date_from=date(2024, 1, 1), date_to=date(2024, 1, 31))
    assert [row.party for row in rows] == ["Depot"]

    rows, total = list_transactions(db_session, date_from=date(2024, 2, 1), date_to=date(2024, 2, 1))
    assert [row.party for row in rows] == ["Rehan"]
    assert rows[0].date == "2024-02-01T15:00:00Z"
