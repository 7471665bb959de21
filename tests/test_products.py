import os
import sys
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
from shoptrack.core.errors import ConflictError, StockError
from shoptrack.crud.partners import create_partner
from shoptrack.crud.products import (
    archive_product,
    create_product,
    delete_product,
    get_product,
    list_lent_products,
    list_products,
    update_product,
)
from shoptrack.models.transaction import Transaction
from shoptrack.services.stock import lend_product, receive_stock, sell_product

# Ensure models are registered so metadata tables are created
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


def _sku(db, name="USB-C cable", stock=20, price="2.50", **extra):
    payload = {"type": "sku", "name": name, "category": "Accessories", "price": price, "stock": stock}
    payload.update(extra)
    return create_product(db, payload)


def _phone(db, name="Pixel 8", imei="35-209900-176148-1", **extra):
    payload = {"type": "individual", "name": name, "category": "Phones", "price": "420", "stock": 7, "imei": imei}
    payload.update(extra)
    return create_product(db, payload)


def _ledger_count(db, product_id):
    stmt = select(func.count()).select_from(Transaction).where(Transaction.product_id == product_id)
    return db.execute(stmt).scalar_one()


def test_individual_product_is_pinned_to_one_unit(db_session):
    phone = _phone(db_session)

    assert phone.stock == 1
    assert phone.imei == "352099001761481"
    assert phone.imei_valid is True
    assert phone.stock_status == "in_stock"
    assert phone.lent_out == 0
    assert phone.available == 1


def test_sku_product_drops_imei_and_keeps_stock(db_session):
    cable = _sku(db_session, imei="123456")

    assert cable.imei is None
    assert cable.stock == 20
    assert cable.price == Decimal("2.50")
    assert cable.stock_status == "in_stock"


def test_stock_status_thresholds(db_session):
    low = _sku(db_session, name="Screen protector", stock=3)
    empty = _sku(db_session, name="Case", stock=0)

    assert low.stock_status == "low_stock"
    assert empty.stock_status == "out_of_stock"


def test_duplicate_names_and_imeis_conflict(db_session):
    _phone(db_session)

    with pytest.raises(ConflictError):
        _phone(db_session, name="pixel 8", imei="111")
    with pytest.raises(ConflictError):
        _phone(db_session, name="Pixel 8 Pro", imei="352099 001761481")


def test_product_requires_fields(db_session):
    with pytest.raises(ValueError):
        create_product(db_session, {"type": "sku", "name": " ", "category": "X", "price": "1"})
    with pytest.raises(ValueError):
        create_product(db_session, {"type": "gadget", "name": "Thing", "category": "X", "price": "1"})
    with pytest.raises(ValueError):
        create_product(db_session, {"type": "sku", "name": "Thing", "category": "X", "price": "1", "partner_id": "nope"})


def test_update_clamps_individual_stock(db_session):
    phone = _phone(db_session)

    updated = update_product(
        db_session,
        phone,
        {"type": "individual", "name": "Pixel 8", "category": "Phones", "price": "399.99", "stock": 5, "imei": phone.imei},
    )

    assert updated.stock == 1
    assert updated.price == Decimal("399.99")


def test_sku_with_several_units_cannot_become_individual(db_session):
    cable = _sku(db_session, stock=5)

    with pytest.raises(StockError) as excinfo:
        update_product(
            db_session,
            cable,
            {"type": "individual", "name": cable.name, "category": "Accessories", "price": "2.50", "stock": 5},
        )

    assert excinfo.value.code == "type_change_blocked"
    db_session.refresh(cable)
    assert cable.type == "sku"
    assert cable.stock == 5

    single = _sku(db_session, name="Demo unit", stock=1)
    updated = update_product(
        db_session,
        single,
        {"type": "individual", "name": "Demo unit", "category": "Accessories", "price": "2.50", "stock": 1, "imei": "AB-123"},
    )
    assert updated.type == "individual"
    assert updated.stock == 1


def test_in_stock_filter_uses_available_units(db_session):
    tripod = _sku(db_session, name="Tripod", stock=2)
    _sku(db_session, name="Gimbal", stock=3)
    lend_product(db_session, tripod, quantity=2, party="Studio")

    rows, total = list_products(db_session, in_stock=True)
    assert [row.name for row in rows] == ["Gimbal"]

    rows, total = list_products(db_session, in_stock=False)
    assert [row.name for row in rows] == ["Tripod"]
    assert rows[0].stock == 2
    assert rows[0].lent_out == 2


def test_update_cannot_drop_below_lent_units(db_session):
    cable = _sku(db_session, stock=5)
    lend_product(db_session, cable, quantity=3, party="Repair desk")

    with pytest.raises(StockError):
        update_product(
            db_session,
            cable,
            {"type": "sku", "name": cable.name, "category": "Accessories", "price": "2.50", "stock": 2},
        )


def test_list_products_filters_and_search(db_session):
    supplier = create_partner(db_session, {"type": "shop", "name": "Ali", "phone": "555", "shop_name": "Ali Traders"})
    _sku(db_session, name="USB-C cable", partner_id=supplier.id)
    _sku(db_session, name="Lightning cable", stock=0)
    _phone(db_session)

    rows, total = list_products(db_session, q="cable")
    assert total == 2
    assert [row.name for row in rows] == ["Lightning cable", "USB-C cable"]

    rows, total = list_products(db_session, product_type="individual")
    assert total == 1 and rows[0].name == "Pixel 8"

    rows, total = list_products(db_session, in_stock=False)
    assert [row.name for row in rows] == ["Lightning cable"]

    rows, total = list_products(db_session, q="%")
    assert total == 0

    rows, total = list_products(db_session, page=2, limit=2)
    assert total == 3
    assert len(rows) == 1

    cable = get_product(db_session, list_products(db_session, q="usb")[0][0].id)
    assert cable.supplier_name == "Ali"


def test_delete_product_removes_its_transactions(db_session):
    cable = _sku(db_session, stock=0)
    receive_stock(db_session, cable, quantity=10, price="1.75")
    sell_product(db_session, cable, quantity=2, price="5")
    product_id = cable.id

    removed = delete_product(db_session, cable)

    assert removed == 2
    assert _ledger_count(db_session, product_id) == 0
    assert get_product(db_session, product_id, include_deleted=True) is None


def test_archive_hides_product_but_keeps_history(db_session):
    cable = _sku(db_session)
    sell_product(db_session, cable, quantity=1, price="5")

    archived = archive_product(db_session, cable)

    assert archived.deleted_at is not None
    assert get_product(db_session, cable.id) is None
    assert get_product(db_session, cable.id, include_deleted=True) is not None
    assert list_products(db_session)[1] == 0
    assert list_products(db_session, include_deleted=True)[1] == 1
    assert _ledger_count(db_session, cable.id) == 1

    # The name is free again once the old row is archived.
    replacement = _sku(db_session)
    assert replacement.id != cable.id


def test_list_lent_products_reports_the_borrower(db_session):
    phone = _phone(db_session)
    _sku(db_session)
    lend_product(db_session, phone, party="Sara")

    lent = list_lent_products(db_session)

    assert len(lent) == 1
    assert lent[0]["product"].id == phone.id
    assert lent[0]["party"] == "Sara"
    assert lent[0]["quantity"] == 1
    assert lent[0]["product"].available == 0
