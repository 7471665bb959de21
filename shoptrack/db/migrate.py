"""Small, idempotent schema upgrades for existing SQLite databases.

``Base.metadata.create_all`` builds fresh databases. Files written by earlier
releases of the tracker predate soft deletes, partner links and the
snake_case ledger columns, so they are upgraded in place here. Nothing is
dropped without first copying its data.
"""

from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import text
from sqlalchemy.engine import Engine

from .session import Base

logger = logging.getLogger(__name__)


def _table_columns(engine: Engine, table: str) -> list[dict[str, object]]:
    """Fetch SQLite's description of a table (empty when the table is absent)."""

    with engine.connect() as conn:
        return conn.execute(text(f"PRAGMA table_info({table})")).mappings().all()


def _column_names(engine: Engine, table: str) -> set[str]:
    return {record["name"] for record in _table_columns(engine, table)}


def _add_column_sqlite(engine: Engine, table: str, col_def: str) -> None:
    with engine.begin() as conn:
        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_def}"))
    logger.info("migration.column_added", extra={"extra_data": {"table": table, "column": col_def}})


def _create_index_if_not_exists(engine: Engine, table: str, name: str, cols: Iterable[str], unique: bool = False) -> None:
    cols_sql = ", ".join(cols)
    unique_sql = "UNIQUE " if unique else ""
    with engine.begin() as conn:
        conn.execute(text(f"CREATE {unique_sql}INDEX IF NOT EXISTS {name} ON {table} ({cols_sql})"))


def _rebuild_legacy_transactions(engine: Engine) -> None:
    """Move a camelCase ledger (``productId``/``totalAmount``) to the current layout."""

    with engine.begin() as conn:
        conn.execute(
            text(
                """
                CREATE TABLE IF NOT EXISTS transactions__new (
                    id TEXT PRIMARY KEY,
                    product_id TEXT NOT NULL REFERENCES products(id) ON DELETE CASCADE,
                    type TEXT NOT NULL CHECK (type IN ('purchase', 'sale', 'lend-out', 'return')),
                    quantity INTEGER NOT NULL CHECK (quantity > 0),
                    price NUMERIC(12, 2) NOT NULL CHECK (price >= 0),
                    total_amount NUMERIC(12, 2) NOT NULL,
                    date TEXT NOT NULL,
                    party TEXT NOT NULL,
                    partner_id TEXT REFERENCES partners(id),
                    note TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
        )
        conn.execute(
            text(
                """
                INSERT OR REPLACE INTO transactions__new
                    (id, product_id, type, quantity, price, total_amount, date, party, partner_id, note, created_at)
                SELECT
                    t.id,
                    t.productId,
                    t.type,
                    t.quantity,
                    t.price,
                    ROUND(t.price * t.quantity, 2),
                    COALESCE(strftime('%Y-%m-%dT%H:%M:%SZ', t.date), strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
                    COALESCE(t.party, ''),
                    (SELECT p.id FROM partners p WHERE p.name = t.party LIMIT 1),
                    NULL,
                    COALESCE(strftime('%Y-%m-%dT%H:%M:%SZ', t.date), strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
                FROM transactions t
                WHERE t.quantity > 0 AND t.productId IN (SELECT id FROM products)
                """
            )
        )
        conn.execute(text("DROP TABLE transactions"))
        conn.execute(text("ALTER TABLE transactions__new RENAME TO transactions"))
    logger.info("migration.transactions_rebuilt")


def _backfill_timestamps(engine: Engine, table: str) -> None:
    with engine.begin() as conn:
        conn.execute(
            text(
                f"UPDATE {table} SET created_at = strftime('%Y-%m-%dT%H:%M:%SZ', 'now') "
                "WHERE created_at IS NULL OR created_at = ''"
            )
        )
        conn.execute(text(f"UPDATE {table} SET updated_at = created_at WHERE updated_at IS NULL OR updated_at = ''"))


def _normalise_timestamps(engine: Engine, table: str, cols: Iterable[str]) -> None:
    """Rewrite legacy ``YYYY-MM-DD HH:MM:SS`` / millisecond values as ``...Z`` seconds."""

    with engine.begin() as conn:
        for col in cols:
            conn.execute(
                text(
                    f"UPDATE {table} SET {col} = strftime('%Y-%m-%dT%H:%M:%SZ', {col}) "
                    f"WHERE strftime('%Y-%m-%dT%H:%M:%SZ', {col}) IS NOT NULL "
                    f"AND {col} <> strftime('%Y-%m-%dT%H:%M:%SZ', {col})"
                )
            )


def run_migrations(engine: Engine) -> None:
    """Bring the SQLite schema up-to-date with the expectations of the code."""

    if engine.dialect.name != "sqlite":
        return

    lifecycle_cols: dict[str, str] = {
        "created_at": "TEXT",
        "updated_at": "TEXT",
        "deleted_at": "TEXT",
    }

    # Products
    pcols = _column_names(engine, "products")
    if pcols:
        for name, dtype in {**lifecycle_cols, "partner_id": "TEXT REFERENCES partners(id)", "imei": "TEXT"}.items():
            if name not in pcols:
                _add_column_sqlite(engine, "products", f"{name} {dtype}")
        _backfill_timestamps(engine, "products")
        _normalise_timestamps(engine, "products", ["created_at", "updated_at"])
        _create_index_if_not_exists(engine, "products", "ix_products_deleted_at", ["deleted_at"])
        _create_index_if_not_exists(engine, "products", "ix_products_name", ["name"])
        _create_index_if_not_exists(engine, "products", "ix_products_imei", ["imei"])

    # Partners: an early layout stored the shop as ``shopName``.
    partner_cols = _column_names(engine, "partners")
    if partner_cols:
        for name, dtype in lifecycle_cols.items():
            if name not in partner_cols:
                _add_column_sqlite(engine, "partners", f"{name} {dtype}")
        if "shop_name" not in partner_cols:
            _add_column_sqlite(engine, "partners", "shop_name TEXT")
            if "shopName" in partner_cols:
                with engine.begin() as conn:
                    conn.execute(text("UPDATE partners SET shop_name = shopName"))
        _backfill_timestamps(engine, "partners")
        _normalise_timestamps(engine, "partners", ["created_at", "updated_at"])
        _create_index_if_not_exists(engine, "partners", "ix_partners_deleted_at", ["deleted_at"])

    # Ledger
    tcols = _column_names(engine, "transactions")
    if tcols:
        if "productId" in tcols:
            _rebuild_legacy_transactions(engine)
            tcols = _column_names(engine, "transactions")
        if "party" not in tcols:
            _add_column_sqlite(engine, "transactions", "party TEXT NOT NULL DEFAULT ''")
            if "snapshot_partner_name" in tcols:
                with engine.begin() as conn:
                    conn.execute(text("UPDATE transactions SET party = COALESCE(snapshot_partner_name, '')"))
        for name, dtype in {"partner_id": "TEXT REFERENCES partners(id)", "note": "TEXT", "created_at": "TEXT"}.items():
            if name not in tcols:
                _add_column_sqlite(engine, "transactions", f"{name} {dtype}")
        with engine.begin() as conn:
            conn.execute(text("UPDATE transactions SET created_at = date WHERE created_at IS NULL OR created_at = ''"))
        _create_index_if_not_exists(engine, "transactions", "ix_transactions_product_id", ["product_id"])
        _create_index_if_not_exists(engine, "transactions", "ix_transactions_date", ["date"])

    # Expenses
    ecols = _column_names(engine, "expenses")
    if ecols:
        for name, dtype in lifecycle_cols.items():
            if name not in ecols:
                _add_column_sqlite(engine, "expenses", f"{name} {dtype}")
        _backfill_timestamps(engine, "expenses")
        _normalise_timestamps(engine, "expenses", ["date", "created_at", "updated_at"])
        _create_index_if_not_exists(engine, "expenses", "ix_expenses_deleted_at", ["deleted_at"])


def init_db(engine: Engine) -> None:
    """Create missing tables, then upgrade older layouts in place."""

    from .. import models  # noqa: F401  (registers every table on Base.metadata)

    Base.metadata.create_all(bind=engine)
    run_migrations(engine)


__all__ = ["init_db", "run_migrations"]
