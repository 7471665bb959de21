"""Shared enumerations for products, partners, transactions and expenses."""

PRODUCT_TYPE_INDIVIDUAL = "individual"
PRODUCT_TYPE_SKU = "sku"
PRODUCT_TYPES = (PRODUCT_TYPE_INDIVIDUAL, PRODUCT_TYPE_SKU)

PARTNER_TYPE_INDIVIDUAL = "individual"
PARTNER_TYPE_SHOP = "shop"
PARTNER_TYPES = (PARTNER_TYPE_INDIVIDUAL, PARTNER_TYPE_SHOP)

TXN_PURCHASE = "purchase"
TXN_SALE = "sale"
TXN_LEND_OUT = "lend-out"
TXN_RETURN = "return"
TRANSACTION_TYPES = (TXN_PURCHASE, TXN_SALE, TXN_LEND_OUT, TXN_RETURN)

EXPENSE_CATEGORIES = ("rent", "salaries", "utilities", "stock", "other")

STOCK_OUT = "out_of_stock"
STOCK_LOW = "low_stock"
STOCK_OK = "in_stock"

# Clients send this partner id for anonymous counter sales.
WALK_IN_PARTNER_ID = "CUSTOMER"
WALK_IN_PARTY = "Walk-in customer"
# Placeholder phone used when a partner is created on the fly without one.
UNKNOWN_PHONE = "0000000000"


def normalize_choice(value: str | None, default: str | None = None) -> str | None:
    """Return a lowercase, trimmed enum value (or ``default`` when blank)."""

    cleaned = (value or "").strip().lower()
    return cleaned or default


__all__ = [
    "EXPENSE_CATEGORIES",
    "PARTNER_TYPES",
    "PARTNER_TYPE_INDIVIDUAL",
    "PARTNER_TYPE_SHOP",
    "PRODUCT_TYPES",
    "PRODUCT_TYPE_INDIVIDUAL",
    "PRODUCT_TYPE_SKU",
    "STOCK_LOW",
    "STOCK_OK",
    "STOCK_OUT",
    "TRANSACTION_TYPES",
    "TXN_LEND_OUT",
    "TXN_PURCHASE",
    "TXN_RETURN",
    "TXN_SALE",
    "UNKNOWN_PHONE",
    "WALK_IN_PARTNER_ID",
    "WALK_IN_PARTY",
    "normalize_choice",
]
