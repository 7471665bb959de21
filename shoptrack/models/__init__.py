# Importing every model here registers it with ``Base.metadata`` and lets the
# string-based relationships ("Partner", "Transaction") resolve no matter which
# model module is imported first.
from .partner import Partner
from .product import Product
from .transaction import Transaction
from .expense import Expense

__all__ = ["Expense", "Partner", "Product", "Transaction"]
