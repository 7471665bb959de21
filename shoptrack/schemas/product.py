from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from ..core.constants import PRODUCT_TYPE_INDIVIDUAL
from .common import DeleteResult, PageMeta, TrimmedModel, lower_choice

ProductType = Annotated[Literal["individual", "sku"], BeforeValidator(lower_choice)]


class ProductIn(TrimmedModel):
    """Body for both create and full-replace update."""

    type: ProductType
    name: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1, max_length=100)
    price: Decimal = Field(ge=0, max_digits=12)
    stock: int = Field(default=0, ge=0)
    imei: Optional[str] = Field(default=None, max_length=64)
    partner_id: Optional[str] = None

    @model_validator(mode="after")
    def drop_sku_imei(self) -> "ProductIn":
        if self.type != PRODUCT_TYPE_INDIVIDUAL:
            self.imei = None
        return self


class ProductOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    name: str
    category: str
    price: float
    stock: int
    imei: Optional[str] = None
    imei_valid: Optional[bool] = None
    partner_id: Optional[str] = None
    supplier_name: Optional[str] = None
    stock_status: str
    lent_out: int = 0
    lent_to: Optional[str] = None
    available: int = 0
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None


class ProductPage(PageMeta):
    items: list[ProductOut]


class SaleRequest(TrimmedModel):
    quantity: int = Field(default=1, gt=0)
    price: Decimal = Field(ge=0, max_digits=12)
    partner_id: Optional[str] = None
    buyer_name: Optional[str] = None
    buyer_phone: Optional[str] = None
    date: Optional[datetime] = None
    note: Optional[str] = None


class ReceiveRequest(TrimmedModel):
    quantity: int = Field(default=1, gt=0)
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12)
    partner_id: Optional[str] = None
    supplier_name: Optional[str] = None
    supplier_phone: Optional[str] = None
    date: Optional[datetime] = None
    note: Optional[str] = None


class LendRequest(TrimmedModel):
    quantity: int = Field(default=1, gt=0)
    partner_id: Optional[str] = None
    party: Optional[str] = None
    phone: Optional[str] = None
    date: Optional[datetime] = None
    note: Optional[str] = None

    @model_validator(mode="after")
    def require_borrower(self) -> "LendRequest":
        if not self.partner_id and not self.party:
            raise ValueError("partner_id or party is required")
        return self


class ReturnRequest(TrimmedModel):
    date: Optional[datetime] = None
    note: Optional[str] = None


class LentItem(BaseModel):
    product: ProductOut
    party: Optional[str] = None
    partner_id: Optional[str] = None
    quantity: int
    since: Optional[str] = None


class ProductDeleteResult(DeleteResult):
    transactions_removed: int = 0
