from __future__ import annotations

from typing import Annotated, Literal, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from ..core.constants import PARTNER_TYPE_SHOP
from .common import PageMeta, TrimmedModel, lower_choice

PartnerType = Annotated[Literal["individual", "shop"], BeforeValidator(lower_choice)]


class PartnerIn(TrimmedModel):
    type: PartnerType
    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=1, max_length=40)
    shop_name: Optional[str] = Field(default=None, max_length=200)

    @model_validator(mode="after")
    def check_shop_name(self) -> "PartnerIn":
        if self.type == PARTNER_TYPE_SHOP:
            if not self.shop_name:
                raise ValueError("shop_name is required for shop partners")
        else:
            self.shop_name = None
        return self


class PartnerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    name: str
    phone: str
    shop_name: Optional[str] = None
    display_name: str
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None


class PartnerPage(PageMeta):
    items: list[PartnerOut]
