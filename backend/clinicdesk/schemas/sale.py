from decimal import Decimal
from typing import List, Optional

from pydantic import AliasChoices, Field

from .base import CamelModel


class SaleItemIn(CamelModel):
    drug_id: int = Field(validation_alias=AliasChoices("drugId", "entryId", "drug_id"))
    quantity: int
    unit_price: Optional[Decimal] = None


class SaleCreate(CamelModel):
    items: List[SaleItemIn] = Field(default_factory=list)
    source: str = "OTC"
    drug_order_id: Optional[str] = None
    patient_name: Optional[str] = None
    patient_phone: Optional[str] = None
    discount: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    payment_method: str = "CASH"
    payment_status: str = "PENDING"
    notes: Optional[str] = None


class SaleUpdate(CamelModel):
    """Full item replacement; omitted metadata keeps the stored value."""

    items: List[SaleItemIn] = Field(default_factory=list)
    patient_name: Optional[str] = None
    patient_phone: Optional[str] = None
    discount: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
    notes: Optional[str] = None


class SaleAction(CamelModel):
    action: str


class SalePaymentUpdate(CamelModel):
    payment_status: Optional[str] = None
    payment_method: Optional[str] = None
