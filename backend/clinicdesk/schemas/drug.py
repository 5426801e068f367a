from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import Field

from .base import CamelModel


class DrugBase(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    generic_name: Optional[str] = None
    category: str = "GENERAL"
    description: Optional[str] = None
    dosage_form: Optional[str] = None
    strength: Optional[str] = None
    manufacturer: Optional[str] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    purchase_price: Decimal = Field(default=Decimal("0"), ge=0)
    selling_price: Decimal = Field(default=Decimal("0"), ge=0)
    minimum_stock_level: int = Field(default=10, ge=0)


class DrugCreate(DrugBase):
    stock_quantity: int = Field(default=0, ge=0)


class DrugUpdate(CamelModel):
    # stock only moves through restock and sales
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    generic_name: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    dosage_form: Optional[str] = None
    strength: Optional[str] = None
    manufacturer: Optional[str] = None
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
    purchase_price: Optional[Decimal] = Field(default=None, ge=0)
    selling_price: Optional[Decimal] = Field(default=None, ge=0)
    minimum_stock_level: Optional[int] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class DrugRestock(CamelModel):
    quantity: int = Field(gt=0)
    batch_number: Optional[str] = None
    expiry_date: Optional[date] = None
