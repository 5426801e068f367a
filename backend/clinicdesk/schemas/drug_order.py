from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import AliasChoices, Field

from .base import CamelModel

OrderStatus = Literal["PENDING", "APPROVED", "DISPENSED", "CANCELLED"]


class DrugOrderItemIn(CamelModel):
    drug_id: int = Field(validation_alias=AliasChoices("drugId", "drug_id"))
    quantity: int = Field(gt=0)
    unit_price: Optional[Decimal] = Field(default=None, ge=0)
    dosage: Optional[str] = None
    instructions: Optional[str] = None


class DrugOrderCreate(CamelModel):
    patient_id: str
    lab_result_id: Optional[str] = None
    items: List[DrugOrderItemIn] = Field(min_length=1)
    notes: Optional[str] = None


class DrugOrderUpdate(CamelModel):
    items: Optional[List[DrugOrderItemIn]] = Field(default=None, min_length=1)
    notes: Optional[str] = None


class DrugOrderStatusChange(CamelModel):
    status: OrderStatus


class DrugOrderDispense(CamelModel):
    payment_method: str = "CASH"
    payment_status: str = "PENDING"
    discount: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    notes: Optional[str] = None
