from decimal import Decimal
from typing import Literal, Optional

from pydantic import Field

from .base import CamelModel

PaymentType = Literal["DRUG_SALE", "WALK_IN_SERVICE", "OTHER"]
PaymentMethodName = Literal["CASH", "CARD", "MOBILE_MONEY", "BANK_TRANSFER", "INSURANCE"]
PaymentStatusName = Literal["PENDING", "COMPLETED", "FAILED", "REFUNDED"]


class PaymentCreate(CamelModel):
    sale_id: Optional[str] = None
    service_id: Optional[str] = None
    patient_id: Optional[str] = None
    payment_type: PaymentType = "OTHER"
    amount: Decimal = Field(ge=0)
    method: PaymentMethodName = "CASH"
    status: PaymentStatusName = "PENDING"
    transaction_reference: Optional[str] = None
    notes: Optional[str] = None


class PaymentUpdate(CamelModel):
    status: Optional[PaymentStatusName] = None
    method: Optional[PaymentMethodName] = None
    transaction_reference: Optional[str] = None
    notes: Optional[str] = None
