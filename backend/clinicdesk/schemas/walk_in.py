from decimal import Decimal
from typing import Any, Dict, Literal, Optional

from pydantic import Field

from .base import CamelModel

ServiceType = Literal[
    "INJECTION",
    "BLOOD_PRESSURE_CHECK",
    "DIABETES_SCREENING",
    "TEMPERATURE_CHECK",
    "WEIGHT_CHECK",
    "HEIGHT_CHECK",
    "BASIC_CONSULTATION",
    "DRESSING",
    "WOUND_CLEANING",
    "OTHER",
]


class WalkInServiceCreate(CamelModel):
    patient_id: Optional[str] = None
    patient_name: str = Field(min_length=1, max_length=120)
    patient_phone: Optional[str] = None
    patient_email: Optional[str] = None
    patient_age: Optional[int] = Field(default=None, ge=0, le=150)
    patient_gender: Optional[str] = None
    service_type: ServiceType
    service_details: Dict[str, Any] = Field(default_factory=dict)
    amount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: str = "CASH"
    payment_status: str = "COMPLETED"


class WalkInServiceUpdate(CamelModel):
    patient_name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    patient_phone: Optional[str] = None
    patient_email: Optional[str] = None
    patient_age: Optional[int] = Field(default=None, ge=0, le=150)
    patient_gender: Optional[str] = None
    service_type: Optional[ServiceType] = None
    service_details: Optional[Dict[str, Any]] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    payment_method: Optional[str] = None
    payment_status: Optional[str] = None
