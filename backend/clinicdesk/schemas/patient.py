from datetime import date
from typing import List, Literal, Optional

from pydantic import Field

from .base import CamelModel

Gender = Literal["MALE", "FEMALE", "OTHER"]


class PatientBase(CamelModel):
    first_name: str = Field(min_length=1, max_length=80)
    last_name: str = Field(min_length=1, max_length=80)
    date_of_birth: Optional[date] = None
    gender: Gender
    phone_number: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    medical_history: Optional[str] = None
    allergies: List[str] = Field(default_factory=list)


class PatientCreate(PatientBase):
    pass


class PatientUpdate(CamelModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    emergency_contact_relationship: Optional[str] = None
    medical_history: Optional[str] = None
    allergies: Optional[List[str]] = None
    is_active: Optional[bool] = None
