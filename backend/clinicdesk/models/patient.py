from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text
from sqlalchemy.sql import func
from ..core.db import Base
import json


class Patient(Base):
    __tablename__ = "patients"

    # --- Primary identifiers ---
    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(String(20), unique=True, nullable=False, index=True)   # PAT000001

    # --- Basic details ---
    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(10), nullable=False)   # MALE | FEMALE | OTHER
    phone_number = Column(String(30), nullable=True, index=True)
    email = Column(String(120), nullable=True)
    address = Column(String(255), nullable=True)

    # --- Emergency contact ---
    emergency_contact_name = Column(String(120), nullable=True)
    emergency_contact_phone = Column(String(30), nullable=True)
    emergency_contact_relationship = Column(String(60), nullable=True)

    # --- Health details ---
    medical_history = Column(Text, nullable=True)
    allergies_json = Column(Text, nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(120), nullable=True)

    # --- Timestamps ---
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def allergies(self):
        try:
            data = json.loads(self.allergies_json or "[]")
            return data if isinstance(data, list) else []
        except ValueError:
            return []

    def set_allergies(self, allergies):
        self.allergies_json = json.dumps(list(allergies or []), ensure_ascii=False)

    def __repr__(self):
        return (
            f"<Patient(id={self.id}, name='{self.full_name}', phone='{self.phone_number}', "
            f"uid='{self.patient_id}')>"
        )
