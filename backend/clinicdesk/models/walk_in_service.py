from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func
from ..core.db import Base
import json


class WalkInService(Base):
    __tablename__ = "walk_in_services"

    id = Column(Integer, primary_key=True, index=True)
    service_id = Column(String(20), unique=True, nullable=False, index=True)   # WIS000001

    # Patient snapshot; walk-ins are often not registered
    patient_id = Column(String(20), nullable=True)
    patient_name = Column(String(120), nullable=False, index=True)
    patient_phone = Column(String(30), nullable=True)
    patient_email = Column(String(120), nullable=True)
    patient_age = Column(Integer, nullable=True)
    patient_gender = Column(String(10), nullable=True)

    service_type = Column(String(40), nullable=False, index=True)
    details_json = Column(Text, nullable=True)

    amount = Column(Numeric(12, 2), nullable=False, default=0)
    payment_method = Column(String(30), nullable=False, default="CASH")
    payment_status = Column(String(20), nullable=False, default="COMPLETED")
    payment_id = Column(String(20), nullable=True)
    recorded_by = Column(String(120), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def details(self):
        try:
            data = json.loads(self.details_json or "{}")
            return data if isinstance(data, dict) else {}
        except ValueError:
            return {}

    def set_details(self, details):
        self.details_json = json.dumps(details or {}, ensure_ascii=False)
