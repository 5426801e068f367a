from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func

from ..core.db import Base


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(String(20), unique=True, nullable=False, index=True)   # PAY000001

    # Optional links (weak references by human readable id)
    sale_id = Column(String(20), nullable=True, index=True)
    service_id = Column(String(20), nullable=True, index=True)
    patient_id = Column(String(20), nullable=True, index=True)

    payment_type = Column(String(30), nullable=False, default="OTHER")   # DRUG_SALE | WALK_IN_SERVICE | OTHER
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    method = Column(String(30), nullable=False, default="CASH")          # CASH | CARD | MOBILE_MONEY | BANK_TRANSFER
    status = Column(String(20), nullable=False, default="PENDING")       # PENDING | COMPLETED | FAILED | REFUNDED
    transaction_reference = Column(String(120), nullable=True)
    notes = Column(Text, nullable=True)
    recorded_by = Column(String(120), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
