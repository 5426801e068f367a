from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func
from ..core.db import Base


class Sale(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(String(20), unique=True, nullable=False, index=True)   # SAL000123

    # EXTERNAL_PRESCRIPTION | OTC | ORDER
    source = Column(String(30), nullable=False, default="OTC")
    drug_order_id = Column(String(30), nullable=True, index=True)           # weak back-reference

    # Point-in-time patient snapshot (not a join)
    patient_name = Column(String(120), nullable=True, index=True)
    patient_phone = Column(String(30), nullable=True)

    # Line items stored as the document shape:
    # [{"drugId", "drugName", "quantity", "unitPrice", "totalPrice"}]
    items_json = Column(Text, nullable=False, default="[]")

    subtotal = Column(Numeric(12, 2), nullable=False, default=0)
    discount = Column(Numeric(12, 2), nullable=False, default=0)
    tax = Column(Numeric(12, 2), nullable=False, default=0)
    total = Column(Numeric(12, 2), nullable=False, default=0)

    payment_method = Column(String(30), nullable=False, default="CASH")
    payment_status = Column(String(20), nullable=False, default="PENDING")
    recorded_by = Column(String(120), nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Sale(sale_id={self.sale_id}, total={self.total}, status={self.payment_status})>"
