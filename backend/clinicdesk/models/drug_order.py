# clinicdesk/models/drug_order.py
from sqlalchemy import Column, Integer, Numeric, String, Text, DateTime
from sqlalchemy.sql import func
from ..core.db import Base
import json


class DrugOrder(Base):
    __tablename__ = "drug_orders"

    id = Column(Integer, primary_key=True, index=True)
    drug_order_id = Column(String(20), unique=True, nullable=False, index=True)   # DRG000001

    patient_id = Column(String(20), nullable=False, index=True)
    patient_name = Column(String(120), nullable=False)
    lab_result_id = Column(String(20), nullable=True)

    # PENDING | APPROVED | DISPENSED | CANCELLED
    status = Column(String(20), nullable=False, default="PENDING", index=True)

    ordered_by = Column(String(120), nullable=False)
    ordered_at = Column(DateTime(timezone=True), server_default=func.now())
    approved_by = Column(String(120), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    dispensed_by = Column(String(120), nullable=True)
    dispensed_at = Column(DateTime(timezone=True), nullable=True)

    # Items are stored as JSON string
    items_json = Column(Text, nullable=False, default="[]")
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    notes = Column(Text, nullable=True)

    # Set once the order has been turned into a sale
    sale_id = Column(String(20), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # ------------------------------------------------------------------
    # Helpers for parsing / storing items
    # ------------------------------------------------------------------
    def items(self):
        """Return list of item dicts from stored JSON."""
        try:
            data = json.loads(self.items_json or "[]")
            return data if isinstance(data, list) else []
        except ValueError:
            return []

    def set_items(self, items_list):
        self.items_json = json.dumps(items_list, ensure_ascii=False)

    def __repr__(self):
        return f"<DrugOrder(id={self.drug_order_id}, patient={self.patient_name}, status={self.status})>"
