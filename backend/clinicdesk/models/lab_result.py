from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func
from ..core.db import Base
import json


class LabResult(Base):
    __tablename__ = "lab_results"

    id = Column(Integer, primary_key=True, index=True)
    lab_result_id = Column(String(20), unique=True, nullable=False, index=True)   # LAB000001

    patient_id = Column(String(20), nullable=False, index=True)
    patient_name = Column(String(120), nullable=False)

    test_type = Column(String(40), nullable=False, index=True)
    test_name = Column(String(120), nullable=False)

    # PENDING | IN_PROGRESS | COMPLETED | CANCELLED
    status = Column(String(20), nullable=False, default="PENDING", index=True)

    requested_by = Column(String(120), nullable=False)
    requested_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_by = Column(String(120), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # [{"parameter", "value", "unit", "referenceRange", "isAbnormal", "notes"}]
    results_json = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def results(self):
        try:
            data = json.loads(self.results_json or "[]")
            return data if isinstance(data, list) else []
        except ValueError:
            return []

    def set_results(self, rows):
        self.results_json = json.dumps(rows or [], ensure_ascii=False)

    def summary(self):
        """Readable summary for dashboards."""
        rows = self.results()
        return {
            "labResultId": self.lab_result_id,
            "patientName": self.patient_name,
            "testName": self.test_name,
            "status": self.status,
            "abnormalCount": sum(1 for r in rows if r.get("isAbnormal")),
        }
