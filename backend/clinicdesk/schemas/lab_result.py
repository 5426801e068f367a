from typing import List, Optional

from pydantic import Field

from .base import CamelModel


class LabResultRequest(CamelModel):
    patient_id: str
    test_type: str = Field(min_length=1, max_length=40)
    test_name: str = Field(min_length=1, max_length=120)
    notes: Optional[str] = None


class LabResultRow(CamelModel):
    parameter: str
    value: str
    unit: Optional[str] = None
    reference_range: Optional[str] = None
    is_abnormal: bool = False
    notes: Optional[str] = None


class LabResultRecord(CamelModel):
    results: List[LabResultRow] = Field(min_length=1)
    notes: Optional[str] = None
