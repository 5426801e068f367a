from .drug import Drug
from .sale import Sale
from .sequence import SequenceCounter
from .patient import Patient
from .payment import Payment
from .drug_order import DrugOrder
from .walk_in_service import WalkInService
from .lab_result import LabResult
from .feedback import Feedback

__all__ = [
    "Drug",
    "Sale",
    "SequenceCounter",
    "Patient",
    "Payment",
    "DrugOrder",
    "WalkInService",
    "LabResult",
    "Feedback",
]
