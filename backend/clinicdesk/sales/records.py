from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class SaleSource(str, Enum):
    EXTERNAL_PRESCRIPTION = "EXTERNAL_PRESCRIPTION"
    OTC = "OTC"
    ORDER = "ORDER"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CARD = "CARD"
    MOBILE_MONEY = "MOBILE_MONEY"
    BANK_TRANSFER = "BANK_TRANSFER"
    INSURANCE = "INSURANCE"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


@dataclass(frozen=True)
class LedgerEntry:
    id: int
    display_name: str
    available_quantity: int
    unit_selling_price: Decimal


@dataclass(frozen=True)
class SaleItem:
    drug_id: int
    drug_name: str            # snapshot taken when the line was priced, never refreshed
    quantity: int
    unit_price: Decimal       # captured price, independent of the ledger afterwards
    total_price: Decimal

    def to_document(self) -> Dict[str, Any]:
        return {
            "drugId": self.drug_id,
            "drugName": self.drug_name,
            "quantity": self.quantity,
            "unitPrice": str(self.unit_price),
            "totalPrice": str(self.total_price),
        }

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "SaleItem":
        return cls(
            drug_id=int(doc["drugId"]),
            drug_name=str(doc.get("drugName") or ""),
            quantity=int(doc["quantity"]),
            unit_price=Decimal(str(doc["unitPrice"])),
            total_price=Decimal(str(doc["totalPrice"])),
        )


@dataclass(frozen=True)
class SaleRecord:
    """A persisted sale. ``sale_id`` is empty only on a draft not yet stored."""

    sale_id: str
    source: SaleSource
    items: Tuple[SaleItem, ...]
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal
    payment_method: str
    payment_status: str
    recorded_by: str
    drug_order_id: Optional[str] = None
    patient_name: Optional[str] = None
    patient_phone: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def quantities(self) -> Dict[int, int]:
        out: Dict[int, int] = {}
        for item in self.items:
            out[item.drug_id] = out.get(item.drug_id, 0) + item.quantity
        return out

    def to_document(self) -> Dict[str, Any]:
        return {
            "saleId": self.sale_id,
            "source": self.source.value,
            "drugOrderId": self.drug_order_id,
            "patientName": self.patient_name,
            "patientPhone": self.patient_phone,
            "items": [item.to_document() for item in self.items],
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "tax": str(self.tax),
            "total": str(self.total),
            "paymentMethod": self.payment_method,
            "paymentStatus": self.payment_status,
            "recordedBy": self.recorded_by,
            "notes": self.notes,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass(frozen=True)
class SaleLineRequest:
    entry_id: Any
    quantity: Any
    unit_price: Any = None


@dataclass(frozen=True)
class SaleMeta:
    source: Any = SaleSource.OTC
    drug_order_id: Optional[str] = None
    patient_name: Optional[str] = None
    patient_phone: Optional[str] = None
    discount: Any = 0
    tax: Any = 0
    payment_method: Any = PaymentMethod.CASH
    payment_status: Any = PaymentStatus.PENDING
    recorded_by: str = "system"
    notes: Optional[str] = None


@dataclass(frozen=True)
class SaleEditMeta:
    """Overrides applied by an edit; ``None`` keeps the stored value."""

    patient_name: Optional[str] = None
    patient_phone: Optional[str] = None
    discount: Any = None
    tax: Any = None
    payment_method: Any = None
    payment_status: Any = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class SaleFilter:
    search: Optional[str] = None
    payment_status: Optional[str] = None
    payment_method: Optional[str] = None
    source: Optional[str] = None
    drug_order_id: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    offset: int = 0
    limit: Optional[int] = None


@dataclass
class SalePage:
    sales: List[SaleRecord] = field(default_factory=list)
    total: int = 0
