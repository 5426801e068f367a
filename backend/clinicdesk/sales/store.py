from __future__ import annotations

import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Protocol

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..models.sale import Sale
from ..services.sequences import format_identifier, next_sequence
from .records import SaleFilter, SaleItem, SaleRecord, SaleSource


class SaleStore(Protocol):
    def create(self, sale: SaleRecord) -> SaleRecord: ...
    def find_by_id(self, sale_id: str) -> Optional[SaleRecord]: ...
    def update(self, sale_id: str, patch: Dict[str, Any]) -> Optional[SaleRecord]: ...
    def delete_by_id(self, sale_id: str) -> bool: ...
    def list(self, filters: SaleFilter) -> List[SaleRecord]: ...


_PATCHABLE = {
    "items",
    "subtotal",
    "discount",
    "tax",
    "total",
    "payment_method",
    "payment_status",
    "patient_name",
    "patient_phone",
    "notes",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _dumps_items(items) -> str:
    return json.dumps([item.to_document() for item in items], ensure_ascii=False)


def _record(row: Sale) -> SaleRecord:
    try:
        docs = json.loads(row.items_json or "[]")
    except ValueError:
        docs = []
    return SaleRecord(
        sale_id=row.sale_id,
        source=SaleSource(row.source),
        drug_order_id=row.drug_order_id,
        patient_name=row.patient_name,
        patient_phone=row.patient_phone,
        items=tuple(SaleItem.from_document(d) for d in docs),
        subtotal=Decimal(str(row.subtotal)),
        discount=Decimal(str(row.discount)),
        tax=Decimal(str(row.tax)),
        total=Decimal(str(row.total)),
        payment_method=row.payment_method,
        payment_status=row.payment_status,
        recorded_by=row.recorded_by or "",
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlSaleStore:
    """Sale documents keyed by ``sale_id``; each call is its own transaction."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        prefix: Optional[str] = None,
        width: Optional[int] = None,
    ):
        self._sessions = session_factory
        self.prefix = prefix or settings.SALE_ID_PREFIX
        self.width = width or settings.SEQUENCE_WIDTH

    def create(self, sale: SaleRecord) -> SaleRecord:
        now = _now()
        with self._sessions() as db:
            # number and row commit together; a rolled back insert never burns an id
            sale_id = format_identifier(self.prefix, next_sequence(db, "sale"), self.width)
            row = Sale(
                sale_id=sale_id,
                source=sale.source.value,
                drug_order_id=sale.drug_order_id,
                patient_name=sale.patient_name,
                patient_phone=sale.patient_phone,
                items_json=_dumps_items(sale.items),
                subtotal=sale.subtotal,
                discount=sale.discount,
                tax=sale.tax,
                total=sale.total,
                payment_method=sale.payment_method,
                payment_status=sale.payment_status,
                recorded_by=sale.recorded_by,
                notes=sale.notes,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _record(row)

    def find_by_id(self, sale_id: str) -> Optional[SaleRecord]:
        with self._sessions() as db:
            row = db.execute(select(Sale).where(Sale.sale_id == sale_id)).scalar_one_or_none()
            return _record(row) if row else None

    def update(self, sale_id: str, patch: Dict[str, Any]) -> Optional[SaleRecord]:
        unknown = set(patch) - _PATCHABLE
        if unknown:
            raise ValueError(f"Unsupported sale fields: {sorted(unknown)}")
        with self._sessions() as db:
            row = db.execute(select(Sale).where(Sale.sale_id == sale_id)).scalar_one_or_none()
            if row is None:
                return None
            for key, value in patch.items():
                if key == "items":
                    row.items_json = _dumps_items(value)
                else:
                    setattr(row, key, value)
            row.updated_at = _now()
            db.commit()
            db.refresh(row)
            return _record(row)

    def delete_by_id(self, sale_id: str) -> bool:
        with self._sessions() as db:
            row = db.execute(select(Sale).where(Sale.sale_id == sale_id)).scalar_one_or_none()
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    def _filtered(self, filters: SaleFilter):
        stmt = select(Sale)
        if filters.search:
            like = f"%{filters.search.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Sale.sale_id).like(like),
                    func.lower(Sale.patient_name).like(like),
                    func.lower(Sale.patient_phone).like(like),
                )
            )
        if filters.payment_status:
            stmt = stmt.where(Sale.payment_status == filters.payment_status.upper())
        if filters.payment_method:
            stmt = stmt.where(Sale.payment_method == filters.payment_method.upper())
        if filters.source:
            stmt = stmt.where(Sale.source == filters.source.upper())
        if filters.drug_order_id:
            stmt = stmt.where(Sale.drug_order_id == filters.drug_order_id)
        if filters.created_from:
            stmt = stmt.where(Sale.created_at >= filters.created_from)
        if filters.created_to:
            stmt = stmt.where(Sale.created_at <= filters.created_to)
        return stmt

    def list(self, filters: SaleFilter) -> List[SaleRecord]:
        stmt = self._filtered(filters).order_by(Sale.id.desc()).offset(max(0, filters.offset))
        if filters.limit:
            stmt = stmt.limit(filters.limit)
        with self._sessions() as db:
            return [_record(row) for row in db.execute(stmt).scalars().all()]

    def count(self, filters: SaleFilter) -> int:
        stmt = select(func.count()).select_from(self._filtered(filters).subquery())
        with self._sessions() as db:
            return int(db.execute(stmt).scalar() or 0)
