# clinicdesk/routers/drug_orders.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import update
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.identity import AuthorizationContext, require_permission
from ..models.drug import Drug
from ..models.drug_order import DrugOrder
from ..models.patient import Patient
from ..sales import SaleLineRequest, SaleMeta, SaleSource, SaleTransactionManager
from ..sales.pricing import money
from ..schemas.drug_order import (
    DrugOrderCreate,
    DrugOrderDispense,
    DrugOrderItemIn,
    DrugOrderStatusChange,
    DrugOrderUpdate,
)
from ..services.sequences import next_identifier
from .common import Page, get_sales_manager, iso, money_out, outcome_response
from .patients import find_patient

log = logging.getLogger("clinicdesk.api")

router = APIRouter(prefix="/api/drug-orders", tags=["Drug orders"])

DISPENSABLE = ("PENDING", "APPROVED")

# status -> statuses it may move to through the status endpoint
_TRANSITIONS = {
    "PENDING": {"APPROVED", "CANCELLED"},
    "APPROVED": {"PENDING", "CANCELLED"},
    "DISPENSED": set(),
    "CANCELLED": set(),
}


def order_to_dict(o: DrugOrder) -> Dict[str, Any]:
    return {
        "drugOrderId": o.drug_order_id,
        "patientId": o.patient_id,
        "patientName": o.patient_name,
        "labResultId": o.lab_result_id,
        "status": o.status,
        "orderedBy": o.ordered_by,
        "orderedAt": iso(o.ordered_at),
        "approvedBy": o.approved_by,
        "approvedAt": iso(o.approved_at),
        "dispensedBy": o.dispensed_by,
        "dispensedAt": iso(o.dispensed_at),
        "items": o.items(),
        "totalAmount": money_out(o.total_amount),
        "notes": o.notes,
        "saleId": o.sale_id,
        "createdAt": iso(o.created_at),
        "updatedAt": iso(o.updated_at),
    }


def _find(db: Session, drug_order_id: str) -> DrugOrder:
    order = db.query(DrugOrder).filter(DrugOrder.drug_order_id == drug_order_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Drug order not found")
    return order


def _price_items(db: Session, items: List[DrugOrderItemIn]):
    """Snapshot drug names and prices onto the order lines."""
    out: List[Dict[str, Any]] = []
    total = Decimal("0.00")
    for it in items:
        drug = db.get(Drug, it.drug_id)
        if not drug or not drug.is_active:
            raise HTTPException(status_code=404, detail=f"Drug not found: {it.drug_id}")
        unit = money(it.unit_price if it.unit_price is not None else drug.selling_price)
        line_total = money(unit * it.quantity)
        total += line_total
        out.append(
            {
                "drugId": int(drug.id),
                "drugName": drug.label(),
                "quantity": it.quantity,
                "unitPrice": str(unit),
                "totalPrice": str(line_total),
                "dosage": it.dosage,
                "instructions": it.instructions,
            }
        )
    return out, total


# =============================================================================
#                                    CRUD
# =============================================================================
@router.get("")
def list_orders(
    patient_id: Optional[str] = Query(None, alias="patientId"),
    status: Optional[str] = None,
    page: Page = Depends(),
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("drug-orders:read")),
):
    query = db.query(DrugOrder)
    if patient_id:
        query = query.filter(DrugOrder.patient_id == patient_id)
    if status:
        query = query.filter(DrugOrder.status == status.upper())
    total = query.count()
    rows = query.order_by(DrugOrder.id.desc()).offset(page.offset).limit(page.limit).all()
    return {"success": True, "drugOrders": [order_to_dict(o) for o in rows], "pagination": page.meta(total)}


@router.get("/{drug_order_id}")
def get_order(
    drug_order_id: str,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("drug-orders:read")),
):
    return {"success": True, "drugOrder": order_to_dict(_find(db, drug_order_id))}


@router.post("", status_code=201)
def create_order(
    body: DrugOrderCreate,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("drug-orders:write")),
):
    patient = find_patient(db, body.patient_id)
    items, total = _price_items(db, body.items)
    order = DrugOrder(
        drug_order_id=next_identifier(db, "drug_order"),
        patient_id=patient.patient_id,
        patient_name=patient.full_name,
        lab_result_id=body.lab_result_id,
        status="PENDING",
        ordered_by=ctx.display_name,
        total_amount=total,
        notes=body.notes,
    )
    order.set_items(items)
    db.add(order)
    db.commit()
    db.refresh(order)
    log.info("drug_order_created id=%s patient=%s total=%s", order.drug_order_id, order.patient_id, total)
    return {"success": True, "drugOrder": order_to_dict(order)}


@router.put("/{drug_order_id}")
def update_order(
    drug_order_id: str,
    body: DrugOrderUpdate,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("drug-orders:write")),
):
    order = _find(db, drug_order_id)
    if order.status not in DISPENSABLE:
        raise HTTPException(status_code=409, detail=f"Order is {order.status} and can no longer change")
    if body.items is not None:
        items, total = _price_items(db, body.items)
        order.set_items(items)
        order.total_amount = total
    if body.notes is not None:
        order.notes = body.notes
    db.commit()
    db.refresh(order)
    return {"success": True, "drugOrder": order_to_dict(order)}


@router.patch("/{drug_order_id}/status")
def change_status(
    drug_order_id: str,
    body: DrugOrderStatusChange,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("drug-orders:approve")),
):
    order = _find(db, drug_order_id)
    if body.status == order.status:
        return {"success": True, "drugOrder": order_to_dict(order)}
    if body.status not in _TRANSITIONS.get(order.status, set()):
        detail = "Use the dispense endpoint" if body.status == "DISPENSED" else f"Cannot move from {order.status} to {body.status}"
        raise HTTPException(status_code=409, detail=detail)

    order.status = body.status
    if body.status == "APPROVED":
        order.approved_by = ctx.display_name
        order.approved_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(order)
    log.info("drug_order_status id=%s status=%s by=%s", drug_order_id, body.status, ctx.user_id)
    return {"success": True, "drugOrder": order_to_dict(order)}


@router.delete("/{drug_order_id}")
def delete_order(
    drug_order_id: str,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("drug-orders:delete")),
):
    db.delete(_find(db, drug_order_id))
    db.commit()
    return {"success": True}


# =============================================================================
#                           DISPENSE  (order -> sale)
# =============================================================================
@router.post("/{drug_order_id}/dispense")
def dispense_order(
    drug_order_id: str,
    body: Optional[DrugOrderDispense] = None,
    db: Session = Depends(get_db),
    manager: SaleTransactionManager = Depends(get_sales_manager),
    ctx: AuthorizationContext = Depends(require_permission("sales:write")),
):
    """
    Turn a pending or approved order into a sale with the order's captured prices.

    Only reads happen on the request session until the sale exists. The order
    is then claimed with a status-guarded UPDATE; if another dispense got
    there first, the sale just made is voided again.
    """
    body = body or DrugOrderDispense()
    order = _find(db, drug_order_id)
    if order.status not in DISPENSABLE:
        raise HTTPException(status_code=409, detail=f"Order is {order.status} and cannot be dispensed")

    patient = db.query(Patient).filter(Patient.patient_id == order.patient_id).first()
    lines = [
        SaleLineRequest(entry_id=it.get("drugId"), quantity=it.get("quantity"), unit_price=it.get("unitPrice"))
        for it in order.items()
    ]

    outcome = manager.create_sale(
        lines,
        SaleMeta(
            source=SaleSource.ORDER,
            drug_order_id=order.drug_order_id,
            patient_name=order.patient_name,
            patient_phone=patient.phone_number if patient else None,
            discount=body.discount,
            tax=body.tax,
            payment_method=body.payment_method,
            payment_status=body.payment_status,
            recorded_by=ctx.user_id,
            notes=body.notes or order.notes,
        ),
    )
    if not outcome.ok:
        return outcome_response(outcome)

    sale_id = outcome.sale.sale_id
    claimed = db.execute(
        update(DrugOrder)
        .where(DrugOrder.drug_order_id == drug_order_id, DrugOrder.status.in_(DISPENSABLE))
        .values(
            status="DISPENSED",
            sale_id=sale_id,
            dispensed_by=ctx.display_name,
            dispensed_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    ).rowcount
    if claimed != 1:
        db.rollback()
        undo = manager.void_sale(sale_id)
        log.warning("dispense_lost_race order=%s sale=%s voided=%s", drug_order_id, sale_id, undo.ok)
        raise HTTPException(status_code=409, detail="Order was dispensed or changed concurrently")
    db.commit()

    db.expire_all()
    log.info("drug_order_dispensed id=%s sale_id=%s by=%s", drug_order_id, sale_id, ctx.user_id)
    return {"success": True, "sale": outcome.sale.to_document(), "drugOrder": order_to_dict(_find(db, drug_order_id))}
