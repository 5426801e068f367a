# clinicdesk/routers/payments.py
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.identity import AuthorizationContext, require_permission
from ..models.payment import Payment
from ..schemas.payment import PaymentCreate, PaymentUpdate
from ..services.sequences import next_identifier
from .common import Page, iso, money_out
from .sales import day_end, day_start

router = APIRouter(prefix="/api/payments", tags=["Payments"])


def payment_to_dict(p: Payment):
    return {
        "paymentId": p.payment_id,
        "saleId": p.sale_id,
        "serviceId": p.service_id,
        "patientId": p.patient_id,
        "paymentType": p.payment_type,
        "amount": money_out(p.amount),
        "method": p.method,
        "status": p.status,
        "transactionReference": p.transaction_reference,
        "notes": p.notes,
        "recordedBy": p.recorded_by,
        "createdAt": iso(p.created_at),
        "updatedAt": iso(p.updated_at),
    }


def _filtered(
    db: Session,
    status: Optional[str],
    method: Optional[str],
    payment_type: Optional[str],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    query = db.query(Payment)
    if status:
        query = query.filter(Payment.status == status.upper())
    if method:
        query = query.filter(Payment.method == method.upper())
    if payment_type:
        query = query.filter(Payment.payment_type == payment_type.upper())
    if start_date:
        query = query.filter(Payment.created_at >= day_start(start_date))
    if end_date:
        query = query.filter(Payment.created_at <= day_end(end_date))
    return query


def _find(db: Session, payment_id: str) -> Payment:
    payment = db.query(Payment).filter(Payment.payment_id == payment_id).first()
    if not payment:
        raise HTTPException(status_code=404, detail="Payment not found")
    return payment


@router.get("")
def list_payments(
    status: Optional[str] = None,
    method: Optional[str] = None,
    payment_type: Optional[str] = Query(None, alias="paymentType"),
    page: Page = Depends(),
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("payments:read")),
):
    query = _filtered(db, status, method, payment_type)
    total = query.count()
    rows = query.order_by(Payment.id.desc()).offset(page.offset).limit(page.limit).all()
    return {"success": True, "payments": [payment_to_dict(p) for p in rows], "pagination": page.meta(total)}


@router.get("/summary")
def payments_summary(
    status: Optional[str] = None,
    method: Optional[str] = None,
    payment_type: Optional[str] = Query(None, alias="paymentType"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("payments:read")),
):
    sub = _filtered(db, status, method, payment_type, start_date, end_date).subquery()
    total_amount, count = db.query(
        func.coalesce(func.sum(sub.c.amount), 0),
        func.count(sub.c.id),
    ).one()
    return {"success": True, "summary": {"totalAmount": money_out(total_amount), "count": int(count or 0)}}


@router.get("/{payment_id}")
def get_payment(
    payment_id: str,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("payments:read")),
):
    return {"success": True, "payment": payment_to_dict(_find(db, payment_id))}


@router.post("", status_code=201)
def create_payment(
    body: PaymentCreate,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("payments:write")),
):
    payment = Payment(payment_id=next_identifier(db, "payment"), recorded_by=ctx.user_id, **body.model_dump())
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return {"success": True, "payment": payment_to_dict(payment)}


@router.put("/{payment_id}")
def update_payment(
    payment_id: str,
    body: PaymentUpdate,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("payments:write")),
):
    payment = _find(db, payment_id)
    for k, v in body.model_dump(exclude_unset=True).items():
        if v is not None:
            setattr(payment, k, v)
    db.commit()
    db.refresh(payment)
    return {"success": True, "payment": payment_to_dict(payment)}


@router.delete("/{payment_id}")
def delete_payment(
    payment_id: str,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("payments:write")),
):
    db.delete(_find(db, payment_id))
    db.commit()
    return {"success": True}
