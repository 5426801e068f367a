# clinicdesk/routers/walk_in_services.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.identity import AuthorizationContext, require_permission
from ..models.walk_in_service import WalkInService
from ..schemas.walk_in import WalkInServiceCreate, WalkInServiceUpdate
from ..services.sequences import next_identifier
from .common import Page, iso, money_out

router = APIRouter(prefix="/api/walk-in-services", tags=["Walk-in services"])


def service_to_dict(s: WalkInService):
    return {
        "serviceId": s.service_id,
        "patientId": s.patient_id,
        "patientName": s.patient_name,
        "patientPhone": s.patient_phone,
        "patientEmail": s.patient_email,
        "patientAge": s.patient_age,
        "patientGender": s.patient_gender,
        "serviceType": s.service_type,
        "serviceDetails": s.details(),
        "amount": money_out(s.amount),
        "paymentMethod": s.payment_method,
        "paymentStatus": s.payment_status,
        "paymentId": s.payment_id,
        "recordedBy": s.recorded_by,
        "createdAt": iso(s.created_at),
        "updatedAt": iso(s.updated_at),
    }


def _find(db: Session, service_id: str) -> WalkInService:
    service = db.query(WalkInService).filter(WalkInService.service_id == service_id).first()
    if not service:
        raise HTTPException(status_code=404, detail="Walk-in service not found")
    return service


@router.get("")
def list_services(
    service_type: Optional[str] = Query(None, alias="serviceType"),
    search: str = "",
    page: Page = Depends(),
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("walk-in-services:read")),
):
    query = db.query(WalkInService)
    if service_type:
        query = query.filter(WalkInService.service_type == service_type.upper())
    if search:
        like = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(WalkInService.patient_name).like(like),
                func.lower(WalkInService.patient_phone).like(like),
                func.lower(WalkInService.service_id).like(like),
            )
        )
    total = query.count()
    rows = query.order_by(WalkInService.id.desc()).offset(page.offset).limit(page.limit).all()
    return {"success": True, "services": [service_to_dict(s) for s in rows], "pagination": page.meta(total)}


@router.get("/{service_id}")
def get_service(
    service_id: str,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("walk-in-services:read")),
):
    return {"success": True, "service": service_to_dict(_find(db, service_id))}


@router.post("", status_code=201)
def create_service(
    body: WalkInServiceCreate,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("walk-in-services:write")),
):
    service = WalkInService(
        service_id=next_identifier(db, "walk_in_service"),
        recorded_by=ctx.user_id,
        **body.model_dump(exclude={"service_details"}),
    )
    service.set_details(body.service_details)
    db.add(service)
    db.commit()
    db.refresh(service)
    return {"success": True, "service": service_to_dict(service)}


@router.put("/{service_id}")
def update_service(
    service_id: str,
    body: WalkInServiceUpdate,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("walk-in-services:write")),
):
    service = _find(db, service_id)
    changes = body.model_dump(exclude_unset=True)
    if "service_details" in changes:
        service.set_details(changes.pop("service_details"))
    for k, v in changes.items():
        if v is not None:
            setattr(service, k, v)
    db.commit()
    db.refresh(service)
    return {"success": True, "service": service_to_dict(service)}


@router.delete("/{service_id}")
def delete_service(
    service_id: str,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("walk-in-services:write")),
):
    db.delete(_find(db, service_id))
    db.commit()
    return {"success": True}
