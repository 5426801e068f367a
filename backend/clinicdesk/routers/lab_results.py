# clinicdesk/routers/lab_results.py
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.identity import AuthorizationContext, require_permission
from ..models.lab_result import LabResult
from ..schemas.lab_result import LabResultRecord, LabResultRequest
from ..services.sequences import next_identifier
from .common import Page, iso
from .patients import find_patient

router = APIRouter(prefix="/api/lab-results", tags=["Lab results"])


def lab_result_to_dict(r: LabResult):
    return {
        "labResultId": r.lab_result_id,
        "patientId": r.patient_id,
        "patientName": r.patient_name,
        "testType": r.test_type,
        "testName": r.test_name,
        "status": r.status,
        "requestedBy": r.requested_by,
        "requestedAt": iso(r.requested_at),
        "completedBy": r.completed_by,
        "completedAt": iso(r.completed_at),
        "results": r.results(),
        "notes": r.notes,
    }


def _find(db: Session, lab_result_id: str) -> LabResult:
    row = db.query(LabResult).filter(LabResult.lab_result_id == lab_result_id).first()
    if not row:
        raise HTTPException(status_code=404, detail="Lab result not found")
    return row


@router.get("")
def list_lab_results(
    patient_id: Optional[str] = Query(None, alias="patientId"),
    status: Optional[str] = None,
    page: Page = Depends(),
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("lab-results:read")),
):
    query = db.query(LabResult)
    if patient_id:
        query = query.filter(LabResult.patient_id == patient_id)
    if status:
        query = query.filter(LabResult.status == status.upper())
    total = query.count()
    rows = query.order_by(LabResult.id.desc()).offset(page.offset).limit(page.limit).all()
    return {"success": True, "labResults": [lab_result_to_dict(r) for r in rows], "pagination": page.meta(total)}


@router.get("/{lab_result_id}")
def get_lab_result(
    lab_result_id: str,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("lab-results:read")),
):
    return {"success": True, "labResult": lab_result_to_dict(_find(db, lab_result_id))}


@router.post("", status_code=201)
def request_lab_test(
    body: LabResultRequest,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("lab-results:request")),
):
    patient = find_patient(db, body.patient_id)
    row = LabResult(
        lab_result_id=next_identifier(db, "lab_result"),
        patient_id=patient.patient_id,
        patient_name=patient.full_name,
        test_type=body.test_type,
        test_name=body.test_name,
        status="PENDING",
        requested_by=ctx.display_name,
        notes=body.notes,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return {"success": True, "labResult": lab_result_to_dict(row)}


@router.put("/{lab_result_id}/results")
def record_results(
    lab_result_id: str,
    body: LabResultRecord,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("lab-results:write")),
):
    row = _find(db, lab_result_id)
    if row.status == "CANCELLED":
        raise HTTPException(status_code=409, detail="Lab request was cancelled")
    row.set_results([r.model_dump(by_alias=True) for r in body.results])
    if body.notes is not None:
        row.notes = body.notes
    row.status = "COMPLETED"
    row.completed_by = ctx.display_name
    row.completed_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(row)
    return {"success": True, "labResult": lab_result_to_dict(row)}


@router.delete("/{lab_result_id}")
def delete_lab_result(
    lab_result_id: str,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("lab-results:write")),
):
    db.delete(_find(db, lab_result_id))
    db.commit()
    return {"success": True}
