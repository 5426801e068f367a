# clinicdesk/routers/patients.py
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.identity import AuthorizationContext, require_permission
from ..models.patient import Patient
from ..schemas.patient import PatientCreate, PatientUpdate
from ..services.sequences import next_identifier
from .common import Page, iso

router = APIRouter(prefix="/api/patients", tags=["Patients"])


def patient_to_dict(p: Patient):
    return {
        "patientId": p.patient_id,
        "firstName": p.first_name,
        "lastName": p.last_name,
        "fullName": p.full_name,
        "dateOfBirth": iso(p.date_of_birth),
        "gender": p.gender,
        "phoneNumber": p.phone_number,
        "email": p.email,
        "address": p.address,
        "emergencyContact": {
            "name": p.emergency_contact_name,
            "phone": p.emergency_contact_phone,
            "relationship": p.emergency_contact_relationship,
        },
        "medicalHistory": p.medical_history,
        "allergies": p.allergies(),
        "isActive": bool(p.is_active),
        "createdBy": p.created_by,
        "createdAt": iso(p.created_at),
        "updatedAt": iso(p.updated_at),
    }


def find_patient(db: Session, patient_id: str) -> Patient:
    patient = db.query(Patient).filter(Patient.patient_id == patient_id).first()
    if not patient:
        raise HTTPException(status_code=404, detail="Patient not found")
    return patient


@router.get("")
def list_patients(
    search: str = Query("", description="Name, phone or patient id"),
    page: Page = Depends(),
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("patients:read")),
):
    query = db.query(Patient)
    if search:
        like = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(Patient.first_name).like(like),
                func.lower(Patient.last_name).like(like),
                func.lower(Patient.phone_number).like(like),
                func.lower(Patient.patient_id).like(like),
            )
        )
    total = query.count()
    rows = query.order_by(Patient.id.desc()).offset(page.offset).limit(page.limit).all()
    return {"success": True, "patients": [patient_to_dict(p) for p in rows], "pagination": page.meta(total)}


@router.get("/{patient_id}")
def get_patient(
    patient_id: str,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("patients:read")),
):
    return {"success": True, "patient": patient_to_dict(find_patient(db, patient_id))}


@router.post("", status_code=201)
def create_patient(
    body: PatientCreate,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("patients:write")),
):
    data = body.model_dump(exclude={"allergies"})
    patient = Patient(patient_id=next_identifier(db, "patient"), created_by=ctx.user_id, **data)
    patient.set_allergies(body.allergies)
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return {"success": True, "patient": patient_to_dict(patient)}


@router.put("/{patient_id}")
def update_patient(
    patient_id: str,
    body: PatientUpdate,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("patients:write")),
):
    patient = find_patient(db, patient_id)
    changes = body.model_dump(exclude_unset=True)
    if "allergies" in changes:
        patient.set_allergies(changes.pop("allergies"))
    for k, v in changes.items():
        setattr(patient, k, v)
    db.commit()
    db.refresh(patient)
    return {"success": True, "patient": patient_to_dict(patient)}


@router.delete("/{patient_id}")
def delete_patient(
    patient_id: str,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("patients:write")),
):
    db.delete(find_patient(db, patient_id))
    db.commit()
    return {"success": True}
