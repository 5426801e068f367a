# clinicdesk/routers/drugs.py
from __future__ import annotations

import csv
import io
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.identity import AuthorizationContext, require_permission
from ..models.drug import Drug
from ..sales import SqlStockLedger
from ..sales.errors import ItemNotFound
from ..schemas.drug import DrugCreate, DrugRestock, DrugUpdate
from .common import Page, iso, money_out

log = logging.getLogger("clinicdesk.api")

router = APIRouter(prefix="/api/drugs", tags=["Drugs"])


def get_ledger(request: Request) -> SqlStockLedger:
    return request.app.state.ledger


def drug_to_dict(d: Drug) -> Dict[str, Any]:
    return {
        "id": int(d.id),
        "name": d.name,
        "label": d.label(),
        "genericName": d.generic_name,
        "category": d.category,
        "description": d.description,
        "dosageForm": d.dosage_form,
        "strength": d.strength,
        "manufacturer": d.manufacturer,
        "batchNumber": d.batch_number,
        "expiryDate": iso(d.expiry_date),
        "purchasePrice": money_out(d.purchase_price),
        "sellingPrice": money_out(d.selling_price),
        "stockQuantity": int(d.stock_quantity or 0),
        "minimumStockLevel": int(d.minimum_stock_level or 0),
        "isLowStock": d.is_low_stock,
        "isActive": bool(d.is_active),
        "createdBy": d.created_by,
        "createdAt": iso(d.created_at),
        "updatedAt": iso(d.updated_at),
    }


def _get_or_404(db: Session, drug_id: int) -> Drug:
    drug = db.get(Drug, drug_id)
    if not drug or not drug.is_active:
        raise HTTPException(status_code=404, detail="Drug not found")
    return drug


# ---------------------------------------------------------------------------
# CSV header aliases -> Drug columns
# ---------------------------------------------------------------------------
_DRUG_FIELD_MAP = {
    "name": "name",
    "drug": "name",
    "drugname": "name",
    "medicine": "name",
    "generic": "generic_name",
    "genericname": "generic_name",
    "generic_name": "generic_name",
    "category": "category",
    "form": "dosage_form",
    "dosageform": "dosage_form",
    "dosage_form": "dosage_form",
    "strength": "strength",
    "manufacturer": "manufacturer",

    # prices
    "cost": "purchase_price",
    "purchaseprice": "purchase_price",
    "purchase_price": "purchase_price",
    "price": "selling_price",
    "mrp": "selling_price",
    "sellingprice": "selling_price",
    "selling_price": "selling_price",

    # stock
    "qty": "stock_quantity",
    "quantity": "stock_quantity",
    "stock": "stock_quantity",
    "stockquantity": "stock_quantity",
    "stock_quantity": "stock_quantity",

    # reorder
    "reorder": "minimum_stock_level",
    "reorder_level": "minimum_stock_level",
    "minimumstocklevel": "minimum_stock_level",
    "minimum_stock_level": "minimum_stock_level",

    "batch": "batch_number",
    "batch_no": "batch_number",
    "batchnumber": "batch_number",
    "expiry": "expiry_date",
    "expiry_date": "expiry_date",
    "expirydate": "expiry_date",
}

_MONEY_FIELDS = ("purchase_price", "selling_price")
_INT_FIELDS = ("stock_quantity", "minimum_stock_level")


def _norm(h: str) -> str:
    return (h or "").strip().lower().replace(" ", "")


def row_to_payload(row: Dict[str, str]) -> Dict[str, Any]:
    """Map one CSV row onto Drug columns; unparseable numbers become 0, bad dates None."""
    p: Dict[str, Any] = {}
    for raw_k, v in row.items():
        field = _DRUG_FIELD_MAP.get(_norm(raw_k))
        if not field:
            continue
        val = (v or "").strip()
        if field in _MONEY_FIELDS:
            try:
                p[field] = max(Decimal("0"), Decimal(val)) if val else Decimal("0")
            except InvalidOperation:
                p[field] = Decimal("0")
        elif field in _INT_FIELDS:
            try:
                p[field] = max(0, int(float(val))) if val else 0
            except ValueError:
                p[field] = 0
        elif field == "expiry_date":
            try:
                p[field] = date.fromisoformat(val) if val else None
            except ValueError:
                p[field] = None
        else:
            p[field] = val or None
    return p


def apply_import(db: Session, rows: List[Dict[str, Any]], actor: str) -> Dict[str, int]:
    """Upsert by case-insensitive name. Existing rows keep their name; stock is replaced by the CSV value."""
    created = updated = skipped = 0
    by_name: Dict[str, Dict[str, Any]] = {}
    for p in rows:
        nm = (p.get("name") or "").strip().lower()
        if not nm:
            skipped += 1
            continue
        by_name[nm] = p

    existing = {
        (d.name or "").strip().lower(): d
        for d in db.query(Drug).filter(func.lower(Drug.name).in_(list(by_name))).all()
    }
    for nm, payload in by_name.items():
        drug = existing.get(nm)
        if drug:
            # the stored name is the match key and the sale snapshot label; keep it
            for k, v in payload.items():
                if v is not None and k != "name":
                    setattr(drug, k, v)
            drug.is_active = True
            updated += 1
        else:
            db.add(Drug(created_by=actor, **payload))
            created += 1

    db.flush()
    return {"created": created, "updated": updated, "skipped": skipped, "total": len(rows)}


# =============================================================================
#                                   QUERIES
# =============================================================================
@router.get("")
def list_drugs(
    search: str = Query("", description="Name, generic name or category"),
    category: Optional[str] = None,
    page: Page = Depends(),
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("inventory:read")),
):
    query = db.query(Drug).filter(Drug.is_active.is_(True))
    if search:
        like = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(Drug.name).like(like),
                func.lower(Drug.generic_name).like(like),
                func.lower(Drug.category).like(like),
            )
        )
    if category:
        query = query.filter(Drug.category == category)

    total = query.count()
    drugs = query.order_by(func.lower(Drug.name).asc()).offset(page.offset).limit(page.limit).all()
    return {"success": True, "drugs": [drug_to_dict(d) for d in drugs], "pagination": page.meta(total)}


@router.get("/low-stock")
def low_stock(
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("inventory:read")),
):
    drugs = (
        db.query(Drug)
        .filter(Drug.is_active.is_(True))
        .filter(Drug.stock_quantity <= Drug.minimum_stock_level)
        .order_by(Drug.stock_quantity.asc(), func.lower(Drug.name).asc())
        .all()
    )
    return {"success": True, "drugs": [drug_to_dict(d) for d in drugs]}


@router.get("/{drug_id}")
def get_drug(
    drug_id: int,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("inventory:read")),
):
    return {"success": True, "drug": drug_to_dict(_get_or_404(db, drug_id))}


# =============================================================================
#                                  MUTATIONS
# =============================================================================
@router.post("", status_code=201)
def create_drug(
    body: DrugCreate,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("inventory:write")),
):
    drug = Drug(created_by=ctx.user_id, **body.model_dump())
    db.add(drug)
    db.commit()
    db.refresh(drug)
    log.info("drug_created id=%s name=%s stock=%s", drug.id, drug.name, drug.stock_quantity)
    return {"success": True, "drug": drug_to_dict(drug)}


@router.put("/{drug_id}")
def update_drug(
    drug_id: int,
    body: DrugUpdate,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("inventory:write")),
):
    drug = _get_or_404(db, drug_id)
    for k, v in body.model_dump(exclude_unset=True).items():
        if v is not None:
            setattr(drug, k, v)
    db.commit()
    db.refresh(drug)
    return {"success": True, "drug": drug_to_dict(drug)}


@router.post("/{drug_id}/restock")
def restock_drug(
    drug_id: int,
    body: DrugRestock,
    db: Session = Depends(get_db),
    ledger: SqlStockLedger = Depends(get_ledger),
    ctx: AuthorizationContext = Depends(require_permission("inventory:write")),
):
    drug = _get_or_404(db, drug_id)
    if body.batch_number or body.expiry_date:
        if body.batch_number:
            drug.batch_number = body.batch_number
        if body.expiry_date:
            drug.expiry_date = body.expiry_date
        db.commit()
    # stock only moves through the ledger
    try:
        entry = ledger.increment(drug_id, body.quantity)
    except ItemNotFound:
        raise HTTPException(status_code=404, detail="Drug not found")
    log.info("drug_restocked id=%s amount=%s stock=%s by=%s", drug_id, body.quantity, entry.available_quantity, ctx.user_id)
    db.expire_all()
    return {"success": True, "drug": drug_to_dict(_get_or_404(db, drug_id))}


@router.delete("/{drug_id}")
def delete_drug(
    drug_id: int,
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("inventory:write")),
):
    # deactivate only: past sales still reference the row and voids restock it
    drug = _get_or_404(db, drug_id)
    drug.is_active = False
    db.commit()
    log.info("drug_deactivated id=%s by=%s", drug_id, ctx.user_id)
    return {"success": True}


@router.post("/import")
async def import_drugs(
    file: UploadFile = File(...),
    dry_run: bool = Form(False),
    db: Session = Depends(get_db),
    ctx: AuthorizationContext = Depends(require_permission("inventory:write")),
):
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Please upload a CSV file.")

    content: bytes = await file.read()
    try:
        text_data = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        text_data = content.decode("latin-1")

    reader = csv.DictReader(io.StringIO(text_data))
    parsed = [row_to_payload(r) for r in reader if any((v or "").strip() for v in r.values() if isinstance(v, str))]

    try:
        summary = apply_import(db, parsed, ctx.user_id)
        if dry_run:
            db.rollback()
        else:
            db.commit()
    except Exception:
        db.rollback()
        raise
    log.info("drug_import %s dry_run=%s by=%s", summary, dry_run, ctx.user_id)
    return {"success": True, "summary": summary, "dryRun": dry_run}
