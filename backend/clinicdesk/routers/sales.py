# clinicdesk/routers/sales.py
from __future__ import annotations

import io
import logging
import os
from datetime import date, datetime, time, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

from ..core.identity import AuthorizationContext, require_permission
from ..sales import (
    SaleEditMeta,
    SaleFilter,
    SaleLineRequest,
    SaleMeta,
    SaleTransactionManager,
)
from ..schemas.sale import SaleAction, SaleCreate, SalePaymentUpdate, SaleUpdate
from ..utils.pdf_utils import generate_sale_invoice_pdf
from .common import Page, get_sales_manager, outcome_response

log = logging.getLogger("clinicdesk.api")

router = APIRouter(prefix="/api/sales", tags=["Sales"])


def _lines(items):
    return [
        SaleLineRequest(entry_id=it.drug_id, quantity=it.quantity, unit_price=it.unit_price)
        for it in items
    ]


def day_start(d: Optional[date]) -> Optional[datetime]:
    return datetime.combine(d, time.min, tzinfo=timezone.utc) if d else None


def day_end(d: Optional[date]) -> Optional[datetime]:
    return datetime.combine(d, time.max, tzinfo=timezone.utc) if d else None


# =============================================================================
#                                 LIST + READ
# =============================================================================
@router.get("")
def list_sales(
    search: str = Query("", description="Sale id, patient name or phone"),
    payment_status: Optional[str] = Query(None, alias="paymentStatus"),
    payment_method: Optional[str] = Query(None, alias="paymentMethod"),
    source: Optional[str] = None,
    drug_order_id: Optional[str] = Query(None, alias="drugOrderId"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    page: Page = Depends(),
    manager: SaleTransactionManager = Depends(get_sales_manager),
    ctx: AuthorizationContext = Depends(require_permission("sales:read")),
):
    result = manager.list_sales(
        SaleFilter(
            search=search or None,
            payment_status=payment_status,
            payment_method=payment_method,
            source=source,
            drug_order_id=drug_order_id,
            created_from=day_start(start_date),
            created_to=day_end(end_date),
            offset=page.offset,
            limit=page.limit,
        )
    )
    return {
        "success": True,
        "sales": [s.to_document() for s in result.sales],
        "pagination": page.meta(result.total),
    }


@router.get("/{sale_id}")
def get_sale(
    sale_id: str,
    manager: SaleTransactionManager = Depends(get_sales_manager),
    ctx: AuthorizationContext = Depends(require_permission("sales:read")),
):
    sale = manager.get_sale(sale_id)
    if not sale:
        raise HTTPException(status_code=404, detail="Sale not found")
    return {"success": True, "sale": sale.to_document()}


# =============================================================================
#                            CREATE / EDIT / VOID
# =============================================================================
@router.post("")
def create_sale(
    body: SaleCreate,
    manager: SaleTransactionManager = Depends(get_sales_manager),
    ctx: AuthorizationContext = Depends(require_permission("sales:write")),
):
    meta = SaleMeta(
        source=body.source,
        drug_order_id=body.drug_order_id,
        patient_name=body.patient_name,
        patient_phone=body.patient_phone,
        discount=body.discount,
        tax=body.tax,
        payment_method=body.payment_method,
        payment_status=body.payment_status,
        recorded_by=ctx.user_id,
        notes=body.notes,
    )
    return outcome_response(manager.create_sale(_lines(body.items), meta), status_code=201)


@router.put("/{sale_id}")
def edit_sale(
    sale_id: str,
    body: SaleUpdate,
    manager: SaleTransactionManager = Depends(get_sales_manager),
    ctx: AuthorizationContext = Depends(require_permission("sales:write")),
):
    meta = SaleEditMeta(
        patient_name=body.patient_name,
        patient_phone=body.patient_phone,
        discount=body.discount,
        tax=body.tax,
        payment_method=body.payment_method,
        payment_status=body.payment_status,
        notes=body.notes,
    )
    return outcome_response(manager.edit_sale(sale_id, _lines(body.items), meta))


@router.patch("/{sale_id}")
def sale_action(
    sale_id: str,
    body: SaleAction,
    manager: SaleTransactionManager = Depends(get_sales_manager),
    ctx: AuthorizationContext = Depends(require_permission("sales:void")),
):
    if body.action.upper() != "VOID":
        raise HTTPException(status_code=400, detail=f"Unsupported action: {body.action}")
    log.info("void requested sale_id=%s by=%s", sale_id, ctx.user_id)
    return outcome_response(manager.void_sale(sale_id))


@router.delete("/{sale_id}")
def delete_sale(
    sale_id: str,
    manager: SaleTransactionManager = Depends(get_sales_manager),
    ctx: AuthorizationContext = Depends(require_permission("sales:void")),
):
    log.info("void requested sale_id=%s by=%s", sale_id, ctx.user_id)
    return outcome_response(manager.void_sale(sale_id))


@router.patch("/{sale_id}/payment")
def update_sale_payment(
    sale_id: str,
    body: SalePaymentUpdate,
    manager: SaleTransactionManager = Depends(get_sales_manager),
    ctx: AuthorizationContext = Depends(require_permission("sales:write")),
):
    return outcome_response(
        manager.update_payment(sale_id, body.payment_status, body.payment_method)
    )


# =============================================================================
#                                  INVOICE
# =============================================================================
@router.get("/{sale_id}/invoice.pdf")
def sale_invoice(
    sale_id: str,
    download: bool = False,
    manager: SaleTransactionManager = Depends(get_sales_manager),
    ctx: AuthorizationContext = Depends(require_permission("sales:read")),
):
    sale = manager.get_sale(sale_id)
    if not sale:
        raise HTTPException(status_code=404, detail="Sale not found")

    pdf_path = generate_sale_invoice_pdf(sale)
    with open(pdf_path, "rb") as fh:
        data = fh.read()
    filename = os.path.basename(pdf_path)
    disposition = "attachment" if download else "inline"
    return StreamingResponse(
        io.BytesIO(data),
        media_type="application/pdf",
        headers={"Content-Disposition": f'{disposition}; filename="{filename}"'},
    )
