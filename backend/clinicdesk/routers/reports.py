# clinicdesk/routers/reports.py
import csv
import io
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..core.identity import AuthorizationContext, require_permission
from ..models.drug import Drug
from ..models.payment import Payment
from ..models.walk_in_service import WalkInService
from ..sales import SaleFilter, SaleTransactionManager
from .common import get_sales_manager, money_out

router = APIRouter(prefix="/api/reports", tags=["Reports"])

RANGES = ("today", "week", "month", "quarter", "year", "custom")


def resolve_range(
    range_name: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
) -> Tuple[datetime, datetime]:
    """Inclusive [since, until] bounds (UTC) for a named reporting range."""
    today = today or datetime.now(timezone.utc).date()
    if range_name == "today":
        first, last = today, today
    elif range_name == "week":
        # weeks start on Sunday
        first, last = today - timedelta(days=(today.weekday() + 1) % 7), today
    elif range_name == "quarter":
        q_month = 3 * ((today.month - 1) // 3) + 1
        first = date(today.year, q_month, 1)
        nxt = date(today.year + (1 if q_month == 10 else 0), 1 if q_month == 10 else q_month + 3, 1)
        last = nxt - timedelta(days=1)
    elif range_name == "year":
        first, last = date(today.year, 1, 1), date(today.year, 12, 31)
    elif range_name == "custom":
        first = start or date(today.year, 1, 1)
        last = end or date(today.year, 12, 31)
        if first > last:
            raise HTTPException(status_code=400, detail="startDate must not be after endDate")
    else:
        # month
        first = date(today.year, today.month, 1)
        nxt = date(today.year + (1 if today.month == 12 else 0), 1 if today.month == 12 else today.month + 1, 1)
        last = nxt - timedelta(days=1)
    return (
        datetime.combine(first, time.min, tzinfo=timezone.utc),
        datetime.combine(last, time.max, tzinfo=timezone.utc),
    )


def _range_params(
    range_name: str = Query("month", alias="range"),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
) -> Tuple[datetime, datetime]:
    if range_name not in RANGES:
        raise HTTPException(status_code=400, detail=f"Unknown range: {range_name}")
    return resolve_range(range_name, start_date, end_date)


@router.get("/summary")
def summary(
    bounds: Tuple[datetime, datetime] = Depends(_range_params),
    db: Session = Depends(get_db),
    manager: SaleTransactionManager = Depends(get_sales_manager),
    ctx: AuthorizationContext = Depends(require_permission("reports:read")),
):
    since, until = bounds
    sales = manager.list_sales(SaleFilter(created_from=since, created_to=until)).sales

    revenue = sum((s.total for s in sales), Decimal("0.00"))
    units: Counter = Counter()
    names = {}
    methods: Counter = Counter()
    for s in sales:
        methods[s.payment_method] += 1
        for item in s.items:
            units[item.drug_id] += item.quantity
            names.setdefault(item.drug_id, item.drug_name)

    payments_collected = (
        db.query(func.coalesce(func.sum(Payment.amount), 0))
        .filter(Payment.status == "COMPLETED")
        .filter(Payment.created_at >= since, Payment.created_at <= until)
        .scalar()
    )
    walk_ins = (
        db.query(func.count(WalkInService.id))
        .filter(WalkInService.created_at >= since, WalkInService.created_at <= until)
        .scalar()
    )
    low_stock = (
        db.query(Drug.id, Drug.name, Drug.stock_quantity, Drug.minimum_stock_level)
        .filter(Drug.is_active.is_(True))
        .filter(Drug.stock_quantity <= Drug.minimum_stock_level)
        .order_by(Drug.stock_quantity.asc())
        .limit(25)
        .all()
    )

    return {
        "success": True,
        "since": since.isoformat(),
        "until": until.isoformat(),
        "sales": {
            "count": len(sales),
            "revenue": str(revenue),
            "averageSale": str((revenue / len(sales)).quantize(Decimal("0.01"))) if sales else "0.00",
            "unitsSold": sum(units.values()),
            "paymentMethods": dict(methods),
        },
        "topDrugs": [
            {"drugId": drug_id, "drugName": names[drug_id], "quantity": qty}
            for drug_id, qty in units.most_common(10)
        ],
        "lowStock": [
            {"id": int(r[0]), "name": r[1], "stockQuantity": int(r[2] or 0), "minimumStockLevel": int(r[3] or 0)}
            for r in low_stock
        ],
        "paymentsCollected": money_out(payments_collected),
        "walkInServices": int(walk_ins or 0),
    }


SALES_CSV_HEADER = [
    "saleId", "createdAt", "source", "drugOrderId", "patientName", "patientPhone",
    "items", "subtotal", "discount", "tax", "total", "paymentMethod", "paymentStatus", "recordedBy",
]


@router.get("/sales.csv")
def export_sales_csv(
    bounds: Tuple[datetime, datetime] = Depends(_range_params),
    manager: SaleTransactionManager = Depends(get_sales_manager),
    ctx: AuthorizationContext = Depends(require_permission("reports:read")),
):
    since, until = bounds
    sales = manager.list_sales(SaleFilter(created_from=since, created_to=until)).sales

    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(SALES_CSV_HEADER)
    for s in sales:
        doc = s.to_document()
        doc["items"] = "; ".join(f"{i.drug_name} x{i.quantity} @ {i.unit_price}" for i in s.items)
        writer.writerow([doc[k] if doc[k] is not None else "" for k in SALES_CSV_HEADER])

    filename = f"sales_{since.date().isoformat()}_{until.date().isoformat()}.csv"
    return StreamingResponse(
        io.BytesIO(buf.getvalue().encode("utf-8")),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
