from datetime import date, datetime
from typing import Any, Dict, Optional

from fastapi import Query, Request
from fastapi.responses import JSONResponse

from ..core.config import settings
from ..sales import ErrorKind, SaleOutcome, SaleTransactionManager

# SaleOutcome error kind -> HTTP status
OUTCOME_STATUS = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.ITEM_NOT_FOUND: 404,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INSUFFICIENT_STOCK: 409,
    ErrorKind.STOCK_RACE: 409,
    ErrorKind.PERSISTENCE_FAILURE: 503,
}


def get_sales_manager(request: Request) -> SaleTransactionManager:
    return request.app.state.sales


def outcome_response(outcome: SaleOutcome, status_code: int = 200) -> JSONResponse:
    if outcome.ok:
        return JSONResponse({"success": True, **outcome.to_dict()}, status_code=status_code)
    return JSONResponse(
        {"success": False, **outcome.to_dict()},
        status_code=OUTCOME_STATUS.get(outcome.error_kind, 500),
    )


class Page:
    """``?page=&limit=`` query parameters, clamped to MAX_PAGE_SIZE."""

    def __init__(
        self,
        page: int = Query(1, ge=1),
        limit: Optional[int] = Query(None, ge=1),
    ):
        self.page = page
        self.limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def meta(self, total: int) -> Dict[str, int]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": int(total),
            "pages": (int(total) + self.limit - 1) // self.limit,
        }


def money_out(value: Any) -> float:
    return round(float(value or 0), 2)


def iso(value: Optional[Any]) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value

