from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from .errors import ErrorKind, SaleTransactionError
from .records import SaleRecord


@dataclass(frozen=True)
class CompensationFailure:
    """A ledger adjustment that could not be undone; needs manual reconciliation."""

    entry_id: int
    amount: int
    action: str          # the undo that failed: "increment" | "decrement"
    operation: str       # create_sale | edit_sale | void_sale
    sale_id: Optional[str]
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entryId": self.entry_id,
            "amount": self.amount,
            "action": self.action,
            "operation": self.operation,
            "saleId": self.sale_id,
            "error": self.error,
        }


@dataclass(frozen=True)
class SaleOutcome:
    ok: bool
    sale: Optional[SaleRecord] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    retryable: bool = False
    unreconciled: Tuple[CompensationFailure, ...] = ()

    @classmethod
    def succeeded(cls, sale: Optional[SaleRecord] = None) -> "SaleOutcome":
        return cls(ok=True, sale=sale)

    @classmethod
    def failed(cls, error: SaleTransactionError, unreconciled=()) -> "SaleOutcome":
        return cls(
            ok=False,
            error_kind=error.kind,
            message=error.message,
            retryable=error.retryable,
            unreconciled=tuple(unreconciled),
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            if self.sale is None:
                return {"success": True}
            return {"sale": self.sale.to_document()}
        body: Dict[str, Any] = {
            "errorKind": self.error_kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        if self.unreconciled:
            body["unreconciled"] = [f.to_dict() for f in self.unreconciled]
        return body
