"""
Sale transactions: pricing, stock ledger access, sale persistence and the
manager that keeps the two stores consistent.
"""
from .errors import ErrorKind
from .ledger import SqlStockLedger, StockLedger
from .orchestrator import Compensation, SaleTransactionManager
from .outcome import CompensationFailure, SaleOutcome
from .records import (
    LedgerEntry,
    PaymentMethod,
    PaymentStatus,
    SaleEditMeta,
    SaleFilter,
    SaleItem,
    SaleLineRequest,
    SaleMeta,
    SalePage,
    SaleRecord,
    SaleSource,
)
from .store import SaleStore, SqlSaleStore

__all__ = [
    "Compensation",
    "CompensationFailure",
    "ErrorKind",
    "LedgerEntry",
    "PaymentMethod",
    "PaymentStatus",
    "SaleEditMeta",
    "SaleFilter",
    "SaleItem",
    "SaleLineRequest",
    "SaleMeta",
    "SaleOutcome",
    "SalePage",
    "SaleRecord",
    "SaleSource",
    "SaleStore",
    "SaleTransactionManager",
    "SqlSaleStore",
    "SqlStockLedger",
    "StockLedger",
]
