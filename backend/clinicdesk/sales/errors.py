from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    ITEM_NOT_FOUND = "ItemNotFound"
    INSUFFICIENT_STOCK = "InsufficientStock"
    STOCK_RACE = "StockRace"
    PERSISTENCE_FAILURE = "PersistenceFailure"
    NOT_FOUND = "NotFound"
    INVALID_INPUT = "InvalidInput"


class SaleTransactionError(Exception):
    """Base sale error; never escapes the transaction manager."""

    kind: ErrorKind = ErrorKind.PERSISTENCE_FAILURE
    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(SaleTransactionError):
    kind = ErrorKind.INVALID_INPUT


class ItemNotFound(SaleTransactionError):
    kind = ErrorKind.ITEM_NOT_FOUND

    def __init__(self, entry_id):
        super().__init__(f"Drug not found: {entry_id}")
        self.entry_id = entry_id


class InsufficientStock(SaleTransactionError):
    kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(self, entry_id, name: str, requested: int, available: int):
        super().__init__(f"Not enough stock for {name}. Requested: {requested}, available: {available}")
        self.entry_id = entry_id
        self.requested = requested
        self.available = available


class StockRace(SaleTransactionError):
    kind = ErrorKind.STOCK_RACE
    retryable = True

    def __init__(self, entry_id, requested: int):
        super().__init__(f"Stock for drug {entry_id} changed while the sale was being recorded; retry")
        self.entry_id = entry_id
        self.requested = requested


class PersistenceFailure(SaleTransactionError):
    kind = ErrorKind.PERSISTENCE_FAILURE

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class SaleNotFound(SaleTransactionError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, sale_id):
        super().__init__(f"Sale not found: {sale_id}")
        self.sale_id = sale_id
