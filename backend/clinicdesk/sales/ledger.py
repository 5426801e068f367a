from __future__ import annotations

from decimal import Decimal
from typing import Callable, Optional, Protocol

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..models.drug import Drug
from .errors import ItemNotFound
from .records import LedgerEntry


class StockLedger(Protocol):
    def get(self, entry_id: int) -> Optional[LedgerEntry]: ...
    def conditional_decrement(self, entry_id: int, amount: int) -> Optional[LedgerEntry]: ...
    def increment(self, entry_id: int, amount: int) -> LedgerEntry: ...


def _entry(drug: Drug) -> LedgerEntry:
    return LedgerEntry(
        id=int(drug.id),
        display_name=drug.name,
        available_quantity=int(drug.stock_quantity or 0),
        unit_selling_price=Decimal(str(drug.selling_price or 0)),
    )


class SqlStockLedger:
    """
    Per-drug available-quantity counter backed by the ``drugs`` table.

    Every call runs in its own short transaction: the ledger is an independent
    system from the sale store and never joins a caller's transaction.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._sessions = session_factory

    def get(self, entry_id: int) -> Optional[LedgerEntry]:
        with self._sessions() as db:
            drug = db.get(Drug, entry_id)
            if drug is None or not drug.is_active:
                return None
            return _entry(drug)

    def conditional_decrement(self, entry_id: int, amount: int) -> Optional[LedgerEntry]:
        """
        Take ``amount`` units only if at least that many are available.

        The check and the write are one ``UPDATE ... WHERE stock_quantity >= :amount``
        statement, so concurrent sellers can't both pass the check. Returns
        ``None`` when the guard rejects the write.
        """
        if amount <= 0:
            raise ValueError("Decrement amount must be > 0")
        stmt = (
            update(Drug)
            .where(Drug.id == entry_id, Drug.stock_quantity >= amount)
            .values(stock_quantity=Drug.stock_quantity - amount)
            .execution_options(synchronize_session=False)
        )
        with self._sessions() as db:
            if db.execute(stmt).rowcount != 1:
                db.rollback()
                return None
            entry = _entry(db.get(Drug, entry_id))
            db.commit()
            return entry

    def increment(self, entry_id: int, amount: int) -> LedgerEntry:
        """Return stock. No upper bound; fails only if the drug row is gone."""
        if amount <= 0:
            raise ValueError("Increment amount must be > 0")
        stmt = (
            update(Drug)
            .where(Drug.id == entry_id)
            .values(stock_quantity=Drug.stock_quantity + amount)
            .execution_options(synchronize_session=False)
        )
        with self._sessions() as db:
            if db.execute(stmt).rowcount != 1:
                db.rollback()
                raise ItemNotFound(entry_id)
            entry = _entry(db.get(Drug, entry_id))
            db.commit()
            return entry
