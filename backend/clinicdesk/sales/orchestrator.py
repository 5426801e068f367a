from __future__ import annotations

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import (
    InsufficientStock,
    InvalidInput,
    ItemNotFound,
    PersistenceFailure,
    SaleNotFound,
    SaleTransactionError,
    StockRace,
)
from .ledger import StockLedger
from .outcome import CompensationFailure, SaleOutcome
from .pricing import compute_totals, money, non_negative_money, price_line
from .records import (
    LedgerEntry,
    PaymentMethod,
    PaymentStatus,
    SaleEditMeta,
    SaleFilter,
    SaleLineRequest,
    SaleMeta,
    SalePage,
    SaleRecord,
    SaleSource,
)
from .store import SaleStore

log = logging.getLogger("clinicdesk.sales")

# (entry id, quantity, explicit unit price or None)
Line = Tuple[int, int, Optional[Decimal]]


class Compensation:
    """
    Undo list filled during a forward pass and unwound exactly once.

    ``release()`` marks the pass as committed; ``unwind()`` then has nothing
    to do. Failed undo steps are logged and returned, never retried.
    """

    def __init__(self, ledger: StockLedger, operation: str, sale_id: Optional[str] = None):
        self._ledger = ledger
        self.operation = operation
        self.sale_id = sale_id
        self._steps: List[Tuple[int, int, str]] = []

    def decremented(self, entry_id: int, amount: int) -> None:
        self._steps.append((entry_id, amount, "increment"))

    def incremented(self, entry_id: int, amount: int) -> None:
        self._steps.append((entry_id, amount, "decrement"))

    def release(self) -> None:
        self._steps = []

    def unwind(self) -> List[CompensationFailure]:
        steps, self._steps = self._steps, []
        failures: List[CompensationFailure] = []
        for entry_id, amount, action in reversed(steps):
            try:
                if action == "increment":
                    self._ledger.increment(entry_id, amount)
                elif self._ledger.conditional_decrement(entry_id, amount) is None:
                    raise RuntimeError("returned stock was consumed before it could be taken back")
            except Exception as exc:
                log.critical(
                    "compensation_failed operation=%s sale_id=%s entry=%s action=%s amount=%s error=%s",
                    self.operation, self.sale_id, entry_id, action, amount, exc,
                )
                failures.append(
                    CompensationFailure(
                        entry_id=entry_id,
                        amount=amount,
                        action=action,
                        operation=self.operation,
                        sale_id=self.sale_id,
                        error=str(exc),
                    )
                )
            else:
                log.info(
                    "compensated operation=%s sale_id=%s entry=%s action=%s amount=%s",
                    self.operation, self.sale_id, entry_id, action, amount,
                )
        return failures


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------
def _as_int(value: Any, label: str) -> int:
    if isinstance(value, bool):
        raise InvalidInput(f"{label} must be a whole number")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise InvalidInput(f"{label} must be a whole number")


def _line_fields(line: Any) -> Tuple[Any, Any, Any]:
    if isinstance(line, SaleLineRequest):
        return line.entry_id, line.quantity, line.unit_price
    if isinstance(line, Mapping):
        entry_id = line.get("entryId", line.get("drugId", line.get("entry_id")))
        unit_price = line.get("unitPrice", line.get("unit_price"))
        return entry_id, line.get("quantity"), unit_price
    raise InvalidInput("Invalid item payload")


def _validate_lines(lines: Optional[Iterable[Any]]) -> List[Line]:
    lines = list(lines or [])
    if not lines:
        raise InvalidInput("At least one item is required")
    out: List[Line] = []
    for idx, raw in enumerate(lines, 1):
        entry_id, quantity, unit_price = _line_fields(raw)
        if entry_id is None or entry_id == "":
            raise InvalidInput(f"Item {idx}: drug id is required")
        entry_id = _as_int(entry_id, f"Item {idx}: drug id")
        quantity = _as_int(quantity, f"Item {idx}: quantity")
        if quantity <= 0:
            raise InvalidInput(f"Item {idx}: quantity must be >= 1")
        price = None if unit_price is None else non_negative_money(unit_price, f"Item {idx}: unit price")
        out.append((entry_id, quantity, price))
    return out


def _choice(enum_cls, value: Any, label: str) -> str:
    if isinstance(value, enum_cls):
        return value.value
    try:
        return enum_cls(str(value).strip().upper()).value
    except ValueError:
        raise InvalidInput(f"Unknown {label}: {value!r}")


def _aggregate(lines: Iterable[Line]) -> "OrderedDict[int, int]":
    totals: "OrderedDict[int, int]" = OrderedDict()
    for entry_id, quantity, _ in lines:
        totals[entry_id] = totals.get(entry_id, 0) + quantity
    return totals


class SaleTransactionManager:
    """
    Creates, edits and voids sales while keeping the stock ledger consistent.

    The ledger and the sale store are independent systems with no shared
    transaction. Ledger writes are applied one by one in item order, each
    recorded on a ``Compensation``; if anything fails before the sale store
    accepts the record, the compensation is unwound before returning. No
    exception leaves this class: every call returns a ``SaleOutcome``.

    Concurrent edits of the *same* sale are not serialised (no version
    column): the last store write wins.
    """

    def __init__(self, ledger: StockLedger, store: SaleStore):
        self.ledger = ledger
        self.store = store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_sale(self, sale_id: str) -> Optional[SaleRecord]:
        return self.store.find_by_id(sale_id)

    def list_sales(self, filters: Optional[SaleFilter] = None) -> SalePage:
        filters = filters or SaleFilter()
        sales = self.store.list(filters)
        counter = getattr(self.store, "count", None)
        total = counter(filters) if counter else len(sales)
        return SalePage(sales=sales, total=total)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _failed(self, operation: str, error: SaleTransactionError, unreconciled=()) -> SaleOutcome:
        log.warning("%s_failed kind=%s message=%s", operation, error.kind.value, error.message)
        return SaleOutcome.failed(error, unreconciled)

    def _resolve(self, entry_ids: Iterable[int]) -> Dict[int, LedgerEntry]:
        entries: Dict[int, LedgerEntry] = {}
        for entry_id in entry_ids:
            if entry_id in entries:
                continue
            entry = self.ledger.get(entry_id)
            if entry is None:
                raise ItemNotFound(entry_id)
            entries[entry_id] = entry
        return entries

    def _take(self, entry_id: int, amount: int, compensation: Compensation) -> None:
        if self.ledger.conditional_decrement(entry_id, amount) is None:
            raise StockRace(entry_id, amount)
        compensation.decremented(entry_id, amount)

    def _give_back(self, entry_id: int, amount: int, compensation: Compensation) -> None:
        self.ledger.increment(entry_id, amount)
        compensation.incremented(entry_id, amount)

    def _find(self, sale_id: str) -> SaleRecord:
        try:
            sale = self.store.find_by_id(sale_id)
        except Exception as exc:
            raise PersistenceFailure(f"Sale store unavailable: {exc}", retryable=True) from exc
        if sale is None:
            raise SaleNotFound(sale_id)
        return sale

    # ------------------------------------------------------------------
    # CreateSale
    # ------------------------------------------------------------------
    def create_sale(self, lines: Iterable[Any], meta: Optional[SaleMeta] = None) -> SaleOutcome:
        operation = "create_sale"
        meta = meta or SaleMeta()
        try:
            requested = _validate_lines(lines)
            discount = non_negative_money(meta.discount, "Discount")
            tax = non_negative_money(meta.tax, "Tax")
            source = SaleSource(_choice(SaleSource, meta.source, "sale source"))
            method = _choice(PaymentMethod, meta.payment_method, "payment method")
            status = _choice(PaymentStatus, meta.payment_status, "payment status")

            entries = self._resolve(entry_id for entry_id, _, _ in requested)
            for entry_id, quantity in _aggregate(requested).items():
                entry = entries[entry_id]
                if entry.available_quantity < quantity:
                    raise InsufficientStock(entry_id, entry.display_name, quantity, entry.available_quantity)

            items = tuple(
                price_line(
                    entry_id,
                    entries[entry_id].display_name,
                    quantity,
                    price if price is not None else money(entries[entry_id].unit_selling_price),
                )
                for entry_id, quantity, price in requested
            )
            totals = compute_totals(items, discount, tax)
        except SaleTransactionError as exc:
            return self._failed(operation, exc)
        except Exception as exc:
            log.exception("%s could not read the stock ledger", operation)
            return self._failed(operation, PersistenceFailure(f"Stock ledger unavailable: {exc}", retryable=True))

        draft = SaleRecord(
            sale_id="",
            source=source,
            drug_order_id=meta.drug_order_id,
            patient_name=meta.patient_name,
            patient_phone=meta.patient_phone,
            items=items,
            subtotal=totals.subtotal,
            discount=totals.discount,
            tax=totals.tax,
            total=totals.total,
            payment_method=method,
            payment_status=status,
            recorded_by=meta.recorded_by,
            notes=meta.notes,
        )

        compensation = Compensation(self.ledger, operation)
        failure: Optional[SaleTransactionError] = None
        sale: Optional[SaleRecord] = None
        try:
            for entry_id, quantity, _ in requested:
                self._take(entry_id, quantity, compensation)
            try:
                sale = self.store.create(draft)
            except Exception as exc:
                log.exception("%s could not persist the sale", operation)
                raise PersistenceFailure(f"Sale could not be saved: {exc}") from exc
            compensation.release()
        except SaleTransactionError as exc:
            failure = exc
        except Exception as exc:
            log.exception("%s ledger call failed", operation)
            failure = PersistenceFailure(f"Stock ledger unavailable: {exc}", retryable=True)
        finally:
            unreconciled = compensation.unwind()

        if failure is not None:
            return self._failed(operation, failure, unreconciled)

        log.info(
            "sale_created sale_id=%s items=%s total=%s source=%s actor=%s",
            sale.sale_id, len(sale.items), sale.total, sale.source.value, sale.recorded_by,
        )
        return SaleOutcome.succeeded(sale)

    # ------------------------------------------------------------------
    # EditSale
    # ------------------------------------------------------------------
    def edit_sale(self, sale_id: str, lines: Iterable[Any], meta: Optional[SaleEditMeta] = None) -> SaleOutcome:
        """
        Replace a sale's items, moving only the per-drug difference through the ledger.

        Positive deltas are guarded decrements, negative deltas are plain
        increments. On failure every ledger change made by *this* edit is
        undone; the sale's original commitment is left alone. Prices not given
        explicitly keep the price captured on the existing line for that drug,
        and fall back to the current selling price for newly added drugs.
        """
        operation = "edit_sale"
        meta = meta or SaleEditMeta()
        try:
            requested = _validate_lines(lines)
            existing = self._find(sale_id)

            discount = existing.discount if meta.discount is None else non_negative_money(meta.discount, "Discount")
            tax = existing.tax if meta.tax is None else non_negative_money(meta.tax, "Tax")
            method = (
                existing.payment_method if meta.payment_method is None
                else _choice(PaymentMethod, meta.payment_method, "payment method")
            )
            status = (
                existing.payment_status if meta.payment_status is None
                else _choice(PaymentStatus, meta.payment_status, "payment status")
            )

            current = existing.quantities()
            wanted = _aggregate(requested)

            # supplied order first, then drugs dropped from the sale
            order = list(wanted) + [entry_id for entry_id in current if entry_id not in wanted]
            deltas = [
                (entry_id, wanted.get(entry_id, 0) - current.get(entry_id, 0))
                for entry_id in order
            ]
            deltas = [(entry_id, delta) for entry_id, delta in deltas if delta != 0]

            # drugs already on the sale keep their snapshot; only new or growing
            # lines need a live (active) ledger entry
            entries = self._resolve(
                entry_id for entry_id in wanted
                if entry_id not in current or wanted[entry_id] > current[entry_id]
            )
            for entry_id, delta in deltas:
                if delta > 0:
                    entry = entries[entry_id]
                    if entry.available_quantity < delta:
                        raise InsufficientStock(entry_id, entry.display_name, delta, entry.available_quantity)

            captured: Dict[int, Tuple[str, Decimal]] = {}
            for item in existing.items:
                captured.setdefault(item.drug_id, (item.drug_name, item.unit_price))

            items = []
            for entry_id, quantity, price in requested:
                if entry_id in captured:
                    name, old_price = captured[entry_id]
                else:
                    name, old_price = entries[entry_id].display_name, money(entries[entry_id].unit_selling_price)
                items.append(price_line(entry_id, name, quantity, old_price if price is None else price))
            items = tuple(items)
            totals = compute_totals(items, discount, tax)
        except SaleTransactionError as exc:
            return self._failed(operation, exc)
        except Exception as exc:
            log.exception("%s could not read sale %s", operation, sale_id)
            return self._failed(operation, PersistenceFailure(f"Stock ledger unavailable: {exc}", retryable=True))

        patch = {
            "items": items,
            "subtotal": totals.subtotal,
            "discount": totals.discount,
            "tax": totals.tax,
            "total": totals.total,
            "payment_method": method,
            "payment_status": status,
        }
        if meta.patient_name is not None:
            patch["patient_name"] = meta.patient_name
        if meta.patient_phone is not None:
            patch["patient_phone"] = meta.patient_phone
        if meta.notes is not None:
            patch["notes"] = meta.notes

        compensation = Compensation(self.ledger, operation, sale_id)
        failure: Optional[SaleTransactionError] = None
        sale: Optional[SaleRecord] = None
        try:
            for entry_id, delta in deltas:
                if delta > 0:
                    self._take(entry_id, delta, compensation)
                else:
                    self._give_back(entry_id, -delta, compensation)
            try:
                sale = self.store.update(sale_id, patch)
            except Exception as exc:
                log.exception("%s could not persist sale %s", operation, sale_id)
                raise PersistenceFailure(f"Sale could not be saved: {exc}") from exc
            if sale is None:
                raise SaleNotFound(sale_id)
            compensation.release()
        except SaleTransactionError as exc:
            failure = exc
        except Exception as exc:
            log.exception("%s ledger call failed for sale %s", operation, sale_id)
            failure = PersistenceFailure(f"Stock ledger unavailable: {exc}", retryable=True)
        finally:
            unreconciled = compensation.unwind()

        if failure is not None:
            return self._failed(operation, failure, unreconciled)

        log.info(
            "sale_edited sale_id=%s deltas=%s total=%s",
            sale.sale_id, dict(deltas), sale.total,
        )
        return SaleOutcome.succeeded(sale)

    # ------------------------------------------------------------------
    # VoidSale
    # ------------------------------------------------------------------
    def void_sale(self, sale_id: str) -> SaleOutcome:
        """
        Return every line's quantity to the ledger, then delete the sale.

        A restock that fails part way is taken back before reporting. Once
        stock is fully returned there is no inverse: if the delete then
        errors, the inconsistency is logged for manual reconciliation. If the
        sale vanished in between (voided concurrently), our restock is taken
        back so stock is only returned once.
        """
        operation = "void_sale"
        try:
            existing = self._find(sale_id)
        except SaleTransactionError as exc:
            return self._failed(operation, exc)

        quantities = existing.quantities()
        compensation = Compensation(self.ledger, operation, sale_id)
        failure: Optional[SaleTransactionError] = None
        try:
            for entry_id, quantity in quantities.items():
                self._give_back(entry_id, quantity, compensation)
        except SaleTransactionError as exc:
            failure = exc
        except Exception as exc:
            log.exception("%s restock failed for sale %s", operation, sale_id)
            failure = PersistenceFailure(f"Stock could not be returned: {exc}", retryable=True)

        if failure is not None:
            return self._failed(operation, failure, compensation.unwind())

        try:
            deleted = self.store.delete_by_id(sale_id)
        except Exception as exc:
            compensation.release()
            log.critical(
                "void_inconsistent sale_id=%s restocked=%s error=%s",
                sale_id, quantities, exc,
            )
            return self._failed(
                operation,
                PersistenceFailure(
                    f"Sale {sale_id} was restocked but could not be deleted; manual reconciliation needed"
                ),
            )

        if not deleted:
            return self._failed(operation, SaleNotFound(sale_id), compensation.unwind())

        compensation.release()
        log.info("sale_voided sale_id=%s restocked=%s", sale_id, quantities)
        return SaleOutcome.succeeded()

    # ------------------------------------------------------------------
    # Payment bookkeeping (no ledger effect)
    # ------------------------------------------------------------------
    def update_payment(
        self,
        sale_id: str,
        payment_status: Any = None,
        payment_method: Any = None,
    ) -> SaleOutcome:
        operation = "update_payment"
        try:
            patch: Dict[str, Any] = {}
            if payment_status is not None:
                patch["payment_status"] = _choice(PaymentStatus, payment_status, "payment status")
            if payment_method is not None:
                patch["payment_method"] = _choice(PaymentMethod, payment_method, "payment method")
            if not patch:
                raise InvalidInput("Nothing to update")
            try:
                sale = self.store.update(sale_id, patch)
            except Exception as exc:
                raise PersistenceFailure(f"Sale could not be saved: {exc}", retryable=True) from exc
            if sale is None:
                raise SaleNotFound(sale_id)
        except SaleTransactionError as exc:
            return self._failed(operation, exc)
        log.info("sale_payment_updated sale_id=%s %s", sale_id, patch)
        return SaleOutcome.succeeded(sale)
