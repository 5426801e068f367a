import logging
import threading
from decimal import Decimal

import pytest

from clinicdesk.models.drug import Drug
from clinicdesk.sales import (
    ErrorKind,
    SaleEditMeta,
    SaleFilter,
    SaleLineRequest,
    SaleMeta,
    SaleTransactionManager,
    SqlSaleStore,
    SqlStockLedger,
)


def line(entry_id, quantity, unit_price=None):
    return SaleLineRequest(entry_id=entry_id, quantity=quantity, unit_price=unit_price)


class RacingLedger(SqlStockLedger):
    """Conditional decrements on ``losing`` entries behave as if another sale got there first."""

    def __init__(self, session_factory, losing=()):
        super().__init__(session_factory)
        self.losing = set(losing)

    def conditional_decrement(self, entry_id, amount):
        if entry_id in self.losing:
            return None
        return super().conditional_decrement(entry_id, amount)


class TimeoutLedger(SqlStockLedger):
    def __init__(self, session_factory, fail_after=1):
        super().__init__(session_factory)
        self.calls = 0
        self.fail_after = fail_after

    def conditional_decrement(self, entry_id, amount):
        self.calls += 1
        if self.calls > self.fail_after:
            raise TimeoutError("ledger did not answer")
        return super().conditional_decrement(entry_id, amount)


class NoReturnsLedger(RacingLedger):
    def increment(self, entry_id, amount):
        raise ConnectionError("ledger offline")


class BrokenCreateStore(SqlSaleStore):
    def create(self, sale):
        raise RuntimeError("disk full")


class BrokenDeleteStore(SqlSaleStore):
    def delete_by_id(self, sale_id):
        raise RuntimeError("delete timed out")


# ---------------------------------------------------------------------------
# CreateSale
# ---------------------------------------------------------------------------
def test_scenario_sell_four_then_reject_ten(manager, add_drug, stock_of):
    a = add_drug("A", stock=10, price="5.00")

    first = manager.create_sale([line(a, 4)])
    assert first.ok
    assert first.sale.total == Decimal("20.00")
    assert stock_of(a) == 6

    second = manager.create_sale([line(a, 10)])
    assert not second.ok
    assert second.error_kind is ErrorKind.INSUFFICIENT_STOCK
    assert stock_of(a) == 6


def test_create_prices_lines_and_totals(manager, add_drug, stock_of):
    a = add_drug("A", stock=20, price="2.50")
    b = add_drug("B", stock=20, price="9.99")

    outcome = manager.create_sale(
        [line(a, 3), line(b, 2, "7.10")],
        SaleMeta(discount="1.00", tax="0.45", patient_name="Jane Doe", recorded_by="pharm_1"),
    )

    sale = outcome.sale
    assert [i.unit_price for i in sale.items] == [Decimal("2.50"), Decimal("7.10")]
    assert [i.total_price for i in sale.items] == [Decimal("7.50"), Decimal("14.20")]
    assert sale.subtotal == sum(i.total_price for i in sale.items) == Decimal("21.70")
    assert sale.total == Decimal("21.15")
    assert sale.items[0].drug_name == "A"
    assert sale.recorded_by == "pharm_1"
    assert stock_of(a) == 17 and stock_of(b) == 18


def test_total_never_goes_negative(manager, add_drug):
    a = add_drug("A", stock=5, price="3.00")
    outcome = manager.create_sale([line(a, 1)], SaleMeta(discount="50"))
    assert outcome.sale.total == Decimal("0.00")


def test_sale_ids_are_sequential_and_never_reused(manager, add_drug):
    a = add_drug("A", stock=10)
    first = manager.create_sale([line(a, 1)]).sale
    second = manager.create_sale([line(a, 1)]).sale
    assert (first.sale_id, second.sale_id) == ("SAL000001", "SAL000002")

    assert manager.void_sale(second.sale_id).ok
    third = manager.create_sale([line(a, 1)]).sale
    assert third.sale_id == "SAL000003"


def test_unknown_drug_fails_before_any_mutation(manager, add_drug, stock_of):
    a = add_drug("A", stock=10)
    outcome = manager.create_sale([line(a, 2), line(9999, 1)])
    assert outcome.error_kind is ErrorKind.ITEM_NOT_FOUND
    assert stock_of(a) == 10


@pytest.mark.parametrize(
    "lines, meta",
    [
        ([], None),
        ([{"drugId": 1, "quantity": 0}], None),
        ([{"drugId": 1, "quantity": -3}], None),
        ([{"drugId": 1, "quantity": True}], None),
        ([{"drugId": 1, "quantity": 2.5}], None),
        ([{"quantity": 1}], None),
        ([{"drugId": 1, "quantity": 1, "unitPrice": "-1"}], None),
        ([{"drugId": 1, "quantity": 1}], SaleMeta(discount="-1")),
        ([{"drugId": 1, "quantity": 1}], SaleMeta(payment_method="CHEQUE")),
        ([{"drugId": 1, "quantity": 1}], SaleMeta(source="WALK_IN")),
    ],
)
def test_invalid_input_is_rejected(manager, add_drug, stock_of, lines, meta):
    add_drug("A", stock=10)
    outcome = manager.create_sale(lines, meta)
    assert outcome.error_kind is ErrorKind.INVALID_INPUT
    assert not outcome.retryable
    assert stock_of(1) == 10


def test_duplicate_lines_are_checked_against_combined_quantity(manager, add_drug, stock_of):
    a = add_drug("A", stock=5)
    outcome = manager.create_sale([line(a, 3), line(a, 3)])
    assert outcome.error_kind is ErrorKind.INSUFFICIENT_STOCK
    assert stock_of(a) == 5


def test_lost_race_compensates_earlier_decrements(database, store, add_drug, stock_of):
    a = add_drug("A", stock=10)
    b = add_drug("B", stock=10)
    c = add_drug("C", stock=10)
    manager = SaleTransactionManager(RacingLedger(database.session_factory, losing={c}), store)

    outcome = manager.create_sale([line(a, 2), line(b, 3), line(c, 1)])

    assert outcome.error_kind is ErrorKind.STOCK_RACE
    assert outcome.retryable
    assert (stock_of(a), stock_of(b), stock_of(c)) == (10, 10, 10)
    assert store.list(SaleFilter()) == []


def test_store_failure_compensates_and_reports_persistence_failure(database, ledger, add_drug, stock_of):
    a = add_drug("A", stock=10)
    broken = BrokenCreateStore(database.session_factory)
    manager = SaleTransactionManager(ledger, broken)

    outcome = manager.create_sale([line(a, 4)])

    assert outcome.error_kind is ErrorKind.PERSISTENCE_FAILURE
    assert not outcome.retryable
    assert stock_of(a) == 10
    assert broken.list(SaleFilter()) == []


def test_ledger_timeout_mid_sequence_is_compensated(database, store, add_drug, stock_of):
    a = add_drug("A", stock=10)
    b = add_drug("B", stock=10)
    manager = SaleTransactionManager(TimeoutLedger(database.session_factory, fail_after=1), store)

    outcome = manager.create_sale([line(a, 4), line(b, 1)])

    assert outcome.error_kind is ErrorKind.PERSISTENCE_FAILURE
    assert outcome.retryable
    assert (stock_of(a), stock_of(b)) == (10, 10)


def test_failed_compensation_is_reported_and_logged(database, store, add_drug, stock_of, caplog):
    caplog.set_level(logging.INFO, logger="clinicdesk.sales")
    a = add_drug("A", stock=10)
    b = add_drug("B", stock=10)
    manager = SaleTransactionManager(NoReturnsLedger(database.session_factory, losing={b}), store)

    outcome = manager.create_sale([line(a, 4), line(b, 1)])

    assert outcome.error_kind is ErrorKind.STOCK_RACE
    assert [(f.entry_id, f.amount, f.action) for f in outcome.unreconciled] == [(a, 4, "increment")]
    assert outcome.to_dict()["unreconciled"][0]["operation"] == "create_sale"
    assert stock_of(a) == 6
    critical = [r for r in caplog.records if r.levelno == logging.CRITICAL]
    assert critical and f"entry={a}" in critical[0].getMessage()


def test_identical_request_succeeds_after_a_failure(database, ledger, add_drug, stock_of):
    a = add_drug("A", stock=10)
    failing = SaleTransactionManager(ledger, BrokenCreateStore(database.session_factory))
    assert not failing.create_sale([line(a, 4)]).ok

    healthy = SaleTransactionManager(ledger, SqlSaleStore(database.session_factory))
    outcome = healthy.create_sale([line(a, 4)])
    assert outcome.ok
    assert stock_of(a) == 6


def test_concurrent_sales_for_the_last_units(manager, add_drug, stock_of):
    a = add_drug("A", stock=5)
    barrier = threading.Barrier(2)
    results = []

    def sell():
        barrier.wait()
        results.append(manager.create_sale([line(a, 5)]))

    threads = [threading.Thread(target=sell) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(r.ok for r in results) == [False, True]
    failed = next(r for r in results if not r.ok)
    assert failed.error_kind in (ErrorKind.STOCK_RACE, ErrorKind.INSUFFICIENT_STOCK)
    assert stock_of(a) == 0


# ---------------------------------------------------------------------------
# EditSale
# ---------------------------------------------------------------------------
def test_edit_applies_only_the_per_drug_difference(manager, add_drug, stock_of):
    a = add_drug("A", stock=10, price="4.00")
    b = add_drug("B", stock=10, price="1.50")
    sale = manager.create_sale([line(a, 5)]).sale
    assert stock_of(a) == 5

    outcome = manager.edit_sale(sale.sale_id, [line(a, 3), line(b, 2)])

    assert outcome.ok
    assert stock_of(a) == 7
    assert stock_of(b) == 8
    edited = outcome.sale
    assert edited.sale_id == sale.sale_id
    assert edited.quantities() == {a: 3, b: 2}
    assert edited.subtotal == Decimal("15.00")
    assert edited.total == Decimal("15.00")


def test_edit_rejected_when_added_drug_is_short(manager, add_drug, stock_of):
    a = add_drug("A", stock=10)
    b = add_drug("B", stock=1)
    sale = manager.create_sale([line(a, 5)]).sale

    outcome = manager.edit_sale(sale.sale_id, [line(a, 3), line(b, 2)])

    assert outcome.error_kind is ErrorKind.INSUFFICIENT_STOCK
    assert (stock_of(a), stock_of(b)) == (5, 1)
    assert manager.get_sale(sale.sale_id).quantities() == {a: 5}


def test_edit_race_rolls_back_this_edit_only(database, store, ledger, add_drug, stock_of):
    a = add_drug("A", stock=10)
    b = add_drug("B", stock=10)
    sale = SaleTransactionManager(ledger, store).create_sale([line(a, 5)]).sale

    racing = SaleTransactionManager(RacingLedger(database.session_factory, losing={b}), store)
    outcome = racing.edit_sale(sale.sale_id, [line(a, 3), line(b, 2)])

    assert outcome.error_kind is ErrorKind.STOCK_RACE
    # A keeps the original sale's commitment of 5
    assert (stock_of(a), stock_of(b)) == (5, 10)
    assert store.find_by_id(sale.sale_id).quantities() == {a: 5}


def test_edit_keeps_captured_prices(manager, add_drug, database):
    a = add_drug("A", stock=10, price="5.00")
    sale = manager.create_sale([line(a, 2)], SaleMeta(tax="1.00")).sale
    with database.session() as db:
        db.get(Drug, a).selling_price = Decimal("8.00")
        db.commit()

    edited = manager.edit_sale(sale.sale_id, [line(a, 3)], SaleEditMeta(patient_name="Late Name")).sale

    assert edited.items[0].unit_price == Decimal("5.00")
    assert edited.total == Decimal("16.00")
    assert edited.tax == Decimal("1.00")
    assert edited.patient_name == "Late Name"


def test_edit_removing_a_drug_returns_its_stock(manager, add_drug, stock_of):
    a = add_drug("A", stock=10)
    b = add_drug("B", stock=10)
    sale = manager.create_sale([line(a, 1), line(b, 4)]).sale

    assert manager.edit_sale(sale.sale_id, [line(a, 1)]).ok
    assert (stock_of(a), stock_of(b)) == (9, 10)


def test_edit_reducing_a_deactivated_drug_still_restocks_it(manager, add_drug, stock_of, database):
    a = add_drug("A", stock=10, price="2.00")
    b = add_drug("B", stock=10, price="3.00")
    sale = manager.create_sale([line(a, 5), line(b, 1)]).sale
    with database.session() as db:
        db.get(Drug, a).is_active = False
        db.commit()

    reduced = manager.edit_sale(sale.sale_id, [line(a, 3), line(b, 1)])
    assert reduced.ok
    assert stock_of(a) == 7
    assert reduced.sale.items[0].unit_price == Decimal("2.00")

    assert manager.edit_sale(sale.sale_id, [line(a, 3), line(b, 2)], SaleEditMeta(discount="1.00")).ok
    assert stock_of(b) == 8

    grown = manager.edit_sale(sale.sale_id, [line(a, 4), line(b, 2)])
    assert grown.error_kind is ErrorKind.ITEM_NOT_FOUND
    assert (stock_of(a), stock_of(b)) == (7, 8)


def test_edit_unknown_sale(manager, add_drug):
    a = add_drug("A", stock=10)
    outcome = manager.edit_sale("SAL999999", [line(a, 1)])
    assert outcome.error_kind is ErrorKind.NOT_FOUND


# ---------------------------------------------------------------------------
# VoidSale
# ---------------------------------------------------------------------------
def test_void_restocks_every_line_and_deletes(manager, add_drug, stock_of):
    a = add_drug("A", stock=10)
    b = add_drug("B", stock=10)
    sale = manager.create_sale([line(a, 3), line(b, 1)]).sale

    outcome = manager.void_sale(sale.sale_id)

    assert outcome.ok
    assert outcome.to_dict() == {"success": True}
    assert (stock_of(a), stock_of(b)) == (10, 10)
    assert manager.get_sale(sale.sale_id) is None
    assert manager.void_sale(sale.sale_id).error_kind is ErrorKind.NOT_FOUND


def test_void_delete_failure_is_logged_not_rolled_back(database, ledger, add_drug, stock_of, caplog):
    caplog.set_level(logging.INFO, logger="clinicdesk.sales")
    a = add_drug("A", stock=10)
    store = BrokenDeleteStore(database.session_factory)
    manager = SaleTransactionManager(ledger, store)
    sale = manager.create_sale([line(a, 3)]).sale

    outcome = manager.void_sale(sale.sale_id)

    assert outcome.error_kind is ErrorKind.PERSISTENCE_FAILURE
    assert stock_of(a) == 10
    assert store.find_by_id(sale.sale_id) is not None
    assert any(r.levelno == logging.CRITICAL and "void_inconsistent" in r.getMessage() for r in caplog.records)


def test_void_restock_failure_takes_back_partial_restock(database, manager, add_drug, stock_of):
    a = add_drug("A", stock=10)
    b = add_drug("B", stock=10)
    sale = manager.create_sale([line(a, 3), line(b, 1)]).sale
    with database.session() as db:
        db.delete(db.get(Drug, b))
        db.commit()

    outcome = manager.void_sale(sale.sale_id)

    assert outcome.error_kind is ErrorKind.ITEM_NOT_FOUND
    assert stock_of(a) == 7
    assert manager.get_sale(sale.sale_id) is not None


# ---------------------------------------------------------------------------
# Reads and payment bookkeeping
# ---------------------------------------------------------------------------
def test_update_payment_does_not_touch_stock(manager, add_drug, stock_of):
    a = add_drug("A", stock=10)
    sale = manager.create_sale([line(a, 2)]).sale

    outcome = manager.update_payment(sale.sale_id, payment_status="completed", payment_method="CARD")

    assert outcome.sale.payment_status == "COMPLETED"
    assert outcome.sale.payment_method == "CARD"
    assert stock_of(a) == 8
    assert manager.update_payment(sale.sale_id).error_kind is ErrorKind.INVALID_INPUT
    assert manager.update_payment("SAL424242", payment_status="FAILED").error_kind is ErrorKind.NOT_FOUND


def test_list_sales_filters_and_counts(manager, add_drug):
    a = add_drug("A", stock=50)
    manager.create_sale([line(a, 1)], SaleMeta(patient_name="Alice Moyo"))
    manager.create_sale([line(a, 1)], SaleMeta(patient_name="Bob Banda", payment_status="COMPLETED"))
    manager.create_sale([line(a, 1)], SaleMeta(patient_name="Alice Phiri"))

    page = manager.list_sales(SaleFilter(search="alice", limit=1))
    assert page.total == 2
    assert [s.patient_name for s in page.sales] == ["Alice Phiri"]

    completed = manager.list_sales(SaleFilter(payment_status="completed"))
    assert [s.patient_name for s in completed.sales] == ["Bob Banda"]
