import csv
import io
from datetime import date

import pytest
from fastapi import HTTPException

from clinicdesk.routers.reports import SALES_CSV_HEADER, resolve_range

from conftest import auth_headers


@pytest.mark.parametrize(
    "name, today, first, last",
    [
        ("today", date(2026, 3, 11), date(2026, 3, 11), date(2026, 3, 11)),
        ("week", date(2026, 3, 11), date(2026, 3, 8), date(2026, 3, 11)),
        ("week", date(2026, 3, 8), date(2026, 3, 8), date(2026, 3, 8)),
        ("month", date(2026, 2, 14), date(2026, 2, 1), date(2026, 2, 28)),
        ("month", date(2026, 12, 5), date(2026, 12, 1), date(2026, 12, 31)),
        ("quarter", date(2026, 11, 20), date(2026, 10, 1), date(2026, 12, 31)),
        ("quarter", date(2026, 5, 2), date(2026, 4, 1), date(2026, 6, 30)),
        ("year", date(2026, 7, 1), date(2026, 1, 1), date(2026, 12, 31)),
    ],
)
def test_resolve_range(name, today, first, last):
    since, until = resolve_range(name, today=today)
    assert since.date() == first
    assert until.date() == last
    assert since.tzinfo is not None


def test_custom_range_must_be_ordered():
    since, until = resolve_range("custom", date(2026, 1, 5), date(2026, 1, 9))
    assert (since.date(), until.date()) == (date(2026, 1, 5), date(2026, 1, 9))
    with pytest.raises(HTTPException) as exc:
        resolve_range("custom", date(2026, 2, 1), date(2026, 1, 1))
    assert exc.value.status_code == 400


def _sell(client, headers, drug_id, qty, **extra):
    body = {"items": [{"drugId": drug_id, "quantity": qty}], **extra}
    res = client.post("/api/sales", json=body, headers=headers)
    assert res.status_code == 201
    return res.json()["sale"]


def test_summary_numbers(client, pharmacist, admin, add_drug):
    a = add_drug("Amoxicillin", stock=50, price="4.00")
    b = add_drug("Zinc", stock=12, price="1.50")
    _sell(client, pharmacist, a, 3)
    _sell(client, pharmacist, a, 1, paymentMethod="CARD")
    _sell(client, pharmacist, b, 2, discount="1.00")
    client.post("/api/payments", json={"amount": "7.00", "status": "COMPLETED"}, headers=pharmacist)
    client.post("/api/payments", json={"amount": "9.00", "status": "PENDING"}, headers=pharmacist)
    client.post("/api/walk-in-services", json={"patientName": "Amy", "serviceType": "INJECTION"}, headers=pharmacist)

    res = client.get("/api/reports/summary", params={"range": "today"}, headers=admin)

    assert res.status_code == 200
    body = res.json()
    assert body["sales"] == {
        "count": 3,
        "revenue": "18.00",
        "averageSale": "6.00",
        "unitsSold": 6,
        "paymentMethods": {"CASH": 2, "CARD": 1},
    }
    assert body["topDrugs"][0] == {"drugId": a, "drugName": "Amoxicillin", "quantity": 4}
    assert [d["name"] for d in body["lowStock"]] == ["Zinc"]
    assert body["paymentsCollected"] == 7.0
    assert body["walkInServices"] == 1


def test_summary_rejects_unknown_range(client, admin):
    assert client.get("/api/reports/summary", params={"range": "decade"}, headers=admin).status_code == 400


def test_reports_are_admin_only(client, pharmacist):
    assert client.get("/api/reports/summary", headers=pharmacist).status_code == 403
    assert client.get("/api/reports/summary", headers=auth_headers("LABORATORIST")).status_code == 403


def test_sales_csv_export(client, pharmacist, admin, add_drug):
    a = add_drug("Amoxicillin", stock=50, price="4.00")
    sale = _sell(client, pharmacist, a, 2, patientName="Jane, Doe")

    res = client.get("/api/reports/sales.csv", params={"range": "today"}, headers=admin)

    assert res.status_code == 200
    assert res.headers["content-type"].startswith("text/csv")
    assert "attachment" in res.headers["content-disposition"]
    rows = list(csv.reader(io.StringIO(res.text)))
    assert rows[0] == SALES_CSV_HEADER
    assert len(rows) == 2
    row = dict(zip(SALES_CSV_HEADER, rows[1]))
    assert row["saleId"] == sale["saleId"]
    assert row["patientName"] == "Jane, Doe"
    assert row["items"] == "Amoxicillin x2 @ 4.00"
    assert row["total"] == "8.00"
    assert row["drugOrderId"] == ""
