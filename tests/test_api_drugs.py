from clinicdesk.routers.drugs import row_to_payload

from conftest import auth_headers


def test_create_update_and_list_drugs(client, pharmacist):
    created = client.post(
        "/api/drugs",
        json={"name": "Ibuprofen", "strength": "400 mg", "dosageForm": "tablet", "sellingPrice": "3.20", "stockQuantity": 40},
        headers=pharmacist,
    )
    assert created.status_code == 201
    drug = created.json()["drug"]
    assert drug["label"] == "Ibuprofen 400 mg tablet"
    assert drug["stockQuantity"] == 40
    assert drug["createdBy"] == "pharm_1"

    updated = client.put(f"/api/drugs/{drug['id']}", json={"sellingPrice": "3.50", "category": "ANALGESIC"}, headers=pharmacist)
    assert updated.json()["drug"]["sellingPrice"] == 3.5
    assert updated.json()["drug"]["stockQuantity"] == 40

    listed = client.get("/api/drugs", params={"search": "ibu"}, headers=pharmacist).json()
    assert [d["name"] for d in listed["drugs"]] == ["Ibuprofen"]
    assert listed["pagination"]["total"] == 1


def test_negative_opening_stock_is_rejected(client, pharmacist):
    res = client.post("/api/drugs", json={"name": "Bad", "stockQuantity": -1}, headers=pharmacist)
    assert res.status_code == 422


def test_restock_goes_through_the_ledger(client, pharmacist, add_drug, stock_of):
    a = add_drug("A", stock=3)
    res = client.post(f"/api/drugs/{a}/restock", json={"quantity": 12, "batchNumber": "B-77"}, headers=pharmacist)
    assert res.status_code == 200
    assert res.json()["drug"]["stockQuantity"] == 15
    assert res.json()["drug"]["batchNumber"] == "B-77"
    assert stock_of(a) == 15

    assert client.post("/api/drugs/999/restock", json={"quantity": 1}, headers=pharmacist).status_code == 404
    assert client.post(f"/api/drugs/{a}/restock", json={"quantity": 0}, headers=pharmacist).status_code == 422


def test_low_stock_listing(client, pharmacist, add_drug):
    add_drug("Plenty", stock=100, minimum_stock_level=10)
    add_drug("Scarce", stock=4, minimum_stock_level=10)
    res = client.get("/api/drugs/low-stock", headers=pharmacist)
    assert [d["name"] for d in res.json()["drugs"]] == ["Scarce"]


def test_deleted_drug_can_no_longer_be_sold(client, pharmacist, add_drug):
    a = add_drug("A", stock=5)
    assert client.delete(f"/api/drugs/{a}", headers=pharmacist).json() == {"success": True}
    assert client.get(f"/api/drugs/{a}", headers=pharmacist).status_code == 404

    res = client.post("/api/sales", json={"items": [{"drugId": a, "quantity": 1}]}, headers=pharmacist)
    assert res.json()["errorKind"] == "ItemNotFound"


def test_csv_import_upserts_by_name(client, pharmacist, add_drug, stock_of):
    a = add_drug("Paracetamol", stock=1, price="1.00")
    csv_text = (
        "Name,Strength,MRP,Qty,Reorder Level,Expiry\n"
        "paracetamol,500 mg,2.75,120,20,2027-01-31\n"
        "Cetirizine,10 mg,0.90,60,10,not-a-date\n"
        ",,,,,\n"
        ",5 mg,1.00,5,1,\n"
    )

    res = client.post(
        "/api/drugs/import",
        files={"file": ("drugs.csv", csv_text.encode("utf-8"), "text/csv")},
        headers=pharmacist,
    )

    summary = res.json()["summary"]
    assert summary == {"created": 1, "updated": 1, "skipped": 1, "total": 3}
    assert stock_of(a) == 120
    names = [d["name"] for d in client.get("/api/drugs", headers=pharmacist).json()["drugs"]]
    assert names == ["Cetirizine", "Paracetamol"]
    matched = client.get(f"/api/drugs/{a}", headers=pharmacist).json()["drug"]
    assert (matched["name"], matched["strength"], matched["sellingPrice"]) == ("Paracetamol", "500 mg", 2.75)


def test_csv_import_rejects_other_files(client, pharmacist):
    res = client.post("/api/drugs/import", files={"file": ("drugs.xlsx", b"PK", "application/octet-stream")}, headers=pharmacist)
    assert res.status_code == 400


def test_row_to_payload_handles_bad_numbers():
    payload = row_to_payload({"Drug Name": " Zinc ", "Price": "abc", "Stock": "-4", "Batch": ""})
    assert payload == {"name": "Zinc", "selling_price": 0, "stock_quantity": 0, "batch_number": None}


def test_inventory_is_closed_to_nurses(client):
    assert client.get("/api/drugs", headers=auth_headers("NURSE")).status_code == 403
