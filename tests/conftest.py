from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from clinicdesk.core.config import settings
from clinicdesk.core.db import Database
from clinicdesk.core.identity import issue_identity_token
from clinicdesk.main import create_app
from clinicdesk.models.drug import Drug
from clinicdesk.sales import SaleTransactionManager, SqlSaleStore, SqlStockLedger


@pytest.fixture
def database(tmp_path: Path):
    db = Database(f"sqlite:///{tmp_path / 'clinic.db'}").connect()
    db.create_all()
    yield db
    db.close()


@pytest.fixture
def ledger(database):
    return SqlStockLedger(database.session_factory)


@pytest.fixture
def store(database):
    return SqlSaleStore(database.session_factory)


@pytest.fixture
def manager(ledger, store):
    return SaleTransactionManager(ledger, store)


@pytest.fixture
def add_drug(database):
    def _add(name="Paracetamol", stock=10, price="5.00", **extra):
        with database.session() as db:
            drug = Drug(
                name=name,
                stock_quantity=stock,
                selling_price=Decimal(price),
                purchase_price=Decimal("1.00"),
                **extra,
            )
            db.add(drug)
            db.commit()
            return drug.id

    return _add


@pytest.fixture
def stock_of(database):
    def _stock(drug_id):
        with database.session() as db:
            return db.get(Drug, drug_id).stock_quantity

    return _stock


@pytest.fixture
def client(database, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "REPORTS_DIR", str(tmp_path / "reports"))
    app = create_app(database)
    with TestClient(app) as c:
        yield c


def auth_headers(role="PHARMACIST", user_id="user_1", name="Test User"):
    return {settings.IDENTITY_HEADER: issue_identity_token(user_id, role, name)}


@pytest.fixture
def pharmacist():
    return auth_headers("PHARMACIST", "pharm_1", "Pat Pharmacist")


@pytest.fixture
def admin():
    return auth_headers("SUPER_ADMIN", "admin_1", "Ada Admin")


@pytest.fixture
def nurse():
    return auth_headers("NURSE", "nurse_1", "Nia Nurse")


@pytest.fixture
def laboratorist():
    return auth_headers("LABORATORIST", "lab_1", "Lee Lab")
