import os

# Settings are read at import time; point them at throwaway values first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("API_TOKEN", "test-token")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import date  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from apotek.core.config import settings  # noqa: E402
from apotek.db.document_store import DocumentStore  # noqa: E402
from apotek.main import create_app  # noqa: E402
from apotek.schemas.inventory import InventoryItemCreate  # noqa: E402
from apotek.schemas.transaction import TransactionData  # noqa: E402
from apotek.services.stock_ledger import StockLedger  # noqa: E402


@pytest.fixture
def store(tmp_path):
    """Fresh file-backed store per test."""
    s = DocumentStore.from_url(f"sqlite:///{tmp_path / 'apotek.db'}")
    yield s
    s.engine.dispose()


@pytest.fixture
def ledger(store):
    return StockLedger(store)


@pytest.fixture
def client(store):
    app = create_app(store)
    with TestClient(app) as c:
        c.headers.update({"Authorization": f"Bearer {settings.API_TOKEN}"})
        yield c


def make_item(**overrides) -> InventoryItemCreate:
    fields = dict(
        input_date=date(2024, 1, 10),
        item_name="Paracetamol 500mg",
        batch_number="B1",
        item_type="Obat",
        category="Oral",
        unit="Tablet",
        quantity=10,
        purchase_price=100.0,
        selling_price_rj=200.0,
        selling_price_ri=250.0,
        expired_date=date(2026, 1, 10),
        supplier="PT Kimia Farma",
    )
    fields.update(overrides)
    return InventoryItemCreate(**fields)


def make_transaction(*lines, **overrides) -> TransactionData:
    """lines: (item_id, quantity) or (item_id, quantity, price)."""
    fields = dict(
        date=date(2024, 5, 1),
        patient_type="Rawat Jalan",
        payment_method="UMUM",
        medical_record_number="RM-001",
        items=[
            {"item_id": line[0], "quantity": line[1], "price": line[2] if len(line) > 2 else 200.0}
            for line in lines
        ],
    )
    fields.update(overrides)
    return TransactionData(**fields)


def add_stock(store, **overrides) -> str:
    return store.add_document("inventory", make_item(**overrides).model_dump(mode="json"))


def quantity(store, item_id) -> int:
    return store.read_document("inventory", item_id)["quantity"]
