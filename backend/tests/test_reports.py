"""Report calculations over plain records."""
from datetime import date

import pytest

from apotek.schemas.inventory import ItemType
from apotek.schemas.transaction import PatientType, PaymentMethod
from apotek.services import reports


def _item(item_id, name, item_type="Obat", quantity=10, purchase_price=100.0, supplier="PT A",
          expired_date="2026-01-01"):
    return {
        "id": item_id,
        "item_name": name,
        "item_type": item_type,
        "quantity": quantity,
        "purchase_price": purchase_price,
        "supplier": supplier,
        "expired_date": expired_date,
    }


def _txn(txn_id, lines, payment_method="UMUM", patient_type="Rawat Jalan", day="2024-05-01",
         total_price=None, mrn="RM-1"):
    if total_price is None:
        total_price = sum(price * qty for _, qty, price in lines)
    return {
        "id": txn_id,
        "date": day,
        "patient_type": patient_type,
        "payment_method": payment_method,
        "medical_record_number": mrn,
        "total_price": total_price,
        "items": [{"item_id": i, "quantity": q, "price": p} for i, q, p in lines],
    }


# ------------------------------------------------------------------
# 1. Stock levels
# ------------------------------------------------------------------

def test_low_stock_is_strictly_below_threshold():
    items = [_item("a", "A", quantity=49), _item("b", "B", quantity=50), _item("c", "C", quantity=0)]
    assert [i["id"] for i in reports.low_stock(items, 50)] == ["a", "c"]


@pytest.mark.parametrize("expired, zone, months", [
    ("2024-05-01", "Expired", -1),
    ("2024-04-01", "Expired", -1),
    ("2024-06-15", "Kritis", 1),
    ("2024-10-31", "Kritis", 5),
    ("2024-11-30", "Waspada", 6),
    ("2024-11-01", "Waspada", 6),
    ("2025-05-01", "Waspada", 12),
    ("2025-06-01", "Aman", 13),
])
def test_expiry_zone(expired, zone, months):
    assert reports.expiry_zone(date.fromisoformat(expired), date(2024, 5, 1)) == (zone, months)


def test_expiring_stock_sorted_soonest_first():
    items = [
        _item("safe", "A", expired_date="2027-01-01"),
        _item("old", "B", expired_date="2023-01-01"),
        _item("soon", "C", expired_date="2024-07-01"),
    ]
    report = reports.expiring_stock(items, date(2024, 5, 1))
    assert [(r["id"], r["zone"]) for r in report] == [("old", "Expired"), ("soon", "Kritis"), ("safe", "Aman")]


# ------------------------------------------------------------------
# 2. ABC analysis
# ------------------------------------------------------------------

def test_abc_classifies_by_cumulative_share():
    items = [_item(f"i{n}", f"Item {n}") for n in range(4)]
    transactions = [
        _txn("t1", [("i0", 70, 1.0)]),
        _txn("t2", [("i1", 20, 1.0), ("i2", 6, 1.0)]),
        _txn("t3", [("i3", 4, 1.0)]),
    ]

    report = reports.abc_analysis(items, transactions)

    assert [(r["item_name"], r["category"]) for r in report] == [
        ("Item 0", "A"),  # 70%
        ("Item 1", "B"),  # 90%
        ("Item 2", "C"),  # 96%
        ("Item 3", "C"),  # 100%
    ]
    assert report[0]["total_sales"] == 70.0
    assert report[-1]["cumulative_percent"] == pytest.approx(100.0)


def test_abc_groups_batches_by_name_and_filters_type():
    items = [
        _item("p1", "Paracetamol", quantity=5),
        _item("p2", "Paracetamol", quantity=7),
        _item("s1", "Spuit", item_type="Alkes"),
    ]
    transactions = [_txn("t1", [("p1", 2, 10.0), ("p2", 1, 10.0), ("s1", 5, 10.0), ("gone", 9, 10.0)])]

    report = reports.abc_analysis(items, transactions, ItemType.OBAT)

    assert report == [{
        "item_name": "Paracetamol",
        "total_sales": 30.0,
        "remaining_stock": 12,
        "percent": 100.0,
        "cumulative_percent": 100.0,
        "category": "C",
    }]


# ------------------------------------------------------------------
# 3. Profit
# ------------------------------------------------------------------

def test_profit_uses_purchase_price_as_bpjs_revenue():
    items = [_item("o", "Obat A", purchase_price=100.0), _item("k", "Kasa", item_type="Alkes", purchase_price=10.0)]
    transactions = [
        _txn("t1", [("o", 2, 150.0), ("k", 10, 15.0)], payment_method="UMUM"),
        _txn("t2", [("o", 3, 150.0)], payment_method="BPJS"),
    ]

    result = reports.profit_analysis(items, transactions)

    assert result["Obat"] == {"revenue": 600.0, "cost": 500.0, "profit": 100.0}
    assert result["Alkes"] == {"revenue": 150.0, "cost": 100.0, "profit": 50.0}


def test_profit_respects_filters():
    items = [_item("o", "Obat A", purchase_price=100.0)]
    transactions = [
        _txn("t1", [("o", 1, 150.0)], day="2024-04-30"),
        _txn("t2", [("o", 1, 150.0)], day="2024-05-02", patient_type="Rawat Inap"),
        _txn("t3", [("o", 1, 150.0)], day="2024-05-03"),
    ]
    filters = reports.TransactionFilters(
        date_from=date(2024, 5, 1), date_to=date(2024, 5, 31), patient_type=PatientType.RAWAT_JALAN,
    )

    result = reports.profit_analysis(items, transactions, filters)

    assert result["Obat"]["revenue"] == 150.0
    assert result["Alkes"]["revenue"] == 0.0


def test_filters_match_payment_method():
    filters = reports.TransactionFilters(payment_method=PaymentMethod.BPJS)
    assert filters.matches(_txn("t", [], payment_method="BPJS"))
    assert not filters.matches(_txn("t", [], payment_method="UMUM"))


# ------------------------------------------------------------------
# 4. Suppliers and BPJS
# ------------------------------------------------------------------

def test_supplier_prices_flag_lowest():
    items = [
        _item("a", "Paracetamol", supplier="PT A", purchase_price=120.0),
        _item("b", "Paracetamol", supplier="PT B", purchase_price=100.0),
        _item("c", "Amoxicillin", supplier="PT A", purchase_price=500.0),
        _item("d", "Spuit", item_type="Alkes", supplier="PT C", purchase_price=1.0),
    ]

    report = reports.supplier_price_comparison(items, ItemType.OBAT)

    assert [r["item_name"] for r in report] == ["Amoxicillin", "Paracetamol"]
    assert report[1]["suppliers"] == [
        {"supplier": "PT A", "price": 120.0, "is_lowest": False},
        {"supplier": "PT B", "price": 100.0, "is_lowest": True},
    ]


def test_bpjs_top_and_averages():
    items = [_item("o", "Obat A", purchase_price=10.0)]
    transactions = [
        _txn("small", [("o", 1, 50.0)], payment_method="BPJS", day="2024-05-01"),
        _txn("big", [("o", 3, 50.0)], payment_method="BPJS", day="2024-05-20"),
        _txn("no-mrn", [("o", 9, 50.0)], payment_method="BPJS", mrn=""),
        _txn("zero", [("o", 1, 0.0)], payment_method="BPJS", day="2024-06-01"),
        _txn("inap", [("o", 2, 50.0)], payment_method="BPJS", patient_type="Rawat Inap", day="2024-06-03"),
        _txn("cash", [("o", 5, 50.0)], payment_method="UMUM"),
    ]

    result = reports.bpjs_expenditure(items, transactions)

    assert [t["transaction_id"] for t in result["top"]["Rawat Jalan"]] == ["big", "small"]
    assert result["top"]["Rawat Jalan"][0]["items"][0]["subtotal"] == 30.0
    assert [t["transaction_id"] for t in result["top"]["Rawat Inap"]] == ["inap"]

    # Rawat Jalan BPJS: small(10) + big(30) + no-mrn(90) + zero(10) over 4
    assert result["overall_average"]["Rawat Jalan"] == {"average": 35.0, "count": 4}
    assert result["overall_average"]["Rawat Inap"] == {"average": 20.0, "count": 1}

    assert result["monthly_average"][0]["month"] == "2024-05"
    assert result["monthly_average"][1] == {"month": "2024-06", "Rawat Jalan": 10.0, "Rawat Inap": 20.0}


def test_bpjs_top_is_capped_at_ten():
    items = [_item("o", "Obat A")]
    transactions = [_txn(f"t{n}", [("o", 1, float(n + 1))], payment_method="BPJS") for n in range(15)]

    top = reports.bpjs_expenditure(items, transactions)["top"]["Rawat Jalan"]

    assert len(top) == 10
    assert top[0]["total_cost"] == 15.0
