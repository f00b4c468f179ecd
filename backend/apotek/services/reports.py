"""
Inventory and sales reports.

Pure functions over stored records (inventory items and transactions as
returned by the document store). Nothing here reads or writes the store.
"""
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from apotek.schemas.inventory import ItemType
from apotek.schemas.transaction import PatientType, PaymentMethod

Record = Dict[str, Any]

BPJS_TOP_LIMIT = 10


def _to_date(value) -> Optional[date]:
    if isinstance(value, date):
        return value
    if not value:
        return None
    return date.fromisoformat(str(value)[:10])


def _by_id(items: Iterable[Record]) -> Dict[str, Record]:
    return {item["id"]: item for item in items}


def _lines(transaction: Record) -> List[Record]:
    return transaction.get("items") or []


@dataclass
class TransactionFilters:
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    patient_type: Optional[PatientType] = None
    payment_method: Optional[PaymentMethod] = None

    def matches(self, transaction: Record) -> bool:
        day = _to_date(transaction.get("date"))
        if self.date_from and (day is None or day < self.date_from):
            return False
        if self.date_to and (day is None or day > self.date_to):
            return False
        if self.patient_type and transaction.get("patient_type") != self.patient_type.value:
            return False
        if self.payment_method and transaction.get("payment_method") != self.payment_method.value:
            return False
        return True

    def apply(self, transactions: Iterable[Record]) -> List[Record]:
        return [t for t in transactions if self.matches(t)]


def low_stock(items: Iterable[Record], threshold: int) -> List[Record]:
    return [item for item in items if int(item.get("quantity", 0)) < threshold]


def whole_months_between(start: date, end: date) -> int:
    """Full calendar months from start to end (negative if end is earlier)."""
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if months > 0 and end.day < start.day:
        months -= 1
    elif months < 0 and end.day > start.day:
        months += 1
    return months


def expiry_zone(expired_date: date, today: date):
    """(zone, months_left). An item expiring today is already expired."""
    if expired_date <= today:
        return "Expired", -1
    months_left = whole_months_between(today, expired_date)
    if months_left < 6:
        return "Kritis", months_left
    if months_left <= 12:
        return "Waspada", months_left
    return "Aman", months_left


def expiring_stock(items: Iterable[Record], today: date) -> List[Record]:
    """Every item tagged with its expiry zone, soonest first."""
    report = []
    for item in items:
        zone, months_left = expiry_zone(_to_date(item["expired_date"]), today)
        report.append({**item, "zone": zone, "months_left": months_left})
    report.sort(key=lambda r: r["months_left"])
    return report


def _category(cumulative_percent: float) -> str:
    if cumulative_percent <= 80:
        return "A"
    if cumulative_percent <= 95:
        return "B"
    return "C"


def abc_analysis(
    items: Iterable[Record],
    transactions: Iterable[Record],
    item_type: Optional[ItemType] = None,
) -> List[Record]:
    """
    Pareto classification of item names by sales value.

    Sales are price x quantity of every transaction line, attributed to the
    name of the inventory item the line points at. Lines pointing at items
    that no longer exist are ignored.
    """
    items = [i for i in items if item_type is None or i.get("item_type") == item_type.value]
    inventory = _by_id(items)

    totals: Dict[str, Dict[str, float]] = OrderedDict()
    for item in items:
        entry = totals.setdefault(item["item_name"], {"total_sales": 0.0, "remaining_stock": 0})
        entry["remaining_stock"] += int(item.get("quantity", 0))

    for transaction in transactions:
        for line in _lines(transaction):
            item = inventory.get(line.get("item_id"))
            if item is None:
                continue
            totals[item["item_name"]]["total_sales"] += float(line["price"]) * int(line["quantity"])

    ranked = sorted(totals.items(), key=lambda kv: kv[1]["total_sales"], reverse=True)
    overall = sum(entry["total_sales"] for _, entry in ranked)

    report = []
    cumulative = 0.0
    for name, entry in ranked:
        cumulative += entry["total_sales"]
        percent = entry["total_sales"] / overall * 100 if overall > 0 else 0.0
        cumulative_percent = cumulative / overall * 100 if overall > 0 else 0.0
        report.append({
            "item_name": name,
            "total_sales": entry["total_sales"],
            "remaining_stock": entry["remaining_stock"],
            "percent": percent,
            "cumulative_percent": cumulative_percent,
            "category": _category(cumulative_percent),
        })
    return report


def profit_analysis(
    items: Iterable[Record],
    transactions: Iterable[Record],
    filters: Optional[TransactionFilters] = None,
) -> Dict[str, Dict[str, float]]:
    """
    Revenue, cost and profit per item type.

    UMUM sales earn the sale price. BPJS sales are reimbursed at purchase
    price, so they earn revenue equal to cost.
    """
    inventory = _by_id(items)
    if filters is not None:
        transactions = filters.apply(transactions)

    result = {t.value: {"revenue": 0.0, "cost": 0.0, "profit": 0.0} for t in ItemType}
    for transaction in transactions:
        paid_cash = transaction.get("payment_method") == PaymentMethod.UMUM.value
        for line in _lines(transaction):
            item = inventory.get(line.get("item_id"))
            if item is None or item.get("item_type") not in result:
                continue
            quantity = int(line["quantity"])
            purchase_price = float(item.get("purchase_price", 0))
            revenue = float(line["price"]) * quantity if paid_cash else purchase_price * quantity
            cost = purchase_price * quantity

            bucket = result[item["item_type"]]
            bucket["revenue"] += revenue
            bucket["cost"] += cost
            bucket["profit"] += revenue - cost
    return result


def supplier_price_comparison(items: Iterable[Record], item_type: ItemType) -> List[Record]:
    """Purchase price per supplier for each item name, cheapest flagged."""
    by_name: Dict[str, List[Record]] = OrderedDict()
    for item in items:
        if item.get("item_type") != item_type.value:
            continue
        by_name.setdefault(item["item_name"], []).append(
            {"supplier": item.get("supplier"), "price": float(item.get("purchase_price", 0))}
        )

    report = []
    for name, suppliers in by_name.items():
        lowest = min(s["price"] for s in suppliers)
        report.append({
            "item_name": name,
            "suppliers": [{**s, "is_lowest": s["price"] == lowest} for s in suppliers],
        })
    report.sort(key=lambda r: r["item_name"].casefold())
    return report


def _purchase_cost(transaction: Record, inventory: Dict[str, Record]) -> float:
    cost = 0.0
    for line in _lines(transaction):
        item = inventory.get(line.get("item_id"))
        cost += float(item.get("purchase_price", 0) if item else 0) * int(line["quantity"])
    return cost


def bpjs_expenditure(items: Iterable[Record], transactions: Iterable[Record]) -> Record:
    """
    BPJS spending per patient type.

    top: the ten largest BPJS transactions by stored total_price, for
    transactions with a medical record number and a positive total.
    overall_average / monthly_average: mean purchase-price cost per
    BPJS transaction.
    """
    inventory = _by_id(items)
    bpjs = [t for t in transactions if t.get("payment_method") == PaymentMethod.BPJS.value]
    patient_types = [p.value for p in PatientType]

    top = {}
    for patient_type in patient_types:
        entries = []
        for t in bpjs:
            total = float(t.get("total_price") or 0)
            if t.get("patient_type") != patient_type or not t.get("medical_record_number") or total <= 0:
                continue
            lines = []
            for line in _lines(t):
                item = inventory.get(line.get("item_id"))
                purchase_price = float(item.get("purchase_price", 0)) if item else 0.0
                lines.append({
                    "item_id": line.get("item_id"),
                    "item_name": item["item_name"] if item else "Item tidak dikenal",
                    "quantity": int(line["quantity"]),
                    "purchase_price": purchase_price,
                    "subtotal": purchase_price * int(line["quantity"]),
                })
            entries.append({
                "transaction_id": t.get("id"),
                "date": t.get("date"),
                "medical_record_number": t["medical_record_number"],
                "total_cost": total,
                "items": lines,
            })
        entries.sort(key=lambda e: e["total_cost"], reverse=True)
        top[patient_type] = entries[:BPJS_TOP_LIMIT]

    overall = {}
    for patient_type in patient_types:
        group = [t for t in bpjs if t.get("patient_type") == patient_type]
        total_cost = sum(_purchase_cost(t, inventory) for t in group)
        overall[patient_type] = {
            "average": total_cost / len(group) if group else 0.0,
            "count": len(group),
        }

    months: Dict[str, Dict[str, List[float]]] = {}
    for t in bpjs:
        day = _to_date(t.get("date"))
        if day is None or t.get("patient_type") not in patient_types:
            continue
        month = months.setdefault(day.strftime("%Y-%m"), {p: [] for p in patient_types})
        month[t["patient_type"]].append(_purchase_cost(t, inventory))

    monthly = []
    for key in sorted(months):
        row = {"month": key}
        for patient_type, costs in months[key].items():
            row[patient_type] = sum(costs) / len(costs) if costs else 0.0
        monthly.append(row)

    return {"top": top, "overall_average": overall, "monthly_average": monthly}
