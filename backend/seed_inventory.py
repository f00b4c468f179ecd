"""Seed pharmacy inventory with a starter set of medicines and supplies.

Runs through the bulk upsert, so seeding twice adds the quantities again
instead of duplicating items.
"""
from datetime import date, timedelta

from apotek.core.config import settings
from apotek.db.document_store import DocumentStore
from apotek.schemas.inventory import InventoryItemCreate
from apotek.services.bulk_upsert import bulk_upsert_inventory

STARTER_STOCK = [
    # name, batch, type, category, unit, qty, purchase, price RJ, price RI, months to expiry, supplier
    ("Paracetamol 500mg", "PCT2401", "Obat", "Oral", "Tablet", 500, 150, 300, 350, 24, "PT Kimia Farma"),
    ("Amoxicillin 500mg", "AMX2402", "Obat", "Oral", "Kapsul", 300, 600, 1000, 1200, 18, "PT Kimia Farma"),
    ("Amoxicillin 500mg", "AMX2402B", "Obat", "Oral", "Kapsul", 200, 550, 1000, 1200, 20, "PT Indofarma"),
    ("Ceftriaxone 1g", "CFT2403", "Obat", "Injeksi", "Vial", 60, 9000, 15000, 18000, 9, "PT Indofarma"),
    ("Salbutamol Inhaler", "SLB2404", "Obat", "Inhalasi/Nasal", "Pcs", 25, 35000, 50000, 55000, 14, "PT Kalbe Farma"),
    ("Gentamicin Salep", "GNT2405", "Obat", "Topikal", "Pcs", 40, 4000, 7000, 8000, 5, "PT Kalbe Farma"),
    ("Spuit 3cc", "SPT2406", "Alkes", "Lainnya", "Pcs", 1000, 1200, 2500, 3000, 36, "PT Onemed"),
    ("Kasa Steril", "KSA2407", "Alkes", "Lainnya", "Pcs", 400, 800, 1500, 2000, 30, "PT Onemed"),
    ("Plester Roll", "PLR2408", "Alkes", "Lainnya", "Cm", 45, 12000, 18000, 20000, 30, "PT Onemed"),
]


def seed_inventory():
    store = DocumentStore.from_url(settings.DATABASE_URL)
    today = date.today()

    candidates = [
        InventoryItemCreate(
            input_date=today,
            item_name=name,
            batch_number=batch,
            item_type=item_type,
            category=category,
            unit=unit,
            quantity=qty,
            purchase_price=purchase,
            selling_price_rj=price_rj,
            selling_price_ri=price_ri,
            expired_date=today + timedelta(days=30 * months),
            supplier=supplier,
        )
        for name, batch, item_type, category, unit, qty, purchase, price_rj, price_ri, months, supplier in STARTER_STOCK
    ]

    result = bulk_upsert_inventory(store, candidates)
    print(f"\n✅ Seeded inventory: {len(result.inserted_ids)} new, {len(result.updated_ids)} topped up")

    print(f"\n📦 STARTER INVENTORY ({len(candidates)} rows):")
    print("=" * 80)
    for c in candidates:
        print(f"  📌 {c.item_name} [{c.batch_number}] {c.quantity} {c.unit.value} - {c.supplier}")


if __name__ == "__main__":
    seed_inventory()
