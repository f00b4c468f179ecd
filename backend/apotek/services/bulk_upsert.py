"""
Merge imported inventory rows by (item_name, batch_number).

A row matching an existing item adds its quantity to the stored quantity and
overwrites every other field. A row with no match becomes a new item. All
changes land in one batch: either the whole import applies or none of it.

Matches are looked up against inventory as it was before the batch, so two
new rows sharing a key in the same import become two items.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from apotek.core.audit import AuditLog
from apotek.db.document_store import DocumentStore, WriteBatch, new_id
from apotek.schemas.inventory import InventoryItemCreate
from apotek.services.stock_ledger import INVENTORY

logger = logging.getLogger(__name__)


@dataclass
class BulkUpsertResult:
    inserted_ids: List[str] = field(default_factory=list)
    updated_ids: List[str] = field(default_factory=list)


def bulk_upsert_inventory(store: DocumentStore, candidates: Sequence[InventoryItemCreate]) -> BulkUpsertResult:
    result = BulkUpsertResult()
    staged = []

    # First match in creation order wins for each key
    by_key = {}
    for item in store.query_documents(INVENTORY):
        by_key.setdefault((item.get("item_name"), item.get("batch_number")), item)

    for candidate in candidates:
        record = candidate.model_dump(mode="json")
        existing = by_key.get((record["item_name"], record["batch_number"]))
        if existing is not None:
            record["quantity"] = int(existing.get("quantity", 0)) + candidate.quantity
            staged.append(("update", existing["id"], record))
            result.updated_ids.append(existing["id"])
        else:
            item_id = new_id()
            staged.append(("set", item_id, record))
            result.inserted_ids.append(item_id)

    def body(batch: WriteBatch):
        for op, item_id, record in staged:
            if op == "update":
                batch.update(INVENTORY, item_id, record)
            else:
                batch.set(INVENTORY, item_id, record)

    store.run_batch(body)

    logger.info(
        f"Bulk upsert committed: {len(result.inserted_ids)} inserted, {len(result.updated_ids)} updated"
    )
    AuditLog.log_action(
        "bulk_upsert", "inventory", None,
        changes={"inserted": len(result.inserted_ids), "updated": len(result.updated_ids)},
    )
    return result
