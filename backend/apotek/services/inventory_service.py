"""Inventory create/edit/delete outside of sales. Stock changes from sales go through StockLedger."""
import logging
from typing import List

from apotek.core.audit import AuditLog
from apotek.core.exceptions import DocumentNotFound
from apotek.db.document_store import DocumentStore
from apotek.schemas.inventory import InventoryItemCreate, InventoryItemUpdate
from apotek.services.stock_ledger import INVENTORY

logger = logging.getLogger(__name__)


def get_item(store: DocumentStore, item_id: str) -> dict:
    item = store.read_document(INVENTORY, item_id)
    if item is None:
        raise DocumentNotFound(INVENTORY, item_id)
    return item


def add_item(store: DocumentStore, data: InventoryItemCreate) -> str:
    item_id = store.add_document(INVENTORY, data.model_dump(mode="json"))
    logger.info(f"Inventory item {item_id} added: {data.item_name} ({data.batch_number})")
    AuditLog.log_action("create", "inventory", item_id, changes={"quantity": data.quantity})
    return item_id


def update_item(store: DocumentStore, item_id: str, partial: InventoryItemUpdate):
    changes = partial.model_dump(mode="json", exclude_unset=True)
    if not changes:
        get_item(store, item_id)
        return
    store.patch_document(INVENTORY, item_id, changes)
    AuditLog.log_action("update", "inventory", item_id, changes=changes)


def delete_item(store: DocumentStore, item_id: str):
    """Delete an item. Transactions that reference it are left as they are."""
    store.delete_document(INVENTORY, item_id)
    AuditLog.log_action("delete", "inventory", item_id)


def bulk_delete_items(store: DocumentStore, ids: List[str]):
    def body(batch):
        for item_id in ids:
            batch.delete(INVENTORY, item_id)

    store.run_batch(body)
    logger.info(f"Bulk delete committed: {len(ids)} item(s)")
    AuditLog.log_action("bulk_delete", "inventory", None, changes={"ids": ids})
