"""
Keeps inventory quantities in step with sales transactions.

Each operation runs as one atomic unit on the document store: every stock
check reads the item inside the unit, and either all quantity changes plus
the transaction record commit together or none do. Concurrent operations on
the same item are serialized by the store's conflict retry.
"""
import logging
from typing import Iterable

from apotek.core.audit import AuditLog
from apotek.core.exceptions import DocumentNotFound, InsufficientStock, ItemNotFound
from apotek.db.document_store import AtomicTransaction, DocumentStore, new_id
from apotek.schemas.transaction import TransactionData, TransactionItem

logger = logging.getLogger(__name__)

INVENTORY = "inventory"
TRANSACTIONS = "transactions"


def _take_stock(txn: AtomicTransaction, lines: Iterable[TransactionItem]):
    """Decrement each line's item, rejecting the unit if any would go negative."""
    for line in lines:
        item = txn.read(INVENTORY, line.item_id)
        if item is None:
            raise ItemNotFound(line.item_id)

        available = int(item.get("quantity", 0))
        if available < line.quantity:
            raise InsufficientStock(
                item_id=line.item_id,
                item_name=item.get("item_name") or line.item_name or line.item_id,
                available=available,
                requested=line.quantity,
            )
        txn.patch(INVENTORY, line.item_id, {"quantity": available - line.quantity})


def _return_stock(txn: AtomicTransaction, lines: Iterable[TransactionItem]):
    """Add each line's quantity back. Items deleted since the sale are skipped."""
    for line in lines:
        item = txn.read(INVENTORY, line.item_id)
        if item is None:
            logger.warning(f"Cannot return {line.quantity} to missing item {line.item_id}; skipped")
            continue
        txn.patch(INVENTORY, line.item_id, {"quantity": int(item.get("quantity", 0)) + line.quantity})


class StockLedger:
    def __init__(self, store: DocumentStore):
        self.store = store

    def create_transaction(self, data: TransactionData) -> str:
        """Record a sale and take its quantities out of stock. Returns the new id."""
        transaction_id = new_id()
        record = data.model_dump(mode="json")

        def body(txn: AtomicTransaction):
            _take_stock(txn, data.items)
            txn.write(TRANSACTIONS, transaction_id, record)

        self.store.run_atomic(body)

        logger.info(f"Transaction {transaction_id} created ({len(data.items)} line(s))")
        AuditLog.log_action(
            "create", "transaction", transaction_id,
            changes={"lines": {line.item_id: -line.quantity for line in data.items}},
        )
        return transaction_id

    def update_transaction(self, transaction_id: str, new_data: TransactionData, original: TransactionData):
        """
        Replace a transaction, moving stock from the original lines to the new ones.

        `original` is the snapshot the caller edited; its quantities are
        returned to stock before the new lines are checked and taken, all in
        the same atomic unit. The stored record is fully replaced. Raises
        DocumentNotFound if the transaction no longer exists.
        """
        record = new_data.model_dump(mode="json")

        def body(txn: AtomicTransaction):
            if txn.read(TRANSACTIONS, transaction_id) is None:
                raise DocumentNotFound(TRANSACTIONS, transaction_id)
            _return_stock(txn, original.items)
            _take_stock(txn, new_data.items)
            txn.write(TRANSACTIONS, transaction_id, record)

        self.store.run_atomic(body)

        logger.info(f"Transaction {transaction_id} updated")
        AuditLog.log_action(
            "update", "transaction", transaction_id,
            changes={
                "returned": {line.item_id: line.quantity for line in original.items},
                "taken": {line.item_id: line.quantity for line in new_data.items},
            },
        )

    def delete_transaction(self, transaction_id: str, snapshot: TransactionData):
        """
        Delete a transaction and return its quantities to stock.

        A transaction that is already gone is left alone, so repeating a
        delete never returns the same stock twice.
        """
        def body(txn: AtomicTransaction) -> bool:
            if txn.read(TRANSACTIONS, transaction_id) is None:
                return False
            _return_stock(txn, snapshot.items)
            txn.delete(TRANSACTIONS, transaction_id)
            return True

        if not self.store.run_atomic(body):
            logger.warning(f"Transaction {transaction_id} not found; stock left unchanged")
            return

        logger.info(f"Transaction {transaction_id} deleted")
        AuditLog.log_action(
            "delete", "transaction", transaction_id,
            changes={"returned": {line.item_id: line.quantity for line in snapshot.items}},
        )
