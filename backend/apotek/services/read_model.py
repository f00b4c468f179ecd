"""
Live read-only view of inventory and transactions.

Kept current through store subscriptions and used for listings and
reports. Write paths never consult it; they re-read inside their own
atomic unit.
"""
import logging
import threading
from typing import Any, Dict, List

from apotek.db.document_store import DocumentStore
from apotek.services.stock_ledger import INVENTORY, TRANSACTIONS

logger = logging.getLogger(__name__)


class ReadModel:
    def __init__(self, store: DocumentStore):
        self._lock = threading.Lock()
        self._inventory: List[Dict[str, Any]] = []
        self._transactions: List[Dict[str, Any]] = []
        self._unsubscribe = [
            store.subscribe(
                INVENTORY, self._set_inventory,
                on_error=self._on_error, order_by="item_name",
            ),
            store.subscribe(
                TRANSACTIONS, self._set_transactions,
                on_error=self._on_error, order_by="date", descending=True,
            ),
        ]

    def _set_inventory(self, snapshot):
        with self._lock:
            self._inventory = snapshot

    def _set_transactions(self, snapshot):
        with self._lock:
            self._transactions = snapshot

    def _on_error(self, exc: Exception):
        # Keep serving the last good snapshot
        logger.error(f"Read model refresh failed: {type(exc).__name__}: {exc}")

    @property
    def inventory(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._inventory)

    @property
    def transactions(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._transactions)

    def close(self):
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []
