"""Sales transactions. Every write goes through the stock ledger."""
from typing import List

from fastapi import APIRouter, Depends

from apotek.api.deps import get_ledger, get_read_model, get_store
from apotek.core.exceptions import BusinessError
from apotek.db.document_store import DocumentStore
from apotek.schemas.transaction import Transaction, TransactionData, TransactionUpdateRequest
from apotek.services.read_model import ReadModel
from apotek.services.stock_ledger import TRANSACTIONS, StockLedger

router = APIRouter()


@router.get("", response_model=List[Transaction])
def list_transactions(read_model: ReadModel = Depends(get_read_model)):
    """Newest first."""
    return read_model.transactions


@router.get("/{transaction_id}", response_model=Transaction)
def get_transaction(transaction_id: str, store: DocumentStore = Depends(get_store)):
    record = store.read_document(TRANSACTIONS, transaction_id)
    if record is None:
        raise BusinessError.not_found("Transaction", transaction_id)
    return record


@router.post("", response_model=Transaction, status_code=201)
def create_transaction(
    body: TransactionData,
    ledger: StockLedger = Depends(get_ledger),
    store: DocumentStore = Depends(get_store),
):
    transaction_id = ledger.create_transaction(body)
    return store.read_document(TRANSACTIONS, transaction_id)


@router.put("/{transaction_id}", response_model=Transaction)
def update_transaction(
    transaction_id: str,
    body: TransactionUpdateRequest,
    ledger: StockLedger = Depends(get_ledger),
    store: DocumentStore = Depends(get_store),
):
    """Replace a transaction. `original` is the version the edit started from."""
    ledger.update_transaction(transaction_id, body.data, body.original)
    return store.read_document(TRANSACTIONS, transaction_id)


@router.delete("/{transaction_id}", response_model=dict)
def delete_transaction(
    transaction_id: str,
    body: TransactionData,
    ledger: StockLedger = Depends(get_ledger),
):
    """Delete a transaction; the body is the snapshot whose quantities go back to stock."""
    ledger.delete_transaction(transaction_id, body)
    return {"deleted": transaction_id}
