"""
Typed errors for the stock ledger, plus safe HTTP translations.

Domain code raises ApotekError subclasses (catch by type, read `code`).
Routes translate them with `error_response`, and use BusinessError for
request-level failures that never reach the domain.

    ApotekError
    +-- ItemNotFound
    +-- InsufficientStock
    +-- RowValidationError
    +-- StoreError
        +-- DocumentNotFound
        +-- StoreConflict          (retried by run_atomic, never surfaced)
        +-- AtomicRetryExhausted
"""
import logging
from dataclasses import dataclass, field
from typing import List

from fastapi import HTTPException, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ApotekError(Exception):
    code: str = "APOTEK_ERROR"
    http_status: int = status.HTTP_400_BAD_REQUEST


class ItemNotFound(ApotekError):
    """A transaction line references an inventory id that does not exist."""

    code = "ITEM_NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Inventory item {item_id} does not exist")


class InsufficientStock(ApotekError):
    """Requested quantity exceeds the on-hand quantity at decrement time."""

    code = "INSUFFICIENT_STOCK"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, item_id: str, item_name: str, available: int, requested: int):
        self.item_id = item_id
        self.item_name = item_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for {item_name}: available {available}, requested {requested}"
        )


@dataclass
class RowError:
    row: int
    messages: List[str] = field(default_factory=list)


class RowValidationError(ApotekError):
    """Candidate rows failed validation before reaching the merger."""

    code = "VALIDATION_ERROR"
    http_status = 422

    def __init__(self, errors: List[RowError]):
        self.errors = errors
        rows = ", ".join(str(e.row) for e in errors[:10])
        super().__init__(f"{len(errors)} invalid row(s): {rows}")


class StoreError(ApotekError):
    code = "STORE_ERROR"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR


class DocumentNotFound(StoreError):
    code = "DOCUMENT_NOT_FOUND"
    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, collection: str, document_id: str):
        self.collection = collection
        self.document_id = document_id
        super().__init__(f"{collection}/{document_id} not found")


class StoreConflict(StoreError):
    """A document read inside an atomic operation changed before commit."""

    code = "STORE_CONFLICT"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, collection: str, document_id: str):
        self.collection = collection
        self.document_id = document_id
        super().__init__(f"Concurrent write on {collection}/{document_id}")


class AtomicRetryExhausted(StoreError):
    code = "ATOMIC_RETRY_EXHAUSTED"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Operation still conflicting after {attempts} attempts")


def error_response(exc: ApotekError) -> JSONResponse:
    """JSON body for a domain error: message plus machine-readable code."""
    body = {"detail": str(exc), "code": exc.code}
    if isinstance(exc, RowValidationError):
        body["errors"] = [{"row": e.row, "messages": e.messages} for e in exc.errors]
    if exc.http_status >= 500:
        logger.error(f"{type(exc).__name__}: {exc}")
    else:
        logger.info(f"{exc.code}: {exc}")
    return JSONResponse(status_code=exc.http_status, content=body)


class BusinessError:
    """Request-level HTTP errors with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        if reason:
            logger.warning(f"Not found: {resource} - {reason}")
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )

    @staticmethod
    def unauthorized(reason: str = "") -> HTTPException:
        """Same response for missing and wrong tokens."""
        logger.warning(f"Unauthorized access attempt: {reason}")
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )
