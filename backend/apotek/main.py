"""
Apotek stock ledger backend.

ARCHITECTURE:
- Document store (SQLAlchemy): source of truth for inventory and transactions
- StockLedger: every sale/edit/delete adjusts stock in one atomic unit
- Bulk upsert: spreadsheet imports merge by (item name, batch number)
- ReadModel: live snapshots backing listings and reports, never writes
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from apotek.api.deps import require_authorized
from apotek.api.routes import inventory, reports, transactions
from apotek.core.config import settings
from apotek.core.exceptions import ApotekError, error_response
from apotek.db.document_store import DocumentStore
from apotek.services.read_model import ReadModel
from apotek.services.stock_ledger import StockLedger

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(store: Optional[DocumentStore] = None) -> FastAPI:
    """Build the API around `store` (defaults to one opened from DATABASE_URL)."""
    if store is None:
        store = DocumentStore.from_url(settings.DATABASE_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Apotek API started ({settings.ENVIRONMENT})")
        yield
        app.state.read_model.close()
        logger.info("Apotek API stopped")

    app = FastAPI(
        title="Apotek Stock Ledger API",
        description="Pharmacy inventory and sales with atomic stock adjustment.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.store = store
    app.state.ledger = StockLedger(store)
    app.state.read_model = ReadModel(store)

    # SECURITY: Restrict CORS to specific methods and headers (not wildcards)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "Authorization",
            "Accept",
            "Origin",
        ],
        max_age=600,  # Cache preflight for 10 minutes
        expose_headers=["Content-Type", "Content-Disposition"],
    )

    @app.middleware("http")
    async def add_security_headers(request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    @app.exception_handler(ApotekError)
    async def apotek_error_handler(request: Request, exc: ApotekError):
        return error_response(exc)

    protected = [Depends(require_authorized)]
    app.include_router(inventory.router, prefix="/inventory", tags=["inventory"], dependencies=protected)
    app.include_router(transactions.router, prefix="/transactions", tags=["transactions"], dependencies=protected)
    app.include_router(reports.router, prefix="/reports", tags=["reports"], dependencies=protected)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
