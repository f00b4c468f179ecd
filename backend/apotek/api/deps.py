"""FastAPI dependencies: shared store/ledger/read model and caller authorization.

The store, ledger and read model are created once per app in create_app and
kept on app.state, so tests can build an app around their own store.
"""
import secrets
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from apotek.core.audit import AuditLog
from apotek.core.config import settings
from apotek.core.exceptions import BusinessError
from apotek.db.document_store import DocumentStore
from apotek.services.read_model import ReadModel
from apotek.services.stock_ledger import StockLedger

security = HTTPBearer(auto_error=False)


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_ledger(request: Request) -> StockLedger:
    return request.app.state.ledger


def get_read_model(request: Request) -> ReadModel:
    return request.app.state.read_model


def require_authorized(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """
    Caller must present the shared bearer token.
    Missing and wrong tokens get the same 401.
    """
    client_ip = request.client.host if request.client else "unknown"

    if not credentials:
        AuditLog.log_access_denied(request.url.path, client_ip, "Missing token")
        raise BusinessError.unauthorized("Missing token")

    if not secrets.compare_digest(credentials.credentials.encode(), settings.API_TOKEN.encode()):
        AuditLog.log_access_denied(request.url.path, client_ip, "Invalid token")
        raise BusinessError.unauthorized("Invalid token")
