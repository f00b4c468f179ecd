"""Inventory: listing, CRUD, spreadsheet import/export."""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile

from apotek.api.deps import get_read_model, get_store
from apotek.core.exceptions import BusinessError
from apotek.db.document_store import DocumentStore
from apotek.schemas.inventory import (
    BulkDeleteRequest,
    ImportResult,
    InventoryItem,
    InventoryItemCreate,
    InventoryItemUpdate,
)
from apotek.services import inventory_service, spreadsheet
from apotek.services.bulk_upsert import bulk_upsert_inventory
from apotek.services.read_model import ReadModel

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def _xlsx(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("", response_model=List[InventoryItem])
def list_inventory(
    search: Optional[str] = Query(None),
    read_model: ReadModel = Depends(get_read_model),
):
    """All items ordered by name. `search` matches name, batch or supplier."""
    items = read_model.inventory
    if search:
        needle = search.casefold()
        items = [
            i for i in items
            if needle in i.get("item_name", "").casefold()
            or needle in i.get("batch_number", "").casefold()
            or needle in i.get("supplier", "").casefold()
        ]
    return items


# Static paths are declared before /{item_id}
@router.get("/export")
def export_inventory(read_model: ReadModel = Depends(get_read_model)):
    return _xlsx(spreadsheet.export_inventory(read_model.inventory), f"inventory_export_{date.today()}.xlsx")


@router.get("/template")
def download_template():
    return _xlsx(spreadsheet.build_template(), "inventory_template.xlsx")


@router.post("/import", response_model=ImportResult)
async def import_inventory(
    file: UploadFile = File(...),
    store: DocumentStore = Depends(get_store),
):
    """Merge an uploaded .xlsx/.csv into inventory. Any invalid row rejects the whole file."""
    raw = await file.read()
    try:
        rows = spreadsheet.read_rows(file.filename, raw)
    except ValueError as e:
        raise BusinessError.bad_request(str(e))

    candidates = spreadsheet.parse_inventory_rows(rows)
    if not candidates:
        raise BusinessError.bad_request("No rows found in the uploaded file")

    result = bulk_upsert_inventory(store, candidates)
    return ImportResult(
        inserted=len(result.inserted_ids),
        updated=len(result.updated_ids),
        inserted_ids=result.inserted_ids,
        updated_ids=result.updated_ids,
    )


@router.post("/bulk-delete", response_model=dict)
def bulk_delete(body: BulkDeleteRequest, store: DocumentStore = Depends(get_store)):
    inventory_service.bulk_delete_items(store, body.ids)
    return {"deleted": len(body.ids)}


@router.get("/{item_id}", response_model=InventoryItem)
def get_item(item_id: str, store: DocumentStore = Depends(get_store)):
    return inventory_service.get_item(store, item_id)


@router.post("", response_model=InventoryItem, status_code=201)
def create_item(body: InventoryItemCreate, store: DocumentStore = Depends(get_store)):
    item_id = inventory_service.add_item(store, body)
    return inventory_service.get_item(store, item_id)


@router.patch("/{item_id}", response_model=InventoryItem)
def update_item(item_id: str, body: InventoryItemUpdate, store: DocumentStore = Depends(get_store)):
    inventory_service.update_item(store, item_id, body)
    return inventory_service.get_item(store, item_id)


@router.delete("/{item_id}", response_model=dict)
def delete_item(item_id: str, store: DocumentStore = Depends(get_store)):
    inventory_service.delete_item(store, item_id)
    return {"deleted": item_id}
