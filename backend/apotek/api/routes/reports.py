"""Reports over the live read model."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from apotek.api.deps import get_read_model
from apotek.core.config import settings
from apotek.schemas.inventory import ItemType
from apotek.schemas.transaction import PatientType, PaymentMethod
from apotek.services import reports
from apotek.services.read_model import ReadModel

router = APIRouter()


@router.get("/low-stock", response_model=list)
def low_stock(
    threshold: Optional[int] = Query(None, ge=0),
    read_model: ReadModel = Depends(get_read_model),
):
    return reports.low_stock(read_model.inventory, threshold if threshold is not None else settings.LOW_STOCK_THRESHOLD)


@router.get("/expiring", response_model=list)
def expiring(read_model: ReadModel = Depends(get_read_model)):
    return reports.expiring_stock(read_model.inventory, date.today())


@router.get("/abc", response_model=list)
def abc(
    item_type: Optional[ItemType] = Query(None),
    read_model: ReadModel = Depends(get_read_model),
):
    return reports.abc_analysis(read_model.inventory, read_model.transactions, item_type)


@router.get("/profit", response_model=dict)
def profit(
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    patient_type: Optional[PatientType] = Query(None),
    payment_method: Optional[PaymentMethod] = Query(None),
    read_model: ReadModel = Depends(get_read_model),
):
    filters = reports.TransactionFilters(
        date_from=date_from,
        date_to=date_to,
        patient_type=patient_type,
        payment_method=payment_method,
    )
    return reports.profit_analysis(read_model.inventory, read_model.transactions, filters)


@router.get("/supplier-prices", response_model=list)
def supplier_prices(
    item_type: ItemType = Query(ItemType.OBAT),
    read_model: ReadModel = Depends(get_read_model),
):
    return reports.supplier_price_comparison(read_model.inventory, item_type)


@router.get("/bpjs", response_model=dict)
def bpjs(read_model: ReadModel = Depends(get_read_model)):
    return reports.bpjs_expenditure(read_model.inventory, read_model.transactions)
