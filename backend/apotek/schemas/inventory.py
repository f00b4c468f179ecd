from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ItemType(str, Enum):
    OBAT = "Obat"
    ALKES = "Alkes"


class Category(str, Enum):
    ORAL = "Oral"
    TOPIKAL = "Topikal"
    INJEKSI = "Injeksi"
    SUPPOSITORIA = "Suppositoria"
    INHALASI_NASAL = "Inhalasi/Nasal"
    VAKSIN = "Vaksin"
    LAINNYA = "Lainnya"


class Unit(str, Enum):
    TABLET = "Tablet"
    KAPSUL = "Kapsul"
    VIAL = "Vial"
    AMP = "Amp"
    PCS = "Pcs"
    CM = "Cm"
    BTL = "Btl"


def _require_text(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not v:
        raise ValueError("must not be empty")
    return v


class InventoryItemCreate(BaseModel):
    """One inventory row as entered by hand or read from an import file."""
    input_date: date
    item_name: str
    batch_number: str
    item_type: ItemType
    category: Category
    unit: Unit
    quantity: int = Field(ge=0)
    purchase_price: float = Field(ge=0)
    selling_price_rj: float = Field(ge=0)
    selling_price_ri: float = Field(ge=0)
    expired_date: date
    supplier: str

    @field_validator("item_name", "batch_number", "supplier")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _require_text(v)


class InventoryItemUpdate(BaseModel):
    """Partial edit; omitted fields are left as stored."""
    input_date: Optional[date] = None
    item_name: Optional[str] = None
    batch_number: Optional[str] = None
    item_type: Optional[ItemType] = None
    category: Optional[Category] = None
    unit: Optional[Unit] = None
    quantity: Optional[int] = Field(default=None, ge=0)
    purchase_price: Optional[float] = Field(default=None, ge=0)
    selling_price_rj: Optional[float] = Field(default=None, ge=0)
    selling_price_ri: Optional[float] = Field(default=None, ge=0)
    expired_date: Optional[date] = None
    supplier: Optional[str] = None

    @field_validator("item_name", "batch_number", "supplier")
    @classmethod
    def not_blank(cls, v: Optional[str]) -> Optional[str]:
        return _require_text(v)


class InventoryItem(InventoryItemCreate):
    id: str


class BulkDeleteRequest(BaseModel):
    ids: List[str] = Field(min_length=1)


class ImportResult(BaseModel):
    inserted: int
    updated: int
    inserted_ids: List[str]
    updated_ids: List[str]
