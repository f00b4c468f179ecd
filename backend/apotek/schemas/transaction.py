import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class PatientType(str, Enum):
    RAWAT_JALAN = "Rawat Jalan"
    RAWAT_INAP = "Rawat Inap"


class PaymentMethod(str, Enum):
    UMUM = "UMUM"
    BPJS = "BPJS"


class TransactionItem(BaseModel):
    item_id: str = Field(min_length=1)
    item_name: Optional[str] = None  # display copy, never used for lookups
    quantity: int = Field(gt=0)
    price: float = Field(ge=0)  # unit price at time of sale


class TransactionData(BaseModel):
    date: datetime.date
    patient_type: PatientType
    payment_method: PaymentMethod
    medical_record_number: str
    total_price: Optional[float] = Field(default=None, ge=0)
    items: List[TransactionItem] = Field(min_length=1)

    @field_validator("medical_record_number")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def default_total(self):
        if self.total_price is None:
            self.total_price = sum(line.price * line.quantity for line in self.items)
        return self


class Transaction(TransactionData):
    id: str


class TransactionUpdateRequest(BaseModel):
    """New contents plus the snapshot the caller based the edit on."""
    data: TransactionData
    original: TransactionData
