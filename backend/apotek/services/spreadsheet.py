"""
Spreadsheet import/export for inventory.

Import is parse-then-validate: read_rows turns an uploaded .xlsx/.csv into
header-keyed dicts, parse_inventory_rows coerces and validates every row.
A file with any bad row is rejected as a whole, with the messages for
every bad row, before anything reaches the merger.
"""
import csv
import io
import logging
import zipfile
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError

from apotek.core.exceptions import RowError, RowValidationError
from apotek.schemas.inventory import InventoryItemCreate

logger = logging.getLogger(__name__)

# Template header -> field name
TEMPLATE_HEADERS = {
    "inputDate": "input_date",
    "itemName": "item_name",
    "batchNumber": "batch_number",
    "itemType": "item_type",
    "category": "category",
    "unit": "unit",
    "quantity": "quantity",
    "purchasePrice": "purchase_price",
    "sellingPriceRJ": "selling_price_rj",
    "sellingPriceRI": "selling_price_ri",
    "expiredDate": "expired_date",
    "supplier": "supplier",
}
FIELD_HEADERS = {v: k for k, v in TEMPLATE_HEADERS.items()}

DATE_FIELDS = ("input_date", "expired_date")
COUNT_FIELDS = ("quantity",)
PRICE_FIELDS = ("purchase_price", "selling_price_rj", "selling_price_ri")

# Excel's day zero (serial 1 == 1900-01-01, counting the phantom 1900-02-29)
EXCEL_EPOCH = date(1899, 12, 30)

# Number formats per template column, applied to the first 100 data rows
_COLUMN_FORMATS = ["DD/MM/YYYY", "@", "@", "@", "@", "@", "0", "0", "0", "0", "DD/MM/YYYY", "@"]
_COLUMN_WIDTHS = [12, 30, 15, 10, 15, 10, 10, 15, 15, 15, 12, 25]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def read_rows(filename: str, raw: bytes) -> List[Dict[str, Any]]:
    """
    Header-keyed rows of the first sheet (.xlsx) or of a .csv file.

    Completely empty rows are dropped. Raises ValueError for unsupported or
    unreadable files.
    """
    name = (filename or "").lower()
    if name.endswith(".xlsx"):
        try:
            wb = load_workbook(io.BytesIO(raw), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError) as exc:
            raise ValueError(f"Could not read {filename} as an Excel workbook") from exc
        try:
            values = list(wb.worksheets[0].iter_rows(values_only=True))
        finally:
            wb.close()
    elif name.endswith(".csv"):
        try:
            text = raw.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ValueError(f"{filename} is not UTF-8 encoded") from exc
        values = list(csv.reader(io.StringIO(text)))
    else:
        raise ValueError("Unsupported file type, upload .xlsx or .csv")

    if not values:
        return []

    headers = [str(h).strip() if h is not None else "" for h in values[0]]
    rows = []
    for raw_row in values[1:]:
        if all(_is_blank(v) for v in raw_row):
            continue
        rows.append({h: v for h, v in zip(headers, raw_row) if h})
    return rows


def parse_date(value: Any) -> Optional[date]:
    """Dates as Excel hands them over: datetime, serial number, dd/mm/yyyy or ISO text."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return EXCEL_EPOCH + timedelta(days=int(value))
    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.strptime(text, "%d/%m/%Y").date()
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            return None
    return None


def _as_text(value: Any) -> Any:
    # Batch numbers typed as numbers come back as 123.0
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value.strip() if isinstance(value, str) else value


def _as_number(value: Any, integral: bool) -> Any:
    if isinstance(value, str):
        try:
            value = float(value.strip().replace(",", ""))
        except ValueError:
            return value  # let validation report it
    if integral and isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _coerce_row(row: Dict[str, Any]) -> Dict[str, Any]:
    fields = {}
    for header, value in row.items():
        field_name = TEMPLATE_HEADERS.get(header, header)
        if field_name not in FIELD_HEADERS or _is_blank(value):
            continue
        fields[field_name] = value

    for name in DATE_FIELDS:
        if name in fields:
            parsed = parse_date(fields[name])
            fields[name] = parsed if parsed is not None else fields[name]
    for name in ("item_name", "batch_number", "supplier", "item_type", "category", "unit"):
        if name in fields:
            fields[name] = _as_text(fields[name])
    for name in COUNT_FIELDS:
        if name in fields:
            fields[name] = _as_number(fields[name], integral=True)
    for name in PRICE_FIELDS:
        if name in fields:
            fields[name] = _as_number(fields[name], integral=False)
    return fields


def _messages(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        field_name = str(err["loc"][0]) if err["loc"] else ""
        column = FIELD_HEADERS.get(field_name, field_name)
        if err["type"] == "missing":
            messages.append(f"{column} is required")
        elif field_name in DATE_FIELDS:
            messages.append(f"{column}: invalid date, use dd/mm/yyyy")
        else:
            messages.append(f"{column}: {err['msg']}")
    return messages


def parse_inventory_rows(rows: Iterable[Dict[str, Any]]) -> List[InventoryItemCreate]:
    """
    Validate header-keyed rows into inventory candidates.

    Row numbers in errors are spreadsheet rows: the header is row 1.
    """
    candidates = []
    errors = []
    for index, row in enumerate(rows):
        try:
            candidates.append(InventoryItemCreate(**_coerce_row(row)))
        except ValidationError as exc:
            errors.append(RowError(row=index + 2, messages=_messages(exc)))

    if errors:
        logger.info(f"Import rejected: {len(errors)} invalid row(s)")
        raise RowValidationError(errors)
    return candidates


def _to_bytes(wb: Workbook) -> bytes:
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def _write_header(ws, headers: List[str]):
    header_fill = PatternFill("solid", fgColor="D9E1F2")
    for col, title in enumerate(headers, start=1):
        cell = ws.cell(row=1, column=col, value=title)
        cell.font = Font(bold=True)
        cell.fill = header_fill


def build_template() -> bytes:
    """Empty import workbook: header row plus column formats."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Template"

    headers = list(TEMPLATE_HEADERS)
    _write_header(ws, headers)
    for col in range(1, len(headers) + 1):
        ws.column_dimensions[get_column_letter(col)].width = _COLUMN_WIDTHS[col - 1]
        for row in range(2, 102):
            ws.cell(row=row, column=col).number_format = _COLUMN_FORMATS[col - 1]

    return _to_bytes(wb)


def export_inventory(items: Iterable[Dict[str, Any]]) -> bytes:
    """Current inventory as a workbook that re-imports through the template headers."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Inventory"

    headers = ["id"] + list(TEMPLATE_HEADERS)
    _write_header(ws, headers)

    for i, item in enumerate(items, start=2):
        ws.cell(i, 1, item.get("id"))
        for col, field_name in enumerate(TEMPLATE_HEADERS.values(), start=2):
            value = item.get(field_name)
            if field_name in DATE_FIELDS and isinstance(value, str):
                value = parse_date(value) or value
            cell = ws.cell(i, col, value)
            if field_name in DATE_FIELDS:
                cell.number_format = "DD/MM/YYYY"

    return _to_bytes(wb)
