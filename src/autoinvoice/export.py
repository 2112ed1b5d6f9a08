"""Excel export of stored invoices."""

import io
from typing import Iterable

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.utils import get_column_letter

from .models import InvoiceRecord

COLUMNS = [
    ("Invoice Number", "invoice_number"),
    ("Vendor", "vendor"),
    ("Amount", "amount"),
    ("Currency", "currency"),
    ("Invoice Date", "invoice_date"),
    ("Due Date", "due_date"),
    ("Status", "status"),
    ("File Name", "file_name"),
    ("File URL", "file_url"),
    ("Description", "description"),
    ("Created At", "created_at"),
]

MAX_COLUMN_WIDTH = 60


def _cell_value(invoice: InvoiceRecord, field: str):
    value = getattr(invoice, field)
    if field == "amount" and value is not None:
        return float(value)
    if field == "created_at" and value is not None:
        # Excel has no timezone support
        return value.replace(tzinfo=None)
    return value


def build_invoice_workbook(invoices: Iterable[InvoiceRecord]) -> bytes:
    """Render invoices as an .xlsx workbook.

    Args:
        invoices: Records to export, in display order

    Returns:
        bytes: Workbook file content
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Invoices"

    ws.append([header for header, _ in COLUMNS])
    for cell in ws[1]:
        cell.font = Font(bold=True)
    ws.freeze_panes = "A2"

    for invoice in invoices:
        ws.append([_cell_value(invoice, field) for _, field in COLUMNS])

    amount_column = get_column_letter([field for _, field in COLUMNS].index("amount") + 1)
    for cell in ws[amount_column][1:]:
        cell.number_format = "#,##0.00"

    for index, column in enumerate(ws.iter_cols(), start=1):
        width = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
        ws.column_dimensions[get_column_letter(index)].width = min(width + 2, MAX_COLUMN_WIDTH)

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
