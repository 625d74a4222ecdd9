"""Transaction exports: CSV and XLSX."""
import csv
import io
import logging
from datetime import date
from typing import List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from app.models.db_models import Resident, Transaction
from app.schemas.transactions import SortDirection, SortField, TransactionFilter
from app.services.funding_calculations import to_money
from app.services.transaction_service import build_transaction_query

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "ID",
    "Date",
    "Resident",
    "House",
    "Contract Type",
    "Service Code",
    "Description",
    "Quantity",
    "Unit Price",
    "Amount",
    "Status",
    "Note",
    "Created By",
]

COLUMN_WIDTHS = [24, 12, 24, 30, 14, 18, 40, 10, 12, 12, 12, 40, 20]

CSV_MEDIA_TYPE = "text/csv"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def export_filename(extension: str, today: Optional[date] = None) -> str:
    return f"transactions-{(today or date.today()).isoformat()}.{extension}"


async def fetch_export_transactions(
    db: AsyncSession,
    filters: TransactionFilter,
    sort_by: SortField = SortField.OCCURRED_AT,
    sort_dir: SortDirection = SortDirection.DESC,
) -> List[Transaction]:
    """All transactions matching the filters, with resident, house and contract loaded."""
    query = build_transaction_query(filters, sort_by, sort_dir).options(
        joinedload(Transaction.resident).joinedload(Resident.house),
        selectinload(Transaction.contract),
    )
    result = await db.execute(query)
    return list(result.scalars().unique().all())


def _row(txn: Transaction) -> list:
    resident = txn.resident
    house = resident.house if resident else None
    contract = txn.contract
    return [
        txn.id,
        txn.occurred_at.strftime("%Y-%m-%d"),
        resident.full_name if resident else "",
        house.display_name if house else "",
        contract.contract_type.value if contract else "",
        txn.service_code,
        txn.description or "",
        txn.quantity,
        to_money(txn.unit_price),
        to_money(txn.amount),
        txn.status.value,
        txn.note or "",
        txn.created_by,
    ]


def transactions_to_csv(transactions: List[Transaction]) -> str:
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for txn in transactions:
        writer.writerow(_row(txn))
    return output.getvalue()


def transactions_to_xlsx(transactions: List[Transaction]) -> bytes:
    """Build a single-sheet workbook of transactions with a totals row."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Transactions"

    header_fill = PatternFill(start_color="D9E1F2", end_color="D9E1F2", fill_type="solid")
    for col, header in enumerate(EXPORT_COLUMNS, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = Font(bold=True)
        cell.fill = header_fill
        cell.alignment = Alignment(horizontal="center")

    for col, width in enumerate(COLUMN_WIDTHS, 1):
        ws.column_dimensions[get_column_letter(col)].width = width

    for row_num, txn in enumerate(transactions, 2):
        values = _row(txn)
        for col, value in enumerate(values, 1):
            ws.cell(row=row_num, column=col, value=float(value) if col in (8, 9, 10) else value)
        for col in (9, 10):
            ws.cell(row=row_num, column=col).number_format = "#,##0.00"

    # Totals
    total_row = len(transactions) + 2
    ws.cell(row=total_row, column=9, value="TOTAL").font = Font(bold=True)
    if transactions:
        total = ws.cell(row=total_row, column=10, value=f"=SUM(J2:J{total_row - 1})")
    else:
        total = ws.cell(row=total_row, column=10, value=0)
    total.font = Font(bold=True)
    total.number_format = "#,##0.00"

    ws.freeze_panes = "A2"

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info(f"Built transaction workbook with {len(transactions)} rows")
    return buffer.getvalue()
