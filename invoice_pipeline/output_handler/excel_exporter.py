"""
Excel Exporter Module.

This module provides Excel file generation for stored extraction results.
Uses openpyxl for modern Excel format support.

Sheets:
    - Extractions: one row per extraction with the scalar fields
    - Line Items: one row per invoice line
    - Packing List: one row per packing row

Author: ML Engineering Team
"""

from decimal import Decimal
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.helpers import ensure_directory, generate_timestamp
from invoice_pipeline.utils.exceptions import ExcelExportError
from .handler import StoredExtraction

# Initialize module logger
logger = get_logger(__name__)


def _cell_value(value: Any) -> Any:
    if value is None:
        return ''
    if isinstance(value, Decimal):
        return float(value)
    return value


class ExcelExporter:
    """
    Exports extraction results to Excel format.

    Attributes:
        output_dir: Directory for output files.

    Example:
        >>> exporter = ExcelExporter()
        >>> filepath = exporter.export(store.get_extractions(), "extractions.xlsx")
        >>> print(f"Saved to: {filepath}")
    """

    # Column definitions
    COLUMNS = [
        ('Vendor', 'vendor'),
        ('Buyer', 'buyer'),
        ('Invoice No', 'invoice_no'),
        ('Invoice Date', 'invoice_date'),
        ('Currency', 'currency'),
        ('Total Amount', 'total_amount'),
        ('Total Pieces', 'total_pieces'),
        ('Ship From', 'ship_from'),
        ('Ship To', 'ship_to'),
        ('Shipping Method', 'shipping_method'),
    ]

    LINE_ITEM_COLUMNS = [
        ('Description', 'description'),
        ('Qty', 'qty'),
        ('Unit Price', 'unit_price'),
        ('Amount', 'amount'),
    ]

    PACKING_COLUMNS = [
        ('Carton', 'carton'),
        ('Description', 'description'),
        ('CTNS', 'ctns'),
        ('Qty', 'qty'),
        ('N.W./CTN', 'net_wt_per_ctn'),
        ('G.W./CTN', 'gross_wt_per_ctn'),
        ('Measurement', 'measurement'),
    ]

    ROW_PREFIX = ['Document ID', 'Filename', 'Source']

    HEADER_FONT = Font(bold=True, color="FFFFFF")
    THIN_BORDER = Border(
        left=Side(style='thin'),
        right=Side(style='thin'),
        top=Side(style='thin'),
        bottom=Side(style='thin')
    )

    def __init__(self) -> None:
        """Initialize the Excel exporter with configuration."""
        self.output_dir = Path(get_config("paths.output_dir", "outputs"))
        logger.debug(f"ExcelExporter initialized (output_dir: {self.output_dir})")

    def export(
        self,
        extractions: List[StoredExtraction],
        filename: Optional[str] = None,
        output_dir: Optional[str] = None
    ) -> str:
        """
        Export extraction results to an Excel file.

        Args:
            extractions: Rows returned by the document store.
            filename: Output filename. If None, auto-generated.
            output_dir: Output directory. If None, uses configured dir.

        Returns:
            Path to the created Excel file.

        Raises:
            ExcelExportError: If there is nothing to export or saving fails.
        """
        if not extractions:
            raise ExcelExportError("No results", "No extractions to export")

        out_dir = Path(output_dir) if output_dir else self.output_dir
        ensure_directory(out_dir)

        filepath = out_dir / (filename or self.get_default_filename())

        try:
            workbook = Workbook()
            self._create_summary_sheet(workbook, extractions)
            self._create_line_item_sheet(workbook, extractions)
            self._create_packing_sheet(workbook, extractions)
            workbook.save(filepath)
        except Exception as e:
            logger.error(f"Excel export failed: {e}")
            raise ExcelExportError(str(filepath), str(e)) from e

        logger.info(f"Excel file saved: {filepath} ({len(extractions)} extractions)")
        return str(filepath)

    def _write_header(self, sheet, headers: Sequence[str], color: str) -> None:
        fill = PatternFill(start_color=color, end_color=color, fill_type="solid")
        for col, header in enumerate(headers, 1):
            cell = sheet.cell(row=1, column=col, value=header)
            cell.font = self.HEADER_FONT
            cell.fill = fill
            cell.alignment = Alignment(horizontal="center", vertical="center")
            cell.border = self.THIN_BORDER
        sheet.freeze_panes = 'A2'

    def _write_rows(self, sheet, rows: List[List[Any]]) -> None:
        for row_num, values in enumerate(rows, 2):
            for col, value in enumerate(values, 1):
                cell = sheet.cell(row=row_num, column=col, value=_cell_value(value))
                cell.border = self.THIN_BORDER

    @staticmethod
    def _autosize(sheet, column_count: int) -> None:
        for col in range(1, column_count + 1):
            column_letter = get_column_letter(col)
            max_length = max(
                (len(str(cell.value)) for cell in sheet[column_letter] if cell.value not in (None, '')),
                default=8
            )
            sheet.column_dimensions[column_letter].width = min(max_length + 2, 50)

    def _prefix(self, extraction: StoredExtraction) -> List[Any]:
        return [extraction.document_id, extraction.filename, extraction.source]

    def _create_summary_sheet(self, workbook: Workbook, extractions: List[StoredExtraction]) -> None:
        sheet = workbook.active
        sheet.title = "Extractions"

        headers = self.ROW_PREFIX + ['Model'] + [name for name, _ in self.COLUMNS] + \
            ['Line Items', 'Packing Items', 'Coverage']
        self._write_header(sheet, headers, "4472C4")

        rows = []
        for extraction in extractions:
            record = extraction.record
            rows.append(
                self._prefix(extraction)
                + [extraction.model_name]
                + [getattr(record, field_name) for _, field_name in self.COLUMNS]
                + [len(record.line_items), len(record.packing_items), extraction.coverage]
            )

        self._write_rows(sheet, rows)
        self._autosize(sheet, len(headers))

    def _create_item_sheet(
        self,
        workbook: Workbook,
        title: str,
        color: str,
        columns: List[Tuple[str, str]],
        extractions: List[StoredExtraction],
        items_attr: str
    ) -> None:
        sheet = workbook.create_sheet(title=title)
        headers = self.ROW_PREFIX + [name for name, _ in columns]
        self._write_header(sheet, headers, color)

        rows = []
        for extraction in extractions:
            for item in getattr(extraction.record, items_attr):
                rows.append(
                    self._prefix(extraction)
                    + [getattr(item, field_name) for _, field_name in columns]
                )

        self._write_rows(sheet, rows)
        self._autosize(sheet, len(headers))

    def _create_line_item_sheet(self, workbook: Workbook, extractions: List[StoredExtraction]) -> None:
        self._create_item_sheet(
            workbook, "Line Items", "548235", self.LINE_ITEM_COLUMNS, extractions, "line_items"
        )

    def _create_packing_sheet(self, workbook: Workbook, extractions: List[StoredExtraction]) -> None:
        self._create_item_sheet(
            workbook, "Packing List", "C65911", self.PACKING_COLUMNS, extractions, "packing_items"
        )

    def get_default_filename(self) -> str:
        """
        Generate a default filename with timestamp.

        Returns:
            Default filename string.
        """
        timestamp = generate_timestamp()
        pattern = get_config(
            "output.excel.filename_pattern",
            "invoice_extractions_{timestamp}.xlsx"
        )
        return pattern.format(timestamp=timestamp)
