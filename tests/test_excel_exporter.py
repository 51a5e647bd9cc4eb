from decimal import Decimal

import pytest
from openpyxl import load_workbook

from invoice_pipeline.input_handler import ClassificationVerdict
from invoice_pipeline.model_inference import InvoiceRecord, LineItem, PackingItem
from invoice_pipeline.output_handler import ExcelExporter, SQLiteDocumentStore
from invoice_pipeline.utils.exceptions import ExcelExportError


def test_export_writes_all_sheets(tmp_path):
    store = SQLiteDocumentStore(tmp_path / "documents.db")
    doc_id, _ = store.add_document("invoice.pdf", b"bytes")
    store.record_classification(doc_id, ClassificationVerdict.text("Invoice No: INV-2026-001"))
    record = InvoiceRecord(
        invoice_no="INV-2026-001",
        total_amount=Decimal("2540.00"),
        line_items=[LineItem(description="ELDEN RING PS5", qty=100, unit_price=Decimal("25.40"), amount=Decimal("2540.00"))],
        packing_items=[PackingItem(carton="1-4", description="ELDEN RING PS5", ctns=4, qty=100)],
    )
    store.record_extraction(doc_id, record, "heuristic")

    path = ExcelExporter().export(store.get_extractions(), filename="out.xlsx", output_dir=str(tmp_path))

    workbook = load_workbook(path)
    assert workbook.sheetnames == ["Extractions", "Line Items", "Packing List"]

    summary = workbook["Extractions"]
    headers = [cell.value for cell in summary[1]]
    row = dict(zip(headers, [cell.value for cell in summary[2]]))
    assert row["Filename"] == "invoice.pdf"
    assert row["Source"] == "heuristic"
    assert row["Invoice No"] == "INV-2026-001"
    assert row["Total Amount"] == 2540.0
    assert row["Coverage"] == "2/10"

    lines = workbook["Line Items"]
    assert lines.cell(row=2, column=4).value == "ELDEN RING PS5"
    assert lines.cell(row=2, column=5).value == 100
    assert workbook["Packing List"].cell(row=2, column=4).value == "1-4"


def test_export_without_results_fails(tmp_path):
    with pytest.raises(ExcelExportError):
        ExcelExporter().export([], output_dir=str(tmp_path))


def test_default_filename():
    name = ExcelExporter().get_default_filename()

    assert name.startswith("invoice_extractions_")
    assert name.endswith(".xlsx")
