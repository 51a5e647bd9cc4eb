"""
Invoice Record Data Model.

This module defines the canonical structured output of the pipeline. Both
extractors (heuristic and model-backed) produce the same InvoiceRecord, and
the same pydantic schema is used to validate model responses.

Author: ML Engineering Team
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, field_validator


# Scalar fields that make up the coverage metric, in schema order
SCALAR_FIELDS: Tuple[str, ...] = (
    'vendor',
    'buyer',
    'invoice_no',
    'invoice_date',
    'currency',
    'total_amount',
    'total_pieces',
    'ship_from',
    'ship_to',
    'shipping_method',
)


class LineItem(BaseModel):
    """A single invoice line."""

    description: str = ""
    qty: int = 0
    unit_price: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")


class PackingItem(BaseModel):
    """A single row from the packing list."""

    carton: str = ""
    description: str = ""
    ctns: int = 0
    qty: int = 0
    net_wt_per_ctn: Decimal = Decimal("0")
    gross_wt_per_ctn: Decimal = Decimal("0")
    measurement: str = ""


class PackingTotals(BaseModel):
    """Totals row of the packing list."""

    total_cartons: int = 0
    total_qty: int = 0
    total_net_wt: Decimal = Decimal("0")
    total_gross_wt: Decimal = Decimal("0")


class InvoiceRecord(BaseModel):
    """
    Structured data extracted from an invoice / packing list PDF.

    Every scalar field is optional; an unmatched field stays None. The
    record is independent of which extractor produced it.

    Example:
        >>> record = InvoiceRecord(invoice_no="INV-2026-001", currency="USD")
        >>> record.coverage()
        (2, 10)
    """

    vendor: Optional[str] = None
    buyer: Optional[str] = None
    invoice_no: Optional[str] = None
    invoice_date: Optional[str] = None
    currency: Optional[str] = None
    total_amount: Optional[Decimal] = None
    total_pieces: Optional[int] = None
    ship_from: Optional[str] = None
    ship_to: Optional[str] = None
    shipping_method: Optional[str] = None
    line_items: List[LineItem] = []
    packing_items: List[PackingItem] = []
    packing_totals: Optional[PackingTotals] = None

    @field_validator('line_items', 'packing_items', mode='before')
    @classmethod
    def _null_list_is_empty(cls, value: Any) -> Any:
        # Models frequently answer "line_items": null for documents without a table
        return [] if value is None else value

    def coverage(self) -> Tuple[int, int]:
        """
        How many scalar fields were extracted, out of the scalar total.

        Returns:
            Tuple of (filled, total).
        """
        filled = sum(1 for name in SCALAR_FIELDS if getattr(self, name) is not None)
        return filled, len(SCALAR_FIELDS)

    @property
    def missing_fields(self) -> List[str]:
        """Scalar fields that were not extracted."""
        return [name for name in SCALAR_FIELDS if getattr(self, name) is None]

    def to_flat_dict(self) -> Dict[str, Any]:
        """
        Scalar fields plus item counts, suitable for one spreadsheet row.

        Returns:
            Flat dictionary with no nested structures.
        """
        filled, total = self.coverage()
        row: Dict[str, Any] = {name: getattr(self, name) for name in SCALAR_FIELDS}
        row['line_item_count'] = len(self.line_items)
        row['packing_item_count'] = len(self.packing_items)
        row['coverage'] = f"{filled}/{total}"
        return row

    def to_json(self, indent: int = 2) -> str:
        """Serialize to pretty JSON."""
        return self.model_dump_json(indent=indent)

    def __repr__(self) -> str:
        filled, total = self.coverage()
        return (
            f"InvoiceRecord("
            f"invoice={self.invoice_no}, "
            f"vendor={self.vendor}, "
            f"total={self.total_amount}, "
            f"coverage={filled}/{total})"
        )
