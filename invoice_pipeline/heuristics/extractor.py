"""
Heuristic Invoice Extractor Module.

Rebuilds an InvoiceRecord from noisy PDF text with keyword-anchored regular
expressions. It never calls external services and never raises: a rule
that finds nothing leaves its field unset.

The text is read as two sections split at the first "PACKING LIST"
(case-insensitive). Invoice scalars come from anchored patterns; line items
and packing rows are built by zipping independently collected lists by
position, which tolerates column scrambling from PDF-to-text conversion but
misaligns silently when one list over- or under-matches. Mismatched list
lengths are logged.

Author: ML Engineering Team
"""

import re
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.helpers import to_decimal
from invoice_pipeline.model_inference.extraction_result import (
    InvoiceRecord,
    LineItem,
    PackingItem,
    PackingTotals,
)

# Initialize module logger
logger = get_logger(__name__)


DEFAULT_PLATFORM_KEYWORDS = (
    r"PS[45]\s*\w*",
    r"NS\s*\w*",
    r"SWITCH",
    r"XBOX",
    r"PC",
    r"ASI\w*",
)


def reconcile_line_amount(
    qty: int,
    amounts: Sequence[Decimal],
    tolerance: Decimal = Decimal("0.01")
) -> Optional[Tuple[Decimal, Decimal]]:
    """
    Find a (line amount, unit price) pair consistent with ``qty``.

    Searches for two different values where ``amount / qty`` lies within
    ``tolerance`` of ``unit_price``. The first pair in document order wins.

    Args:
        qty: Quantity of the line (must be positive).
        amounts: Every decimal amount found in the invoice section.
        tolerance: Absolute tolerance for the division check.

    Returns:
        Tuple of (amount, unit_price), or None when nothing is consistent.

    Example:
        >>> reconcile_line_amount(100, [Decimal("2540.00"), Decimal("25.40")])
        (Decimal('2540.00'), Decimal('25.40'))
    """
    if qty <= 0:
        return None

    for amount in amounts:
        candidate_unit = amount / qty
        for other in amounts:
            if abs(other - candidate_unit) < tolerance and amount != other:
                return amount, other

    return None


class HeuristicExtractor:
    """
    Regex-based extractor for invoice and packing-list text.

    Attributes:
        packing_marker: Literal that starts the packing section.
        tolerance: Absolute tolerance for line-amount reconciliation.
        platform_keywords: Regex fragments marking product description lines.

    Example:
        >>> extractor = HeuristicExtractor()
        >>> record = extractor.extract("Invoice No: INV-2026-001")
        >>> record.invoice_no
        'INV-2026-001'
    """

    # -------------------------------------------------------------------------
    # Scalar field patterns
    # -------------------------------------------------------------------------
    INVOICE_NO_RE = re.compile(r"Invoice\s+No\.?\s*:?\s*([A-Za-z0-9\-/]+)", re.IGNORECASE)
    INVOICE_DATE_RE = re.compile(
        r"Invoice\s+Date\s*:?\s*([A-Za-z]+\s+\d{1,2},?\s+\d{4}|\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})",
        re.IGNORECASE
    )
    CURRENCY_RE = re.compile(r"(?<![A-Za-z])(US\$|USD|SGD|EUR|GBP|THB|JPY)(?![A-Za-z])", re.IGNORECASE)
    TOTAL_AMOUNT_RE = re.compile(r"TOTAL\s+(\d[\d,]*\.?\d*)", re.IGNORECASE)
    TOTAL_PIECES_RE = re.compile(r"TOTAL\s+PCS\s+(\d+)", re.IGNORECASE)
    BUYER_RE = re.compile(r"(?:For\s+)?Account\s*&?\s*risk\s+of\s+Messers?\s*\n\s*(.+)", re.IGNORECASE)
    SHIP_FROM_RE = re.compile(r"From\s*:\s*([A-Za-z\s]+?)(?:\s{2,}|To\s*:|\n)", re.IGNORECASE)
    SHIP_TO_RE = re.compile(r"To\s*:\s*([A-Za-z\s]+?)(?:\s{2,}|\n)", re.IGNORECASE)
    SHIPPING_METHOD_RE = re.compile(r"Shipped\s+per\s*:\s*(.+?)(?:\s{2,}|From\s*:|\n)", re.IGNORECASE)
    COMPANY_RE = re.compile(
        r"([A-Z][A-Z\.\s&]+(?:PTE\.?\s*LTD\.?|CO\.?,?\s*LTD\.?|CORPORATION|CORP\.?|INC\.?))",
        re.IGNORECASE
    )

    # -------------------------------------------------------------------------
    # Table patterns
    # -------------------------------------------------------------------------
    QTY_RE = re.compile(r"\b(\d{1,6})\s+PIECE")
    AMOUNT_RE = re.compile(r"(\d[\d,]*\.\d{2})")
    MEASUREMENT_RE = re.compile(r"(\d+\s*X\s*\d+\s*X\s*\d+\s*CM)")
    PACKING_ROW_RE = re.compile(r"(\d+(?:\s*-\s*\d+)?)\s+(\d+)\s+(\d+)\s+([\d.]+)\s+([\d.]+)")
    PACKING_TOTALS_RE = re.compile(r"TOTAL\s+(\d+)\s+(\d+)\s+([\d.]+)\s+([\d.]+)", re.IGNORECASE)
    CARTON_HEADER_RE = re.compile(r"CARTON", re.IGNORECASE)

    def __init__(
        self,
        platform_keywords: Optional[Sequence[str]] = None,
        tolerance: Optional[float] = None,
        packing_marker: Optional[str] = None
    ) -> None:
        """
        Initialize the extractor.

        Args:
            platform_keywords: Override for ``heuristics.platform_keywords``.
            tolerance: Override for ``heuristics.reconciliation_tolerance``.
            packing_marker: Override for ``heuristics.packing_marker``.
        """
        if platform_keywords is None:
            platform_keywords = get_config(
                "heuristics.platform_keywords", list(DEFAULT_PLATFORM_KEYWORDS)
            )
        if tolerance is None:
            tolerance = get_config("heuristics.reconciliation_tolerance", 0.01)
        if packing_marker is None:
            packing_marker = get_config("heuristics.packing_marker", "PACKING LIST")

        self.platform_keywords = list(platform_keywords)
        self.tolerance = Decimal(str(tolerance))
        self.packing_marker = packing_marker

        self._marker_re = re.compile(re.escape(packing_marker), re.IGNORECASE)
        self._description_re = re.compile(
            r"([A-Z][A-Z0-9\s\-:&']+(?:" + "|".join(self.platform_keywords) + r")\b)",
            re.IGNORECASE
        )

    def extract(self, text: str) -> InvoiceRecord:
        """
        Extract every field the patterns can find.

        Args:
            text: Raw document text.

        Returns:
            InvoiceRecord; fields without a match are None or empty.
        """
        text = text or ""
        invoice_section, packing_section = self.split_sections(text)
        buyer = self._extract_buyer(text)

        record = InvoiceRecord(
            vendor=self._extract_vendor(text, buyer),
            buyer=buyer,
            invoice_no=self._first_group(self.INVOICE_NO_RE, text),
            invoice_date=self._first_group(self.INVOICE_DATE_RE, text),
            currency=self._extract_currency(text),
            total_amount=self._extract_total_amount(invoice_section),
            total_pieces=self._extract_total_pieces(text),
            ship_from=self._upper(self._first_group(self.SHIP_FROM_RE, text)),
            ship_to=self._upper(self._first_group(self.SHIP_TO_RE, text)),
            shipping_method=self._first_group(self.SHIPPING_METHOD_RE, text),
            line_items=self._extract_line_items(invoice_section),
            packing_items=self._extract_packing_items(packing_section),
            packing_totals=self._extract_packing_totals(packing_section),
        )

        filled, total = record.coverage()
        logger.debug(f"Heuristic extraction complete: {filled}/{total} fields")
        return record

    def split_sections(self, text: str) -> Tuple[str, str]:
        """
        Split text at the packing-list marker.

        Returns:
            Tuple of (invoice_section, packing_section). The packing section
            starts at the marker and is empty when there is none.
        """
        match = self._marker_re.search(text)
        if match is None:
            return text, ""
        return text[:match.start()], text[match.start():]

    # -------------------------------------------------------------------------
    # Scalar fields
    # -------------------------------------------------------------------------

    @staticmethod
    def _first_group(pattern: re.Pattern, text: str) -> Optional[str]:
        match = pattern.search(text)
        if match is None:
            return None
        return match.group(1).strip() or None

    @staticmethod
    def _upper(value: Optional[str]) -> Optional[str]:
        return value.upper() if value else None

    def _extract_currency(self, text: str) -> Optional[str]:
        raw = self._first_group(self.CURRENCY_RE, text)
        if raw is None:
            return None
        raw = raw.upper()
        return "USD" if raw == "US$" else raw

    def _extract_total_amount(self, invoice_section: str) -> Optional[Decimal]:
        # Grand totals come last; earlier matches are sub-totals
        last = None
        for match in self.TOTAL_AMOUNT_RE.finditer(invoice_section):
            value = to_decimal(match.group(1))
            if value is not None:
                last = value
        return last

    def _extract_total_pieces(self, text: str) -> Optional[int]:
        match = self.TOTAL_PIECES_RE.search(text)
        return int(match.group(1)) if match else None

    def _extract_buyer(self, text: str) -> Optional[str]:
        return self._first_group(self.BUYER_RE, text)

    def extract_company_names(self, text: str) -> List[str]:
        """Company-like names (X PTE LTD, X CO., LTD, X CORP, ...) in order."""
        return [m.group(1).strip() for m in self.COMPANY_RE.finditer(text)]

    def _extract_vendor(self, text: str, buyer: Optional[str]) -> Optional[str]:
        """The first company whose name does not contain the buyer."""
        companies = self.extract_company_names(text)
        if buyer is None:
            return companies[0] if companies else None

        buyer_upper = buyer.upper()
        for company in companies:
            if buyer_upper not in company.upper():
                return company
        return None

    # -------------------------------------------------------------------------
    # Line items
    # -------------------------------------------------------------------------

    def _descriptions(self, section: str) -> List[str]:
        return [m.group(1).strip() for m in self._description_re.finditer(section)]

    def _extract_line_items(self, invoice_section: str) -> List[LineItem]:
        descriptions = self._descriptions(invoice_section)
        quantities = [int(m.group(1)) for m in self.QTY_RE.finditer(invoice_section)]
        amounts = [
            value for value in (to_decimal(m.group(1)) for m in self.AMOUNT_RE.finditer(invoice_section))
            if value is not None
        ]

        if descriptions and len(descriptions) != len(quantities):
            logger.warning(
                f"Line item lists disagree: {len(descriptions)} descriptions, "
                f"{len(quantities)} quantities; items are aligned by position"
            )

        items = []
        for index, description in enumerate(descriptions):
            qty = quantities[index] if index < len(quantities) else 0
            item = LineItem(description=description, qty=qty)

            match = reconcile_line_amount(qty, amounts, self.tolerance)
            if match is not None:
                item.amount, item.unit_price = match

            logger.debug(
                f"Line item {index}: {item.description!r} qty={item.qty} "
                f"unit_price={item.unit_price} amount={item.amount}"
            )
            items.append(item)

        return items

    # -------------------------------------------------------------------------
    # Packing list
    # -------------------------------------------------------------------------

    def _extract_packing_items(self, packing_section: str) -> List[PackingItem]:
        if not packing_section:
            return []

        descriptions = self._descriptions(packing_section)
        measurements = [m.group(1).strip() for m in self.MEASUREMENT_RE.finditer(packing_section)]

        header = self.CARTON_HEADER_RE.search(packing_section)
        data_section = packing_section[header.start():] if header else packing_section
        rows = list(self.PACKING_ROW_RE.finditer(data_section))

        if rows and (len(descriptions) != len(rows) or len(measurements) != len(rows)):
            logger.warning(
                f"Packing lists disagree: {len(rows)} rows, {len(descriptions)} descriptions, "
                f"{len(measurements)} measurements; rows are aligned by position"
            )

        items = []
        for index, row in enumerate(rows):
            item = PackingItem(
                carton=row.group(1).strip(),
                description=descriptions[index] if index < len(descriptions) else "",
                ctns=int(row.group(2)),
                qty=int(row.group(3)),
                net_wt_per_ctn=to_decimal(row.group(4)) or Decimal("0"),
                gross_wt_per_ctn=to_decimal(row.group(5)) or Decimal("0"),
                measurement=measurements[index] if index < len(measurements) else "",
            )
            logger.debug(
                f"Packing item {index}: carton={item.carton} {item.description!r} "
                f"ctns={item.ctns} qty={item.qty} net={item.net_wt_per_ctn} "
                f"gross={item.gross_wt_per_ctn} meas={item.measurement!r}"
            )
            items.append(item)

        return items

    def _extract_packing_totals(self, packing_section: str) -> Optional[PackingTotals]:
        match = self.PACKING_TOTALS_RE.search(packing_section)
        if match is None:
            return None

        return PackingTotals(
            total_cartons=int(match.group(1)),
            total_qty=int(match.group(2)),
            total_net_wt=to_decimal(match.group(3)) or Decimal("0"),
            total_gross_wt=to_decimal(match.group(4)) or Decimal("0"),
        )
