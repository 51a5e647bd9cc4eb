"""
Coverage Report Module.

There is no ground truth for the documents this pipeline reads, so the
only fitness signal is coverage: how many of the scalar InvoiceRecord
fields an extractor managed to fill. This module aggregates coverage over
a batch, per field and per extraction source.

Author: ML Engineering Team
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.model_inference.extraction_result import SCALAR_FIELDS, InvoiceRecord

# Initialize module logger
logger = get_logger(__name__)


@dataclass
class FieldCoverage:
    """
    Fill statistics for a single field across records.

    Attributes:
        field_name: Name of the field
        total_samples: Number of records considered
        extracted_count: Number of records where the field was set
    """
    field_name: str
    total_samples: int = 0
    extracted_count: int = 0

    @property
    def fill_rate(self) -> float:
        if self.total_samples == 0:
            return 0.0
        return self.extracted_count / self.total_samples


class CoverageReport:
    """
    Aggregates InvoiceRecord coverage over a batch.

    Example:
        >>> report = CoverageReport()
        >>> report.add(record, source="heuristic")
        >>> report.mean_filled()
        7.0
        >>> print(report.print_report())
    """

    def __init__(self) -> None:
        self._entries: List[Tuple[str, InvoiceRecord]] = []
        self.timestamp = datetime.now().isoformat()

    @classmethod
    def from_extractions(cls, extractions: Iterable[Any]) -> 'CoverageReport':
        """Build a report from stored extraction rows (``source``, ``record``)."""
        report = cls()
        for extraction in extractions:
            report.add(extraction.record, extraction.source)
        return report

    def add(self, record: InvoiceRecord, source: str) -> None:
        self._entries.append((source, record))

    def _records(self, source: Optional[str] = None) -> List[InvoiceRecord]:
        return [record for src, record in self._entries if source is None or src == source]

    @property
    def total_samples(self) -> int:
        return len(self._entries)

    def sources(self) -> List[str]:
        """Extraction sources present in the report, in first-seen order."""
        seen: List[str] = []
        for source, _ in self._entries:
            if source not in seen:
                seen.append(source)
        return seen

    def field_coverage(self, source: Optional[str] = None) -> Dict[str, FieldCoverage]:
        """
        Per-field fill statistics.

        Args:
            source: Restrict to one extraction source. All records if None.

        Returns:
            Dictionary of field name to FieldCoverage, in schema order.
        """
        records = self._records(source)
        coverage = {name: FieldCoverage(field_name=name, total_samples=len(records)) for name in SCALAR_FIELDS}

        for record in records:
            for name in SCALAR_FIELDS:
                if getattr(record, name) is not None:
                    coverage[name].extracted_count += 1

        return coverage

    def mean_filled(self, source: Optional[str] = None) -> float:
        """Average number of filled scalar fields per record."""
        records = self._records(source)
        if not records:
            return 0.0
        return sum(record.coverage()[0] for record in records) / len(records)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        def section(source: Optional[str]) -> Dict[str, Any]:
            return {
                'samples': len(self._records(source)),
                'mean_filled': self.mean_filled(source),
                'fill_rates': {
                    name: fc.fill_rate for name, fc in self.field_coverage(source).items()
                },
            }

        result = {
            'timestamp': self.timestamp,
            'total_fields': len(SCALAR_FIELDS),
            'overall': section(None),
            'by_source': {source: section(source) for source in self.sources()},
        }
        return result

    def print_report(self) -> str:
        """Generate a formatted report string."""
        total_fields = len(SCALAR_FIELDS)
        sources = self.sources()

        lines = [
            "=" * 60,
            "EXTRACTION COVERAGE REPORT",
            "=" * 60,
            f"Timestamp: {self.timestamp}",
            f"Total Extractions: {self.total_samples}",
            f"Mean Coverage: {self.mean_filled():.1f}/{total_fields}",
        ]
        for source in sources:
            lines.append(
                f"  {source}: {len(self._records(source))} extractions, "
                f"mean {self.mean_filled(source):.1f}/{total_fields}"
            )

        lines.extend(["", "-" * 60, "FIELD FILL RATES:", ""])

        per_source = {source: self.field_coverage(source) for source in sources}
        for name, fc in self.field_coverage().items():
            detail = ", ".join(
                f"{source} {per_source[source][name].fill_rate * 100:.0f}%" for source in sources
            )
            line = f"  {name:<16} {fc.fill_rate * 100:5.1f}% ({fc.extracted_count}/{fc.total_samples})"
            if detail:
                line += f"  [{detail}]"
            lines.append(line)

        lines.append("=" * 60)
        return "\n".join(lines)

    def log_summary(self) -> None:
        """Log mean coverage overall and per source."""
        total_fields = len(SCALAR_FIELDS)
        logger.info(
            f"Coverage over {self.total_samples} extractions: "
            f"mean {self.mean_filled():.1f}/{total_fields}"
        )
        for source in self.sources():
            logger.info(
                f"  {source}: {len(self._records(source))} extractions, "
                f"mean {self.mean_filled(source):.1f}/{total_fields}"
            )
