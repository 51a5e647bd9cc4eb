"""
Evaluation Module for the Invoice Pipeline.

Coverage is the only fitness signal available without ground truth.
"""

from .coverage import CoverageReport, FieldCoverage

__all__ = ['CoverageReport', 'FieldCoverage']
