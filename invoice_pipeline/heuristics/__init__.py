"""
Heuristic extraction: keyword-anchored regex rules over document text.
"""

from .extractor import HeuristicExtractor, reconcile_line_amount

__all__ = ['HeuristicExtractor', 'reconcile_line_amount']
