"""
Invoice Pipeline.

Classifies PDF attachments as text or scanned and extracts structured
invoice and packing-list data from the text ones, with an LLM backend and
a regex fallback.

Author: ML Engineering Team
"""

__version__ = "1.0.0"
