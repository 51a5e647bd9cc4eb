"""
Helper Utilities Module.

Small generic helpers shared across the pipeline.

Functions:
    - ensure_directory: Create directory if it doesn't exist
    - generate_timestamp: Generate formatted timestamps
    - content_hash: Stable fingerprint of document bytes
    - to_decimal: Lenient numeric-token to Decimal conversion
"""

import hashlib
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional, Union


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists.

    Returns:
        Path object pointing to the directory.

    Example:
        >>> ensure_directory("outputs/reports")
        PosixPath('outputs/reports')
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def generate_timestamp(format_str: str = "%Y%m%d_%H%M%S") -> str:
    """
    Generate a formatted timestamp string.

    Args:
        format_str: strftime format string.

    Returns:
        Formatted timestamp string.

    Example:
        >>> generate_timestamp()
        "20260121_143052"
    """
    return datetime.now().strftime(format_str)


def content_hash(data: bytes) -> str:
    """Return the SHA-256 hex digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


def to_decimal(token: Optional[str]) -> Optional[Decimal]:
    """
    Convert a numeric token such as ``"2,540.00"`` to a Decimal.

    Thousands separators are dropped. Returns None for tokens that are not
    numbers (e.g. ``"1.2.3"``).

    Example:
        >>> to_decimal("2,540.00")
        Decimal('2540.00')
    """
    if not token:
        return None
    try:
        value = Decimal(token.replace(',', ''))
    except InvalidOperation:
        return None
    return value if value.is_finite() else None
