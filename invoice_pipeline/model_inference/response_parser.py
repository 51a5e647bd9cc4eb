"""
Model response repair and parsing.

Models wrap JSON in Markdown fences or prepend reasoning text despite being
told not to. These functions are pure so they can be exercised without any
network code.
"""

from pydantic import ValidationError

from invoice_pipeline.utils.exceptions import SchemaViolationError
from .extraction_result import InvoiceRecord

FENCE = "```"
JSON_FENCE = "```json"


def strip_code_fences(content: str) -> str:
    """Trim whitespace and any leading/trailing Markdown code fence."""
    text = content.strip()
    if text.startswith(JSON_FENCE):
        text = text[len(JSON_FENCE):]
    if text.startswith(FENCE):
        text = text[len(FENCE):]
    if text.endswith(FENCE):
        text = text[:-len(FENCE)]
    return text.strip()


def extract_json_object(content: str) -> str:
    """
    Return the substring from the first '{' to the last '}'.

    Args:
        content: Raw model output.

    Returns:
        The bracketed JSON candidate.

    Raises:
        SchemaViolationError: If no well-ordered brace pair exists.

    Example:
        >>> extract_json_object('thinking...\\n```json\\n{"a":1}\\n```')
        '{"a":1}'
    """
    text = strip_code_fences(content)

    start = text.find("{")
    if start < 0:
        raise SchemaViolationError("No '{' found in model response", raw=content)

    end = text.rfind("}")
    if end < 0:
        raise SchemaViolationError("No '}' found in model response", raw=content)

    if end <= start:
        raise SchemaViolationError("Malformed JSON in model response", raw=content)

    return text[start:end + 1]


def parse_invoice_response(content: str) -> InvoiceRecord:
    """
    Reduce raw model output to an InvoiceRecord.

    Raises:
        SchemaViolationError: With the validation error and the raw JSON
            substring when the object does not fit the schema.
    """
    json_str = extract_json_object(content)
    try:
        return InvoiceRecord.model_validate_json(json_str)
    except ValidationError as e:
        raise SchemaViolationError(str(e), raw=json_str) from e
