"""
LLM Invoice Extractor Module.

This module provides the LlmExtractor class that sends document text to an
OpenAI-compatible chat completion endpoint and parses the structured
InvoiceRecord out of the reply.

Approach:
    One request per document. A fixed system prompt spells out the JSON
    schema field by field; the document text (truncated) goes in a single
    user message; temperature is 0. There is no multi-turn repair and no
    retry: any failure is raised as a typed ModelError and the caller
    decides what to fall back to.

Supported Backends:
    - Ollama (local, health-checked before use)
    - CLIProxyAPI (local)
    - Any hosted OpenAI-compatible API

Author: ML Engineering Team
"""

import time
from typing import Any, Dict, Optional

import requests

from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import (
    EmptyModelOutputError,
    EndpointUnreachableError,
    ModelRequestError,
    SchemaViolationError,
    UpstreamStatusError,
)
from .endpoint import LlmSettings, ResolvedEndpoint, resolve_endpoint
from .extraction_result import InvoiceRecord
from .response_parser import parse_invoice_response

# Initialize module logger
logger = get_logger(__name__)


SYSTEM_PROMPT = """You are an invoice data extraction assistant.
Given raw text extracted from a PDF invoice, extract structured data and return ONLY valid JSON.

The JSON must match this schema exactly:
{
  "vendor": "string or null",
  "buyer": "string or null",
  "invoice_no": "string or null",
  "invoice_date": "string or null",
  "currency": "string or null (e.g. USD, SGD)",
  "total_amount": number or null,
  "total_pieces": integer or null,
  "ship_from": "string or null",
  "ship_to": "string or null",
  "shipping_method": "string or null",
  "line_items": [
    {
      "description": "string",
      "qty": integer,
      "unit_price": number,
      "amount": number
    }
  ],
  "packing_items": [
    {
      "carton": "string",
      "description": "string",
      "ctns": integer,
      "qty": integer,
      "net_wt_per_ctn": number,
      "gross_wt_per_ctn": number,
      "measurement": "string"
    }
  ],
  "packing_totals": {
    "total_cartons": integer,
    "total_qty": integer,
    "total_net_wt": number,
    "total_gross_wt": number
  } or null
}

Notes:
- The text may be garbled due to PDF column extraction issues. Do your best to reconstruct the data.
- Use null for fields you cannot determine.
- Return ONLY the JSON object, no markdown fences, no commentary."""

USER_PROMPT_TEMPLATE = "Extract invoice data from the following PDF text:\n\n{text}"


class LlmExtractor:
    """
    Model-backed invoice extractor.

    The extractor can only be built around a ResolvedEndpoint, so the
    ``heuristics`` backend never reaches this class.

    Attributes:
        endpoint: Resolved model endpoint.
        session: Reusable HTTP session (one per batch).
        timeout: Completion request timeout in seconds.
        health_timeout: Health check timeout in seconds.
        max_input_chars: Document text is truncated to this length.

    Example:
        >>> extractor = LlmExtractor.from_settings(LlmSettings.from_config())
        >>> extractor.ensure_available()
        >>> record = extractor.extract(text)
        >>> print(record.coverage())
    """

    TEMPERATURE = 0.0
    DEFAULT_TIMEOUT = 60.0
    DEFAULT_HEALTH_TIMEOUT = 3.0
    DEFAULT_MAX_INPUT_CHARS = 12000

    def __init__(
        self,
        endpoint: ResolvedEndpoint,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        health_timeout: float = DEFAULT_HEALTH_TIMEOUT,
        max_input_chars: int = DEFAULT_MAX_INPUT_CHARS
    ) -> None:
        """
        Initialize the extractor.

        Args:
            endpoint: Endpoint returned by resolve_endpoint().
            session: HTTP session to reuse. A new one is created if None.
            timeout: Completion request timeout in seconds.
            health_timeout: Health check timeout in seconds.
            max_input_chars: Truncation limit for document text.
        """
        self.endpoint = endpoint
        self.session = session or requests.Session()
        self.timeout = timeout
        self.health_timeout = health_timeout
        self.max_input_chars = max_input_chars

        logger.info(f"LlmExtractor initialized with model: {endpoint.model}")

    @classmethod
    def from_settings(
        cls,
        settings: LlmSettings,
        session: Optional[requests.Session] = None
    ) -> 'LlmExtractor':
        """
        Resolve the configured backend and build an extractor for it.

        Raises:
            UnsupportedBackendError: If the backend is ``heuristics``.
            MissingCredentialError: If the remote API key is not set.
        """
        return cls(
            resolve_endpoint(settings),
            session=session,
            timeout=settings.request_timeout,
            health_timeout=settings.health_timeout,
            max_input_chars=settings.max_input_chars,
        )

    @property
    def model_name(self) -> str:
        return self.endpoint.model

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    def check_health(self) -> bool:
        """
        Probe the server root.

        Returns:
            True if the server answered with a 2xx status.
        """
        url = self.endpoint.health_url
        try:
            response = self.session.get(url, timeout=self.health_timeout)
        except requests.RequestException as e:
            logger.warning(f"Model server not reachable at {url}: {e}")
            return False

        if 200 <= response.status_code < 300:
            logger.info(f"Model server is reachable at {url}")
            return True

        logger.warning(f"Model server at {url} returned non-OK status {response.status_code}")
        return False

    def ensure_available(self) -> None:
        """
        Run the health check for backends that need one.

        Raises:
            EndpointUnreachableError: If a local Ollama server is not running.
        """
        if not self.endpoint.requires_health_check:
            return

        if not self.check_health():
            raise EndpointUnreachableError(
                self.endpoint.base_url,
                "Start it with: ollama serve"
            )

    # -------------------------------------------------------------------------
    # Extraction
    # -------------------------------------------------------------------------

    def build_request(self, text: str) -> Dict[str, Any]:
        """
        Build the chat completion body for one document.

        Args:
            text: Document text; truncated to ``max_input_chars``.

        Returns:
            JSON-serializable request body.
        """
        if len(text) > self.max_input_chars:
            logger.debug(f"Truncating document text from {len(text)} to {self.max_input_chars} chars")
            text = text[:self.max_input_chars]

        return {
            "model": self.endpoint.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": USER_PROMPT_TEMPLATE.format(text=text)},
            ],
            "temperature": self.TEMPERATURE,
        }

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.endpoint.api_key}",
        }

    def extract(self, text: str) -> InvoiceRecord:
        """
        Extract an InvoiceRecord from document text.

        Args:
            text: Document text.

        Returns:
            Parsed InvoiceRecord.

        Raises:
            ModelRequestError: On transport failure or timeout.
            UpstreamStatusError: On a non-2xx response.
            EmptyModelOutputError: If the reply holds no content.
            SchemaViolationError: If the content does not fit the schema.
        """
        url = self.endpoint.completions_url
        payload = self.build_request(text)
        start_time = time.time()

        try:
            response = self.session.post(
                url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ModelRequestError(url, str(e)) from e

        if not 200 <= response.status_code < 300:
            raise UpstreamStatusError(response.status_code, response.text)

        try:
            envelope = response.json()
        except ValueError as e:
            raise SchemaViolationError(f"Response is not a chat completion: {e}", raw=response.text) from e

        content = self._message_content(envelope)
        record = parse_invoice_response(content)

        filled, total = record.coverage()
        elapsed = time.time() - start_time
        logger.info(
            f"LLM extraction result: {filled}/{total} fields, "
            f"invoice_no={record.invoice_no}, line_items={len(record.line_items)} "
            f"({elapsed:.2f}s)"
        )
        return record

    @staticmethod
    def _message_content(envelope: Any) -> str:
        """Content of the first choice of a chat completion envelope."""
        choices = envelope.get("choices") if isinstance(envelope, dict) else None
        if not isinstance(choices, list) or not choices:
            raise EmptyModelOutputError()

        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise EmptyModelOutputError()

        return content

    def close(self) -> None:
        """Release the HTTP session."""
        self.session.close()
