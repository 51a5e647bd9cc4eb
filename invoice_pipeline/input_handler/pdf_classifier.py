"""
PDF Classifier Module.

This module decides whether a PDF carries usable text or is effectively a
scanned image. It uses a two-phase policy, cheapest first:

    1. Structural phase (pdfminer.six object graph): a page whose resource
       dictionary references images but no fonts is "image-only". When the
       share of image-only pages reaches ``scanned_page_ratio`` the document
       is reported as scanned without running text extraction.
    2. Textual phase (pdfplumber): full text extraction. Failure or fewer
       than ``min_text_chars`` non-whitespace characters means scanned.

Malformed containers yield an ``error`` verdict; classify() never raises.

Author: ML Engineering Team
"""

import io
from typing import Any, List, Optional, Tuple

import pdfplumber
from pdfminer.pdfdocument import PDFDocument
from pdfminer.pdfpage import PDFPage
from pdfminer.pdfparser import PDFParser
from pdfminer.pdftypes import PDFStream, resolve1
from pdfminer.psparser import PSLiteral

from config import get_config
from invoice_pipeline.utils.logger import get_logger
from invoice_pipeline.utils.exceptions import StructuralParseError
from .verdict import ClassificationVerdict

# Initialize module logger
logger = get_logger(__name__)


def _literal_name(obj: Any) -> Optional[str]:
    """Return the name of a PDF name object such as ``/Image``."""
    obj = resolve1(obj)
    if isinstance(obj, PSLiteral):
        name = obj.name
        return name.decode('latin-1') if isinstance(name, bytes) else name
    return None


def inspect_resources(resources: Any) -> Tuple[bool, bool]:
    """
    Walk a page's resource dictionary and any nested form XObjects.

    The walk uses an explicit stack and remembers visited dictionaries, so
    deeply nested or self-referencing resources cannot exhaust the
    interpreter stack.

    Args:
        resources: The page ``/Resources`` entry (possibly a reference).

    Returns:
        Tuple of (has_fonts, has_images).
    """
    has_fonts = False
    has_images = False

    stack: List[Any] = [resources]
    visited = set()

    while stack:
        current = resolve1(stack.pop())
        if not isinstance(current, dict) or id(current) in visited:
            continue
        visited.add(id(current))

        fonts = resolve1(current.get('Font'))
        if isinstance(fonts, dict) and fonts:
            has_fonts = True

        xobjects = resolve1(current.get('XObject'))
        if not isinstance(xobjects, dict):
            continue

        for ref in xobjects.values():
            xobject = resolve1(ref)
            if not isinstance(xobject, PDFStream):
                continue

            subtype = _literal_name(xobject.get('Subtype'))
            if subtype == 'Image':
                has_images = True
            elif subtype == 'Form' and xobject.get('Resources') is not None:
                stack.append(xobject.get('Resources'))

    return has_fonts, has_images


class DocumentClassifier:
    """
    Classifier for raw PDF bytes.

    Attributes:
        scanned_page_ratio: Share of image-only pages at which the document
            is treated as a scan without attempting text extraction.
        min_text_chars: Minimum non-whitespace characters for a text verdict.

    Example:
        >>> classifier = DocumentClassifier()
        >>> verdict = classifier.classify(pdf_bytes)
        >>> if verdict.is_text:
        ...     print(verdict.content[:80])
    """

    DEFAULT_SCANNED_PAGE_RATIO = 0.80
    DEFAULT_MIN_TEXT_CHARS = 30

    def __init__(
        self,
        scanned_page_ratio: Optional[float] = None,
        min_text_chars: Optional[int] = None
    ) -> None:
        """
        Initialize the classifier.

        Args:
            scanned_page_ratio: Override for ``classifier.scanned_page_ratio``.
            min_text_chars: Override for ``classifier.min_text_chars``.
        """
        if scanned_page_ratio is None:
            scanned_page_ratio = get_config(
                "classifier.scanned_page_ratio", self.DEFAULT_SCANNED_PAGE_RATIO
            )
        if min_text_chars is None:
            min_text_chars = get_config(
                "classifier.min_text_chars", self.DEFAULT_MIN_TEXT_CHARS
            )

        self.scanned_page_ratio = float(scanned_page_ratio)
        self.min_text_chars = int(min_text_chars)

        logger.debug(
            f"DocumentClassifier initialized (ratio={self.scanned_page_ratio}, "
            f"min_chars={self.min_text_chars})"
        )

    def classify(self, data: bytes) -> ClassificationVerdict:
        """
        Classify a document as text, scanned or malformed.

        Args:
            data: Raw PDF bytes.

        Returns:
            ClassificationVerdict. Deterministic for identical bytes.
        """
        try:
            pages = self._load_pages(data)
        except StructuralParseError as e:
            logger.warning(str(e))
            return ClassificationVerdict.error(e.details["reason"])

        if self.looks_scanned(pages):
            logger.info("PDF structural check: likely scanned / image-only")
            return ClassificationVerdict.scanned()

        try:
            text = self._extract_text(data)
        except Exception as e:
            logger.warning(f"Text extraction failed, may be scanned or corrupted: {e}")
            return ClassificationVerdict.scanned()

        meaningful = len(''.join(text.split()))
        if meaningful < self.min_text_chars:
            logger.info(f"Extracted text too short ({meaningful} chars), treating as scanned")
            return ClassificationVerdict.scanned()

        logger.info(f"Text extracted successfully ({meaningful} chars)")
        return ClassificationVerdict.text(text)

    def _load_pages(self, data: bytes) -> List[PDFPage]:
        """
        Parse the object graph and collect the page objects.

        Raises:
            StructuralParseError: If the bytes are not a readable PDF.
        """
        try:
            parser = PDFParser(io.BytesIO(data))
            document = PDFDocument(parser)
            return list(PDFPage.create_pages(document))
        except Exception as e:
            raise StructuralParseError(f"{type(e).__name__}: {e}")

    def looks_scanned(self, pages: List[PDFPage]) -> bool:
        """
        Decide from page resources alone whether the document is a scan.

        A document without pages is inconclusive and returns False so the
        textual phase still gets a chance.

        Args:
            pages: Parsed pdfminer pages.

        Returns:
            True if the image-only page ratio reaches the threshold.
        """
        if not pages:
            return False

        image_only_pages = 0

        for page in pages:
            try:
                has_fonts, has_images = inspect_resources(page.resources)
            except Exception as e:
                logger.debug(f"Skipping unreadable page resources: {e}")
                continue

            if has_images and not has_fonts:
                image_only_pages += 1

        total = len(pages)
        ratio = image_only_pages / total
        logger.info(
            f"Scanned-page analysis: total_pages={total}, "
            f"image_only={image_only_pages}, ratio={ratio:.2f}"
        )

        return ratio >= self.scanned_page_ratio

    @staticmethod
    def _extract_text(data: bytes) -> str:
        """Extract the text of every page with pdfplumber."""
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            return '\n'.join(page.extract_text() or '' for page in pdf.pages)
