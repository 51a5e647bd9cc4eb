import os
import sys
from typing import Dict, List, Optional

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from config import CONFIG_ENV_VAR, ConfigurationManager


INVOICE_TEXT = """SOFT SOURCE PTE LTD
10 UBI CRESCENT SINGAPORE 408564
COMMERCIAL INVOICE
Invoice No: INV-2026-001
Invoice Date: February 16, 2026
For Account & risk of Messers
GAMESTOP TRADING CO., LTD
Shipped per : FEDEX EXPRESS  From : SINGAPORE  To : BANGKOK
Currency: US$
ELDEN RING PS5 ASIA
100 PIECE 25.40 2540.00
TOTAL 2540.00
TOTAL PCS 100
PACKING LIST
CARTON #  PKGS  QTY  N.W.(KG)  G.W.(KG)  MEAS.(CM)
ELDEN RING PS5 ASIA
1-4 4 100 6.25 7.50 59 X 25 X 20 CM
TOTAL 4 100 25.00 30.00
"""


@pytest.fixture(autouse=True)
def fresh_config(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    ConfigurationManager.reset()
    yield
    ConfigurationManager.reset()


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def _stream(header: str, data: bytes) -> bytes:
    return (
        f"<< {header} /Length {len(data)} >>\nstream\n".encode("latin-1")
        + data
        + b"\nendstream"
    )


def build_pdf(pages: List[Dict]) -> bytes:
    """
    Write a minimal PDF.

    Each page dict may hold ``text`` (str, one Tj per line), ``font`` (bool,
    defaults to True when text is given) and ``image`` (bool).
    """
    objects: List[Optional[bytes]] = [None, None]

    def add(body: bytes) -> int:
        objects.append(body)
        return len(objects)

    font_ref = add(b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>")
    image_ref = add(_stream(
        "/Type /XObject /Subtype /Image /Width 1 /Height 1 "
        "/ColorSpace /DeviceGray /BitsPerComponent 8",
        b"\xff",
    ))

    page_refs = []
    for page in pages:
        text = page.get("text")
        has_font = page.get("font", text is not None)
        has_image = page.get("image", False)

        ops = []
        if has_image:
            ops.append("q 100 0 0 100 72 500 cm /Im1 Do Q")
        if text is not None:
            lines = text.splitlines() or [""]
            parts = ["BT /F1 10 Tf 14 TL 40 760 Td"]
            for index, line in enumerate(lines):
                if index:
                    parts.append("T*")
                parts.append(f"({_escape(line)}) Tj")
            parts.append("ET")
            ops.append(" ".join(parts))
        content_ref = add(_stream("", "\n".join(ops).encode("latin-1")))

        resources = []
        if has_font:
            resources.append(f"/Font << /F1 {font_ref} 0 R >>")
        if has_image:
            resources.append(f"/XObject << /Im1 {image_ref} 0 R >>")

        page_refs.append(add(
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
            f"/Resources << {' '.join(resources)} >> /Contents {content_ref} 0 R >>".encode("latin-1")
        ))

    objects[0] = b"<< /Type /Catalog /Pages 2 0 R >>"
    kids = " ".join(f"{ref} 0 R" for ref in page_refs)
    objects[1] = f"<< /Type /Pages /Kids [{kids}] /Count {len(page_refs)} >>".encode("latin-1")

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, 1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode("latin-1") + body + b"\nendobj\n"

    xref_offset = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode("latin-1")
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode("latin-1")
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_offset}\n%%EOF\n"
    ).encode("latin-1")
    return bytes(out)


@pytest.fixture
def invoice_text():
    return INVOICE_TEXT


@pytest.fixture
def text_pdf():
    return build_pdf([{"text": INVOICE_TEXT}])


@pytest.fixture
def scanned_pdf():
    return build_pdf([{"image": True}, {"image": True}])
