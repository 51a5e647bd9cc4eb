from pdfminer.pdftypes import PDFStream
from pdfminer.psparser import LIT

from conftest import build_pdf
from invoice_pipeline.input_handler import ClassificationVerdict, DocumentClassifier, VerdictKind
from invoice_pipeline.input_handler.pdf_classifier import inspect_resources


def test_text_pdf_is_classified_as_text(text_pdf):
    verdict = DocumentClassifier().classify(text_pdf)

    assert verdict.is_text
    assert "INV-2026-001" in verdict.content


def test_classification_is_deterministic(text_pdf, scanned_pdf):
    classifier = DocumentClassifier()

    assert classifier.classify(text_pdf) == classifier.classify(text_pdf)
    assert classifier.classify(scanned_pdf) == classifier.classify(scanned_pdf)


def test_garbage_bytes_yield_error_verdict():
    classifier = DocumentClassifier()

    for data in (b"", b"not a pdf at all", b"%PDF-1.4\n\x00\x01garbage"):
        verdict = classifier.classify(data)
        assert verdict.kind is VerdictKind.ERROR
        assert verdict.reason


def test_mostly_image_pages_short_circuit_to_scanned():
    pages = [{"image": True} for _ in range(9)] + [{"text": "Invoice No: INV-2026-001 " * 3}]
    classifier = DocumentClassifier()

    verdict = classifier.classify(build_pdf(pages))

    assert verdict.is_scanned
    assert verdict == ClassificationVerdict.scanned()


def test_ratio_below_threshold_falls_through_to_text_phase():
    pages = [{"image": True}] + [{"text": "Invoice No: INV-2026-001 TOTAL 2540.00"} for _ in range(3)]

    verdict = DocumentClassifier().classify(build_pdf(pages))

    assert verdict.is_text


def test_threshold_is_configurable():
    pages = [{"image": True} for _ in range(7)] + [{"text": "Invoice No: INV-2026-001 TOTAL 2540.00"} for _ in range(3)]
    data = build_pdf(pages)

    assert DocumentClassifier(scanned_page_ratio=0.7).classify(data).is_scanned
    assert DocumentClassifier(scanned_page_ratio=0.8).classify(data).is_text


def test_short_text_is_treated_as_scanned():
    verdict = DocumentClassifier().classify(build_pdf([{"text": "Page 1"}]))

    assert verdict.is_scanned


def test_min_text_chars_is_configurable():
    data = build_pdf([{"text": "Page 1"}])

    assert DocumentClassifier(min_text_chars=5).classify(data).is_text


def test_zero_page_document_is_inconclusive_then_scanned():
    verdict = DocumentClassifier().classify(build_pdf([]))

    assert verdict.is_scanned


def test_page_with_image_and_font_is_not_image_only():
    pages = [{"image": True, "text": "Invoice No: INV-2026-001 TOTAL 2540.00"} for _ in range(2)]

    verdict = DocumentClassifier().classify(build_pdf(pages))

    assert verdict.is_text


def test_inspect_resources_finds_images_in_nested_forms():
    image = PDFStream({"Subtype": LIT("Image")}, b"")
    inner = {"XObject": {"Im1": image}}
    form = PDFStream({"Subtype": LIT("Form"), "Resources": inner}, b"")
    # self reference must not loop
    inner["XObject"]["Fm1"] = form

    assert inspect_resources({"XObject": {"Fm1": form}}) == (False, True)


def test_inspect_resources_handles_deep_nesting():
    resources = {"XObject": {"Im1": PDFStream({"Subtype": LIT("Image")}, b"")}}
    for _ in range(5000):
        form = PDFStream({"Subtype": LIT("Form"), "Resources": resources}, b"")
        resources = {"XObject": {"Fm": form}}

    assert inspect_resources(resources) == (False, True)


def test_inspect_resources_reports_fonts():
    resources = {"Font": {"F1": {"Type": LIT("Font")}}}

    assert inspect_resources(resources) == (True, False)
