from decimal import Decimal

from invoice_pipeline.heuristics import HeuristicExtractor, reconcile_line_amount


def test_empty_text_yields_empty_record():
    record = HeuristicExtractor().extract("")

    assert record.coverage() == (0, 10)
    assert record.line_items == []
    assert record.packing_items == []
    assert record.packing_totals is None


def test_invoice_number():
    record = HeuristicExtractor().extract("Invoice No: INV-2026-001")

    assert record.invoice_no == "INV-2026-001"


def test_total_amount_and_packing_totals_respect_sections():
    text = "TOTAL 2540.00\nPACKING LIST\nTOTAL 10 100 25.0 30.0"

    record = HeuristicExtractor().extract(text)

    assert record.total_amount == Decimal("2540.00")
    assert record.packing_totals.total_cartons == 10
    assert record.packing_totals.total_qty == 100
    assert record.packing_totals.total_net_wt == Decimal("25.0")
    assert record.packing_totals.total_gross_wt == Decimal("30.0")


def test_last_total_in_invoice_section_wins():
    text = "TOTAL 100.00\nTOTAL 2,540.00\nPACKING LIST\nTOTAL 9999.00"

    assert HeuristicExtractor().extract(text).total_amount == Decimal("2540.00")


def test_currency_normalization():
    extractor = HeuristicExtractor()

    assert extractor.extract("Amount: US$ 2,540.00").currency == "USD"
    assert extractor.extract("Currency SGD").currency == "SGD"
    assert extractor.extract("amateur pricing").currency is None


def test_dates_in_long_and_slashed_form():
    extractor = HeuristicExtractor()

    assert extractor.extract("Invoice Date: February 16, 2026").invoice_date == "February 16, 2026"
    assert extractor.extract("Invoice Date: 16/02/2026").invoice_date == "16/02/2026"


def test_vendor_is_the_company_that_is_not_the_buyer():
    text = (
        "For Account & risk of Messers\n"
        "ACME CO., LTD\n"
        "SOLD BY: SOFT SOURCE PTE LTD\n"
    )

    record = HeuristicExtractor().extract(text)

    assert record.buyer == "ACME CO., LTD"
    assert record.vendor == "SOFT SOURCE PTE LTD"


def test_vendor_is_unset_when_every_company_is_the_buyer():
    text = "For Account & risk of Messers\nACME CO., LTD\n"

    assert HeuristicExtractor().extract(text).vendor is None


def test_full_document(invoice_text):
    record = HeuristicExtractor().extract(invoice_text)

    assert record.vendor == "SOFT SOURCE PTE LTD"
    assert record.buyer == "GAMESTOP TRADING CO., LTD"
    assert record.invoice_no == "INV-2026-001"
    assert record.invoice_date == "February 16, 2026"
    assert record.currency == "USD"
    assert record.total_amount == Decimal("2540.00")
    assert record.total_pieces == 100
    assert record.ship_from == "SINGAPORE"
    assert record.ship_to == "BANGKOK"
    assert record.shipping_method == "FEDEX EXPRESS"
    assert record.coverage() == (10, 10)

    assert len(record.line_items) == 1
    item = record.line_items[0]
    assert item.description == "ELDEN RING PS5 ASIA"
    assert item.qty == 100
    assert item.unit_price == Decimal("25.40")
    assert item.amount == Decimal("2540.00")

    assert len(record.packing_items) == 1
    packing = record.packing_items[0]
    assert packing.carton == "1-4"
    assert packing.description == "ELDEN RING PS5 ASIA"
    assert packing.ctns == 4
    assert packing.qty == 100
    assert packing.net_wt_per_ctn == Decimal("6.25")
    assert packing.gross_wt_per_ctn == Decimal("7.50")
    assert packing.measurement == "59 X 25 X 20 CM"

    assert record.packing_totals.total_cartons == 4
    assert record.packing_totals.total_gross_wt == Decimal("30.00")


def test_reconcile_line_amount():
    match = reconcile_line_amount(100, [Decimal("2540.00"), Decimal("25.40")])

    assert match == (Decimal("2540.00"), Decimal("25.40"))


def test_reconcile_line_amount_without_consistent_pair():
    assert reconcile_line_amount(3, [Decimal("10.00"), Decimal("20.00")]) is None
    assert reconcile_line_amount(0, [Decimal("10.00")]) is None
    assert reconcile_line_amount(1, [Decimal("10.00")]) is None


def test_line_item_uses_reconciled_amounts():
    text = "ELDEN RING PS5 ASIA\n100 PIECE 25.40 2540.00\n"

    item = HeuristicExtractor().extract(text).line_items[0]

    assert item.qty == 100
    assert item.unit_price == Decimal("25.40")
    assert item.amount == Decimal("2540.00")


def test_descriptions_without_quantities_get_zero_qty():
    text = "MARIO KART SWITCH\n"

    item = HeuristicExtractor().extract(text).line_items[0]

    assert item.description == "MARIO KART SWITCH"
    assert item.qty == 0
    assert item.amount == Decimal("0")


def test_packing_marker_is_case_insensitive():
    extractor = HeuristicExtractor()

    invoice, packing = extractor.split_sections("TOTAL 5.00\nPacking List\nTOTAL 1 2 3.0 4.0")

    assert invoice == "TOTAL 5.00\n"
    assert packing.startswith("Packing List")
    assert extractor.split_sections("no marker") == ("no marker", "")


def test_custom_platform_keywords():
    extractor = HeuristicExtractor(platform_keywords=["STEAM"])

    record = extractor.extract("HADES STEAM\n2 PIECE 10.00 20.00\n")

    assert record.line_items[0].description == "HADES STEAM"
    assert record.line_items[0].amount == Decimal("20.00")
