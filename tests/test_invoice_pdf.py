from __future__ import annotations

import io
import logging
import math
import re
from pathlib import Path

import pytest
from PIL import Image
from pypdf import PdfReader
import reportlab
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics

from scp_invoice.core.settings import Settings
from scp_invoice.pdf.decorations import BOTTOM, TOP, FileImageProvider, NoImages
from scp_invoice.pdf.pdf_draw import (
    BOX_LINE_HEIGHT,
    BOX_PADDING,
    FOOTER_HEIGHT,
    MIN_BOX_HEIGHT,
    PAGE_HEIGHT,
    SIG_BOX_H,
    SIG_UNDER_TEXT_GAP,
    LayoutCursor,
    LayoutError,
    build_invoice_pdf,
    compose_invoice,
    info_box_height,
    output_file_name,
    place_signatures,
    render_invoice,
    supplier_lines,
)
from scp_invoice.pdf import pdf_draw


def _a4_size_points() -> tuple[float, float]:
    # ReportLab A4 in points
    return (595.2755905511812, 841.8897637795277)


def _pages_text(data: bytes) -> list[str]:
    reader = PdfReader(io.BytesIO(data))
    return [page.extract_text() or "" for page in reader.pages]


def test_small_invoice_is_one_a4_page(make_invoice) -> None:
    doc = render_invoice(make_invoice(), "TAX INVOICE", images=NoImages())

    reader = PdfReader(io.BytesIO(doc.data))
    assert len(reader.pages) == 1
    assert doc.page_count == 1

    box = reader.pages[0].mediabox
    a4w, a4h = _a4_size_points()
    assert math.isclose(float(box.right - box.left), a4w, abs_tol=1.0)
    assert math.isclose(float(box.top - box.bottom), a4h, abs_tol=1.0)

    text = reader.pages[0].extract_text() or ""
    assert "TAX INVOICE" in text
    assert "Supplier Details" in text and "Invoice Details" in text
    assert "Invoice No: SCP/2025/017" in text
    assert "Invoice Date: Jan 05, 2025" in text
    assert "Supply Date: Jan 07, 2025" in text
    assert "Authorised Signatory" in text and "Customer Signature" in text
    assert "R. Said" in text and "M. Hassan" in text
    for header in ("Item Name", "Qty", "Price", "VAT Amt", "Amount"):
        assert header in text


def test_three_item_scenario_totals(make_invoice) -> None:
    doc = render_invoice(make_invoice(), "TAX INVOICE", images=NoImages())
    text = _pages_text(doc.data)[0]

    for amount in ("12.000", "8.000", "25.000", "0.600", "0.400"):
        assert amount in text
    assert "5%" in text and "0%" in text
    assert re.search(r"Total Amount:\s*OMR 45\.000", text)
    assert re.search(r"Total VAT:\s*OMR 1\.000", text)
    assert re.search(r"Grand Total:\s*OMR 46\.000", text)


def test_grand_total_uses_authoritative_total_amount(make_invoice) -> None:
    doc = render_invoice(make_invoice(totalAmount=50.1234), "TAX INVOICE", images=NoImages())
    text = _pages_text(doc.data)[0]
    assert re.search(r"Grand Total:\s*OMR 50\.123", text)
    # Line aggregates are still recomputed
    assert re.search(r"Total Amount:\s*OMR 45\.000", text)


def test_delivery_order_has_no_vat_columns(make_invoice) -> None:
    text = _pages_text(compose_invoice(make_invoice(), "DELIVERY ORDER", images=NoImages()))[0]
    assert "DELIVERY ORDER" in text
    assert "VAT Amt" not in text
    assert "Total VAT" not in text
    assert re.search(r"Total Amount:\s*OMR 45\.000", text)
    assert re.search(r"Grand Total:\s*OMR 46\.000", text)


def test_missing_optional_fields_are_omitted(make_invoice) -> None:
    invoice = make_invoice(
        manualInvoiceNumber=None,
        customer={"name": "", "address": None},
        authorisedSignatoryName=None,
        customerSignatoryName="",
    )
    text = _pages_text(compose_invoice(invoice, "TAX INVOICE", images=NoImages()))[0]

    assert "Invoice No:" not in text
    assert "Reference No:" not in text
    assert "Phone:" not in text
    assert "Email:" not in text
    assert "None" not in text and "undefined" not in text
    # Name and address always keep their line
    assert "Name: -" in text


def test_reference_number_is_shown_when_present(make_invoice) -> None:
    text = _pages_text(compose_invoice(make_invoice(referenceNumber="PO-778"), "TAX INVOICE", images=NoImages()))[0]
    assert "Reference No: PO-778" in text


def test_long_invoice_continues_across_pages_in_order(make_invoice, many_items) -> None:
    doc = render_invoice(make_invoice(many_items), "TAX INVOICE", images=NoImages())
    pages = _pages_text(doc.data)

    assert len(pages) >= 2
    assert doc.page_count == len(pages)

    names = [f"Item {i:03d}" for i in range(1, 61)]
    # Each item on exactly one page
    for name in names:
        assert sum(p.count(name) for p in pages) == 1, name
    # Column header repeated on every page that carries rows
    for p in pages:
        if "Item 0" in p:
            assert "Item Name" in p
    # Item order preserved across pages
    joined = "\n".join(pages)
    positions = [joined.index(name) for name in names]
    assert positions == sorted(positions)
    # Title and info boxes belong to the first page only
    assert "TAX INVOICE" in pages[0]
    assert all("Supplier Details" not in p for p in pages[1:])
    assert re.search(r"Grand Total:\s*OMR 94\.500", joined)


def test_signatures_stay_clear_of_footer(make_invoice, many_items) -> None:
    for items in (None, many_items, many_items[:17], many_items[:18], many_items[:20]):
        doc = render_invoice(make_invoice(items), "TAX INVOICE", images=NoImages())
        bottom = doc.signature.y - SIG_BOX_H - SIG_UNDER_TEXT_GAP
        assert bottom >= FOOTER_HEIGHT
        assert doc.signature.page == doc.page_count


def test_place_signatures_moves_to_new_page_when_short_of_space() -> None:
    sig, new_page = place_signatures(LayoutCursor(page=2, y=60 * mm))
    assert new_page is True
    assert sig.page == 3
    assert sig.y == pytest.approx(PAGE_HEIGHT - 40 * mm)

    sig, new_page = place_signatures(LayoutCursor(page=1, y=150 * mm))
    assert new_page is False
    assert sig.page == 1
    assert sig.y < 150 * mm


def test_info_boxes_share_height() -> None:
    short = ["Invoice Details", "Invoice Date: Jan 05, 2025"]
    tall = ["Supplier Details"] + [f"line {i}" for i in range(8)]

    assert info_box_height(short, short) == MIN_BOX_HEIGHT
    expected = len(tall) * BOX_LINE_HEIGHT + 2 * BOX_PADDING
    assert info_box_height(tall, short) == pytest.approx(expected)
    assert info_box_height(short, tall) == info_box_height(tall, short)


def test_multiline_address_grows_info_box(make_invoice) -> None:
    invoice = make_invoice(
        customer={
            "name": "Al Noor Cafe",
            "address": "Line 1\nLine 2\nLine 3\nLine 4",
            "phone": "123",
            "email": "a@b.example",
        }
    )
    doc = render_invoice(invoice, "TAX INVOICE", images=NoImages())
    # title + name + 4 address lines + phone + email
    assert doc.info_box_height == pytest.approx(8 * BOX_LINE_HEIGHT + 2 * BOX_PADDING)
    text = _pages_text(doc.data)[0]
    assert "Line 1" in text and "Line 4" in text


def test_compose_is_reproducible(make_invoice, many_items) -> None:
    invoice = make_invoice(many_items)
    assert compose_invoice(invoice, "TAX INVOICE", images=NoImages()) == compose_invoice(
        invoice, "TAX INVOICE", images=NoImages()
    )


def test_compose_does_not_touch_the_record(make_invoice) -> None:
    invoice = make_invoice()
    before = invoice.model_dump()
    compose_invoice(invoice, "TAX INVOICE", images=NoImages())
    assert invoice.model_dump() == before


def test_missing_decorations_do_not_abort(tmp_path: Path, make_invoice) -> None:
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"not an image")
    images = FileImageProvider({TOP: tmp_path / "nope.png", BOTTOM: broken})

    assert images.get(TOP) is None
    assert images.get(BOTTOM) is None
    data = compose_invoice(make_invoice(), "TAX INVOICE", images=images)
    assert data.startswith(b"%PDF")
    assert b"/Subtype /Image" not in data


def test_letterhead_images_are_drawn(tmp_path: Path, make_invoice, many_items) -> None:
    top = tmp_path / "top.png"
    bottom = tmp_path / "bottom.png"
    Image.new("RGB", (40, 8), (20, 40, 120)).save(top)
    Image.new("RGB", (40, 6), (120, 40, 20)).save(bottom)

    settings = Settings(letterhead_top_path=str(top), letterhead_bottom_path=str(bottom))
    data = compose_invoice(make_invoice(many_items), "TAX INVOICE", settings=settings)
    reader = PdfReader(io.BytesIO(data))
    assert len(reader.pages) >= 2
    assert b"/Subtype /Image" in data


def test_build_invoice_pdf_names_file_after_title(tmp_path: Path, make_invoice) -> None:
    out = build_invoice_pdf(tmp_path / "out", make_invoice(), "TAX INVOICE", images=NoImages())
    assert out == tmp_path / "out" / "TAX INVOICE.pdf"
    assert len(PdfReader(str(out)).pages) == 1


def test_output_file_name_template(make_invoice) -> None:
    invoice = make_invoice()
    assert output_file_name(invoice, "DELIVERY ORDER") == "DELIVERY ORDER.pdf"
    assert output_file_name(invoice, "TAX INVOICE", "{number} - {customer}") == "SCP_2025_017 - Al Noor Cafe.pdf"
    assert output_file_name(invoice, "", "{title}") == "invoice.pdf"


def test_signatures_share_the_page_the_table_ends_on(make_invoice) -> None:
    items = [{"itemName": f"Item {i:03d}", "qty": 1, "price": 1.5, "vat": 5} for i in range(1, 90)]
    for n in range(1, len(items) + 1):
        doc = render_invoice(make_invoice(items[:n]), "TAX INVOICE", images=NoImages())
        assert doc.signature.page == doc.table_end.page, n
        assert doc.page_count == doc.table_end.page, n


def test_unparsable_total_amount_falls_back_to_computed_grand_total(make_invoice) -> None:
    text = _pages_text(compose_invoice(make_invoice(totalAmount="abc"), "TAX INVOICE", images=NoImages()))[0]
    assert re.search(r"Grand Total:\s*OMR 46\.000", text)


def test_row_taller_than_a_page_raises_layout_error(make_invoice) -> None:
    huge = " ".join(["word"] * 3000)
    invoice = make_invoice([{"itemName": huge, "qty": 1, "price": 1, "vat": 5}])
    with pytest.raises(LayoutError):
        compose_invoice(invoice, "TAX INVOICE", images=NoImages())


def test_unusable_fonts_fall_back_to_times(tmp_path: Path, make_invoice, caplog) -> None:
    broken = tmp_path / "broken.ttf"
    broken.write_bytes(b"not a font")
    settings = Settings(font_regular_path=str(tmp_path / "missing.ttf"), font_bold_path=str(broken))

    with caplog.at_level(logging.WARNING, logger="scp_invoice.pdf.pdf_draw"):
        data = compose_invoice(make_invoice(), "TAX INVOICE", images=NoImages(), settings=settings)

    messages = [r.getMessage() for r in caplog.records]
    assert any("missing.ttf" in m and "built-in Times" in m for m in messages)
    assert any("broken.ttf" in m and "built-in Times" in m for m in messages)
    assert "Grand Total" in _pages_text(data)[0]


def test_custom_font_is_registered_once(monkeypatch, make_invoice) -> None:
    vera = Path(reportlab.__file__).parent / "fonts" / "Vera.ttf"
    calls = []
    real_register = pdfmetrics.registerFont

    def counting_register(font):
        calls.append(font.fontName)
        return real_register(font)

    monkeypatch.setattr(pdf_draw, "_FONT_NAMES", {})
    monkeypatch.setattr(pdfmetrics, "registerFont", counting_register)
    settings = Settings(font_regular_path=str(vera), font_bold_path=str(vera))

    for _ in range(3):
        data = compose_invoice(make_invoice(), "TAX INVOICE", images=NoImages(), settings=settings)
        assert len(PdfReader(io.BytesIO(data)).pages) == 1

    assert len(calls) == 1
    assert calls[0] in pdfmetrics.getRegisteredFontNames()


def test_long_address_wraps_and_grows_info_box(make_invoice) -> None:
    short = render_invoice(make_invoice(), "TAX INVOICE", images=NoImages())

    long_address = " ".join(["Warehouse"] * 40) + " Sohar"
    customer = {"name": "Al Noor Cafe", "address": long_address, "phone": "+968 9123 4567", "email": "orders@alnoor.example"}
    doc = render_invoice(make_invoice(customer=customer), "TAX INVOICE", images=NoImages())

    # The short sample has two address lines; the long one wraps to well over four
    assert doc.info_box_height >= short.info_box_height + 2 * BOX_LINE_HEIGHT
    assert "Sohar" in _pages_text(doc.data)[0]


def test_contact_and_delivery_lines(make_invoice) -> None:
    invoice = make_invoice(
        customer={
            "name": "Al Noor Cafe",
            "address": "Way 3021\nMuscat",
            "contactPersonName": "Fatma",
            "deliveryAddress": "Warehouse 4\nRusayl",
        }
    )
    assert supplier_lines(invoice) == [
        "Name: Al Noor Cafe",
        "Way 3021",
        "Muscat",
        "Contact: Fatma",
        "Delivery: Warehouse 4, Rusayl",
    ]
    text = _pages_text(compose_invoice(invoice, "TAX INVOICE", images=NoImages()))[0]
    assert "Contact: Fatma" in text
    assert "Delivery: Warehouse 4, Rusayl" in text
