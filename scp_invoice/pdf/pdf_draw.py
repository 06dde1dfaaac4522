from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen.canvas import Canvas
from reportlab.platypus import Table

from scp_invoice.core.paths import resource_path
from scp_invoice.core.settings import Settings
from scp_invoice.data.models import InvoiceRecord
from scp_invoice.pdf.decorations import BOTTOM, TOP, ImageProvider, letterhead_provider
from scp_invoice.pdf.table_layout import build_table, col_widths_from_percents
from scp_invoice.pdf.totals import InvoiceTotals, derive_totals
from scp_invoice.pdf.variants import item_table_model, variant_for

logger = logging.getLogger(__name__)


# ===== Layout constants (tweak here) =====
PAGE_SIZE = A4
PAGE_WIDTH, PAGE_HEIGHT = PAGE_SIZE

MARGIN_X = 14 * mm
PRINTABLE_WIDTH = PAGE_WIDTH - 2 * MARGIN_X

# Letterhead bands
HEADER_HEIGHT = 30 * mm
HEADER_EXTRA_GAP = 10 * mm  # header band -> title baseline, and title -> boxes
FOOTER_HEIGHT = 20 * mm
CONTINUATION_GAP = 6 * mm  # header band -> table on continuation pages

TITLE_FONT_SIZE = 18
BOX_TITLE_FONT_SIZE = 11
BOX_TEXT_FONT_SIZE = 10

# Info boxes (supplier / invoice details)
GAP_BETWEEN_BOXES = 0
BOX_PADDING = 4 * mm
MIN_BOX_HEIGHT = 34 * mm
BOX_TITLE_OFFSET = 4 * mm
BOX_LINE_HEIGHT = 6 * mm
BOX_TABLE_GAP = 2 * mm
BOX_WIDTH = (PRINTABLE_WIDTH - GAP_BETWEEN_BOXES) / 2

# Signature block
SIG_BOX_W = 80 * mm
SIG_BOX_H = 15 * mm
SIG_LABELS_GAP = 6 * mm
SIG_UNDER_TEXT_GAP = 8 * mm
SIG_PAD_RIGHT = 4 * mm
SIG_PAD_BOTTOM = 3 * mm
SIG_LABEL_RISE = 3 * mm
SIG_FONT_SIZE = 10
SIG_NAME_FONT_SIZE = 9
SIGNATURE_GAP = 14 * mm  # table end -> top of the signature boxes
SAFETY_MARGIN = 10 * mm
SIG_NEW_PAGE_TOP = 40 * mm  # from the page top, when signatures move to a new page

# The table never runs into the space place_signatures needs under it,
# so the signatures always share the page the table ends on
RESERVED_SIGNATURE_AREA = SIGNATURE_GAP + SIG_BOX_H + SIG_UNDER_TEXT_GAP + SAFETY_MARGIN
TABLE_BOTTOM = FOOTER_HEIGHT + RESERVED_SIGNATURE_AREA

# Float slack for comparisons against TABLE_BOTTOM
_EPS = 1e-6

LINE_WIDTH = 0.2 * mm

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class LayoutError(ValueError):
    """Raised when the layout constants cannot accommodate the content."""


@dataclass(frozen=True)
class LayoutCursor:
    """Current page (1-based) and baseline y in PDF points, measured from the page bottom."""

    page: int
    y: float

    def down(self, dy: float) -> "LayoutCursor":
        return LayoutCursor(self.page, self.y - dy)

    def next_page(self, y: float) -> "LayoutCursor":
        return LayoutCursor(self.page + 1, y)


@dataclass(frozen=True)
class ComposedDocument:
    data: bytes
    title: str
    page_count: int
    info_box_height: float
    table_end: LayoutCursor
    # Top edge of the signature boxes
    signature: LayoutCursor
    totals: InvoiceTotals


# ===== Helpers =====
# Resolved TTF path -> registered face name; each file is registered once per process
_FONT_NAMES: Dict[str, str] = {}


def _font_face(raw: str) -> Optional[str]:
    """Registered face name for a TTF path, or None when it cannot be used."""
    p = resource_path(raw)
    if not p.exists():
        logger.warning("Font %s not found; using built-in Times", p)
        return None
    key = str(p.resolve())
    if key in _FONT_NAMES:
        return _FONT_NAMES[key]
    name = f"SCP{len(_FONT_NAMES) + 1}-{p.stem}"
    try:
        pdfmetrics.registerFont(TTFont(name, str(p)))
    except Exception:
        logger.warning("Font %s could not be registered; using built-in Times", p, exc_info=True)
        return None
    _FONT_NAMES[key] = name
    return name


def _register_fonts(settings: Settings) -> Tuple[str, str]:
    """Return (regular_font_name, bold_font_name)."""
    regular = _font_face(settings.font_regular_path) if settings.font_regular_path else None
    bold = _font_face(settings.font_bold_path) if settings.font_bold_path else None
    return regular or "Times-Roman", bold or "Times-Bold"


def _fmt_date(val: Optional[date]) -> str:
    # "Jan 05, 2025" regardless of the process locale
    if val is None:
        return ""
    return f"{_MONTHS[val.month - 1]} {val.day:02d}, {val.year}"


def _wrap_text(text: str, max_width: float, font_name: str, font_size: float) -> List[str]:
    text = (text or "").replace("\r", "")
    words = text.split()
    lines: List[str] = []
    line: List[str] = []
    width_fn = pdfmetrics.stringWidth

    for w in words:
        trial = (" ".join(line + [w])).strip()
        if width_fn(trial, font_name, font_size) <= max_width or not line:
            line.append(w)
        else:
            lines.append(" ".join(line))
            line = [w]
    if line:
        lines.append(" ".join(line))

    # If the text has long unbroken sequences, hard-truncate per line end
    truncated: List[str] = []
    for ln in lines:
        if width_fn(ln, font_name, font_size) <= max_width:
            truncated.append(ln)
        else:
            s = ln
            while s and width_fn(s + "…", font_name, font_size) > max_width:
                s = s[:-1]
            truncated.append((s + "…") if s else ln)
    return truncated or [""]


def supplier_lines(invoice: InvoiceRecord) -> List[str]:
    """Left box content. Name and address always take a line; the rest only when present."""
    cust = invoice.customer
    lines = [f"Name: {cust.name or '-'}"]
    for ln in (cust.address or "-").split("\n"):
        lines.append(ln or "-")
    if cust.contact_person:
        lines.append(f"Contact: {cust.contact_person}")
    if cust.phone:
        lines.append(f"Phone: {cust.phone}")
    if cust.email:
        lines.append(f"Email: {cust.email}")
    if cust.delivery_address and cust.delivery_address != cust.address:
        lines.append("Delivery: " + ", ".join(p for p in cust.delivery_address.split("\n") if p))
    return lines


def invoice_detail_lines(invoice: InvoiceRecord) -> List[str]:
    lines: List[str] = []
    if invoice.manual_invoice_number:
        lines.append(f"Invoice No: {invoice.manual_invoice_number}")
    if invoice.reference_number:
        lines.append(f"Reference No: {invoice.reference_number}")
    if invoice.invoice_date:
        lines.append(f"Invoice Date: {_fmt_date(invoice.invoice_date)}")
    if invoice.supply_date:
        lines.append(f"Supply Date: {_fmt_date(invoice.supply_date)}")
    return lines


def _box_lines(title: str, content: Sequence[str], font: str) -> List[str]:
    max_w = BOX_WIDTH - 2 * BOX_PADDING
    out = [title]
    for ln in content:
        out.extend(_wrap_text(ln, max_w, font, BOX_TEXT_FONT_SIZE))
    return out


def info_box_height(left_lines: Sequence[str], right_lines: Sequence[str]) -> float:
    """Both boxes share one height: the taller content, never below MIN_BOX_HEIGHT."""
    left = len(left_lines) * BOX_LINE_HEIGHT + BOX_PADDING * 2
    right = len(right_lines) * BOX_LINE_HEIGHT + BOX_PADDING * 2
    return max(left, right, MIN_BOX_HEIGHT)


def place_signatures(table_end: LayoutCursor) -> Tuple[LayoutCursor, bool]:
    """Return the cursor for the top edge of the signature boxes and whether it is on a new page.

    The boxes plus the text gap under them must stay clear of the footer band
    by SAFETY_MARGIN; otherwise they go near the top of a fresh page.
    """
    top = min(table_end.y - SIGNATURE_GAP, PAGE_HEIGHT - HEADER_HEIGHT - SIG_LABELS_GAP)
    if top - SIG_BOX_H - SIG_UNDER_TEXT_GAP < FOOTER_HEIGHT + SAFETY_MARGIN - _EPS:
        return table_end.next_page(PAGE_HEIGHT - SIG_NEW_PAGE_TOP), True
    return LayoutCursor(table_end.page, top), False


# ===== Drawing steps =====
def _draw_header_band(c: Canvas, images: ImageProvider) -> None:
    img = images.get(TOP)
    if img is not None:
        c.drawImage(img, 0, PAGE_HEIGHT - HEADER_HEIGHT, width=PAGE_WIDTH, height=HEADER_HEIGHT, mask="auto")


def _draw_footer_band(c: Canvas, images: ImageProvider) -> None:
    img = images.get(BOTTOM)
    if img is not None:
        c.drawImage(img, 0, 0, width=PAGE_WIDTH, height=FOOTER_HEIGHT, mask="auto")


def _draw_title(c: Canvas, bold_font: str, title: str, cursor: LayoutCursor) -> LayoutCursor:
    baseline = cursor.down(HEADER_HEIGHT + HEADER_EXTRA_GAP)
    c.setFont(bold_font, TITLE_FONT_SIZE)
    c.drawCentredString(PAGE_WIDTH / 2, baseline.y, title)
    return baseline.down(HEADER_EXTRA_GAP)


def _draw_box_text(c: Canvas, font: str, bold_font: str, lines: Sequence[str], x: float, top: float) -> None:
    y = top - BOX_PADDING - BOX_TITLE_OFFSET
    c.setFont(bold_font, BOX_TITLE_FONT_SIZE)
    c.drawString(x + BOX_PADDING, y, lines[0])
    c.setFont(font, BOX_TEXT_FONT_SIZE)
    for ln in lines[1:]:
        y -= BOX_LINE_HEIGHT
        c.drawString(x + BOX_PADDING, y, ln)


def _draw_info_boxes(
    c: Canvas, font: str, bold_font: str, invoice: InvoiceRecord, cursor: LayoutCursor
) -> Tuple[LayoutCursor, float]:
    left = _box_lines("Supplier Details", supplier_lines(invoice), font)
    right = _box_lines("Invoice Details", invoice_detail_lines(invoice), font)
    h = info_box_height(left, right)

    left_x = MARGIN_X
    right_x = MARGIN_X + BOX_WIDTH + GAP_BETWEEN_BOXES
    c.setLineWidth(LINE_WIDTH)
    c.rect(left_x, cursor.y - h, BOX_WIDTH, h, stroke=1, fill=0)
    c.rect(right_x, cursor.y - h, BOX_WIDTH, h, stroke=1, fill=0)
    _draw_box_text(c, font, bold_font, left, left_x, cursor.y)
    _draw_box_text(c, font, bold_font, right, right_x, cursor.y)
    return cursor.down(h + BOX_TABLE_GAP), h


def _draw_item_table(
    c: Canvas, table: Table, cursor: LayoutCursor, next_page: Callable[[LayoutCursor], LayoutCursor]
) -> LayoutCursor:
    """
    Draw the table from cursor downwards, splitting it between rows onto new pages.
    Returns the cursor at the bottom edge of the last drawn part.
    """
    pending = table
    fresh_page = False
    while True:
        avail = cursor.y - TABLE_BOTTOM
        _w, h = pending.wrapOn(c, PRINTABLE_WIDTH, avail)
        if h <= avail:
            pending.drawOn(c, MARGIN_X, cursor.y - h)
            return cursor.down(h)

        parts = pending.split(PRINTABLE_WIDTH, avail) if avail > 0 else []
        if len(parts) >= 2:
            head, pending = parts[0], parts[1]
            _w, h = head.wrapOn(c, PRINTABLE_WIDTH, avail)
            head.drawOn(c, MARGIN_X, cursor.y - h)
        elif fresh_page:
            raise LayoutError("A table row is taller than the usable height of a page")
        cursor = next_page(cursor)
        fresh_page = True


def _draw_signatures(c: Canvas, font: str, invoice: InvoiceRecord, top: LayoutCursor) -> None:
    left_x = MARGIN_X
    right_x = PAGE_WIDTH - MARGIN_X - SIG_BOX_W
    bottom = top.y - SIG_BOX_H

    c.setLineWidth(LINE_WIDTH)
    c.rect(left_x, bottom, SIG_BOX_W, SIG_BOX_H, stroke=1, fill=0)
    c.rect(right_x, bottom, SIG_BOX_W, SIG_BOX_H, stroke=1, fill=0)

    c.setFont(font, SIG_FONT_SIZE)
    c.drawString(left_x, top.y + SIG_LABEL_RISE, "Authorised Signatory")
    c.drawString(right_x, top.y + SIG_LABEL_RISE, "Customer Signature")

    c.setFont(font, SIG_NAME_FONT_SIZE)
    if invoice.authorised_signatory_name:
        c.drawRightString(left_x + SIG_BOX_W - SIG_PAD_RIGHT, bottom + SIG_PAD_BOTTOM, invoice.authorised_signatory_name)
    if invoice.customer_signatory_name:
        c.drawRightString(right_x + SIG_BOX_W - SIG_PAD_RIGHT, bottom + SIG_PAD_BOTTOM, invoice.customer_signatory_name)


# ===== Public API =====
def render_invoice(
    invoice: InvoiceRecord,
    title: str,
    *,
    images: Optional[ImageProvider] = None,
    settings: Optional[Settings] = None,
) -> ComposedDocument:
    """Compose one invoice into an A4 PDF and report where things landed.

    The invoice record is only read. Output is byte-for-byte reproducible for
    the same record, title and decorations.
    """
    settings = settings or Settings()
    if images is None:
        images = letterhead_provider(settings.letterhead_top_path, settings.letterhead_bottom_path)

    font, bold_font = _register_fonts(settings)
    totals = derive_totals(invoice)
    variant = variant_for(title)

    buf = io.BytesIO()
    c = Canvas(buf, pagesize=PAGE_SIZE, invariant=1)
    c.setTitle(title)
    if invoice.manual_invoice_number or invoice.invoice_number:
        c.setSubject(str(invoice.manual_invoice_number or invoice.invoice_number))

    def next_page(cur: LayoutCursor) -> LayoutCursor:
        _draw_footer_band(c, images)
        c.showPage()
        _draw_header_band(c, images)
        return cur.next_page(PAGE_HEIGHT - HEADER_HEIGHT - CONTINUATION_GAP)

    cursor = LayoutCursor(page=1, y=PAGE_HEIGHT)
    _draw_header_band(c, images)
    cursor = _draw_title(c, bold_font, title, cursor)
    cursor, box_h = _draw_info_boxes(c, font, bold_font, invoice, cursor)

    model = item_table_model(totals, variant, settings.currency)
    widths = col_widths_from_percents(model.percents, PRINTABLE_WIDTH)
    table = build_table(model, widths, font=font, bold_font=bold_font)
    table_end = _draw_item_table(c, table, cursor, next_page)

    sig, new_page = place_signatures(table_end)
    if new_page:
        next_page(table_end)
    _draw_signatures(c, font, invoice, sig)

    _draw_footer_band(c, images)
    c.save()

    logger.info("Composed %r with %d item(s) on %d page(s)", title, len(invoice.items), sig.page)
    return ComposedDocument(
        data=buf.getvalue(),
        title=title,
        page_count=sig.page,
        info_box_height=box_h,
        table_end=table_end,
        signature=sig,
        totals=totals,
    )


def compose_invoice(
    invoice: InvoiceRecord,
    title: str,
    *,
    images: Optional[ImageProvider] = None,
    settings: Optional[Settings] = None,
) -> bytes:
    """Return the PDF bytes for one invoice under the given document title."""
    return render_invoice(invoice, title, images=images, settings=settings).data


class _Blank(dict):
    def __missing__(self, key: str) -> str:
        return ""


_UNSAFE = re.compile(r'[<>:"/\\|?*\x00-\x1f]+')


def output_file_name(invoice: InvoiceRecord, title: str, template: str = "{title}") -> str:
    """File name for a composed invoice; template fields are {title}, {number}, {customer}."""
    fields = _Blank(
        title=title,
        number=invoice.manual_invoice_number or invoice.invoice_number or invoice.id or "",
        customer=invoice.customer.name or "",
    )
    stem = _UNSAFE.sub("_", template.format_map(fields)).strip(" ._")
    return f"{stem or 'invoice'}.pdf"


def build_invoice_pdf(
    out_dir: Path | str,
    invoice: InvoiceRecord,
    title: str,
    *,
    images: Optional[ImageProvider] = None,
    settings: Optional[Settings] = None,
) -> Path:
    """Compose the invoice and write it into out_dir; returns the written path."""
    settings = settings or Settings()
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / output_file_name(invoice, title, settings.file_name_template)
    path.write_bytes(compose_invoice(invoice, title, images=images, settings=settings))
    logger.info("PDF written: %s", path)
    return path
