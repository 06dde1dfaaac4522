"""
Document variants: which columns the item table carries for a given title and
which totals rows follow it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from scp_invoice.core.currency import fmt_money, fmt_percent, fmt_qty
from scp_invoice.pdf.table_layout import Cell, Column, TableModel
from scp_invoice.pdf.totals import InvoiceTotals, LineFigures

TAX_INVOICE = "TAX INVOICE"
DELIVERY_ORDER = "DELIVERY ORDER"


@dataclass(frozen=True)
class DocumentVariant:
    name: str
    columns: Tuple[Column, ...]
    cells: Callable[[LineFigures], List[str]]
    show_vat_total: bool


def _tax_cells(ln: LineFigures) -> List[str]:
    return [
        str(ln.index),
        ln.item.item_name,
        fmt_qty(ln.item.qty),
        fmt_money(ln.item.price),
        fmt_percent(ln.item.vat),
        fmt_money(ln.vat_amount),
        fmt_money(ln.amount),
    ]


def _delivery_cells(ln: LineFigures) -> List[str]:
    return [
        str(ln.index),
        ln.item.item_name,
        fmt_qty(ln.item.qty),
        fmt_money(ln.item.price),
        fmt_money(ln.amount),
    ]


VARIANTS: Dict[str, DocumentVariant] = {
    TAX_INVOICE: DocumentVariant(
        name=TAX_INVOICE,
        columns=(
            Column("#", 5, "CENTER"),
            Column("Item Name", 40, "LEFT", wrap=True),
            Column("Qty", 10, "CENTER"),
            Column("Price", 12, "RIGHT"),
            Column("VAT", 10, "CENTER"),
            Column("VAT Amt", 11, "RIGHT"),
            Column("Amount", 12, "RIGHT"),
        ),
        cells=_tax_cells,
        show_vat_total=True,
    ),
    DELIVERY_ORDER: DocumentVariant(
        name=DELIVERY_ORDER,
        columns=(
            Column("#", 6, "CENTER"),
            Column("Item Name", 52, "LEFT", wrap=True),
            Column("Qty", 12, "CENTER"),
            Column("Price", 15, "RIGHT"),
            Column("Amount", 15, "RIGHT"),
        ),
        cells=_delivery_cells,
        show_vat_total=False,
    ),
}


def variant_for(title: str) -> DocumentVariant:
    """Pick the column set for a title; anything unknown prints as a tax invoice."""
    return VARIANTS.get((title or "").strip().upper(), VARIANTS[TAX_INVOICE])


def summary_rows(totals: InvoiceTotals, variant: DocumentVariant, currency: str) -> List[Tuple[str, str]]:
    rows = [("Total Amount:", fmt_money(totals.total_amount, currency=currency))]
    if variant.show_vat_total:
        rows.append(("Total VAT:", fmt_money(totals.total_vat, currency=currency)))
    rows.append(("Grand Total:", fmt_money(totals.grand_total, currency=currency)))
    return rows


def item_table_model(totals: InvoiceTotals, variant: DocumentVariant, currency: str) -> TableModel:
    """Item rows followed by the totals rows on the same column grid.

    Totals labels span every column up to the last two; the value spans the
    last two so it lines up under the amount column.
    """
    model = TableModel(columns=list(variant.columns))
    for ln in totals.lines:
        model.add_row(variant.cells(ln))

    ncols = len(variant.columns)
    rows = summary_rows(totals, variant, currency)
    for i, (label, value) in enumerate(rows):
        grand = i == len(rows) - 1
        model.add_summary_row([
            Cell(label, span=ncols - 2, align="RIGHT", bold=grand),
            Cell(value, span=2, align="RIGHT", bold=grand),
        ])
    return model
