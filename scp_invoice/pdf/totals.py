"""
Derived invoice figures: per-line amounts and VAT, aggregates and grand total.
Every figure is rounded to three decimals once, at line level, so the table and
the totals rows always add up to what is printed.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import List, Sequence

from scp_invoice.core.currency import round_money_dec, sum_money
from scp_invoice.data.models import InvoiceRecord, LineItem


@dataclass(frozen=True)
class LineFigures:
    index: int
    item: LineItem
    amount: Decimal
    vat_amount: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    lines: List[LineFigures]
    total_amount: Decimal
    total_vat: Decimal
    grand_total: Decimal
    # True when grand_total came verbatim from the invoice record
    authoritative: bool


def line_amount(item: LineItem) -> Decimal:
    return round_money_dec(item.price * item.qty)


def line_vat_amount(item: LineItem) -> Decimal:
    return round_money_dec(item.price * item.qty * item.vat / Decimal(100))


def line_figures(items: Sequence[LineItem]) -> List[LineFigures]:
    return [
        LineFigures(index=i, item=it, amount=line_amount(it), vat_amount=line_vat_amount(it))
        for i, it in enumerate(items, start=1)
    ]


def derive_totals(invoice: InvoiceRecord) -> InvoiceTotals:
    lines = line_figures(invoice.items)
    total_amount = sum_money(ln.amount for ln in lines)
    total_vat = sum_money(ln.vat_amount for ln in lines)
    if invoice.total_amount is not None:
        grand_total = round_money_dec(invoice.total_amount)
        authoritative = True
    else:
        grand_total = round_money_dec(total_amount + total_vat)
        authoritative = False
    return InvoiceTotals(
        lines=lines,
        total_amount=total_amount,
        total_vat=total_vat,
        grand_total=grand_total,
        authoritative=authoritative,
    )
