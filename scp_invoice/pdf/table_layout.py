# scp_invoice/pdf/table_layout.py
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, List, Sequence, Union
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, Table, TableStyle

# Grid styling
W_GRID = 0.30
GRID_COLOR = colors.black
HEADER_BG = colors.Color(240 / 255, 240 / 255, 240 / 255)

HEADER_FONT_SIZE = 9
BODY_FONT_SIZE = 10
BODY_LEADING = 12

PADDING = 2 * mm


@dataclass
class Column:
    header: str
    # Share of the printable width, in percent
    percent: float
    align: str = "LEFT"
    # Wrap long text onto several lines inside the cell
    wrap: bool = False


@dataclass
class Cell:
    value: Any = ""
    span: int = 1
    align: str | None = None
    bold: bool = False


Row = Sequence[Union[Cell, str]]


@dataclass
class TableModel:
    """Column grid plus body rows and trailing summary rows.

    A cell may span several columns; the spans of every row must add up to
    the number of columns. Summary rows share the grid and are emitted after
    the body rows.
    """

    columns: List[Column]
    body: List[List[Cell]] = field(default_factory=list)
    summary: List[List[Cell]] = field(default_factory=list)

    def _coerce(self, row: Row) -> List[Cell]:
        cells = [c if isinstance(c, Cell) else Cell(c) for c in row]
        width = sum(c.span for c in cells)
        if width != len(self.columns) or any(c.span < 1 for c in cells):
            raise ValueError(f"Row spans {width} columns, table has {len(self.columns)}")
        return cells

    def add_row(self, row: Row) -> None:
        self.body.append(self._coerce(row))

    def add_summary_row(self, row: Row) -> None:
        self.summary.append(self._coerce(row))

    @property
    def percents(self) -> List[float]:
        return [c.percent for c in self.columns]


def col_widths_from_percents(
    percents: Sequence[float],
    printable_width: float,
    remainder_col: int = 1,
    unit: float = mm,
) -> List[float]:
    """Allocate column widths by percentage of printable_width.

    Each width is floored to whole `unit`s; whatever is left over goes to
    `remainder_col` (the item-name column) so the grid spans the full width.
    """
    # 50% of 100 mm must floor to 50, not 49
    widths = [math.floor((p / 100.0) * printable_width / unit + 1e-9) * unit for p in percents]
    diff = printable_width - sum(widths)
    if widths and 0 <= remainder_col < len(widths):
        widths[remainder_col] += diff
    return widths


def _paragraph(text: str, font: str, align: int = TA_LEFT) -> Paragraph:
    style = ParagraphStyle(
        "cell",
        fontName=font,
        fontSize=BODY_FONT_SIZE,
        leading=BODY_LEADING,
        alignment=align,
    )
    return Paragraph(escape(str(text)).replace("\n", "<br/>"), style)


def build_table(
    model: TableModel,
    col_widths: Sequence[float],
    font: str = "Times-Roman",
    bold_font: str = "Times-Bold",
) -> Table:
    """
    Build a reportlab Table from a TableModel.

    The header row repeats on every continuation page when the table is split,
    and rows are never split across pages.
    """
    ncols = len(model.columns)
    data: List[List[Any]] = [[c.header for c in model.columns]]
    cmds: List[tuple] = []

    def emit(cells: List[Cell], r: int) -> None:
        row: List[Any] = []
        col = 0
        for cell in cells:
            column = model.columns[col]
            value = cell.value
            if column.wrap and cell.span == 1 and isinstance(value, str):
                value = _paragraph(value, bold_font if cell.bold else font)
            row.append(value)
            # Spanned-over positions stay empty
            row.extend([""] * (cell.span - 1))
            end = col + cell.span - 1
            if cell.span > 1:
                cmds.append(("SPAN", (col, r), (end, r)))
            if cell.align:
                cmds.append(("ALIGN", (col, r), (end, r), cell.align))
            if cell.bold:
                cmds.append(("FONTNAME", (col, r), (end, r), bold_font))
            col = end + 1
        data.append(row)

    for cells in model.body:
        emit(cells, len(data))
    first_summary = len(data)
    for cells in model.summary:
        emit(cells, len(data))

    t = Table(data, colWidths=list(col_widths), repeatRows=1)

    ts = TableStyle()
    ts.add("GRID", (0, 0), (-1, -1), W_GRID, GRID_COLOR)
    ts.add("VALIGN", (0, 0), (-1, -1), "MIDDLE")
    ts.add("LEFTPADDING", (0, 0), (-1, -1), PADDING)
    ts.add("RIGHTPADDING", (0, 0), (-1, -1), PADDING)
    ts.add("TOPPADDING", (0, 0), (-1, -1), PADDING)
    ts.add("BOTTOMPADDING", (0, 0), (-1, -1), PADDING)

    # Header
    ts.add("BACKGROUND", (0, 0), (-1, 0), HEADER_BG)
    ts.add("FONTNAME", (0, 0), (-1, 0), bold_font)
    ts.add("FONTSIZE", (0, 0), (-1, 0), HEADER_FONT_SIZE)
    ts.add("ALIGN", (0, 0), (-1, 0), "CENTER")

    # Body and summary rows
    if len(data) > 1:
        ts.add("FONTNAME", (0, 1), (-1, -1), font)
        ts.add("FONTSIZE", (0, 1), (-1, -1), BODY_FONT_SIZE)
        for i, column in enumerate(model.columns):
            ts.add("ALIGN", (i, 1), (i, -1), column.align)
    if model.summary:
        ts.add("LINEABOVE", (0, first_summary), (ncols - 1, first_summary), W_GRID * 2, GRID_COLOR)

    # Per-cell overrides last so they win
    for cmd in cmds:
        ts.add(*cmd)

    t.setStyle(ts)
    return t
