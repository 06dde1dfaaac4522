from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Iterable

# Omani rial and friends: three decimal subunits
MONEY_PLACES = 3
_QUANTUM = Decimal(1).scaleb(-MONEY_PLACES)


def to_decimal(x: object) -> Decimal:
	"""Best-effort conversion to Decimal via str to avoid binary float artifacts.

	Anything missing, non-numeric or non-finite becomes 0, like JavaScript's
	``Number(x) || 0``.
	"""
	if x is None or isinstance(x, bool):
		return Decimal("0")
	try:
		d = x if isinstance(x, Decimal) else Decimal(str(x).strip())
	except (InvalidOperation, ValueError, TypeError):
		return Decimal("0")
	return d if d.is_finite() else Decimal("0")


def round_money_dec(x: float | Decimal) -> Decimal:
	"""Round to 3 decimals (half away from zero) and return Decimal."""
	d = to_decimal(x)
	return d.quantize(_QUANTUM, rounding=ROUND_HALF_UP)


def fmt_money(x: float | Decimal, currency: Optional[str] = None) -> str:
	"""Format a monetary value with three decimals, optionally prefixed by a currency label."""
	s = f"{round_money_dec(x):.{MONEY_PLACES}f}"
	if currency:
		s = f"{currency} {s}"
	return s


def sum_money(values: Iterable[float | Decimal]) -> Decimal:
	"""Accumulate monetary values using Decimal and round once at the end."""
	total = Decimal("0")
	for v in values:
		total += to_decimal(v)
	return round_money_dec(total)


def fmt_percent(x: float | Decimal) -> str:
	"""Render a VAT rate as '5%' or '2.5%'."""
	d = to_decimal(x)
	if d == d.to_integral_value():
		return f"{int(d)}%"
	return f"{format(d.normalize(), 'f')}%"


def fmt_qty(qty: float | Decimal) -> str:
	"""Format quantity with up to 3 decimals, no trailing zeros."""
	s = f"{to_decimal(qty):.3f}".rstrip("0").rstrip(".")
	return s if s and s != "-0" else "0"
