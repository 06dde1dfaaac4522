from __future__ import annotations

import json
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from scp_invoice.core.currency import to_decimal
from scp_invoice.data.models import CustomerInfo, InvoiceRecord, LineItem

logger = logging.getLogger(__name__)


class InvoiceDataError(ValueError):
	"""Raised when an invoice payload cannot be turned into an InvoiceRecord."""


def _pick(d: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
	"""Return the first present, non-None value among keys (camelCase or snake_case)."""
	for k in keys:
		if k in d and d[k] is not None:
			return d[k]
	return default


def _text(val: Any) -> Optional[str]:
	if val is None:
		return None
	s = str(val).strip()
	return s or None


def _multiline(val: Any) -> Optional[str]:
	"""Keep line breaks, strip each line, drop trailing blank lines."""
	if val is None:
		return None
	lines = [ln.strip() for ln in str(val).replace("\r\n", "\n").replace("\r", "\n").split("\n")]
	while lines and not lines[-1]:
		lines.pop()
	while lines and not lines[0]:
		lines.pop(0)
	return "\n".join(lines) or None


def parse_date(val: Any) -> Optional[date]:
	"""Accept date, datetime or an ISO-8601 string (trailing 'Z' allowed)."""
	if val is None or val == "":
		return None
	if isinstance(val, datetime):
		return val.date()
	if isinstance(val, date):
		return val
	s = str(val).strip()
	if s.endswith("Z"):
		s = s[:-1] + "+00:00"
	try:
		return datetime.fromisoformat(s).date()
	except ValueError:
		pass
	try:
		return date.fromisoformat(s[:10])
	except ValueError:
		logger.debug("Unparsable date %r", val)
		return None


def _optional_amount(val: Any) -> Optional[Decimal]:
	"""Decimal for a supplied amount; None when missing, blank or not a finite number."""
	if val is None or isinstance(val, bool):
		return None
	try:
		d = val if isinstance(val, Decimal) else Decimal(str(val).strip())
	except (InvalidOperation, ValueError, TypeError):
		d = None
	if d is None or not d.is_finite():
		if str(val).strip():
			logger.warning("Ignoring unparsable total amount %r", val)
		return None
	return d


def normalize_customer(raw: Any) -> CustomerInfo:
	if not isinstance(raw, Mapping):
		# A bare id reference carries nothing printable
		return CustomerInfo()
	return CustomerInfo(
		name=_text(raw.get("name")),
		address=_multiline(raw.get("address")),
		phone=_text(raw.get("phone")),
		email=_text(raw.get("email")),
		contact_person=_text(_pick(raw, "contactPersonName", "contact_person")),
		delivery_address=_multiline(_pick(raw, "deliveryaddress", "deliveryAddress", "delivery_address")),
	)


def normalize_item(raw: Any) -> LineItem:
	if not isinstance(raw, Mapping):
		raise InvoiceDataError(f"Invoice item must be an object, got {type(raw).__name__}")
	final_raw = _pick(raw, "finalAmount", "final_amount")
	return LineItem(
		item_name=_text(_pick(raw, "itemName", "item_name", "name")) or "",
		qty=to_decimal(raw.get("qty")),
		price=to_decimal(raw.get("price")),
		vat=to_decimal(raw.get("vat")),
		final_amount=to_decimal(final_raw) if final_raw is not None else None,
	)


def normalize_invoice(raw: Mapping[str, Any]) -> InvoiceRecord:
	"""
	Turn a loosely-typed invoice payload into an InvoiceRecord.

	Accepts the backend JSON shape:
	{
	  "_id": str, "invoiceNumber": str, "manualInvoiceNumber"?: str,
	  "referenceNumber"?: str, "invoiceDate": iso, "supplyDate": iso,
	  "customer": {"name", "address", "phone", "email", ...},
	  "items": [{"itemName", "qty", "price", "vat", "finalAmount"?}, ...],
	  "totalAmount"?: number,
	  "authorisedSignatoryName"?: str, "customerSignatoryName"?: str
	}
	snake_case spellings of the same keys are accepted too. Item numbers
	coerce to 0 when missing or invalid; a totalAmount that is not a number
	counts as missing.
	"""
	if not isinstance(raw, Mapping):
		raise InvoiceDataError(f"Invoice payload must be an object, got {type(raw).__name__}")

	items_raw = raw.get("items")
	if not isinstance(items_raw, list) or not items_raw:
		raise InvoiceDataError("Invoice has no items")
	items: List[LineItem] = [normalize_item(it) for it in items_raw]

	customer_raw = raw.get("customer") or {}
	reference = _pick(raw, "referenceNumber", "reference_number")
	if reference is None and isinstance(customer_raw, Mapping):
		# Older records keep the reference on the customer document
		reference = _pick(customer_raw, "referenceNumber", "reference_number")

	# An unusable total falls back to the recomputed grand total
	total_amount = _optional_amount(_pick(raw, "totalAmount", "total_amount"))

	return InvoiceRecord(
		id=_text(_pick(raw, "_id", "id")),
		invoice_number=_text(_pick(raw, "invoiceNumber", "invoice_number")),
		manual_invoice_number=_text(_pick(raw, "manualInvoiceNumber", "manual_invoice_number")),
		reference_number=_text(reference),
		invoice_date=parse_date(_pick(raw, "invoiceDate", "invoice_date")),
		supply_date=parse_date(_pick(raw, "supplyDate", "supply_date")),
		customer=normalize_customer(customer_raw),
		items=items,
		total_amount=total_amount,
		authorised_signatory_name=_text(_pick(raw, "authorisedSignatoryName", "authorised_signatory_name")),
		customer_signatory_name=_text(_pick(raw, "customerSignatoryName", "customer_signatory_name")),
	)


def load_invoice(path: Path | str) -> InvoiceRecord:
	"""Read a UTF-8 JSON invoice (bare object or {"invoice": {...}} envelope)."""
	p = Path(path)
	with p.open("r", encoding="utf-8") as f:
		try:
			raw: Dict[str, Any] = json.load(f)
		except json.JSONDecodeError as e:
			raise InvoiceDataError(f"{p}: not valid JSON ({e})") from e
	if isinstance(raw, dict) and isinstance(raw.get("invoice"), dict):
		raw = raw["invoice"]
	return normalize_invoice(raw)
