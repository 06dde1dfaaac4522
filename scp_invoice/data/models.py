from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional, List

from sqlmodel import Field, SQLModel


class CustomerInfo(SQLModel):
	name: Optional[str] = None
	# May span several lines separated by "\n"
	address: Optional[str] = None
	phone: Optional[str] = None
	email: Optional[str] = None
	contact_person: Optional[str] = None
	delivery_address: Optional[str] = None


class LineItem(SQLModel):
	item_name: str = ""
	qty: Decimal = Decimal("0")
	price: Decimal = Decimal("0")
	# VAT percentage, e.g. 5 for 5%
	vat: Decimal = Decimal("0")
	# Backend supplied qty * price * (1 + vat/100); informational only
	final_amount: Optional[Decimal] = None


class InvoiceRecord(SQLModel):
	"""One invoice as handed to the composer. Treated as read-only input."""

	id: Optional[str] = None
	invoice_number: Optional[str] = None
	manual_invoice_number: Optional[str] = None
	reference_number: Optional[str] = None
	invoice_date: Optional[date] = None
	supply_date: Optional[date] = None
	customer: CustomerInfo = Field(default_factory=CustomerInfo)
	items: List[LineItem] = Field(default_factory=list)
	# Authoritative grand total when the backend sends one
	total_amount: Optional[Decimal] = None
	authorised_signatory_name: Optional[str] = None
	customer_signatory_name: Optional[str] = None
