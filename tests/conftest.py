from __future__ import annotations

from typing import Any, Callable, Dict, List

import pytest

from scp_invoice.data.models import InvoiceRecord
from scp_invoice.data.normalize import normalize_invoice


def sample_payload(items: List[Dict[str, Any]] | None = None, **overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "_id": "66f0c0ffee",
        "invoiceNumber": "INV-0042",
        "manualInvoiceNumber": "SCP/2025/017",
        "invoiceDate": "2025-01-05T00:00:00.000Z",
        "supplyDate": "2025-01-07T00:00:00.000Z",
        "customer": {
            "name": "Al Noor Cafe",
            "address": "Way 3021, Building 12\nMuscat",
            "phone": "+968 9123 4567",
            "email": "orders@alnoor.example",
        },
        "items": items
        if items is not None
        else [
            {"itemName": "Syrup", "qty": 2, "price": 6.0, "vat": 5},
            {"itemName": "Base", "qty": 1, "price": 8.0, "vat": 5},
            {"itemName": "Flavour", "qty": 5, "price": 5.0, "vat": 0},
        ],
        "authorisedSignatoryName": "R. Said",
        "customerSignatoryName": "M. Hassan",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def payload() -> Callable[..., Dict[str, Any]]:
    """Factory for the raw backend JSON of the sample invoice."""
    return sample_payload


@pytest.fixture
def make_invoice() -> Callable[..., InvoiceRecord]:
    def _make(items: List[Dict[str, Any]] | None = None, **overrides: Any) -> InvoiceRecord:
        return normalize_invoice(sample_payload(items, **overrides))

    return _make


@pytest.fixture
def many_items() -> List[Dict[str, Any]]:
    return [
        {"itemName": f"Item {i:03d}", "qty": 1, "price": 1.5, "vat": 5}
        for i in range(1, 61)
    ]
