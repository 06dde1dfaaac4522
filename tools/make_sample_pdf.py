from __future__ import annotations

from datetime import datetime
from pathlib import Path
import sys

# Ensure we can import the scp_invoice package when running this script directly
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from scp_invoice.core.settings import load_settings
from scp_invoice.data.normalize import load_invoice, normalize_invoice
from scp_invoice.pdf.pdf_draw import build_invoice_pdf


def _long_invoice() -> dict:
    # Enough rows to push the table onto a second page
    items = [
        {"itemName": f"Cup sleeve, printed, batch {i:02d}", "qty": i % 4 + 1, "price": 0.125 * i, "vat": 5}
        for i in range(1, 41)
    ]
    return {
        "manualInvoiceNumber": "SAMPLE-LONG",
        "invoiceDate": datetime.now().date().isoformat(),
        "customer": {"name": "Sample Customer", "address": "Way 1\nMuscat"},
        "items": items,
    }


def main() -> None:
    settings = load_settings()
    out_dir = ROOT / "samples" / "out"

    invoice = load_invoice(ROOT / "samples" / "invoice.json")
    for title in ("TAX INVOICE", "DELIVERY ORDER"):
        print(f"Wrote sample to: {build_invoice_pdf(out_dir, invoice, title, settings=settings)}")

    settings.file_name_template = "{number}"
    long_path = build_invoice_pdf(out_dir, normalize_invoice(_long_invoice()), "TAX INVOICE", settings=settings)
    print(f"Wrote sample to: {long_path}")


if __name__ == "__main__":
    main()
