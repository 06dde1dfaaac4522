from __future__ import annotations

# Allow running this file directly (python scp_invoice/main.py) by ensuring the project root is on sys.path
import os
import sys
if __package__ in (None, ""):
    sys.path.append(os.path.dirname(os.path.dirname(__file__)))

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from scp_invoice.core.settings import load_settings
from scp_invoice.data.normalize import InvoiceDataError, load_invoice
from scp_invoice.pdf.pdf_draw import build_invoice_pdf

logger = logging.getLogger(__name__)


def _parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="scp-invoice", description="Render an invoice JSON file to PDF.")
    p.add_argument("invoice", type=Path, help="invoice JSON as returned by the billing backend")
    p.add_argument("--title", help="document title, e.g. 'TAX INVOICE' or 'DELIVERY ORDER'")
    p.add_argument("--out-dir", type=Path, help="folder for the PDF (default: settings output_dir)")
    p.add_argument("--settings", type=Path, help="settings.json to use")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = _parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.settings)
    title = args.title or settings.default_title
    out_dir = args.out_dir or settings.resolved_output_dir()

    try:
        invoice = load_invoice(args.invoice)
        logger.info("Loaded invoice %s with %d item(s)", invoice.id or args.invoice.name, len(invoice.items))
        path = build_invoice_pdf(out_dir, invoice, title, settings=settings)
    except InvoiceDataError as e:
        logger.error("Invalid invoice %s: %s", args.invoice, e)
        return 1
    except OSError as e:
        logger.error("Could not read or write files: %s", e)
        return 1

    print(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
