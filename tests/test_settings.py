from __future__ import annotations

import json
from pathlib import Path

from scp_invoice.core.settings import Settings, load_settings, save_settings


def test_missing_file_writes_defaults(tmp_path: Path) -> None:
    p = tmp_path / "conf" / "settings.json"
    s = load_settings(p)
    assert s == Settings()
    assert json.loads(p.read_text(encoding="utf-8"))["currency"] == "OMR"


def test_unknown_keys_ignored_and_values_merged(tmp_path: Path) -> None:
    p = tmp_path / "settings.json"
    p.write_text(json.dumps({"currency": "BHD", "bogus": 1}), encoding="utf-8")
    s = load_settings(p)
    assert s.currency == "BHD"
    assert s.default_title == "TAX INVOICE"


def test_corrupt_file_falls_back_to_defaults(tmp_path: Path) -> None:
    p = tmp_path / "settings.json"
    p.write_text("{oops", encoding="utf-8")
    assert load_settings(p) == Settings()
    # Left untouched
    assert p.read_text(encoding="utf-8") == "{oops"


def test_round_trip_and_output_dir(tmp_path: Path) -> None:
    p = tmp_path / "settings.json"
    save_settings(Settings(output_dir=str(tmp_path / "pdfs"), file_name_template="{number}"), p)
    s = load_settings(p)
    assert s.file_name_template == "{number}"
    assert s.resolved_output_dir() == tmp_path / "pdfs"
    assert not (tmp_path / "settings.json.tmp").exists()
