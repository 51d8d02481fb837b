import json
import os
import sys

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import main as cli  # noqa: E402
from invoice_totals.pipeline import process_document, process_file, process_text  # noqa: E402

SYSCO_INVOICE = "\n".join([
    "SYSCO EASTERN MARYLAND, LLC",
    "CUSTOMER SERVICE 800-SYSCOCS",
    "2 CS WHOLE MILK 1,700.00",
    "***GROUP TOTAL*** 1,700.00",
    "SALES TAX 48.85",
    "INVOICE",
    "TOTAL 1,748.85",
])


def test_process_text_end_to_end():
    report = process_text(SYSCO_INVOICE, line_items=[{"total_cents": 170000}])

    assert report.vendor.vendor_key == "sysco"
    assert report.totals.total_cents == 174885
    assert report.totals.tax_cents == 4885
    assert report.invoice_math.computed_total_cents == 174885
    assert report.reconciliation.matches
    assert report.selection.source == "extracted"
    assert report.total_cents == 174885
    assert any(line.startswith(">") for line in report.interesting_lines)


def test_process_text_with_no_total_uses_line_items():
    report = process_text("ACME PRODUCE\nCARROTS 20.00\nONIONS 30.00", line_items=[2000, 3000])

    assert report.selection.source == "sum_items"
    assert report.selection.confidence == 0.6
    assert report.reconciliation.reason == "No extracted total available"


def test_empty_text_report():
    report = process_text("")

    assert report.total_cents == 0
    assert report.vendor.is_generic
    assert report.totals.evidence.total is None
    assert report.selection.source == "none"
    assert report.acquisition.coverage.missing_critical_anchors
    assert report.interesting_lines == ()


def test_process_document_empty_bytes():
    report = process_document(b"")

    assert report.total_cents == 0
    assert report.acquisition.warnings == ("Empty document",)


def test_report_json():
    data = json.loads(process_text(SYSCO_INVOICE).to_json())

    assert data["total_cents"] == 174885
    assert data["totals"]["evidence"]["total"]["rule"] == "INVOICE + TOTAL (split-line)"
    assert data["vendor"]["vendor_key"] == "sysco"
    assert "text" not in data["acquisition"]


def test_process_file_as_text(tmp_path):
    path = tmp_path / "invoice.txt"
    path.write_text("INVOICE\nSUBTOTAL\nTAX\nTOTAL\n100.00\n7.00\n107.00\n", encoding="utf-8")

    report = process_file(path, as_text=True)

    assert report.totals.subtotal_cents == 10000
    assert report.totals.tax_cents == 700
    assert report.total_cents == 10700


def test_process_file_reads_txt_extension_as_text(tmp_path):
    path = tmp_path / "INVOICE.TXT"
    path.write_text("INVOICE\nTOTAL 1,748.85\n", encoding="utf-8")

    report = process_file(path)

    assert report.total_cents == 174885
    assert report.acquisition.document_type == "text"


def test_cli_prints_report(tmp_path, capsys):
    path = tmp_path / "invoice.txt"
    path.write_text(SYSCO_INVOICE, encoding="utf-8")

    exit_code = cli.main(["--input", str(path), "--text", "--parser-total", "1,000.00"])
    output = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert output["total_cents"] == 174885
    assert output["selection"]["source"] == "extracted"
    assert "interesting_lines" not in output


def test_cli_show_lines_and_line_items(tmp_path, capsys):
    path = tmp_path / "invoice.txt"
    path.write_text("ACME PRODUCE\nCARROTS 20.00\nONIONS 30.00", encoding="utf-8")

    exit_code = cli.main([
        "--input", str(path), "--text", "--show-lines",
        "--line-items", '[{"total_cents": 2000}, {"total_cents": 3000}]',
    ])
    output = json.loads(capsys.readouterr().out)

    assert exit_code == 0
    assert output["total_cents"] == 5000
    assert output["selection"]["source"] == "sum_items"
    assert "interesting_lines" in output


def test_cli_missing_file(tmp_path, capsys):
    exit_code = cli.main(["--input", str(tmp_path / "missing.pdf")])

    assert exit_code == 1
    assert "Error" in capsys.readouterr().err


def test_cli_bad_line_items(tmp_path):
    path = tmp_path / "invoice.txt"
    path.write_text("INVOICE TOTAL 1.00", encoding="utf-8")

    assert cli.main(["--input", str(path), "--text", "--line-items", "{not json"]) == 1
    assert cli.main(["--input", str(path), "--text", "--parser-total", "abc"]) == 1
