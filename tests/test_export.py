"""Tests for the Excel exporter."""

from dateutil import tz
from openpyxl import load_workbook

from wallet_receipts.export import HEADERS, ExcelExporter
from wallet_receipts.models import Direction, DraftRecord, ParsedReceipt, PayTimeSource
from wallet_receipts.review import ReviewItem

PAY_TIME = 1_770_000_000
SHANGHAI = tz.gettz('Asia/Shanghai')


def make_draft(name, amount, category_id="c11", tag_id="t2") -> DraftRecord:
    parsed = ParsedReceipt(amount_minor=amount, currency="CNY", merchant="茅台酱香", platform="WeChat")
    return DraftRecord(raw_text="茅台酱香\n-3.00", parsed=parsed, pay_time=PAY_TIME,
                       pay_time_source=PayTimeSource.OCR, category_id=category_id, tag_id=tag_id,
                       direction=Direction.EXPENSE, overall_confidence=63, source_name=name)


class TestExcelExporter:
    """Test suite for ExcelExporter."""

    def test_transaction_dict(self, snapshot):
        """Rows use major units, local pay time and names from the snapshot."""
        row = ExcelExporter.create_transaction_dict(make_draft("a.txt", -300), snapshot, SHANGHAI)

        assert row == {
            'source': 'a.txt',
            'pay_time': '2026-02-02 10:40',
            'amount': -3.0,
            'currency': 'CNY',
            'direction': 'expense',
            'merchant': '茅台酱香',
            'category': '早午晚餐',
            'tag': '餐饮',
            'platform': 'WeChat',
            'confidence': 63,
        }

    def test_transaction_dict_without_snapshot(self):
        """Without a snapshot ids are shown; a missing amount stays empty."""
        row = ExcelExporter.create_transaction_dict(make_draft("a.txt", None), None, SHANGHAI)

        assert row['category'] == 'c11'
        assert row['amount'] is None

    def test_category_summary(self):
        """Totals are absolute and unresolved rows are grouped together."""
        summary = ExcelExporter.category_summary([
            {'category': '早午晚餐', 'amount': -3.0},
            {'category': '早午晚餐', 'amount': -9.0},
            {'category': '', 'amount': None},
        ])

        assert list(summary['category']) == ['早午晚餐', 'Unresolved']
        assert list(summary['count']) == [2, 1]
        assert list(summary['total']) == [12.0, 0.0]

    def test_empty_summary(self):
        """No transactions give an empty frame with the expected columns."""
        assert list(ExcelExporter.category_summary([]).columns) == ['category', 'count', 'total']

    def test_export_rows(self, tmp_path, snapshot):
        """OK rows come before rows needing review."""
        output = tmp_path / "receipts.xlsx"
        drafts = [make_draft("b.txt", -900, tag_id=None), make_draft("a.txt", -300)]
        items = [ReviewItem(source_name="b.txt", reason="unresolved tag", raw_snippet="茅台酱香 -9.00")]

        ExcelExporter(output, timezone=SHANGHAI).export_drafts(drafts, items, snapshot, include_summary=False)

        ws = load_workbook(output)["Receipts"]
        assert ws.cell(row=1, column=1).value == "ALL RECEIPTS"
        assert [ws.cell(row=3, column=c).value for c in range(1, len(HEADERS) + 1)] == HEADERS
        assert ws.cell(row=4, column=1).value == "a.txt"
        assert ws.cell(row=4, column=11).value == "OK"
        assert ws.cell(row=5, column=1).value == "b.txt"
        assert ws.cell(row=5, column=11).value == "REVIEW"
        assert ws.cell(row=5, column=12).value == "unresolved tag"

    def test_export_with_summary(self, tmp_path, snapshot):
        """The summary block sits on top of the sheet."""
        output = tmp_path / "nested" / "receipts.xlsx"

        ExcelExporter(output, timezone=SHANGHAI).export_drafts([make_draft("a.txt", -300)], [], snapshot)

        ws = load_workbook(output)["Receipts"]
        assert ws.cell(row=1, column=1).value == "RECEIPT SUMMARY"
        assert ws.cell(row=3, column=2).value == 1
        assert ws.cell(row=3, column=5).value == "3.00"
