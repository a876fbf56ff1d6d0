"""Tests for DateParser component and pay-time selection."""

from datetime import datetime

from dateutil import tz

from wallet_receipts.models import PayTimeSource
from wallet_receipts.parsers.base import ReceiptContext
from wallet_receipts.parsers.date_parser import EPOCH_FLOOR, FUTURE_SLACK, DateParser, decide_pay_time

SHANGHAI = tz.gettz('Asia/Shanghai')


class TestDateParser:
    """Test suite for DateParser."""

    def setup_method(self):
        """Set up test fixtures."""
        self.tz = SHANGHAI
        self.parser = DateParser(timezone=SHANGHAI, now=datetime(2026, 3, 1, tzinfo=SHANGHAI))

    def epoch(self, *parts) -> int:
        return int(datetime(*parts, tzinfo=self.tz).timestamp())

    def test_chinese_full_format(self):
        """年/月/日 with seconds, as printed by WeChat Pay."""
        result = self.parser.parse(ReceiptContext(full_text="支付时间\n2026年2月11日11:12:43"))

        assert result is not None
        assert result.value == self.epoch(2026, 2, 11, 11, 12, 43)
        assert result.metadata['pattern_type'] == 'chinese_full'

    def test_dash_with_seconds(self):
        """ISO-like date with seconds, as printed by Alipay."""
        result = self.parser.parse(ReceiptContext(full_text="2026-02-05 18:17:42"))

        assert result.value == self.epoch(2026, 2, 5, 18, 17, 42)
        assert result.metadata['pattern_type'] == 'dash_seconds'

    def test_slash_without_seconds(self):
        """Slash dates without seconds default the seconds to zero."""
        result = self.parser.parse(ReceiptContext(full_text="交易时间 2026/02/05 18:17"))

        assert result.value == self.epoch(2026, 2, 5, 18, 17, 0)
        assert result.metadata['pattern_type'] == 'slash'

    def test_dot_separated(self):
        """Dot-separated dates are accepted."""
        result = self.parser.parse(ReceiptContext(full_text="2026.01.31 09:05:00"))

        assert result.value == self.epoch(2026, 1, 31, 9, 5, 0)

    def test_month_day_assumes_current_year(self):
        """Year-less dates use the current year with lower confidence."""
        result = self.parser.parse(ReceiptContext(full_text="2月13日 12:20"))

        assert result.value == self.epoch(2026, 2, 13, 12, 20, 0)
        assert result.confidence < 0.9

    def test_full_date_preferred_over_status_bar(self):
        """A full date anywhere wins over a year-less status-bar clock."""
        text = "12:20 2/13\n支付时间\n2026年2月11日11:12:43"

        result = self.parser.parse(ReceiptContext(full_text=text))

        assert result.value == self.epoch(2026, 2, 11, 11, 12, 43)

    def test_invalid_calendar_values(self):
        """Matches with impossible month or day are rejected."""
        assert self.parser.parse(ReceiptContext(full_text="2026-13-45 10:00:00")) is None

    def test_no_date(self):
        """Text without a date yields nothing."""
        assert self.parser.parse(ReceiptContext(full_text="茅台酱香 -3.00")) is None


class TestDecidePayTime:
    """Test suite for pay-time source selection."""

    NOW = 1_770_000_000

    def test_parsed_time_wins(self):
        """A plausible parsed time is used as-is."""
        decision = decide_pay_time(self.NOW - 100, self.NOW - 50, self.NOW)

        assert decision.value == self.NOW - 100
        assert decision.source == PayTimeSource.OCR

    def test_future_slack_is_inclusive(self):
        """Up to ten minutes in the future is still accepted."""
        decision = decide_pay_time(self.NOW + FUTURE_SLACK, None, self.NOW)

        assert decision.source == PayTimeSource.OCR

    def test_capture_time_fallback(self):
        """A parsed time too far in the future falls back to the capture time."""
        decision = decide_pay_time(self.NOW + FUTURE_SLACK + 1, self.NOW - 30, self.NOW)

        assert decision.value == self.NOW - 30
        assert decision.source == PayTimeSource.CAPTURE

    def test_now_fallback(self):
        """Times before 2000 are discarded and the current time is used."""
        decision = decide_pay_time(EPOCH_FLOOR - 1, None, self.NOW)

        assert decision.value == self.NOW
        assert decision.source == PayTimeSource.NOW

    def test_missing_inputs(self):
        """With nothing parsed or captured, the current time is used."""
        decision = decide_pay_time(None, None, self.NOW)

        assert decision == decide_pay_time(None, EPOCH_FLOOR - 10, self.NOW)
        assert decision.source == PayTimeSource.NOW
