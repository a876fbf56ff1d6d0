"""Pay-time parsing for Chinese and numeric date-time layouts."""

import re
import logging
import time
from datetime import datetime, tzinfo
from typing import Optional
from dateutil import tz
from .base import BaseParser, ParseResult, ReceiptContext
from ..models import PayTimeDecision, PayTimeSource

logger = logging.getLogger(__name__)

# 2000-01-01T00:00:00Z; anything earlier is a misread.
EPOCH_FLOOR = 946684800
# Tolerated clock skew into the future, in seconds.
FUTURE_SLACK = 600

_TIME = r'(\d{1,2}):(\d{2})(?::(\d{2}))?'


class DateParser(BaseParser):
    """Specialized parser for extracting the payment time as epoch seconds."""

    def __init__(self, timezone: Optional[tzinfo] = None, now=None):
        super().__init__()
        self.timezone = timezone or tz.tzlocal()
        self._now = now

        # Full patterns in priority order: (regex, pattern_type)
        self.date_patterns = [
            (re.compile(r'(\d{4})\s*年\s*(\d{1,2})\s*月\s*(\d{1,2})\s*日\s*' + _TIME), 'chinese_full'),
            (re.compile(r'(\d{4})-(\d{1,2})-(\d{1,2})[ T]+(\d{1,2}):(\d{2}):(\d{2})'), 'dash_seconds'),
            (re.compile(r'(\d{4})/(\d{1,2})/(\d{1,2})\s+(\d{1,2}):(\d{2}):(\d{2})'), 'slash_seconds'),
            (re.compile(r'(\d{4})\.(\d{1,2})\.(\d{1,2})\s+(\d{1,2}):(\d{2}):(\d{2})'), 'dot_seconds'),
            (re.compile(r'(\d{4})-(\d{1,2})-(\d{1,2})[ T]+(\d{1,2}):(\d{2})()'), 'dash'),
            (re.compile(r'(\d{4})/(\d{1,2})/(\d{1,2})\s+(\d{1,2}):(\d{2})()'), 'slash'),
            (re.compile(r'(\d{4})\.(\d{1,2})\.(\d{1,2})\s+(\d{1,2}):(\d{2})()'), 'dot'),
        ]

        # Year-less patterns; the current year is assumed
        self.month_day_patterns = [
            (re.compile(r'(?<!\d)(\d{1,2})\s*月\s*(\d{1,2})\s*日\s*' + _TIME), 'month_day_chinese'),
            (re.compile(r'(?<![\d\-/])(\d{1,2})[-/](\d{1,2})\s+' + _TIME), 'month_day'),
        ]

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        """
        Extract the pay time from receipt text.

        The first pattern (in priority order) that both matches and yields a
        valid calendar time wins.

        Returns:
            ParseResult with epoch seconds, or None if no pattern matched
        """
        text = context.full_text
        for pattern, pattern_type in self.date_patterns:
            for match in pattern.finditer(text):
                epoch = self._to_epoch(*match.groups())
                if epoch is not None:
                    return self._build(epoch, match, pattern_type, 0.9)

        current_year = str(self.now().year)
        for pattern, pattern_type in self.month_day_patterns:
            for match in pattern.finditer(text):
                epoch = self._to_epoch(current_year, *match.groups())
                if epoch is not None:
                    return self._build(epoch, match, pattern_type, 0.6)

        self.logger.debug("No valid pay time found in text")
        return None

    def now(self) -> datetime:
        if self._now is not None:
            return self._now
        return datetime.now(self.timezone)

    def _build(self, epoch: int, match: re.Match, pattern_type: str, confidence: float) -> ParseResult:
        result = ParseResult(
            value=epoch,
            confidence=confidence,
            source_text=match.group(),
            metadata={'pattern_type': pattern_type},
        )
        self._log_result(result, None)
        return result

    def _to_epoch(self, year, month, day, hour, minute, second=None) -> Optional[int]:
        try:
            moment = datetime(
                int(year), int(month), int(day),
                int(hour), int(minute), int(second) if second else 0,
                tzinfo=self.timezone,
            )
        except (TypeError, ValueError) as e:
            self.logger.debug(f"Invalid date components {year}-{month}-{day} {hour}:{minute}: {e}")
            return None
        return int(moment.timestamp())


def decide_pay_time(ocr_time: Optional[int],
                    capture_time: Optional[int],
                    now: Optional[int] = None) -> PayTimeDecision:
    """
    Pick the pay time to store and record where it came from.

    The parsed time wins when it is plausible (not before 2000 and at most
    ten minutes in the future), then the capture timestamp under the same
    bound, then the current time.
    """
    current = int(time.time()) if now is None else now
    upper = current + FUTURE_SLACK
    if ocr_time is not None and EPOCH_FLOOR <= ocr_time <= upper:
        return PayTimeDecision(ocr_time, PayTimeSource.OCR)
    if capture_time is not None and EPOCH_FLOOR <= capture_time <= upper:
        return PayTimeDecision(capture_time, PayTimeSource.CAPTURE)
    return PayTimeDecision(current, PayTimeSource.NOW)
