"""Label-driven and keyword-driven field extraction."""

import re
import logging
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple
from .base import BaseParser, ParseResult, ReceiptContext
from ..rules import load_rules

logger = logging.getLogger(__name__)

# (priority index, label, value, line index)
LabelHit = Tuple[int, str, str, int]


@lru_cache(maxsize=256)
def _label_pattern(label: str) -> re.Pattern:
    # The label must end at ':', whitespace, an opening bracket or end of line.
    return re.compile(re.escape(label) + r'(?=[:\s(\[<]|$)')


def _value_after(lines: Sequence[str], line_idx: int, end: int) -> Optional[str]:
    remainder = lines[line_idx][end:].lstrip(' :\t').strip()
    if remainder:
        return remainder
    if line_idx + 1 < len(lines):
        return lines[line_idx + 1]
    return None


def find_label_hits(lines: Sequence[str], labels: Sequence[str]) -> List[LabelHit]:
    """
    One hit per label (first matching line), in label priority order.

    The value is the rest of the line after the label or, when that is
    blank, the next non-empty line.
    """
    hits: List[LabelHit] = []
    for priority, label in enumerate(labels):
        pattern = _label_pattern(label)
        for line_idx, line in enumerate(lines):
            match = pattern.search(line)
            if not match:
                continue
            value = _value_after(lines, line_idx, match.end())
            if value:
                hits.append((priority, label, value, line_idx))
            break
    return hits


def extract_by_labels(lines: Sequence[str], labels: Sequence[str]) -> Optional[str]:
    """Value of the highest-priority label present in ``lines``."""
    hits = find_label_hits(lines, labels)
    return hits[0][2] if hits else None


class LabelFieldParser(BaseParser):
    """Extracts one labeled field using the detected template's vocabulary."""

    def __init__(self, field_name: str):
        super().__init__()
        self.field_name = field_name

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        if context.template is None:
            return None
        labels = context.template.labels_for(self.field_name)
        hits = find_label_hits(context.lines, labels)
        if not hits:
            return None
        priority, label, value, line_idx = hits[0]
        result = ParseResult(
            value=value,
            confidence=max(0.5, 0.9 - priority * 0.05),
            source_text=context.lines[line_idx],
            metadata={'label': label, 'line_idx': line_idx},
        )
        self._log_result(result, context)
        return result


class PlatformParser(BaseParser):
    """Detects the wallet vendor from its name anywhere in the text."""

    def __init__(self):
        super().__init__()
        self.platform_markers = [
            ('WeChat', ('微信', 'wechat')),
            ('Alipay', ('支付宝', 'alipay')),
        ]

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        text_lower = context.full_text.lower()
        for platform, markers in self.platform_markers:
            for marker in markers:
                if marker in text_lower:
                    return ParseResult(value=platform, confidence=0.9, source_text=marker)
        return None


class StatusParser(BaseParser):
    """Maps status phrases to Success / Refund / Failed."""

    def __init__(self):
        super().__init__()
        # Refund wins over success: refunded bills still show the original payment line
        self.status_rules = [
            ('Refund', ('退款', 'refund')),
            ('Success', ('支付成功', '交易成功', '付款成功', 'payment successful')),
            ('Failed', ('支付失败', '交易失败', '付款失败', 'payment failed')),
        ]

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        text_lower = context.full_text.lower()
        for status, phrases in self.status_rules:
            for phrase in phrases:
                if phrase in text_lower:
                    return ParseResult(value=status, confidence=0.9, source_text=phrase)
        return None


class CardTailParser(BaseParser):
    """Last 3-4 digits of the paying card."""

    def __init__(self):
        super().__init__()
        self.tail_patterns = [
            (re.compile(r'尾号\s*(\d{3,4})(?!\d)'), 'tail_marker'),
            (re.compile(r'[(\[](\d{3,4})[)\]]'), 'brackets'),
        ]

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        for pattern, pattern_type in self.tail_patterns:
            match = pattern.search(context.full_text)
            if match:
                return ParseResult(
                    value=match.group(1),
                    confidence=0.9 if pattern_type == 'tail_marker' else 0.7,
                    source_text=match.group(),
                    metadata={'pattern_type': pattern_type},
                )
        return None


class OrderIdParser(LabelFieldParser):
    """Order or transaction number: labeled line first, then a regex fallback."""

    def __init__(self):
        super().__init__('order_id')
        self.fallback_pattern = re.compile(
            r'(?:订单号|交易号|单号|流水号|order\s*(?:no|id|number)|transaction\s*(?:no|id))'
            r'[^0-9A-Za-z]{0,4}([0-9A-Za-z]{8,})',
            re.IGNORECASE,
        )

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        result = super().parse(context)
        if result:
            result.value = re.sub(r'\s+', '', result.value)
            return result

        match = self.fallback_pattern.search(context.full_text)
        if match:
            return ParseResult(
                value=match.group(1),
                confidence=0.6,
                source_text=match.group(),
                metadata={'label': None, 'pattern_type': 'fallback'},
            )
        return None


class CategoryGuessParser(BaseParser):
    """Free-text category guess from the first matching keyword."""

    def __init__(self, rules_dir=None):
        super().__init__()
        table = load_rules('categories', rules_dir).get('category_guess', [])
        self.guess_rules: List[Tuple[str, str]] = [(str(k), str(v)) for k, v in table]

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        for keyword, guess in self.guess_rules:
            if keyword in context.full_text:
                return ParseResult(
                    value=guess,
                    confidence=0.6,
                    source_text=keyword,
                    metadata={'keyword': keyword},
                )
        return None
