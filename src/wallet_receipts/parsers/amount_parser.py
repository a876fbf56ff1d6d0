"""Amount parsing with keyword priority and separator disambiguation."""

import re
import logging
from decimal import Decimal, InvalidOperation, ROUND_DOWN
from typing import Optional, List, Tuple
from .base import BaseParser, ParseResult, ReceiptContext, NUMBER_TOKEN
from ..models import MoneyAmount

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = 'CNY'

# Currency symbol or code -> ISO-like currency.
CURRENCY_MARKERS = {
    '¥': 'CNY',
    '$': 'USD',
    'CNY': 'CNY',
    'RMB': 'CNY',
    'USD': 'USD',
    'HKD': 'HKD',
    'EUR': 'EUR',
    'JPY': 'JPY',
    'GBP': 'GBP',
}


def normalize_number(token: str) -> Optional[Decimal]:
    """
    Convert a numeric token to a Decimal.

    The right-most '.' or ',' is the decimal separator only when at most two
    digits follow it; otherwise every separator is thousands grouping.
    """
    if not token:
        return None
    token = token.strip()
    sign = ''
    if token[0] in '+-':
        sign, token = token[0], token[1:]
    if not token or not token[0].isdigit():
        return None

    last_sep = max(token.rfind('.'), token.rfind(','))
    if last_sep >= 0 and len(token) - last_sep - 1 <= 2:
        integer_part = token[:last_sep].replace(',', '').replace('.', '')
        fraction = token[last_sep + 1:]
        digits = f"{integer_part or '0'}.{fraction or '0'}"
    else:
        digits = token.replace(',', '').replace('.', '')

    try:
        return Decimal(sign + digits)
    except InvalidOperation:
        return None


def to_minor_units(value: Decimal) -> int:
    """Scale to minor units, truncating toward zero."""
    return int((value * 100).to_integral_value(rounding=ROUND_DOWN))


def looks_like_id(token: str) -> bool:
    """Long digit runs without a decimal point are order or serial numbers."""
    digits = token.lstrip('+-')
    return len(digits) >= 8 and '.' not in digits


def has_explicit_sign(text: str) -> bool:
    """A '+' or '-' directly attached to a number that is not part of a date or code."""
    return re.search(r'(?<![0-9A-Za-z])[+\-]\d', text or '') is not None


class AmountParser(BaseParser):
    """Specialized parser for extracting the paid amount from wallet receipts."""

    def __init__(self, default_currency: str = DEFAULT_CURRENCY):
        super().__init__()
        self.default_currency = default_currency

        # Labels that introduce the settled amount, most specific first
        self.amount_keywords = [
            '实付款', '实付', '付款金额', '支付金额', '消费金额', '交易金额',
            '应付', '合计', '总计', '金额', 'total', 'amount', 'paid',
        ]
        keyword_alternation = '|'.join(re.escape(k) for k in self.amount_keywords)
        # The label may sit on the line above its amount.
        self.keyword_pattern = re.compile(
            rf'(?:{keyword_alternation})([^0-9+\-]{{0,6}}?)({NUMBER_TOKEN})',
            re.IGNORECASE,
        )

        marker_alternation = '|'.join(
            re.escape(m) if len(m) == 1 else rf'(?<![A-Za-z]){m}(?![A-Za-z])'
            for m in CURRENCY_MARKERS
        )
        self.currency_pattern = re.compile(
            rf'([+\-]?)\s*({marker_alternation})\s*({NUMBER_TOKEN})'
        )
        self.standalone_pattern = re.compile(rf'^({NUMBER_TOKEN})元?$')
        self.token_pattern = re.compile(NUMBER_TOKEN)

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        """
        Extract the transaction amount.

        Passes run in priority order and the first success wins: labeled
        amount, currency-prefixed amount, amount on its own line, then the
        largest non-id number anywhere in the text.

        Returns:
            ParseResult whose value is a MoneyAmount; metadata carries the
            matching line index and the pass that produced it.
        """
        for finder in (self._find_keyword_amount,
                       self._find_currency_amount,
                       self._find_standalone_amount,
                       self._find_largest_amount):
            try:
                result = finder(context)
            except (ValueError, ArithmeticError) as e:
                self.logger.debug(f"{finder.__name__} failed: {e}")
                continue
            if result:
                self._log_result(result, context)
                return result

        self.logger.debug("No amount candidates found")
        return None

    def _result(self, token: str, currency: str, line_idx: Optional[int],
                method: str, confidence: float, sign: str = '') -> Optional[ParseResult]:
        if sign and token[0] not in '+-':
            token = sign + token
        value = normalize_number(token)
        if value is None:
            return None
        return ParseResult(
            value=MoneyAmount(minor=to_minor_units(value), currency=currency),
            confidence=confidence,
            source_text=token,
            metadata={'line_idx': line_idx, 'type': method},
        )

    def _find_keyword_amount(self, context: ReceiptContext) -> Optional[ParseResult]:
        match = self.keyword_pattern.search(context.full_text)
        if not match:
            return None
        line_idx = self._line_index_at(context.full_text, match.start(2))
        currency = self._currency_in(match.group(1))
        return self._result(match.group(2), currency, line_idx, 'keyword', 0.9)

    def _find_currency_amount(self, context: ReceiptContext) -> Optional[ParseResult]:
        for line_idx, line in enumerate(context.lines):
            match = self.currency_pattern.search(line)
            if match:
                sign, marker, token = match.groups()
                currency = CURRENCY_MARKERS.get(marker, self.default_currency)
                return self._result(token, currency, line_idx, 'currency', 0.85, sign=sign)
        return None

    def _find_standalone_amount(self, context: ReceiptContext) -> Optional[ParseResult]:
        for line_idx, line in enumerate(context.lines):
            match = self.standalone_pattern.match(line.replace(' ', ''))
            if match and not looks_like_id(match.group(1)):
                return self._result(match.group(1), self.default_currency, line_idx, 'standalone', 0.8)
        return None

    def _find_largest_amount(self, context: ReceiptContext) -> Optional[ParseResult]:
        candidates: List[Tuple[Decimal, str, int]] = []
        for line_idx, line in enumerate(context.lines):
            for match in self.token_pattern.finditer(line):
                token = match.group()
                if looks_like_id(token):
                    continue
                value = normalize_number(token)
                if value is not None:
                    candidates.append((value, token, line_idx))

        if not candidates:
            return None
        _, token, line_idx = max(candidates, key=lambda c: abs(c[0]))
        return self._result(token, self.default_currency, line_idx, 'largest', 0.4)

    def _currency_in(self, text: str) -> str:
        for marker, currency in CURRENCY_MARKERS.items():
            if len(marker) == 1:
                if marker in text:
                    return currency
            elif re.search(rf'(?<![A-Za-z]){marker}(?![A-Za-z])', text):
                return currency
        return self.default_currency

    @staticmethod
    def _line_index_at(text: str, offset: int) -> int:
        """Index into the non-empty trimmed lines of ``text`` for a character offset."""
        line_idx = -1
        position = 0
        for raw_line in text.splitlines(keepends=True):
            if raw_line.strip():
                line_idx += 1
            position += len(raw_line)
            if offset < position:
                break
        return max(line_idx, 0)
