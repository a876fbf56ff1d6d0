"""Wallet receipt parsing: normalized text in, ParsedReceipt out."""

import logging
from typing import Optional
from .models import ParsedReceipt
from .aliases import AliasDictionary
from .parsers import (
    AmountParser, DateParser, LabelFieldParser, PlatformParser, StatusParser,
    CardTailParser, OrderIdParser, CategoryGuessParser, MerchantParser,
    ConfidenceScorer, normalize, preprocess,
)
from .parsers.base import BaseParser, ParseResult, ReceiptContext
from .templates import TemplateEngine

logger = logging.getLogger(__name__)


class ReceiptParser:
    """
    Multi-stage parser for WeChat Pay, Alipay and bank receipt text.

    Stages: normalize -> detect layout -> extract fields -> resolve merchant
    -> score confidence. Parsing never raises; an unusable input still
    yields a ParsedReceipt with empty fields and low confidence.
    """

    def __init__(self, timezone=None, default_currency: str = 'CNY',
                 aliases: Optional[AliasDictionary] = None, rules_dir=None):
        self.template_engine = TemplateEngine()
        self.amount_parser = AmountParser(default_currency=default_currency)
        self.date_parser = DateParser(timezone=timezone)
        self.merchant_parser = MerchantParser(aliases=aliases)
        self.pay_method_parser = LabelFieldParser('pay_method')
        self.item_parser = LabelFieldParser('item')
        self.order_id_parser = OrderIdParser()
        self.platform_parser = PlatformParser()
        self.status_parser = StatusParser()
        self.card_tail_parser = CardTailParser()
        self.category_guess_parser = CategoryGuessParser(rules_dir=rules_dir)
        self.scorer = ConfidenceScorer()

    def parse(self, text: str) -> ParsedReceipt:
        """
        Parse one recognized receipt text.

        Args:
            text: Raw text from the recognizer, any length, possibly empty

        Returns:
            ParsedReceipt; absent fields are None
        """
        try:
            return self._parse(text or "")
        except Exception as e:
            # Malformed rule data must not escape parse()
            logger.error(f"Receipt parsing failed: {e}", exc_info=True)
            return self._empty()

    def parse_best(self, text: str) -> ParsedReceipt:
        """
        Parse the raw text and, when it differs, its aggressively
        preprocessed variant; keep the result with higher overall confidence.
        Ties keep the raw-text result.
        """
        primary = self.parse(text)
        processed = preprocess(text or "")
        if processed == (text or ""):
            return primary

        secondary = self.parse(processed)
        if secondary.overall_confidence > primary.overall_confidence:
            logger.debug(f"Preprocessed pass won: {secondary.overall_confidence} > {primary.overall_confidence}")
            return secondary
        return primary

    def _parse(self, text: str) -> ParsedReceipt:
        normalized = normalize(text)
        context = ReceiptContext(full_text=normalized)
        template, _ = self.template_engine.detect(normalized, context.lines)
        context.template = template

        amount = self._run(self.amount_parser, context)
        if amount is not None:
            context.amount_line = amount.metadata.get('line_idx')

        pay_time = self._run(self.date_parser, context)
        merchant = self._run(self.merchant_parser, context)
        pay_method = self._run(self.pay_method_parser, context)
        item = self._run(self.item_parser, context)
        order_id = self._run(self.order_id_parser, context)
        platform = self._run(self.platform_parser, context)
        status = self._run(self.status_parser, context)
        card_tail = self._run(self.card_tail_parser, context)
        guess = self._run(self.category_guess_parser, context)

        amount_conf = self.scorer.amount_confidence(amount, normalized)
        merchant_conf = self.scorer.merchant_confidence(merchant)
        category_conf = self.scorer.category_confidence(guess, normalized)

        parsed = ParsedReceipt(
            amount_minor=amount.value.minor if amount else None,
            currency=amount.value.currency if amount else None,
            merchant=_value(merchant),
            pay_time=_value(pay_time),
            pay_method=_value(pay_method),
            card_tail=_value(card_tail),
            category_guess=_value(guess),
            platform=_value(platform),
            status=_value(status),
            order_id=_value(order_id),
            item_name=_value(item),
            amount_confidence=amount_conf,
            merchant_confidence=merchant_conf,
            category_confidence=category_conf,
            overall_confidence=self.scorer.overall(amount_conf, merchant_conf, category_conf),
            template=template.name,
        )

        logger.info(f"Parsed receipt: template={parsed.template}, amount={parsed.amount_minor}, "
                    f"merchant={parsed.merchant}, overall={parsed.overall_confidence}")
        return parsed

    def _run(self, parser: BaseParser, context: ReceiptContext) -> Optional[ParseResult]:
        try:
            return parser.parse(context)
        except (ValueError, ArithmeticError, IndexError) as e:
            logger.warning(f"{parser.__class__.__name__} failed: {e}")
            return None

    def _empty(self) -> ParsedReceipt:
        amount_conf = self.scorer.amount_confidence(None, "")
        merchant_conf = self.scorer.merchant_confidence(None)
        category_conf = self.scorer.category_confidence(None, "")
        return ParsedReceipt(
            amount_confidence=amount_conf,
            merchant_confidence=merchant_conf,
            category_confidence=category_conf,
            overall_confidence=self.scorer.overall(amount_conf, merchant_conf, category_conf),
        )


def _value(result: Optional[ParseResult]):
    return result.value if result else None


_default: Optional[ReceiptParser] = None


def get_parser() -> ReceiptParser:
    """Shared parser using the system time zone and packaged rule tables."""
    global _default
    if _default is None:
        _default = ReceiptParser()
    return _default


def parse_receipt(text: str) -> ParsedReceipt:
    return get_parser().parse_best(text)
