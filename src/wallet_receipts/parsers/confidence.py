"""Per-field and overall confidence scores for a parsed receipt."""

import logging
from typing import Optional
from .amount_parser import has_explicit_sign
from .base import ParseResult
from .normalizer import has_residual_confusables

logger = logging.getLogger(__name__)

AMOUNT_WEIGHT = 0.45
MERCHANT_WEIGHT = 0.35
CATEGORY_WEIGHT = 0.20


def clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, value)))


def overall_confidence(amount: int, merchant: int, category: int) -> int:
    """Weighted blend of the three field confidences."""
    blended = AMOUNT_WEIGHT * amount + MERCHANT_WEIGHT * merchant + CATEGORY_WEIGHT * category
    return clamp(round(blended))


class ConfidenceScorer:
    """Turns extraction quality signals into 0-100 scores."""

    def amount_confidence(self, amount: Optional[ParseResult], text: str) -> int:
        if amount is None:
            return clamp(20)

        score = 70
        units = abs(amount.value.minor) / 100
        if units >= 1000:
            score += 10
        elif units >= 10:
            score += 8
        if has_explicit_sign(text):
            score += 8
        if has_residual_confusables(text):
            score -= 8
        return clamp(score)

    def merchant_confidence(self, merchant: Optional[ParseResult]) -> int:
        if merchant is None:
            return clamp(20)
        return clamp(60 + merchant.metadata.get('quality', 0))

    def category_confidence(self, guess: Optional[ParseResult], text: str) -> int:
        if guess is None:
            return clamp(25)
        score = 65
        # the label itself, not the trigger keyword
        if guess.value and guess.value in text:
            score += 15
        return clamp(score)

    def overall(self, amount: int, merchant: int, category: int) -> int:
        return overall_confidence(amount, merchant, category)
