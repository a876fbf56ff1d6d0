"""Review queue for drafts that need a human look before upload."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from dateutil import tz

from .models import DraftRecord, PayTimeSource

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200


@dataclass
class ReviewItem:
    """Represents a draft that needs manual review."""
    source_name: str
    reason: str
    suggested_merchant: Optional[str] = None
    suggested_amount: Optional[int] = None
    suggested_category: Optional[str] = None
    raw_snippet: str = ""
    confidence_scores: Optional[Dict[str, int]] = None


def make_snippet(raw_text: str) -> str:
    """Single-line excerpt of the text, stripped of control characters."""
    snippet = raw_text.replace('\n', ' ')[:SNIPPET_LENGTH]
    snippet = ''.join(char for char in snippet if ord(char) >= 32 or char == '\t')
    if len(raw_text) > SNIPPET_LENGTH:
        snippet += "..."
    return snippet


class ReviewQueue:
    """Collects drafts that cannot be trusted as-is."""

    def __init__(self, low_confidence_threshold: int = 60, duplicate_tolerance: float = 0.03,
                 timezone=None):
        """
        Initialize review queue.

        Args:
            low_confidence_threshold: Overall confidence below which a draft is flagged
            duplicate_tolerance: Relative amount difference still counted as a duplicate
            timezone: Zone used to bucket pay times into days
        """
        self.items: List[ReviewItem] = []
        self.low_confidence_threshold = low_confidence_threshold
        self.duplicate_tolerance = duplicate_tolerance
        self.timezone = timezone or tz.tzlocal()

    def review_reasons(self, draft: DraftRecord) -> List[str]:
        reasons = []
        if draft.amount_minor is None:
            reasons.append("missing amount")
        if draft.category_id is None:
            reasons.append("unresolved category")
        if draft.tag_id is None:
            reasons.append("unresolved tag")
        if draft.overall_confidence < self.low_confidence_threshold:
            reasons.append(f"low confidence ({draft.overall_confidence})")
        if draft.pay_time_source != PayTimeSource.OCR:
            reasons.append(f"pay time from {draft.pay_time_source.value.lower()}")
        return reasons

    def should_review(self, draft: DraftRecord) -> bool:
        reasons = self.review_reasons(draft)
        if reasons:
            logger.info(f"Sending {draft.source_name or draft.merchant} to review: {'; '.join(reasons)}")
            return True
        return False

    def add_item(self, item: ReviewItem):
        self.items.append(item)
        logger.debug(f"Added to review queue: {item.source_name} - {item.reason}")

    def add_from_draft(self, draft: DraftRecord, category_name: Optional[str] = None) -> Optional[ReviewItem]:
        """
        Queue ``draft`` if any review rule fires.

        Returns:
            The queued ReviewItem, or None when the draft looks fine
        """
        reasons = self.review_reasons(draft)
        if not reasons:
            return None

        item = ReviewItem(
            source_name=draft.source_name,
            reason="; ".join(reasons),
            suggested_merchant=draft.merchant,
            suggested_amount=draft.amount_minor,
            suggested_category=category_name or draft.category_id,
            raw_snippet=make_snippet(draft.raw_text),
            confidence_scores={
                'amount': draft.parsed.amount_confidence,
                'merchant': draft.parsed.merchant_confidence,
                'category': draft.category_confidence,
                'overall': draft.overall_confidence,
            },
        )
        self.add_item(item)
        return item

    def detect_conflicts(self, drafts: Sequence[DraftRecord]) -> List[ReviewItem]:
        """
        Detect potential duplicate receipts.

        Two drafts are duplicates when they share an order id, or when they
        have the same merchant and pay day with amounts within the tolerance.
        """
        conflicts: List[ReviewItem] = []
        flagged = set()

        by_order: Dict[str, List[DraftRecord]] = {}
        for draft in drafts:
            if draft.parsed.order_id:
                by_order.setdefault(draft.parsed.order_id, []).append(draft)
        for order_id, group in by_order.items():
            if len(group) > 1:
                for draft in group:
                    flagged.add(id(draft))
                    conflicts.append(self._duplicate_item(draft, f"Same order id {order_id} as {len(group) - 1} other receipts"))

        by_merchant_day: Dict[tuple, List[DraftRecord]] = {}
        for draft in drafts:
            if id(draft) in flagged or not draft.merchant or draft.amount_minor is None:
                continue
            key = (draft.merchant, self._day(draft.pay_time))
            by_merchant_day.setdefault(key, []).append(draft)

        for (merchant, day), group in by_merchant_day.items():
            if len(group) < 2:
                continue
            amounts = [abs(d.amount_minor) for d in group]
            max_amount, min_amount = max(amounts), min(amounts)
            if max_amount > 0 and (max_amount - min_amount) / max_amount <= self.duplicate_tolerance:
                for draft in group:
                    conflicts.append(self._duplicate_item(
                        draft, f"Similar to {len(group) - 1} other receipts: {merchant} on {day}"))

        if conflicts:
            logger.warning(f"Found {len(conflicts)} potential duplicate receipts")
        return conflicts

    def get_summary(self) -> Dict[str, Any]:
        """Get summary statistics for the review queue."""
        if not self.items:
            return {"total": 0}

        reason_counts: Dict[str, int] = {}
        category_issues = 0
        missing_data = 0
        duplicates = 0
        for item in self.items:
            for reason in item.reason.split(';'):
                reason = reason.strip()
                reason_counts[reason] = reason_counts.get(reason, 0) + 1
            lower = item.reason.lower()
            if 'category' in lower:
                category_issues += 1
            if 'missing' in lower:
                missing_data += 1
            if 'duplicate' in lower:
                duplicates += 1

        return {
            "total": len(self.items),
            "category_issues": category_issues,
            "missing_data": missing_data,
            "duplicates": duplicates,
            "reason_breakdown": reason_counts,
        }

    def clear(self):
        """Clear all items from the review queue."""
        self.items.clear()
        logger.info("Review queue cleared")

    def _day(self, timestamp: int) -> str:
        return datetime.fromtimestamp(timestamp, self.timezone).date().isoformat()

    @staticmethod
    def _duplicate_item(draft: DraftRecord, detail: str) -> ReviewItem:
        return ReviewItem(
            source_name=draft.source_name,
            reason="Potential duplicate receipt",
            suggested_merchant=draft.merchant,
            suggested_amount=draft.amount_minor,
            suggested_category=draft.category_id,
            raw_snippet=detail,
        )
