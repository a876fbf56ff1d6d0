"""Tests for the review queue."""

from dateutil import tz

from wallet_receipts.models import DraftRecord, ParsedReceipt, PayTimeSource
from wallet_receipts.review import ReviewItem, ReviewQueue, make_snippet

PAY_TIME = 1_770_000_000
SHANGHAI = tz.gettz('Asia/Shanghai')


def make_draft(name, amount=-300, merchant="茅台酱香", order_id=None, category_id="c11", tag_id="t2",
               overall=80, pay_time=PAY_TIME, source=PayTimeSource.OCR) -> DraftRecord:
    parsed = ParsedReceipt(amount_minor=amount, merchant=merchant, order_id=order_id,
                           amount_confidence=78, merchant_confidence=66)
    return DraftRecord(raw_text=f"{merchant}\n{amount}", parsed=parsed, pay_time=pay_time,
                       pay_time_source=source, category_id=category_id, tag_id=tag_id,
                       category_confidence=72, overall_confidence=overall, source_name=name)


class TestReviewQueue:
    """Test suite for ReviewQueue."""

    def setup_method(self):
        """Set up test fixtures."""
        self.queue = ReviewQueue(low_confidence_threshold=60, timezone=SHANGHAI)

    def test_clean_draft_not_queued(self):
        """A complete, confident draft needs no review."""
        draft = make_draft("a.txt")

        assert not self.queue.should_review(draft)
        assert self.queue.add_from_draft(draft) is None
        assert self.queue.items == []

    def test_reasons(self):
        """Every missing or weak field is listed."""
        draft = make_draft("b.txt", amount=None, category_id=None, tag_id=None, overall=41,
                           source=PayTimeSource.CAPTURE)

        reasons = self.queue.review_reasons(draft)

        assert reasons == [
            "missing amount", "unresolved category", "unresolved tag",
            "low confidence (41)", "pay time from capture",
        ]

    def test_add_from_draft(self):
        """Queued items carry the suggestions and confidence scores."""
        item = self.queue.add_from_draft(make_draft("c.txt", tag_id=None), category_name="早午晚餐")

        assert item.reason == "unresolved tag"
        assert item.suggested_category == "早午晚餐"
        assert item.suggested_amount == -300
        assert item.confidence_scores == {'amount': 78, 'merchant': 66, 'category': 72, 'overall': 80}
        assert self.queue.items == [item]

    def test_duplicates_by_order_id(self):
        """Drafts sharing an order id are duplicates whatever their amounts."""
        drafts = [
            make_draft("a.txt", order_id="4200003019"),
            make_draft("b.txt", amount=-900, merchant="福福饼店", order_id="4200003019"),
            make_draft("c.txt", merchant="星巴克"),
        ]

        conflicts = self.queue.detect_conflicts(drafts)

        assert sorted(c.source_name for c in conflicts) == ["a.txt", "b.txt"]
        assert all(c.reason == "Potential duplicate receipt" for c in conflicts)

    def test_spread_amounts_not_duplicates(self):
        """A same-day group whose amounts spread beyond the tolerance is not flagged."""
        drafts = [
            make_draft("a.txt", amount=-1000),
            make_draft("b.txt", amount=-1020, pay_time=PAY_TIME + 3600),
            make_draft("c.txt", amount=-5000),
            make_draft("d.txt", amount=-1000, pay_time=PAY_TIME + 3 * 86400),
        ]

        conflicts = self.queue.detect_conflicts(drafts)

        assert conflicts == []

    def test_duplicates_within_tolerance(self):
        """Two close amounts on the same day are flagged."""
        drafts = [
            make_draft("a.txt", amount=-1000),
            make_draft("b.txt", amount=-1020, pay_time=PAY_TIME + 60),
        ]

        conflicts = self.queue.detect_conflicts(drafts)

        assert sorted(c.source_name for c in conflicts) == ["a.txt", "b.txt"]

    def test_summary(self):
        """The summary counts reasons across items."""
        self.queue.add_from_draft(make_draft("a.txt", amount=None))
        self.queue.add_from_draft(make_draft("b.txt", category_id=None))
        self.queue.add_item(ReviewItem(source_name="c.txt", reason="Potential duplicate receipt"))

        summary = self.queue.get_summary()

        assert summary['total'] == 3
        assert summary['missing_data'] == 1
        assert summary['category_issues'] == 1
        assert summary['duplicates'] == 1
        assert summary['reason_breakdown']['unresolved category'] == 1

    def test_empty_summary_and_clear(self):
        """An empty queue summarizes to zero; clear empties it."""
        assert self.queue.get_summary() == {"total": 0}
        self.queue.add_item(ReviewItem(source_name="a.txt", reason="x"))
        self.queue.clear()
        assert self.queue.items == []


class TestSnippet:
    """Test suite for raw text snippets."""

    def test_single_line(self):
        """Newlines become spaces and control characters are dropped."""
        assert make_snippet("茅台酱香\n-3.00\x07") == "茅台酱香 -3.00"

    def test_truncated(self):
        """Long text is cut and marked."""
        snippet = make_snippet("x" * 500)

        assert snippet.endswith("...")
        assert len(snippet) == 203
