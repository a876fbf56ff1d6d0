"""Tests for direction inference and category/tag resolution."""

from wallet_receipts.classify import (
    CategoryResolver, TagResolver, build_history_votes, explicit_sign, find_fallback_category,
    infer_direction, merchant_key, merchant_similarity,
)
from wallet_receipts.models import (
    Category, Direction, HistoryRecord, MetadataSnapshot, ParsedReceipt, ResolutionSource,
)


class TestDirection:
    """Test suite for income/expense inference."""

    def test_refund_is_income(self):
        """Refund status wins even over a negative amount."""
        assert infer_direction(-300, 'Refund', "-3.00") == Direction.INCOME

    def test_explicit_signs(self):
        """A sign attached to a number decides the direction."""
        assert infer_direction(None, None, "收到 +300.00") == Direction.INCOME
        assert infer_direction(300, None, "茅台酱香 -3.00") == Direction.EXPENSE

    def test_date_dash_is_not_a_sign(self):
        """Dashes inside dates do not count as minus signs."""
        assert explicit_sign("2026-02-05 工资") == 0
        assert infer_direction(None, None, "2026-02-05 工资到账") == Direction.INCOME

    def test_hint_vocabularies(self):
        """Exactly one hint vocabulary present decides the direction."""
        assert infer_direction(300, None, "工资到账") == Direction.INCOME
        assert infer_direction(300, None, "消费") == Direction.EXPENSE

    def test_positive_amount_defaults_to_expense(self):
        """An unsigned positive amount without income hints is an expense."""
        assert infer_direction(300, None, "") == Direction.EXPENSE
        assert infer_direction(None, None, "") == Direction.EXPENSE


class TestMerchantKeys:
    """Test suite for merchant comparison keys."""

    def test_key_strips_roles_and_legal_forms(self):
        """Role words, legal forms and punctuation are removed."""
        assert merchant_key("商户_星巴克(人民广场店)") == "星巴克"
        assert merchant_key("上海颖福面包坊有限公司") == "上海颖福面包坊"
        assert merchant_key("") == ""
        assert merchant_key(None) == ""

    def test_masking_stars_ignored(self):
        """Masked characters do not change the key."""
        assert merchant_key("张*记面馆") == merchant_key("张记面馆")

    def test_similarity(self):
        """Similarity is the Jaccard index of character sets."""
        assert merchant_similarity("abc", "abd") == 0.5
        assert merchant_similarity("", "abc") == 0.0

    def test_history_votes(self, snapshot):
        """Containment matches vote a flat 24 per record."""
        history = [
            HistoryRecord("张记面馆", "c11"),
            HistoryRecord("张记面馆分店", "c11"),
            HistoryRecord("无关商户", "c21"),
            HistoryRecord("张记面馆", "c31"),
        ]

        votes = build_history_votes("张记面馆", ["c11", "c21"], history)

        assert votes == {"c11": 48}


class TestCategoryResolver:
    """Test suite for CategoryResolver."""

    def setup_method(self):
        """Set up test fixtures."""
        self.resolver = CategoryResolver()

    def test_scored_leaf(self, snapshot):
        """Hint tokens and the brand bonus pick a dining leaf, never its parent."""
        parsed = ParsedReceipt(amount_minor=-2550, merchant="美团", category_guess="餐饮")

        result = self.resolver.resolve(parsed, "美团外卖 -25.50", snapshot)

        assert result.category_id == "c11"
        assert result.source == ResolutionSource.SCORED
        assert result.direction == Direction.EXPENSE

    def test_history_with_numeric_suffix(self, snapshot):
        """A merchant seen before with a trailing number reuses its category."""
        parsed = ParsedReceipt(amount_minor=-1500, merchant="张记面馆88")
        history = [HistoryRecord("张记面馆", "c11")]

        result = self.resolver.resolve(parsed, "", snapshot, history)

        assert result.category_id == "c11"
        assert result.source == ResolutionSource.HISTORY

    def test_history_with_masking_stars(self, snapshot):
        """Masked merchant names still match their history."""
        parsed = ParsedReceipt(amount_minor=-1500, merchant="张*记面馆")

        result = self.resolver.resolve(parsed, "", snapshot, [HistoryRecord("张记面馆", "c21")])

        assert result.category_id == "c21"

    def test_history_by_similarity(self, snapshot):
        """Close spellings above the similarity bar count as the same merchant."""
        parsed = ParsedReceipt(amount_minor=-3200, merchant="老王牛肉拉面馆")

        result = self.resolver.resolve(parsed, "", snapshot, [HistoryRecord("老王牛肉面馆", "c11")])

        assert result.category_id == "c11"
        assert result.source == ResolutionSource.HISTORY

    def test_history_of_other_direction_ignored(self, snapshot):
        """History pointing at an income category is not used for an expense."""
        parsed = ParsedReceipt(amount_minor=-1500, merchant="张记面馆")

        result = self.resolver.resolve(parsed, "张记面馆 -15.00", snapshot, [HistoryRecord("张记面馆", "c31")])

        assert result is None

    def test_refund_goes_to_income_leaf(self, snapshot):
        """Refunds resolve among income leaves."""
        parsed = ParsedReceipt(amount_minor=-300, merchant="美团", status="Refund", category_guess="退款")

        result = self.resolver.resolve(parsed, "退款成功 -3.00", snapshot)

        assert result.category_id == "c32"
        assert result.direction == Direction.INCOME

    def test_brand_hint_fallback(self, snapshot):
        """A weak score falls back to the brand hint table."""
        parsed = ParsedReceipt(amount_minor=-1800, merchant="滴滴出行")

        result = self.resolver.resolve(parsed, "滴滴出行 -18.00", snapshot)

        assert result.category_id == "c21"
        assert result.source == ResolutionSource.BRAND_HINT

    def test_unresolved(self, snapshot):
        """No hints and no history leave the category unresolved."""
        parsed = ParsedReceipt(amount_minor=-300, merchant="茅台酱香")

        assert self.resolver.resolve(parsed, "茅台酱香 -3.00", snapshot) is None

    def test_no_leaves(self):
        """An empty category tree resolves nothing."""
        parsed = ParsedReceipt(amount_minor=-2550, merchant="美团")

        assert self.resolver.resolve(parsed, "美团", MetadataSnapshot()) is None


class TestFallbackCategory:
    """Test suite for direction fallback selection."""

    def test_first_leaf_of_direction(self, snapshot):
        """Without an expense sibling the first expense leaf is used."""
        assert find_fallback_category(snapshot, Direction.EXPENSE, "c31").id == "c11"

    def test_sibling_preferred(self, snapshot):
        """A leaf under the same parent is preferred."""
        assert find_fallback_category(snapshot, Direction.INCOME, "c32").id == "c31"

    def test_top_level_leaf(self, snapshot):
        """A top-level node without children is a leaf."""
        assert find_fallback_category(snapshot, Direction.TRANSFER, None).id == "c4"

    def test_no_leaf_of_direction(self):
        """Nothing is returned when the direction has no leaves."""
        only_expense = MetadataSnapshot(categories=[Category("c11", "早午晚餐", Direction.EXPENSE)])

        assert find_fallback_category(only_expense, Direction.INCOME, "c11") is None


class TestTagResolver:
    """Test suite for TagResolver."""

    def setup_method(self):
        """Set up test fixtures."""
        self.resolver = TagResolver()

    def test_platform_tag(self, snapshot):
        """The wallet platform maps to its tag first."""
        parsed = ParsedReceipt(platform="WeChat", merchant="美团")

        assert self.resolver.resolve(parsed, "", snapshot) == "t1"

    def test_history_tag(self, snapshot):
        """History tags are used when they still exist."""
        parsed = ParsedReceipt(merchant="星巴克")
        history = [HistoryRecord("星巴克", tag_id="gone"), HistoryRecord("星巴克咖啡", tag_id="t3")]

        assert self.resolver.resolve(parsed, "", snapshot, history) == "t3"

    def test_keyword_group(self, snapshot):
        """Keyword groups in the text pick the matching tag."""
        parsed = ParsedReceipt(merchant="张记", item_name="外卖订单")

        assert self.resolver.resolve(parsed, "", snapshot) == "t2"

    def test_category_name(self, snapshot):
        """The chosen category's name is the last resort."""
        parsed = ParsedReceipt(merchant="某某")

        assert self.resolver.resolve(parsed, "", snapshot, category_id="c21") == "t4"

    def test_no_tags(self):
        """Without tags nothing is resolved."""
        assert self.resolver.resolve(ParsedReceipt(platform="WeChat"), "", MetadataSnapshot()) is None
