"""Tests for MerchantParser component."""

from wallet_receipts.parsers.base import ReceiptContext
from wallet_receipts.parsers.merchant_parser import MerchantParser
from wallet_receipts.parsers.normalizer import normalize
from wallet_receipts.templates import AlipayTemplate, GenericTemplate


class TestMerchantNames:
    """Test suite for merchant name cleanup and scoring."""

    def setup_method(self):
        """Set up test fixtures."""
        self.parser = MerchantParser()

    def test_strip_role_prefix(self):
        """商户_ and similar role prefixes are removed."""
        assert self.parser.normalize_name("商户_王亚超") == "王亚超"
        assert self.parser.normalize_name("Merchant: Blue Bottle") == "Blue Bottle"

    def test_strip_trailing_marker(self):
        """Navigation arrows after the name are removed."""
        assert self.parser.normalize_name("星巴克 >") == "星巴克"

    def test_embedded_status_removed(self):
        """Status phrases glued to the name are removed before canonicalizing."""
        assert self.parser.normalize_name("支付成功 美团外卖") == "美团"

    def test_noise(self):
        """UI labels, dates and empty strings are noise."""
        assert self.parser.is_noise("支付时间")
        assert self.parser.is_noise("2026-02-05")
        assert self.parser.is_noise("")
        assert not self.parser.is_noise("茅台酱香")

    def test_usable(self):
        """Mostly-masked or too-short names are not usable."""
        assert not self.parser.is_usable("****")
        assert not self.parser.is_usable("A")
        assert self.parser.is_usable("福福饼店")
        assert self.parser.is_usable("张*记")

    def test_quality_penalties(self):
        """Legal-entity suffixes and acquirer names lower the quality."""
        assert self.parser.quality("颖福面包坊(个体工商户)") < self.parser.quality("颖福面包坊")
        assert self.parser.quality("易生支付有限公司") < 0

    def test_quality_bonuses(self):
        """Shop words and known brands raise the quality."""
        assert self.parser.quality("福福饼店") == 16
        assert self.parser.quality("美团") == 18
        assert self.parser.quality("王亚超") == 6


class TestMerchantParser:
    """Test suite for candidate selection."""

    def setup_method(self):
        """Set up test fixtures."""
        self.parser = MerchantParser()

    def context(self, text, template, amount_line):
        normalized = normalize(text)
        return ReceiptContext(full_text=normalized, template=template, amount_line=amount_line)

    def test_near_amount_beats_legal_entity_label(self, alipay_text):
        """The shop name above the amount beats the registered legal name."""
        result = self.parser.parse(self.context(alipay_text, AlipayTemplate(), 2))

        assert result.value == "福福饼店·金牌酥皮菠萝包 (嘉定宝龙店)"
        assert result.metadata['source'] == 'near_amount'
        assert result.metadata['candidates'] == 3

    def test_amount_label_not_merchant(self):
        """A total line without digits is not taken as the merchant."""
        assert self.parser.parse(self.context("合计 -", GenericTemplate(), None)) is None
        assert self.parser.is_noise("实付")

    def test_brand_with_order_number(self, food_delivery_text):
        """A known brand line is kept despite its long digit run."""
        result = self.parser.parse(self.context(food_delivery_text, GenericTemplate(), 1))

        assert result.value == "美团"
        assert result.metadata['quality'] == 18

    def test_labeled_merchant(self):
        """A labeled merchant is used when no line sits above the amount."""
        text = "-15.00\n收款方\n张记面馆"

        result = self.parser.parse(self.context(text, GenericTemplate(), 0))

        assert result.value == "张记面馆"
        assert result.metadata['source'] == 'label:收款方'

    def test_no_candidates(self):
        """Only numbers and times: no merchant."""
        result = self.parser.parse(self.context("12:20\n-3.00", GenericTemplate(), 1))

        assert result is None
