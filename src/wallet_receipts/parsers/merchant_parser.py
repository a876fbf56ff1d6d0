"""Merchant name resolution from labeled, proximity and positional candidates."""

import re
import logging
from dataclasses import dataclass
from typing import Optional, List
from .base import BaseParser, ParseResult, ReceiptContext, CJK_RANGE, count_word_chars
from .field_parser import find_label_hits
from ..aliases import AliasDictionary, default_aliases

logger = logging.getLogger(__name__)

# Base priority per candidate source
NEAR_AMOUNT_BASE = 30
LABEL_BASE = 24
LABEL_STEP = 2
POSITIONAL_BASE = 10

NEAR_AMOUNT_WINDOW = 3


@dataclass
class MerchantCandidate:
    """One merchant guess with its scoring inputs."""
    raw: str
    source: str
    base: int
    line_idx: int
    name: str = ""
    quality: int = 0
    usable: bool = False
    noise: bool = False

    @property
    def score(self) -> int:
        return self.base + self.quality


class MerchantParser(BaseParser):
    """Resolves one canonical merchant name with a quality score."""

    def __init__(self, aliases: Optional[AliasDictionary] = None):
        super().__init__()
        self.aliases = aliases or default_aliases()

        # Shop words that make a string look like a real merchant
        self.merchant_keywords = [
            '餐', '饭', '面', '粉', '包', '饼', '糕', '茶', '咖啡', '奶', '酒', '食',
            '鲜', '果', '菜', '肉', '烧烤', '火锅', '小吃', '外卖', '超市', '便利',
            '商店', '店', '馆', '坊', '铺', '厨', '药',
            'mart', 'cafe', 'coffee', 'bakery', 'restaurant', 'store', 'shop',
        ]
        self.legal_suffixes = [
            '有限公司', '有限责任公司', '个体工商户', '公司',
            'co.,ltd', 'co., ltd', 'ltd', 'inc.', 'llc', 'limited',
        ]
        self.acquirer_phrases = [
            '收单机构', '支付技术', '支付有限公司', '网络技术', '清算', '财付通', '银联', '钱袋宝', '易生支付',
        ]
        # Whole-string UI words that are never merchants
        self.noise_exact = {
            '商品', '服务', '商户全称', '收款方', '收款方全称', '商家', '对方', '金额', '备注',
            '标签', '分类', '完成', '返回', '支付', '付款', '详情', '合计', '总计', '实付', '应付',
        }
        # UI phrases that disqualify a string wherever they appear
        self.noise_phrases = [
            '当前状态', '支付时间', '支付方式', '付款方式', '收单机构', '交易单号', '商户单号',
            '订单号', '账单详情', '全部账单', '账单分类', '查看', '联系商家', '电子凭证',
            '有疑问', '创建时间', '转账时间', '交易时间', '支付成功', '交易成功',
        ]
        # Substrings that exclude a line from the positional fallback
        self.positional_skip = [
            '支付', '金额', '订单', '时间', '收款方', '商家', '对方', '账单', '状态', '机构', '方式', '单号',
            '合计', '总计', '实付', '应付',
        ]
        # Status phrases that recognizers glue onto neighbouring text
        self.embedded_status = ['支付成功', '交易成功', '付款成功', '当前状态', '查看详情', '待支付', '已支付']

        self.prefix_pattern = re.compile(r'^(?:商户|商家|merchant)[_\-:\s]+', re.IGNORECASE)
        self.leading_punct = re.compile(r'^[^\w*]+|^_+')
        self.trailing_marker = re.compile(r'(?:\s*(?:>|》|›|…|\.\.\.))+\s*$')
        self.non_merchant_line = re.compile(r'^[\d\s:./\-+,¥$年月日时分秒]+$')
        self.long_digits = re.compile(r'\d{5,}')
        self.bare_district = re.compile('^[' + CJK_RANGE + r']{1,8}(?:省|市|区|县|镇|乡|街道)$')

    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        """
        Pick the best merchant among label hits, the line nearest above the
        amount, and the first plausible line of the receipt.

        Returns:
            ParseResult with the canonical name; metadata carries the quality
            score used by confidence scoring.
        """
        candidates = self.collect_candidates(context)
        for candidate in candidates:
            self._evaluate(candidate)

        eligible = [c for c in candidates if c.usable and not c.noise]
        if eligible:
            best = max(eligible, key=lambda c: c.score)
        else:
            best = next((c for c in candidates if c.name and not c.noise), None)

        if best is None:
            self.logger.debug("No merchant candidates survived filtering")
            return None

        result = ParseResult(
            value=best.name,
            confidence=min(1.0, max(0.0, (60 + best.quality) / 100.0)),
            source_text=best.raw,
            metadata={
                'quality': best.quality,
                'source': best.source,
                'line_idx': best.line_idx,
                'usable': best.usable,
                'candidates': len(candidates),
            },
        )
        self._log_result(result, context)
        return result

    def collect_candidates(self, context: ReceiptContext) -> List[MerchantCandidate]:
        candidates: List[MerchantCandidate] = []

        if context.template is not None:
            labels = context.template.labels_for('merchant')
            for priority, label, value, line_idx in find_label_hits(context.lines, labels):
                candidates.append(MerchantCandidate(
                    raw=value, source=f'label:{label}',
                    base=LABEL_BASE - LABEL_STEP * priority, line_idx=line_idx,
                ))

        near = self._near_amount_candidate(context)
        if near:
            candidates.append(near)

        positional = self._positional_candidate(context)
        if positional:
            candidates.append(positional)

        return candidates

    def _near_amount_candidate(self, context: ReceiptContext) -> Optional[MerchantCandidate]:
        if context.amount_line is None:
            return None
        start = context.amount_line - 1
        stop = max(-1, context.amount_line - 1 - NEAR_AMOUNT_WINDOW)
        for line_idx in range(start, stop, -1):
            line = context.lines[line_idx]
            if self._is_plausible_line(line):
                return MerchantCandidate(raw=line, source='near_amount', base=NEAR_AMOUNT_BASE, line_idx=line_idx)
        return None

    def _positional_candidate(self, context: ReceiptContext) -> Optional[MerchantCandidate]:
        for line_idx, line in enumerate(context.lines):
            if not 2 <= len(line) <= 24:
                continue
            if any(ch.isdigit() for ch in line) and not self.aliases.is_known_brand(line):
                continue
            if any(keyword in line for keyword in self.positional_skip):
                continue
            return MerchantCandidate(raw=line, source='positional', base=POSITIONAL_BASE, line_idx=line_idx)
        return None

    def _is_plausible_line(self, line: str) -> bool:
        if not 2 <= len(line) <= 40:
            return False
        if self.non_merchant_line.match(line):
            return False
        if self.long_digits.search(line) and not self.aliases.is_known_brand(line):
            return False
        return not self.is_noise(self.normalize_name(line))

    def normalize_name(self, raw: str) -> str:
        """Strip boilerplate around a merchant string and canonicalize it."""
        name = raw.strip()
        for phrase in self.embedded_status:
            name = name.replace(phrase, ' ')
        name = self.prefix_pattern.sub('', name.strip())
        name = self.trailing_marker.sub('', name)
        name = self.leading_punct.sub('', name).strip()
        name = re.sub(r'\s{2,}', ' ', name)
        if not name:
            return ''
        return self.aliases.canonicalize(name)

    def is_noise(self, name: str) -> bool:
        if not name:
            return True
        if self.non_merchant_line.match(name):
            return True
        if name in self.noise_exact:
            return True
        return any(phrase in name for phrase in self.noise_phrases)

    def is_usable(self, name: str) -> bool:
        if not name:
            return False
        stars = name.count('*')
        if stars * 2 > len(name):
            return False
        word_chars = count_word_chars(name)
        if word_chars < 2:
            return False
        return word_chars * 2 >= len(name)

    def quality(self, name: str) -> int:
        """Heuristic merchant quality; higher means more merchant-like."""
        lower = name.lower()
        score = 0
        if 2 <= len(name) <= 22:
            score += 6
        if len(name) > 30:
            score -= 4
        if any(ch.isdigit() for ch in name):
            score -= 4
        if any(keyword in lower for keyword in self.merchant_keywords):
            score += 10
        if self.aliases.is_known_brand(name):
            score += 12
        if any(suffix in lower for suffix in self.legal_suffixes):
            score -= 10
        if self.bare_district.match(name):
            score -= 4
        if any(phrase in name for phrase in self.acquirer_phrases):
            score -= 6
        if self.is_noise(name):
            score -= 30
        if name.count('*') >= 2:
            score -= 12
        return score

    def _evaluate(self, candidate: MerchantCandidate):
        candidate.name = self.normalize_name(candidate.raw)
        candidate.noise = self.is_noise(candidate.name)
        candidate.usable = self.is_usable(candidate.name)
        candidate.quality = self.quality(candidate.name) if candidate.name else -30
