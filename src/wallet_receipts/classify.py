"""Category, tag and direction resolution using rules and labeling history."""

import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .aliases import AliasDictionary, default_aliases
from .models import (
    Category, CategoryResolution, Direction, HistoryRecord, MetadataSnapshot,
    ParsedReceipt, ResolutionSource, Tag,
)
from .parsers.base import CJK_RANGE
from .rules import load_rules

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 200
VOTE_WINDOW = 300
HISTORY_SIMILARITY = 0.72
TAG_SIMILARITY = 0.70
VOTE_SIMILARITY = 0.60
CONTAINMENT_VOTE = 24
ACCEPT_SCORE = 18

_ROLE_WORDS = re.compile('商户|收款方|付款方|对方')
_LEGAL_FORMS = re.compile('有限公司|有限责任公司|个体工商户')
_NON_KEY = re.compile('[^' + CJK_RANGE + 'A-Za-z0-9]')
_EXPLICIT_SIGN = re.compile(r'(?<![0-9A-Za-z])([+\-])[ \t]*[0-9OoIl][0-9OoIl,，.]*')


def merchant_key(merchant: Optional[str], aliases: Optional[AliasDictionary] = None) -> str:
    """Comparable form of a merchant name: canonical brand without role words or legal forms."""
    if not merchant or not merchant.strip():
        return ""
    canonical = (aliases or default_aliases()).canonicalize(merchant)
    key = _ROLE_WORDS.sub('', canonical)
    key = _LEGAL_FORMS.sub('', key)
    return _NON_KEY.sub('', key).lower().strip()


def merchant_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the character sets of two keys."""
    if not a or not b:
        return 0.0
    set_a, set_b = set(a), set(b)
    return len(set_a & set_b) / max(1, len(set_a | set_b))


def keys_related(a: str, b: str, threshold: float) -> bool:
    if not a or not b:
        return False
    return a in b or b in a or merchant_similarity(a, b) >= threshold


def explicit_sign(text: str) -> int:
    """-1 or +1 for the first sign attached to a number, 0 when there is none."""
    normalized = (text or '').replace('＋', '+').replace('－', '-').replace('：', ':')
    match = _EXPLICIT_SIGN.search(normalized)
    if not match:
        return 0
    return -1 if match.group(1) == '-' else 1


def infer_direction(amount_minor: Optional[int], status: Optional[str], text: str,
                    rules_dir: Optional[Path] = None) -> Direction:
    """
    Decide whether a receipt is income or expense.

    Refund status wins, then an explicit sign on a number, then the hint
    vocabularies when exactly one of them occurs. A bare positive amount is
    only income when an income hint backs it; everything else is expense.
    """
    if status == 'Refund':
        return Direction.INCOME

    sign = explicit_sign(text)
    if sign < 0:
        return Direction.EXPENSE
    if sign > 0:
        return Direction.INCOME

    rules = load_rules('categories', rules_dir)
    lower = (text or '').lower()
    has_income = any(hint in lower for hint in rules.get('income_hints', []))
    has_expense = any(hint in lower for hint in rules.get('expense_hints', []))
    if has_income and not has_expense:
        return Direction.INCOME
    if has_expense and not has_income:
        return Direction.EXPENSE

    amount = amount_minor or 0
    if amount < 0:
        return Direction.EXPENSE
    if amount > 0 and has_income:
        return Direction.INCOME
    return Direction.EXPENSE


def direction_text(merchant: Optional[str], item_name: Optional[str], raw_text: Optional[str]) -> str:
    return ' '.join(part for part in (merchant, item_name, raw_text) if part)


def build_history_votes(key: str, preferred_ids: Iterable[str],
                        history: Sequence[HistoryRecord], window: int = VOTE_WINDOW,
                        aliases: Optional[AliasDictionary] = None) -> Dict[str, int]:
    """
    Accumulate votes per category from similar merchants in the history.

    A containment match is worth a flat 24; otherwise a similarity of at
    least 0.60 is worth int(similarity * 20).
    """
    if not key:
        return {}
    allowed = set(preferred_ids)
    votes: Dict[str, int] = {}
    for record in history[:window]:
        if not record.category_id or record.category_id not in allowed:
            continue
        record_key = merchant_key(record.merchant, aliases)
        if not record_key:
            continue
        contained = record_key in key or key in record_key
        similarity = merchant_similarity(record_key, key)
        if contained or similarity >= VOTE_SIMILARITY:
            score = CONTAINMENT_VOTE if contained else int(similarity * 20)
            votes[record.category_id] = votes.get(record.category_id, 0) + score
    return votes


def find_fallback_category(snapshot: MetadataSnapshot, direction: Direction,
                           current_id: Optional[str]) -> Optional[Category]:
    """A leaf of ``direction``: a sibling of ``current_id`` if possible, else the first one."""
    leaves = [c for c in snapshot.leaf_categories() if c.type == direction]
    if not leaves:
        return None
    current = snapshot.category_by_id(current_id)
    if current is not None and current.parent_id:
        sibling = next((c for c in leaves if c.parent_id == current.parent_id), None)
        if sibling is not None:
            return sibling
    return leaves[0]


class CategoryResolver:
    """Map a parsed receipt to a leaf category of the live category tree."""

    def __init__(self, rules_dir: Optional[Path] = None, aliases: Optional[AliasDictionary] = None,
                 history_window: int = HISTORY_WINDOW, vote_window: int = VOTE_WINDOW):
        self.rules_dir = rules_dir
        self.aliases = aliases or default_aliases()
        self.history_window = history_window
        self.vote_window = vote_window

        rules = load_rules('categories', rules_dir)
        self.hint_groups = rules.get('hint_groups', [])
        self.brand_bonus_rules = rules.get('brand_bonus', [])
        self.brand_hints = rules.get('brand_hints', [])
        logger.debug(f"Loaded {len(self.hint_groups)} hint groups and {len(self.brand_hints)} brand hints")

    def resolve(self, parsed: ParsedReceipt, raw_text: str, snapshot: MetadataSnapshot,
                history: Sequence[HistoryRecord] = ()) -> Optional[CategoryResolution]:
        """
        Resolve a leaf category.

        Args:
            parsed: Parsed receipt
            raw_text: Recognized text the receipt was parsed from
            snapshot: Current category tree
            history: Labeled records, most recent first

        Returns:
            CategoryResolution, or None when nothing clears the acceptance bar
        """
        leaves = snapshot.leaf_categories()
        if not leaves:
            logger.info("No leaf categories available")
            return None

        direction = infer_direction(
            parsed.amount_minor, parsed.status,
            direction_text(parsed.merchant, parsed.item_name, raw_text), self.rules_dir,
        )
        preferred = [c for c in leaves if c.type == direction] or leaves

        by_history = self.resolve_from_history(parsed.merchant, preferred, history)
        if by_history is not None:
            logger.info(f"Category '{by_history.name}' from history for merchant '{parsed.merchant}'")
            return self._resolution(by_history, direction, ResolutionSource.HISTORY)

        hint_text = direction_text(parsed.merchant, parsed.item_name, raw_text).lower()
        keyword = (parsed.category_guess or '').strip().lower()
        tokens = self.hint_tokens(keyword, hint_text)
        if not tokens:
            return self._brand_hint_resolution(parsed, preferred, hint_text, direction)

        votes = build_history_votes(
            merchant_key(parsed.merchant, self.aliases),
            [c.id for c in preferred], history, self.vote_window, self.aliases,
        )

        best: Optional[Category] = None
        best_score = None
        for category in preferred:
            score = self.score_category(category, keyword, tokens, hint_text) + votes.get(category.id, 0)
            if best_score is None or score > best_score:
                best, best_score = category, score

        if best is not None and best_score >= ACCEPT_SCORE:
            logger.info(f"Category '{best.name}' scored {best_score}")
            return self._resolution(best, direction, ResolutionSource.SCORED)

        logger.debug(f"Best score {best_score} below {ACCEPT_SCORE}, trying brand hints")
        return self._brand_hint_resolution(parsed, preferred, hint_text, direction)

    def resolve_from_history(self, merchant: Optional[str], preferred: List[Category],
                             history: Sequence[HistoryRecord]) -> Optional[Category]:
        key = merchant_key(merchant, self.aliases)
        if not key:
            return None
        by_id = {c.id: c for c in preferred}
        for record in history[:self.history_window]:
            if record.category_id not in by_id:
                continue
            if keys_related(merchant_key(record.merchant, self.aliases), key, HISTORY_SIMILARITY):
                return by_id[record.category_id]
        return None

    def hint_tokens(self, keyword: str, hint_text: str) -> List[str]:
        """Ordered, de-duplicated tokens to look for in category names."""
        tokens: List[str] = []
        if keyword:
            tokens.append(keyword)
            if len(keyword) >= 2:
                tokens.append(keyword[0])
        for group in self.hint_groups:
            if any(trigger in hint_text for trigger in group['triggers']):
                tokens.extend(group['tokens'])
        return list(dict.fromkeys(t for t in tokens if t.strip()))

    def score_category(self, category: Category, keyword: str, tokens: List[str], hint_text: str) -> int:
        name = category.name.lower()
        score = 0
        if keyword and (keyword in name or name in keyword):
            score += 20
        for token in tokens:
            if token in name:
                score += 8
            if name in token:
                score += 4
        return score + self.brand_bonus(name, hint_text)

    def brand_bonus(self, category_name: str, hint_text: str) -> int:
        """+10 when some brand cue row is present in the text and its markers fit the category."""
        for rule in self.brand_bonus_rules:
            if any(cue in hint_text for cue in rule['cues']):
                if any(marker in category_name for marker in rule['markers']):
                    return 10
        return 0

    def resolve_by_brand_hint(self, parsed: ParsedReceipt, preferred: List[Category],
                              hint_text: str) -> Optional[Category]:
        merchant = (parsed.merchant or '').lower()
        item = (parsed.item_name or '').lower()
        text = f"{merchant} {item} {hint_text}"
        hints = next((tokens for brand, tokens in self.brand_hints if brand in text), None)
        if not hints:
            return None

        best: Optional[Category] = None
        best_score = 0
        for category in preferred:
            name = category.name.lower()
            score = 0
            for token in hints:
                if token in name:
                    score += 8
                elif name in token:
                    score += 4
            if score > best_score:
                best, best_score = category, score
        return best

    def _brand_hint_resolution(self, parsed, preferred, hint_text, direction) -> Optional[CategoryResolution]:
        category = self.resolve_by_brand_hint(parsed, preferred, hint_text)
        if category is None:
            logger.info(f"Category unresolved for merchant '{parsed.merchant}'")
            return None
        logger.info(f"Category '{category.name}' from brand hint")
        return self._resolution(category, direction, ResolutionSource.BRAND_HINT)

    @staticmethod
    def _resolution(category: Category, direction: Direction, source: ResolutionSource) -> CategoryResolution:
        return CategoryResolution(category_id=category.id, direction=category.type or direction, source=source)


class TagResolver:
    """Pick a tag from platform, history, keyword groups or the chosen category."""

    def __init__(self, rules_dir: Optional[Path] = None, aliases: Optional[AliasDictionary] = None,
                 history_window: int = HISTORY_WINDOW):
        self.aliases = aliases or default_aliases()
        self.history_window = history_window
        rules = load_rules('tags', rules_dir)
        self.platform_tags: Dict[str, List[str]] = rules.get('platform_tags', {})
        self.keyword_groups: List[List[str]] = rules.get('keyword_groups', [])

    def resolve(self, parsed: ParsedReceipt, raw_text: str, snapshot: MetadataSnapshot,
                history: Sequence[HistoryRecord] = (), category_id: Optional[str] = None) -> Optional[str]:
        if not snapshot.tags:
            return None

        tag = self.platform_tag(parsed.platform, snapshot)
        if tag is not None:
            return tag.id

        tag = self._from_history(parsed.merchant, snapshot, history)
        if tag is not None:
            return tag.id

        hint_text = ' '.join(
            part for part in (parsed.merchant, parsed.item_name, parsed.category_guess, raw_text) if part
        ).lower()
        for keywords in self.keyword_groups:
            if not any(keyword in hint_text for keyword in keywords):
                continue
            tag = next((t for t in snapshot.tags if _names_overlap(t.name, keywords)), None)
            if tag is not None:
                return tag.id

        category = snapshot.category_by_id(category_id)
        if category is not None:
            tag = next((t for t in snapshot.tags if _names_overlap(t.name, [category.name.lower()])), None)
            if tag is not None:
                return tag.id

        logger.debug(f"No tag resolved for merchant '{parsed.merchant}'")
        return None

    def platform_tag(self, platform: Optional[str], snapshot: MetadataSnapshot) -> Optional[Tag]:
        """First existing tag named after the wallet platform."""
        if not platform:
            return None
        names = next((v for k, v in self.platform_tags.items() if k.lower() == platform.lower()), [])
        for name in names:
            tag = snapshot.tag_by_name(name)
            if tag is not None:
                return tag
        return None

    def _from_history(self, merchant: Optional[str], snapshot: MetadataSnapshot,
                      history: Sequence[HistoryRecord]) -> Optional[Tag]:
        key = merchant_key(merchant, self.aliases)
        if not key:
            return None
        for record in history[:self.history_window]:
            tag = snapshot.tag_by_id(record.tag_id)
            if tag is None:
                continue
            if keys_related(merchant_key(record.merchant, self.aliases), key, TAG_SIMILARITY):
                return tag
        return None


def _names_overlap(tag_name: str, keywords: Iterable[str]) -> bool:
    name = tag_name.strip().lower()
    if not name:
        return False
    return any(keyword and (keyword in name or name in keyword) for keyword in keywords)
