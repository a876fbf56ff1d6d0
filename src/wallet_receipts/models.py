"""Data model shared by the parser, the resolvers and the upload checks."""

from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional, Set


class Direction(Enum):
    """Transaction direction, using the bookkeeping API's category type codes."""
    INCOME = 1
    EXPENSE = 2
    TRANSFER = 3

    @classmethod
    def from_code(cls, code) -> Optional["Direction"]:
        try:
            return cls(int(code))
        except (TypeError, ValueError):
            return None


class PayTimeSource(Enum):
    OCR = "OCR"
    CAPTURE = "CAPTURE"
    NOW = "NOW"


class ResolutionSource(Enum):
    """How a category was chosen."""
    HISTORY = "history"
    SCORED = "scored"
    BRAND_HINT = "brand_hint"
    RECORD = "record"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class MoneyAmount:
    """Amount in integer minor units plus currency code."""
    minor: int
    currency: str


@dataclass(frozen=True)
class ParsedReceipt:
    """Structured result of parsing one recognized receipt text."""
    amount_minor: Optional[int] = None
    currency: Optional[str] = None
    merchant: Optional[str] = None
    pay_time: Optional[int] = None
    pay_method: Optional[str] = None
    card_tail: Optional[str] = None
    category_guess: Optional[str] = None
    platform: Optional[str] = None
    status: Optional[str] = None
    order_id: Optional[str] = None
    item_name: Optional[str] = None
    amount_confidence: int = 0
    merchant_confidence: int = 0
    category_confidence: int = 0
    overall_confidence: int = 0
    template: str = "Generic"


@dataclass(frozen=True)
class PayTimeDecision:
    value: int
    source: PayTimeSource


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    type: Optional[Direction]
    parent_id: Optional[str] = None


@dataclass(frozen=True)
class Account:
    id: str
    name: str
    category: int = 0
    parent_id: Optional[str] = None


@dataclass(frozen=True)
class Tag:
    id: str
    name: str
    group_id: Optional[str] = None


@dataclass(frozen=True)
class HistoryRecord:
    """A previously labeled receipt, used only as a read-only signal."""
    merchant: Optional[str]
    category_id: Optional[str] = None
    tag_id: Optional[str] = None
    created_at: int = 0


@dataclass(frozen=True)
class CategoryResolution:
    category_id: str
    direction: Optional[Direction]
    source: ResolutionSource


def _leaves(nodes):
    parent_ids = {node.parent_id for node in nodes if node.parent_id}
    return [node for node in nodes if node.id not in parent_ids]


def _first_leaf_under(nodes, node_id: str):
    """Depth-first search for the first leaf below (or at) ``node_id``."""
    children_by_parent: Dict[str, List] = {}
    for node in nodes:
        if node.parent_id:
            children_by_parent.setdefault(node.parent_id, []).append(node)

    current = next((node for node in nodes if node.id == node_id), None)
    seen: Set[str] = set()
    while current is not None and current.id not in seen:
        seen.add(current.id)
        children = children_by_parent.get(current.id)
        if not children:
            return current
        current = children[0]
    return None


@dataclass
class MetadataSnapshot:
    """Point-in-time copy of the category, account and tag trees."""
    categories: List[Category] = field(default_factory=list)
    accounts: List[Account] = field(default_factory=list)
    tags: List[Tag] = field(default_factory=list)

    def leaf_categories(self) -> List[Category]:
        return _leaves(self.categories)

    def leaf_accounts(self) -> List[Account]:
        return _leaves(self.accounts)

    def category_by_id(self, category_id: Optional[str]) -> Optional[Category]:
        if not category_id:
            return None
        return next((c for c in self.categories if c.id == category_id), None)

    def account_by_id(self, account_id: Optional[str]) -> Optional[Account]:
        if not account_id:
            return None
        return next((a for a in self.accounts if a.id == account_id), None)

    def tag_by_id(self, tag_id: Optional[str]) -> Optional[Tag]:
        if not tag_id:
            return None
        return next((t for t in self.tags if t.id == tag_id), None)

    def tag_by_name(self, name: str) -> Optional[Tag]:
        wanted = name.strip().lower()
        return next((t for t in self.tags if t.name.strip().lower() == wanted), None)

    def first_leaf_category(self, category_id: str) -> Optional[Category]:
        return _first_leaf_under(self.categories, category_id)

    def first_leaf_account(self, account_id: str) -> Optional[Account]:
        return _first_leaf_under(self.accounts, account_id)


@dataclass
class DraftRecord:
    """A parsed receipt plus its auto-resolved labels, ready to be stored."""
    raw_text: str
    parsed: ParsedReceipt
    pay_time: int
    pay_time_source: PayTimeSource
    category_id: Optional[str] = None
    category_source: Optional[ResolutionSource] = None
    tag_id: Optional[str] = None
    direction: Optional[Direction] = None
    category_confidence: int = 0
    overall_confidence: int = 0
    account_id: Optional[str] = None
    comment: Optional[str] = None
    created_at: int = 0
    source_name: str = ""
    upload_status: str = "draft"

    @property
    def merchant(self) -> Optional[str]:
        return self.parsed.merchant

    @property
    def amount_minor(self) -> Optional[int]:
        return self.parsed.amount_minor

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready form; enums become their values."""
        data = asdict(self)
        data['pay_time_source'] = self.pay_time_source.value
        data['category_source'] = self.category_source.value if self.category_source else None
        data['direction'] = self.direction.value if self.direction else None
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DraftRecord":
        parsed_fields = {f.name for f in fields(ParsedReceipt)}
        parsed = ParsedReceipt(**{k: v for k, v in (data.get('parsed') or {}).items() if k in parsed_fields})
        category_source = data.get('category_source')
        return cls(
            raw_text=data.get('raw_text', ''),
            parsed=parsed,
            pay_time=int(data['pay_time']),
            pay_time_source=PayTimeSource(data.get('pay_time_source', PayTimeSource.NOW.value)),
            category_id=data.get('category_id'),
            category_source=ResolutionSource(category_source) if category_source else None,
            tag_id=data.get('tag_id'),
            direction=Direction.from_code(data.get('direction')),
            category_confidence=int(data.get('category_confidence', 0)),
            overall_confidence=int(data.get('overall_confidence', 0)),
            account_id=data.get('account_id'),
            comment=data.get('comment'),
            created_at=int(data.get('created_at', 0)),
            source_name=data.get('source_name', ''),
            upload_status=data.get('upload_status', 'draft'),
        )
