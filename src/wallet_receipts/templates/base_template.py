"""Base template class for wallet receipt layouts."""

from typing import Optional, Dict, Any, List, Tuple
from dataclasses import dataclass, field
import logging

logger = logging.getLogger(__name__)


@dataclass
class TemplateMatch:
    """Result of template detection."""
    template_name: str
    marker: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class BaseTemplate:
    """
    A receipt layout: the cues that identify it and the label vocabulary
    the field extractors use on it.
    """

    name = "Generic"

    # Substring cues, matched case-insensitively against the whole text
    text_markers: Tuple[str, ...] = ()
    # Cues that must make up an entire line
    line_markers: Tuple[str, ...] = ()

    # Ordered label vocabularies; earlier labels are preferred
    merchant_labels: Tuple[str, ...] = (
        '收款方', '商家', '对方', '付款给', '收款单位', '商户名称', '商户', '对方账户',
    )
    pay_method_labels: Tuple[str, ...] = ('支付方式', '付款方式', '银行卡', '信用卡', '支付工具')
    order_id_labels: Tuple[str, ...] = ('订单号', '交易号', '商户单号', '交易订单号')
    item_labels: Tuple[str, ...] = ('商品', '商品名称', '服务', '商品说明', '商品详情')

    def __init__(self):
        self.logger = logging.getLogger(f"{self.__class__.__name__}")

    def matches(self, text: str, lines: List[str]) -> Optional[TemplateMatch]:
        """
        Check if this layout matches the receipt.

        Args:
            text: Normalized receipt text
            lines: Non-empty trimmed lines of ``text``

        Returns:
            TemplateMatch if a cue was found, None otherwise
        """
        text_lower = text.lower()
        for marker in self.text_markers:
            if marker.lower() in text_lower:
                return TemplateMatch(self.name, marker, {'kind': 'text'})

        line_set = set(lines)
        for marker in self.line_markers:
            if marker in line_set:
                return TemplateMatch(self.name, marker, {'kind': 'line'})

        return None

    def labels_for(self, field_name: str) -> Tuple[str, ...]:
        return getattr(self, f"{field_name}_labels")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"


class GenericTemplate(BaseTemplate):
    """Fallback layout for bank receipts and unknown wallets."""
    name = "Generic"
