"""Base classes for receipt field parsers."""

from abc import ABC, abstractmethod
from typing import Optional, Any, Dict, List
from dataclasses import dataclass, field
import logging
import re

logger = logging.getLogger(__name__)

# CJK unified ideographs (extension A and the basic block).
CJK_RANGE = '\u3400-\u9fff'
WORD_CHAR = re.compile('[0-9A-Za-z' + CJK_RANGE + ']')

# Signed numeric token with optional grouping/decimal separators.
NUMBER_TOKEN = r'[+\-]?\d[\d,.]*\d|[+\-]?\d'


@dataclass
class ParseResult:
    """Result of a parsing operation with confidence and metadata."""
    value: Any
    confidence: float
    source_text: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ReceiptContext:
    """Normalized text of one receipt plus layout hints shared by parsers."""
    full_text: str
    lines: List[str] = None
    template: Any = None
    amount_line: Optional[int] = None

    def __post_init__(self):
        if self.lines is None:
            self.lines = split_lines(self.full_text)


def split_lines(text: str) -> List[str]:
    """Non-empty, trimmed lines of ``text``."""
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def count_word_chars(text: str) -> int:
    return len(WORD_CHAR.findall(text))


class BaseParser(ABC):
    """Base class for all receipt field parsers."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def parse(self, context: ReceiptContext) -> Optional[ParseResult]:
        """
        Parse the specific field from receipt context.

        Args:
            context: Receipt context with normalized text and hints

        Returns:
            ParseResult with value and confidence, or None if parsing failed
        """
        pass

    def _log_result(self, result: Optional[ParseResult], context: ReceiptContext):
        """Log parsing result for debugging."""
        if result:
            self.logger.debug(f"Parsed: {result.value} (confidence: {result.confidence:.2f})")
        else:
            self.logger.debug("Parsing failed - no result")
