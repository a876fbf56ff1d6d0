"""Receipt parsing components - one parser per field."""

from .date_parser import DateParser, decide_pay_time
from .amount_parser import AmountParser
from .field_parser import (
    LabelFieldParser, PlatformParser, StatusParser, CardTailParser,
    OrderIdParser, CategoryGuessParser,
)
from .merchant_parser import MerchantParser
from .confidence import ConfidenceScorer
from .normalizer import normalize, preprocess

__all__ = [
    'DateParser', 'decide_pay_time', 'AmountParser', 'LabelFieldParser',
    'PlatformParser', 'StatusParser', 'CardTailParser', 'OrderIdParser',
    'CategoryGuessParser', 'MerchantParser', 'ConfidenceScorer',
    'normalize', 'preprocess',
]
