"""Wallet receipts - structured transactions from payment screenshot text."""

__version__ = "1.0.0"
__author__ = "Wallet Receipts Team"
__email__ = ""

from .parse import ReceiptParser, parse_receipt
from .classify import CategoryResolver, TagResolver, infer_direction
from .intake import build_draft, create_draft
from .upload import UploadValidator, UploadFailure, UploadCheck, PostingPlan
from .review import ReviewQueue, ReviewItem
from .export import ExcelExporter

__all__ = [
    'ReceiptParser',
    'parse_receipt',
    'CategoryResolver',
    'TagResolver',
    'infer_direction',
    'build_draft',
    'create_draft',
    'UploadValidator',
    'UploadFailure',
    'UploadCheck',
    'PostingPlan',
    'ReviewQueue',
    'ReviewItem',
    'ExcelExporter',
]
