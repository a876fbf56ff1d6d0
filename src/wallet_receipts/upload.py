"""Upload-time re-validation of a draft against the live account and category trees."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .classify import TagResolver, direction_text, find_fallback_category, infer_direction
from .models import Category, Direction, DraftRecord, MetadataSnapshot, ResolutionSource
from .settings import Settings

logger = logging.getLogger(__name__)

# Category type -> bookkeeping API transaction type
TRANSACTION_TYPES = {
    Direction.INCOME: 2,
    Direction.EXPENSE: 3,
    Direction.TRANSFER: 4,
}


class UploadFailure(Enum):
    """Reasons a draft cannot be posted; values are shown to the user."""
    MISSING_CONFIG = "Missing host or token"
    NO_LEAF_ACCOUNT = "Please choose a valid child account (not parent account)"
    NO_LEAF_CATEGORY = "Please choose a valid child category (not primary category)"
    TRANSFER_UNSUPPORTED = "Transfer category is not supported for this upload flow"
    DIRECTION_CONFLICT = "Category conflicts with amount direction. Please choose a {direction} child category."
    INVALID_CATEGORY_TYPE = "transaction category type is invalid"


@dataclass
class PostingPlan:
    """Everything needed to post one transaction."""
    transaction_type: int
    category_id: str
    account_id: str
    amount_minor: int
    time: int
    utc_offset_minutes: int
    comment: str
    tag_ids: List[str] = field(default_factory=list)
    category_source: ResolutionSource = ResolutionSource.RECORD

    def to_payload(self) -> Dict[str, Any]:
        """Request body for the transaction add endpoint."""
        payload = {
            'type': self.transaction_type,
            'categoryId': self.category_id,
            'time': self.time,
            'utcOffset': self.utc_offset_minutes,
            'sourceAccountId': self.account_id,
            'sourceAmount': self.amount_minor,
            'comment': self.comment,
        }
        if self.tag_ids:
            payload['tagIds'] = list(self.tag_ids)
        return payload


@dataclass
class UploadCheck:
    ok: bool
    plan: Optional[PostingPlan] = None
    failure: Optional[UploadFailure] = None
    detail: str = ""

    @property
    def message(self) -> str:
        if self.ok:
            return "OK"
        if self.failure is UploadFailure.DIRECTION_CONFLICT:
            return self.failure.value.format(direction=self.detail)
        if self.failure is UploadFailure.INVALID_CATEGORY_TYPE and self.detail:
            return f"{self.failure.value}: {self.detail}"
        return self.failure.value

    @classmethod
    def failed(cls, failure: UploadFailure, detail: str = "") -> "UploadCheck":
        check = cls(ok=False, failure=failure, detail=detail)
        logger.warning(f"Upload check failed: {check.message}")
        return check


class UploadValidator:
    """
    Re-validates a draft right before upload.

    The user may have edited the record since it was created, so the account
    and category are resolved again against the current trees (leaf nodes
    only) and the category is checked against the amount direction.
    """

    def __init__(self, tag_resolver: Optional[TagResolver] = None):
        self.tag_resolver = tag_resolver or TagResolver()

    def check(self, record: DraftRecord, settings: Settings, snapshot: MetadataSnapshot,
              now: Optional[int] = None) -> UploadCheck:
        if not settings.has_upload_config:
            return UploadCheck.failed(UploadFailure.MISSING_CONFIG)

        account_id = self.resolve_account(record, settings, snapshot)
        if account_id is None:
            return UploadCheck.failed(UploadFailure.NO_LEAF_ACCOUNT)

        direction = infer_direction(
            record.amount_minor, record.parsed.status,
            direction_text(record.merchant, record.parsed.item_name, record.raw_text),
        )

        category, source = self.resolve_category(record, settings, snapshot, direction)
        if category is None:
            return UploadCheck.failed(UploadFailure.NO_LEAF_CATEGORY)
        if category.type == Direction.TRANSFER:
            return UploadCheck.failed(UploadFailure.TRANSFER_UNSUPPORTED)
        if category.type not in TRANSACTION_TYPES:
            return UploadCheck.failed(UploadFailure.INVALID_CATEGORY_TYPE, str(category.type))

        if category.type != direction:
            switched = find_fallback_category(snapshot, direction, category.id)
            if switched is None:
                wanted = 'income' if direction == Direction.INCOME else 'expense'
                return UploadCheck.failed(UploadFailure.DIRECTION_CONFLICT, wanted)
            logger.info(f"Switched category {category.id} -> {switched.id} to match {direction.name}")
            category, source = switched, ResolutionSource.FALLBACK

        transaction_type = TRANSACTION_TYPES[category.type]
        posted_at = record.pay_time or (int(time.time()) if now is None else now)
        plan = PostingPlan(
            transaction_type=transaction_type,
            category_id=category.id,
            account_id=account_id,
            amount_minor=abs(record.amount_minor or 0),
            time=posted_at,
            utc_offset_minutes=self._utc_offset_minutes(settings, posted_at),
            comment=record.comment or record.merchant or "",
            tag_ids=self._tag_ids(record, snapshot),
            category_source=source,
        )
        logger.info(f"Upload plan ready: type={plan.transaction_type}, category={plan.category_id}, "
                    f"account={plan.account_id}, amount={plan.amount_minor}")
        return UploadCheck(ok=True, plan=plan)

    def resolve_account(self, record: DraftRecord, settings: Settings,
                        snapshot: MetadataSnapshot) -> Optional[str]:
        """Source account id, descending from a parent account to its first leaf."""
        preferred = (record.account_id or settings.default_account_id or "").strip()
        if not preferred:
            return None
        if not snapshot.accounts:
            return preferred
        if snapshot.account_by_id(preferred) is None:
            return None
        leaf = snapshot.first_leaf_account(preferred)
        return leaf.id if leaf else None

    def resolve_category(self, record: DraftRecord, settings: Settings, snapshot: MetadataSnapshot,
                         direction: Direction):
        """Chosen category as a leaf, else the first leaf of ``direction``, else any leaf."""
        if not snapshot.categories:
            return None, None

        preferred = (record.category_id or settings.default_category_id or "").strip()
        if preferred and snapshot.category_by_id(preferred) is not None:
            leaf = snapshot.first_leaf_category(preferred)
            if leaf is not None:
                return leaf, record.category_source or ResolutionSource.RECORD

        leaves = snapshot.leaf_categories()
        if not leaves:
            return None, None
        chosen: Category = next((c for c in leaves if c.type == direction), leaves[0])
        return chosen, ResolutionSource.FALLBACK

    def _tag_ids(self, record: DraftRecord, snapshot: MetadataSnapshot) -> List[str]:
        if record.tag_id:
            return [record.tag_id]
        tag = self.tag_resolver.platform_tag(record.parsed.platform, snapshot)
        return [tag.id] if tag else []

    @staticmethod
    def _utc_offset_minutes(settings: Settings, timestamp: int) -> int:
        offset = datetime.fromtimestamp(timestamp, settings.tzinfo()).utcoffset()
        return int(offset.total_seconds() // 60) if offset else 0
