"""Turn recognized receipt text into a draft record with auto-resolved labels."""

import logging
import time
from typing import List, Optional, Protocol, Sequence

from .classify import CategoryResolver, TagResolver
from .models import (
    Account, Category, DraftRecord, HistoryRecord, MetadataSnapshot, Tag,
)
from .parse import ReceiptParser, get_parser
from .parsers.confidence import overall_confidence
from .parsers.date_parser import decide_pay_time

logger = logging.getLogger(__name__)

# Floor for the category confidence of an auto-resolved category
RESOLVED_CATEGORY_CONFIDENCE = 72


class RecordStore(Protocol):
    """Persistence the intake flow needs; implemented outside this package."""

    async def list_categories(self) -> List[Category]: ...

    async def list_accounts(self) -> List[Account]: ...

    async def list_tags(self) -> List[Tag]: ...

    async def recent_labeled(self, limit: int) -> List[HistoryRecord]: ...

    async def insert(self, record: DraftRecord) -> int: ...


def build_draft(raw_text: str,
                capture_ts: Optional[int],
                snapshot: MetadataSnapshot,
                history: Sequence[HistoryRecord] = (),
                parser: Optional[ReceiptParser] = None,
                now: Optional[int] = None,
                category_resolver: Optional[CategoryResolver] = None,
                tag_resolver: Optional[TagResolver] = None,
                source_name: str = "") -> DraftRecord:
    """
    Parse ``raw_text`` and attach category, tag and pay time.

    Args:
        raw_text: Recognized text of one screenshot
        capture_ts: Capture time of the screenshot (epoch seconds), if known
        snapshot: Current categories, accounts and tags
        history: Labeled records, most recent first
        now: Current epoch seconds (defaults to the clock)

    Returns:
        DraftRecord with upload_status "draft"
    """
    current = int(time.time()) if now is None else now
    parser = parser or get_parser()
    category_resolver = category_resolver or CategoryResolver()
    tag_resolver = tag_resolver or TagResolver()

    parsed = parser.parse_best(raw_text)
    resolution = category_resolver.resolve(parsed, raw_text, snapshot, history)
    category_id = resolution.category_id if resolution else None
    tag_id = tag_resolver.resolve(parsed, raw_text, snapshot, history, category_id)
    decision = decide_pay_time(parsed.pay_time, capture_ts, current)

    category_confidence = parsed.category_confidence
    if resolution is not None:
        category_confidence = max(category_confidence, RESOLVED_CATEGORY_CONFIDENCE)
    overall = overall_confidence(parsed.amount_confidence, parsed.merchant_confidence, category_confidence)

    draft = DraftRecord(
        raw_text=raw_text,
        parsed=parsed,
        pay_time=decision.value,
        pay_time_source=decision.source,
        category_id=category_id,
        category_source=resolution.source if resolution else None,
        tag_id=tag_id,
        direction=resolution.direction if resolution else None,
        category_confidence=category_confidence,
        overall_confidence=overall,
        created_at=current,
        source_name=source_name,
    )
    logger.info(f"Draft for '{source_name or parsed.merchant}': category={category_id}, tag={tag_id}, "
                f"pay_time_source={decision.source.value}, overall={overall}")
    return draft


async def create_draft(store: RecordStore,
                       raw_text: str,
                       capture_ts: Optional[int] = None,
                       source_name: str = "",
                       history_limit: int = 300,
                       parser: Optional[ReceiptParser] = None,
                       now: Optional[int] = None) -> DraftRecord:
    """
    Load the snapshot and history from ``store``, build the draft and insert it.

    All store reads complete before resolution starts; resolution itself is
    synchronous.
    """
    snapshot = MetadataSnapshot(
        categories=list(await store.list_categories()),
        accounts=list(await store.list_accounts()),
        tags=list(await store.list_tags()),
    )
    history = list(await store.recent_labeled(history_limit))

    draft = build_draft(raw_text, capture_ts, snapshot, history,
                        parser=parser, now=now, source_name=source_name)
    record_id = await store.insert(draft)
    logger.debug(f"Inserted draft {record_id}")
    return draft
