"""Build metadata snapshots and history windows from bookkeeping API payloads."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import Account, Category, Direction, HistoryRecord, MetadataSnapshot, Tag

logger = logging.getLogger(__name__)


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def parse_accounts(payload: Dict[str, Any]) -> List[Account]:
    """Flatten the ``result`` account list; sub-accounts inherit their parent id."""
    accounts: List[Account] = []
    _walk_accounts(payload.get('result') or [], None, accounts)
    return accounts


def _walk_accounts(items, parent_id: Optional[str], out: List[Account]):
    for obj in items:
        if not isinstance(obj, dict):
            continue
        account_id = _text(obj.get('id'))
        own_parent = _text(obj.get('parentId')) or parent_id
        if own_parent == '0':
            own_parent = None
        if account_id:
            out.append(Account(
                id=account_id,
                name=_text(obj.get('name')),
                category=int(obj.get('category') or 0),
                parent_id=own_parent,
            ))
        subs = obj.get('subAccounts')
        if subs and account_id:
            _walk_accounts(subs, account_id, out)


def parse_categories(payload: Dict[str, Any]) -> List[Category]:
    """
    Flatten the ``result`` object keyed by category type code.

    Sub-categories inherit the type and take their parent's id unless they
    carry their own.
    """
    categories: List[Category] = []
    result = payload.get('result') or {}
    for key, items in result.items():
        try:
            type_code = int(key)
        except (TypeError, ValueError):
            type_code = 0
        _walk_categories(items or [], type_code, None, categories)
    return categories


def _walk_categories(items, type_fallback: int, parent_id: Optional[str], out: List[Category]):
    for obj in items:
        if not isinstance(obj, dict):
            continue
        category_id = _text(obj.get('id'))
        type_code = obj.get('type', type_fallback)
        own_parent = _text(obj.get('parentId')) or parent_id
        if own_parent == '0':
            own_parent = None
        if category_id:
            out.append(Category(
                id=category_id,
                name=_text(obj.get('name')),
                type=Direction.from_code(type_code),
                parent_id=own_parent,
            ))
        subs = obj.get('subCategories')
        if subs:
            _walk_categories(subs, type_code, category_id or own_parent, out)


def parse_tags(payload: Dict[str, Any]) -> List[Tag]:
    tags = []
    for obj in payload.get('result') or []:
        if not isinstance(obj, dict):
            continue
        tag_id = _text(obj.get('id'))
        if tag_id:
            tags.append(Tag(id=tag_id, name=_text(obj.get('name')), group_id=_text(obj.get('groupId')) or None))
    return tags


def snapshot_from_payloads(accounts: Dict[str, Any], categories: Dict[str, Any],
                           tags: Dict[str, Any]) -> MetadataSnapshot:
    return MetadataSnapshot(
        categories=parse_categories(categories or {}),
        accounts=parse_accounts(accounts or {}),
        tags=parse_tags(tags or {}),
    )


def load_snapshot(path: Union[str, Path]) -> MetadataSnapshot:
    """
    Load a snapshot file holding the three list payloads under the keys
    ``accounts``, ``categories`` and ``tags``.
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load metadata snapshot {path}: {e}")
        raise

    snapshot = snapshot_from_payloads(data.get('accounts'), data.get('categories'), data.get('tags'))
    logger.info(f"Loaded snapshot: {len(snapshot.accounts)} accounts, "
                f"{len(snapshot.categories)} categories, {len(snapshot.tags)} tags")
    return snapshot


def load_history(path: Union[str, Path]) -> List[HistoryRecord]:
    """Load labeled history records (a JSON list), most recent first."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Failed to load history {path}: {e}")
        raise

    records = [
        HistoryRecord(
            merchant=item.get('merchant'),
            category_id=_text(item.get('category_id')) or None,
            tag_id=_text(item.get('tag_id')) or None,
            created_at=int(item.get('created_at') or 0),
        )
        for item in data if isinstance(item, dict)
    ]
    records.sort(key=lambda r: r.created_at, reverse=True)
    logger.info(f"Loaded {len(records)} history records")
    return records
