"""Merchant alias dictionary: canonical brand lookup with containment matching."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from .rules import load_rules

logger = logging.getLogger(__name__)

_PARENTHETICAL = re.compile(r'\([^)]*\)')
_NON_KEY_CHARS = re.compile(r"[^\u3400-\u9fffa-z0-9]")


def to_key(text: str) -> str:
    """Lowercase, drop bracketed asides and keep only ASCII alnum and CJK."""
    key = text.lower().replace('（', '(').replace('）', ')')
    key = _PARENTHETICAL.sub('', key)
    return _NON_KEY_CHARS.sub('', key)


@dataclass(frozen=True)
class AliasEntry:
    brand: str
    alias_key: str


class AliasDictionary:
    """Maps brand spellings to one canonical merchant name."""

    def __init__(self, rules_dir: Optional[Path] = None):
        table = load_rules('aliases', rules_dir)
        entries = []
        for brand, aliases in table.items():
            for alias in aliases or []:
                key = to_key(str(alias))
                if key:
                    entries.append(AliasEntry(brand=str(brand), alias_key=key))
        # Longest key first so the most specific alias wins.
        self.entries: List[AliasEntry] = sorted(entries, key=lambda e: len(e.alias_key), reverse=True)
        logger.debug(f"Indexed {len(self.entries)} aliases for {len(table)} brands")

    def canonicalize(self, raw: str) -> str:
        """Return the canonical brand for ``raw``, or ``raw`` stripped if unknown."""
        clean = raw.strip()
        if not clean:
            return clean
        key = to_key(clean)
        if not key:
            return clean
        for entry in self.entries:
            if key == entry.alias_key or entry.alias_key in key or key in entry.alias_key:
                return entry.brand
        return clean

    def is_known_brand(self, name: str) -> bool:
        key = to_key(name)
        if not key:
            return False
        return any(key == entry.alias_key or entry.alias_key in key for entry in self.entries)


_default: Optional[AliasDictionary] = None


def default_aliases() -> AliasDictionary:
    """Shared dictionary built from the packaged alias table."""
    global _default
    if _default is None:
        _default = AliasDictionary()
    return _default


def canonicalize(raw: str) -> str:
    return default_aliases().canonicalize(raw)


def is_known_brand(name: str) -> bool:
    return default_aliases().is_known_brand(name)
