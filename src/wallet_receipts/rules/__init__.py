"""Declarative rule tables shipped with the package."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

RULES_DIR = Path(__file__).parent


@lru_cache(maxsize=None)
def _load(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        logger.debug(f"Loaded {len(data)} rule entries from {path.name}")
        return data
    except Exception as e:
        logger.error(f"Failed to load rules from {path}: {e}")
        raise


def load_rules(name: str, rules_dir: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load a rule table by name (``aliases``, ``categories``, ``tags``).

    Tables are cached per path and must be treated as read-only.
    """
    base = Path(rules_dir) if rules_dir else RULES_DIR
    return _load((base / f"{name}.yml").resolve())
