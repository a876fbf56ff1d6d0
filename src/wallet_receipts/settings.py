"""User settings: upload endpoint, defaults and tuning knobs, loaded from YAML."""

import logging
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union

import yaml
from dateutil import tz

logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Configuration for parsing, resolution, review and upload checks."""
    host: str = ""
    token: str = ""
    default_account_id: str = ""
    default_category_id: str = ""
    currency: str = "CNY"
    timezone: Optional[str] = None
    history_window: int = 200
    vote_window: int = 300
    low_confidence_threshold: int = 60
    duplicate_amount_tolerance: float = 0.03

    @property
    def normalized_base_url(self) -> str:
        """Host without trailing slashes, with https:// added when no scheme is given."""
        cleaned = self.host.strip().rstrip('/')
        if not cleaned:
            return ""
        if cleaned.startswith('http://') or cleaned.startswith('https://'):
            return cleaned
        return f"https://{cleaned}"

    @property
    def normalized_token(self) -> str:
        return re.sub(r'\s+', '', self.token)

    @property
    def has_upload_config(self) -> bool:
        return bool(self.normalized_base_url and self.normalized_token)

    def tzinfo(self):
        """Configured zone, or the system local zone."""
        if self.timezone:
            zone = tz.gettz(self.timezone)
            if zone is None:
                raise ValueError(f"Unknown time zone: {self.timezone}")
            return zone
        return tz.tzlocal()

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.warning(f"Ignoring unknown settings: {', '.join(sorted(unknown))}")
        values = {k: v for k, v in data.items() if k in known and v is not None}
        for key in ('host', 'token', 'default_account_id', 'default_category_id'):
            if key in values:
                values[key] = str(values[key])
        return cls(**values)


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        path: Settings file; None gives the defaults

    Returns:
        Settings instance
    """
    if path is None:
        return Settings()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        settings = Settings.from_dict(data)
        settings.tzinfo()  # unknown zones fail here
        logger.info(f"Loaded settings from {path}")
        return settings
    except Exception as e:
        logger.error(f"Failed to load settings from {path}: {e}")
        raise
