"""Template detection for receipt layouts."""

import logging
from typing import List, Optional, Dict, Tuple
from .base_template import BaseTemplate, GenericTemplate, TemplateMatch
from .alipay import AlipayTemplate
from .wechat import WeChatTemplate

logger = logging.getLogger(__name__)


class TemplateEngine:
    """Picks the layout whose cues appear first in rule order."""

    def __init__(self):
        """Initialize with built-in templates."""
        # Order matters: Alipay bills can quote WeChat-style labels
        self.templates: List[BaseTemplate] = [
            AlipayTemplate(),
            WeChatTemplate(),
        ]
        self.generic = GenericTemplate()
        logger.debug("Loaded templates: " + ", ".join(t.name for t in self.templates))

    def detect(self, text: str, lines: List[str]) -> Tuple[BaseTemplate, Optional[TemplateMatch]]:
        """
        Detect the receipt layout.

        Args:
            text: Normalized receipt text
            lines: Non-empty trimmed lines

        Returns:
            The matching template (Generic when none matches) and the match
        """
        for template in self.templates:
            match = template.matches(text, lines)
            if match:
                logger.debug(f"Template {template.name} matched on '{match.marker}'")
                return template, match

        logger.debug("No vendor template matched, using Generic")
        return self.generic, None

    def get_template_by_name(self, name: str) -> Optional[BaseTemplate]:
        """Get template by name."""
        for template in self.templates + [self.generic]:
            if template.name == name:
                return template
        return None

    def add_template(self, template: BaseTemplate, first: bool = False):
        """Add a custom vendor template."""
        if not isinstance(template, BaseTemplate):
            raise ValueError("Template must inherit from BaseTemplate")

        if first:
            self.templates.insert(0, template)
        else:
            self.templates.append(template)
        logger.info(f"Added custom template: {template.name}")

    def get_supported_vendors(self) -> Dict[str, Tuple[str, ...]]:
        """Get detection cues by template."""
        return {t.name: t.text_markers + t.line_markers for t in self.templates}
