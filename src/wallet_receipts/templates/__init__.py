"""Receipt layout templates for the major wallets."""

from .template_engine import TemplateEngine
from .base_template import BaseTemplate, GenericTemplate, TemplateMatch
from .alipay import AlipayTemplate
from .wechat import WeChatTemplate

__all__ = [
    'TemplateEngine',
    'BaseTemplate',
    'GenericTemplate',
    'TemplateMatch',
    'AlipayTemplate',
    'WeChatTemplate',
]
