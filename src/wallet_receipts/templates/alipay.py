"""Alipay bill-detail template."""

from .base_template import BaseTemplate


class AlipayTemplate(BaseTemplate):
    """Alipay "账单详情" screens."""

    name = "Alipay"

    text_markers = ('账单详情', '支付宝', 'alipay')

    merchant_labels = ('收款方全称', '收款方', '商家', '对方账户', '商户名称', '对方')
    pay_method_labels = ('付款方式', '支付方式')
    order_id_labels = ('订单号', '交易订单号', '商家订单号', '交易号')
    item_labels = ('商品说明', '商品', '商品名称')
