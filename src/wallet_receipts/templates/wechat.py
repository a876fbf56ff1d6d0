"""WeChat Pay bill-detail template."""

from .base_template import BaseTemplate


class WeChatTemplate(BaseTemplate):
    """
    WeChat Pay transfer/bill screens.

    Recognized by the operational fields WeChat prints for merchant payments
    (acquiring institution, full merchant name) or the bare status line.
    """

    name = "WeChat"

    text_markers = ('收单机构', '商户全称', '微信支付')
    line_markers = ('支付成功', '当前状态')

    merchant_labels = ('商户全称', '收款方', '商户名称', '商家', '对方', '收款单位', '商户')
    pay_method_labels = ('支付方式', '付款方式')
    order_id_labels = ('交易单号', '商户单号', '订单号')
    item_labels = ('商品', '商品说明', '商品名称')
