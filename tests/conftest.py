"""Shared fixtures: wallet bill texts and a small bookkeeping tree."""

import sys
from pathlib import Path

import pytest
from dateutil import tz

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / 'src'))

from wallet_receipts.models import Account, Category, Direction, MetadataSnapshot, Tag  # noqa: E402

SHANGHAI = tz.gettz('Asia/Shanghai')

WECHAT_BILL = """12:20 2/13
智慧商户通
茅台酱香
-3.00
当前状态
支付成功
支付时间
2026年2月11日11:12:43
商品
209850020192971555
商户全称
商户_王亚超
收单机构
易生支付有限公司
支付方式
中国银行储蓄卡(3303)
交易单号
4200003019202602118844168674
商户单号
9941776513675870396416"""

ALIPAY_BILL = """账单详情
福福饼店·金牌酥皮菠萝包 (嘉定宝龙店)
-9.00
交易成功
支付时间
2026-02-05 18:17:42
付款方式
中国银行储蓄卡(3303）>
商品说明
美团收银909700209213949975
收单机构
北京钱袋宝支付技术有限公司
收款方全称
上海市嘉定区菊园新区颖福面包坊(个体工商户)"""

FOOD_DELIVERY_BILL = """美团收银909700209213949975
-25.50
交易成功
2026-02-05 12:01:10"""


@pytest.fixture
def shanghai():
    return SHANGHAI


@pytest.fixture
def wechat_text():
    return WECHAT_BILL


@pytest.fixture
def alipay_text():
    return ALIPAY_BILL


@pytest.fixture
def food_delivery_text():
    return FOOD_DELIVERY_BILL


@pytest.fixture
def snapshot():
    """Two-level expense and income trees, one top-level transfer leaf."""
    return MetadataSnapshot(
        categories=[
            Category('c1', '餐饮', Direction.EXPENSE),
            Category('c11', '早午晚餐', Direction.EXPENSE, 'c1'),
            Category('c2', '交通', Direction.EXPENSE),
            Category('c21', '打车', Direction.EXPENSE, 'c2'),
            Category('c3', '收入', Direction.INCOME),
            Category('c31', '工资', Direction.INCOME, 'c3'),
            Category('c32', '退款', Direction.INCOME, 'c3'),
            Category('c4', '转账', Direction.TRANSFER),
        ],
        accounts=[
            Account('a1', '银行卡', 1),
            Account('a11', '中国银行', 1, 'a1'),
            Account('a2', '现金', 1),
        ],
        tags=[
            Tag('t1', '微信支付'),
            Tag('t2', '餐饮'),
            Tag('t3', '出行'),
            Tag('t4', '打车'),
        ],
    )
