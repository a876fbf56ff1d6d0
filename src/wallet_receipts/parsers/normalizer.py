"""Recognition-artifact cleanup applied before any field extraction."""

import re

# Full-width punctuation commonly produced by Chinese recognizers.
_PUNCTUATION = str.maketrans({
    '\u00a0': ' ',
    '\u3000': ' ',
    '：': ':',
    '，': ',',
    '（': '(',
    '）': ')',
    '【': '[',
    '】': ']',
    '＋': '+',
    '－': '-',
    '—': '-',
    '￥': '¥',
    '／': '/',
    '＄': '$',
})

_CONFUSABLES = str.maketrans({'O': '0', 'o': '0', 'I': '1', 'l': '1'})

# "+ 300" / "- 3.00": sign separated from digits by whitespace.
_SIGN_SPACING = re.compile(r'([+\-])[ \t]+(?=\d)')
# Full-width period between digits is a decimal point.
_CJK_DECIMAL = re.compile(r'(?<=\d)。(?=\d)')
# Tokens that start like a number but carry confusable letters, e.g. "3O00".
_NUMERIC_LIKE = re.compile(r'(?<![A-Za-z])([+\-]?\d[\dOoIl,.]*)(?![A-Za-z])')
# Confusable letters still touching digits after normalization.
_RESIDUAL = re.compile(r'(?<![A-Za-z])[OoIl][\d,.]*\d|\d[\d,.]*[OoIl](?![A-Za-z])')


def _fix_numeric_token(match: re.Match) -> str:
    return match.group(1).translate(_CONFUSABLES)


def normalize(text: str) -> str:
    """
    Conservative cleanup: punctuation, sign spacing and confusable letters
    inside tokens that already start with a digit. Never fails.
    """
    if not text:
        return ""
    normalized = text.translate(_PUNCTUATION)
    normalized = _CJK_DECIMAL.sub('.', normalized)
    normalized = _SIGN_SPACING.sub(r'\1', normalized)
    return _NUMERIC_LIKE.sub(_fix_numeric_token, normalized)


def preprocess(text: str) -> str:
    """
    Aggressive variant used for the second parsing pass: every O/o/I/l
    becomes a digit regardless of its neighbours.
    """
    if not text:
        return ""
    processed = text.translate(_CONFUSABLES)
    processed = processed.replace('，', ',').replace('。', '.')
    return _SIGN_SPACING.sub(r'\1', processed)


def has_residual_confusables(text: str) -> bool:
    return bool(text) and _RESIDUAL.search(text) is not None
