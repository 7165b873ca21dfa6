# src/srcforge/core/formatting.py
from __future__ import annotations

import logging
from datetime import date, datetime, time
from decimal import Decimal
from functools import lru_cache
from numbers import Number
from typing import Any, Callable

logger = logging.getLogger(__name__)

Formatter = Callable[[Any], str]


@lru_cache(maxsize=256)
def _scalar_formatter(fmt: str) -> Formatter:
    # 含 '%' 按 printf 风格，否则按 format-spec（如 "05d"、">10"）
    if "%" in fmt:
        return lambda v: fmt % (v,)
    return lambda v: format(v, fmt)


def _format_datetime(value: Any, fmt: str) -> str:
    if isinstance(value, datetime):
        # naive 视为本地时间，aware 保留自身时区
        return value.strftime(fmt)
    if isinstance(value, date):
        return value.strftime(fmt)
    if isinstance(value, time):
        return datetime.combine(date.today(), value).strftime(fmt)
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (Number, Decimal)) and not isinstance(value, bool)


def format_value(value: Any, fmt: str) -> str:
    """
    按值类型格式化：数字/字符串 -> printf 或 format-spec；日期时间 -> strftime。
    格式串被拒绝时退回 str(value)，不让单个占位符拖垮整次生成。
    """
    if not fmt:
        return str(value)
    try:
        if isinstance(value, (datetime, date, time)):
            return _format_datetime(value, fmt)
        if _is_number(value) or isinstance(value, str):
            return _scalar_formatter(fmt)(value)
    except (ValueError, TypeError, KeyError) as e:
        logger.debug("format %r rejected for %r: %s", fmt, value, e)
        return str(value)
    return str(value)
