# src/srcforge/core/simple.py
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, TextIO

from .errors import ResourceError
from .formatting import format_value
from .templates import TemplateContext, TemplateLanguage, TemplateProcessor
from .text_io import iter_lines_with_newline

logger = logging.getLogger(__name__)

DEFAULT_COMMENT_PREFIX = "#"

_OPEN = "${"
_DRAIN_CHUNK = 8192


def _find_next_variable(line: str, start: int) -> int:
    """找下一个 `${`；`\\${` 视为转义，跳过且原样保留。"""
    index = line.find(_OPEN, start)
    while index != -1:
        if index > 0 and line[index - 1] == "\\":
            index = line.find(_OPEN, index + 2)
        else:
            return index
    return -1


def _drain(reader: TextIO) -> None:
    # 出错后读完剩余输入；这时的读取错误不覆盖原始错误
    try:
        while reader.read(_DRAIN_CHUNK):
            pass
    except (ResourceError, OSError, ValueError) as e:
        logger.debug("could not drain template reader: %s", e)


def _find_replacement(variable: str, model: Mapping[str, Any]) -> Optional[str]:
    # `name[:format]`，按第一个 ':' 切分
    name, _, fmt = variable.partition(":")
    if name not in model:
        return None
    value = model[name]
    if fmt:
        return format_value(value, fmt)
    return str(value)


def replace_variables(line: str, model: Mapping[str, Any]) -> str:
    """把 `${name}` / `${name:format}` 替换为 model 中的值；不在 model 中的保持原样。"""
    if not model:
        return line
    out = []
    last = 0
    current = _find_next_variable(line, last)
    while current != -1:
        out.append(line[last:current])
        end = line.find("}", current)
        if end != -1:
            original = line[current:end + 1]
            value = _find_replacement(line[current + 2:end], model)
            out.append(original if value is None else value)
            last = end + 1
        else:
            # 没有配对的 '}'：原样输出 '${' 后继续
            out.append(line[current:current + 2])
            last = current + 2
        current = _find_next_variable(line, last)
    out.append(line[last:])
    return "".join(out)


class SimpleTemplateProcessor(TemplateProcessor):
    """
    行式变量替换：
    - 去空白后以注释前缀开头的行整行丢弃（含行结束符）
    - `${name}`、`${name:format}` 按 model 替换，`\\${...}` 原样保留
    - 行结束符统一为宿主行分隔符
    """

    def __init__(self, comment_prefix: Optional[str] = DEFAULT_COMMENT_PREFIX):
        self.comment_prefix = comment_prefix or DEFAULT_COMMENT_PREFIX

    @classmethod
    def of(cls, comment_prefix: Optional[str] = None) -> "SimpleTemplateProcessor":
        if not comment_prefix or comment_prefix == DEFAULT_COMMENT_PREFIX:
            return DEFAULT_INSTANCE
        return cls(comment_prefix)

    def language(self) -> TemplateLanguage:
        return TemplateLanguage.SIMPLE

    def process(self, context: TemplateContext, template: TextIO, output: TextIO) -> None:
        try:
            for line in iter_lines_with_newline(template):
                if line.strip().startswith(self.comment_prefix):
                    continue
                output.write(replace_variables(line, context.model))
        except Exception:
            _drain(template)
            raise
        finally:
            output.flush()

    def __repr__(self) -> str:
        return f"SimpleTemplateProcessor(comment_prefix={self.comment_prefix!r})"


DEFAULT_INSTANCE = SimpleTemplateProcessor(DEFAULT_COMMENT_PREFIX)
