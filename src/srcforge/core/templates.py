# src/srcforge/core/templates.py
from __future__ import annotations

import io
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, TextIO

from .errors import ConfigurationError


def _frozen(m: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(m or {}))


@dataclass(frozen=True)
class TemplateContext:
    """模板处理上下文：model 为可见变量，options 为处理选项（如输出 charset）。"""
    model: Mapping[str, Any] = field(default_factory=dict)
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "model", _frozen(self.model))
        object.__setattr__(self, "options", _frozen(self.options))

    def merged(self, model: Optional[Mapping[str, Any]] = None,
               options: Optional[Mapping[str, Any]] = None) -> "TemplateContext":
        return TemplateContext(
            model={**self.model, **(model or {})},
            options={**self.options, **(options or {})},
        )


class TemplateLanguage(Enum):
    SIMPLE = "tmpl"
    FREEMARKER = "ftl"
    HANDLEBARS = "handlebars"
    JSLT = "jslt"

    @property
    def id(self) -> str:
        return self.name.lower()

    @property
    def default_suffix(self) -> str:
        return self.value

    @classmethod
    def of_id(cls, language_id: str) -> "TemplateLanguage":
        for lang in cls:
            if lang.id == language_id.strip().lower():
                return lang
        raise ConfigurationError(f"Unsupported template language: {language_id}")

    @classmethod
    def of_suffix(cls, suffix: str) -> "TemplateLanguage":
        s = suffix.strip().lower().lstrip(".")
        for lang in cls:
            if lang.default_suffix == s:
                return lang
        raise ConfigurationError(f"Unsupported template language suffix: {suffix}")

    def processor(self, **options: Any) -> "TemplateProcessor":
        if self is TemplateLanguage.SIMPLE:
            from .simple import SimpleTemplateProcessor
            return SimpleTemplateProcessor.of(options.get("comment_prefix"))
        # 其它语言只声明接口，由外部模板引擎实现
        raise ConfigurationError(f"Template language '{self.id}' is declared but not implemented")


class TemplateProcessor(ABC):
    """
    模板处理器插件契约。
    process() 必须读完 reader，并在所有退出路径上 flush writer，然后再抛出错误。
    """

    @abstractmethod
    def language(self) -> TemplateLanguage:
        ...

    @abstractmethod
    def process(self, context: TemplateContext, template: TextIO, output: TextIO) -> None:
        ...

    def process_reader(self, context: TemplateContext, template: TextIO) -> str:
        out = io.StringIO(newline="")
        self.process(context, template, out)
        return out.getvalue()

    def process_string(self, context: TemplateContext, template: str) -> str:
        return self.process_reader(context, io.StringIO(template, newline=""))
