# src/srcforge/core/naming.py
from __future__ import annotations

import re
from typing import Callable, FrozenSet

JAVA_KEYWORDS: FrozenSet[str] = frozenset({
    "abstract", "assert", "boolean", "break", "byte", "case", "catch", "char", "class", "const",
    "continue", "default", "do", "double", "else", "enum", "extends", "final", "finally", "float",
    "for", "goto", "if", "implements", "import", "instanceof", "int", "interface", "long", "native",
    "new", "package", "private", "protected", "public", "return", "short", "static", "strictfp",
    "super", "switch", "synchronized", "this", "throw", "throws", "transient", "try", "void",
    "volatile", "while", "true", "false", "null", "_",
})

KOTLIN_HARD_KEYWORDS: FrozenSet[str] = frozenset({
    "as", "break", "class", "continue", "do", "else", "false", "for", "fun",
    "if", "in", "interface", "is", "null", "object", "package", "return",
    "super", "this", "throw", "true", "try", "typealias", "typeof", "val",
    "var", "when", "while",
})

_MULTIPLE_DOTS = re.compile(r"\.{2,}")
_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_]+")


def _any_keyword(word: str) -> bool:
    return word in JAVA_KEYWORDS or word in KOTLIN_HARD_KEYWORDS


def _sanitize_identifier(name: str, *, force_lowercase: bool, default: str,
                         is_keyword: Callable[[str], bool], escape_keyword: Callable[[str], str]) -> str:
    s = name.lower() if force_lowercase else name
    s = s.replace("-", "_")
    s = _INVALID_CHARS.sub("_", s)
    s = s.rstrip("_")  # 只保留开头的下划线
    if not s:
        return default
    if is_keyword(s):
        return escape_keyword(s)
    return f"_{s}" if s[0].isdigit() else s


def sanitize_package_name(name: str, default: str = "project",
                          is_keyword: Callable[[str], bool] = _any_keyword) -> str:
    """
    包名规范化：压缩连续的 '.'，去掉首尾 '.'；
    关键字段直接丢弃，其余段小写并替换非法字符。
    """
    if not name:
        return default
    parts = _MULTIPLE_DOTS.sub(".", name).strip(".").split(".")
    cleaned = [
        _sanitize_identifier(p, force_lowercase=True, default="", is_keyword=is_keyword,
                             escape_keyword=lambda _: "")
        for p in parts if not is_keyword(p)
    ]
    return ".".join(p for p in cleaned if p) or default


def sanitize_class_name(name: str, default: str = "ProjectInfo",
                        is_keyword: Callable[[str], bool] = _any_keyword) -> str:
    """类名规范化：取最后一个 '.' 之后的部分；关键字前加 '_'。"""
    if not name:
        return default
    return _sanitize_identifier(name.rsplit(".", 1)[-1], force_lowercase=False, default=default,
                                is_keyword=is_keyword, escape_keyword=lambda s: f"_{s}")


def default_package_name(project_group: str, project_name: str) -> str:
    return sanitize_package_name(f"{project_group}.{project_name.replace('.', '_')}")
