# src/srcforge/core/globbing.py
from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable

UNIVERSAL_PATTERN = "**/*"

_REGEX_SPECIALS = set(".+()[]{}|^$\\")


@lru_cache(maxsize=None)
def glob_to_regex(glob: str) -> "re.Pattern[str]":
    """
    把 glob 模式编译为正则，按模式字符串缓存：
    - `*`  匹配不含 '/' 的任意串
    - `**` 匹配任意串（含 '/'）；开头的 `**/` 也可匹配零层目录
    - `?`  匹配恰好一个字符
    """
    out = ["^"]
    i = 0
    n = len(glob)
    while i < n:
        c = glob[i]
        if c == "*":
            if i + 1 < n and glob[i + 1] == "*":
                if i == 0 and i + 2 < n and glob[i + 2] == "/":
                    out.append("(?:.*/)?")
                    i += 3
                    continue
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append(".")
        elif c in _REGEX_SPECIALS:
            out.append("\\" + c)
        else:
            out.append(c)
        i += 1
    out.append("$")
    return re.compile("".join(out), re.DOTALL)


def normalize_path(path: str) -> str:
    return path.replace("\\", "/")


def glob_match(path: str, pattern: str) -> bool:
    return glob_to_regex(pattern).match(normalize_path(path)) is not None


def matches(path: str, includes: Iterable[str], excludes: Iterable[str]) -> bool:
    # 先排除，再包含；includes 为空或含 `**/*` 时全部包含
    p = normalize_path(path)
    if any(glob_to_regex(e).match(p) for e in excludes):
        return False
    includes = list(includes)
    if not includes or UNIVERSAL_PATTERN in includes:
        return True
    return any(glob_to_regex(i).match(p) for i in includes)
