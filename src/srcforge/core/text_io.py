# src/srcforge/core/text_io.py
from __future__ import annotations

import codecs
import io
import os
import re
from typing import Iterator, List, Optional, TextIO, Union

_CHUNK = 8192

ReaderLike = Union[str, TextIO]


def _iter_raw_lines(reader: TextIO) -> Iterator[tuple[str, str]]:
    """
    逐个物理行读取，返回 (内容, 原始行结束符)。
    行结束符可为 '\\n'、'\\r'、'\\r\\n'；末行无结束符时为 ''。
    reader 必须以 newline='' 打开（不做换行翻译），否则 '\\r' 信息会丢失。
    """
    buf = ""
    pending_cr = False
    while True:
        chunk = reader.read(_CHUNK)
        if not chunk:
            break
        if pending_cr:
            # 上一块以 '\r' 结尾：看下一块首字符是否为 '\n'
            if chunk.startswith("\n"):
                yield buf, "\r\n"
                chunk = chunk[1:]
            else:
                yield buf, "\r"
            buf = ""
            pending_cr = False
        buf += chunk
        start = 0
        n = len(buf)
        while True:
            idx = _next_terminator(buf, start)
            if idx == -1:
                break
            if buf[idx] == "\n":
                yield buf[start:idx], "\n"
                start = idx + 1
            elif idx + 1 < n:
                if buf[idx + 1] == "\n":
                    yield buf[start:idx], "\r\n"
                    start = idx + 2
                else:
                    yield buf[start:idx], "\r"
                    start = idx + 1
            else:
                # '\r' 在缓冲末尾，等下一块再判断
                buf = buf[start:idx]
                pending_cr = True
                start = None
                break
        if start is not None:
            buf = buf[start:]
    if pending_cr:
        yield buf, "\r"
    elif buf:
        yield buf, ""


_TERMINATOR_RE = re.compile(r"[\r\n]")


def _next_terminator(s: str, start: int) -> int:
    m = _TERMINATOR_RE.search(s, start)
    return m.start() if m else -1


def iter_lines_keepends(reader: TextIO) -> Iterator[str]:
    """按物理行读取，原样保留每行的行结束符。"""
    for content, term in _iter_raw_lines(reader):
        yield content + term


def iter_lines_with_newline(reader: TextIO, line_separator: Optional[str] = None) -> Iterator[str]:
    """按物理行读取；有结束符的行统一改为宿主行分隔符（默认 os.linesep）。"""
    sep = os.linesep if line_separator is None else line_separator
    for content, term in _iter_raw_lines(reader):
        yield content + sep if term else content


def _as_reader(source: ReaderLike) -> TextIO:
    if isinstance(source, str):
        return io.StringIO(source, newline="")
    return source


class SequenceReader(io.TextIOBase):
    """
    顺序拼接多个 reader：读完前一个再透明地继续下一个。
    close() 会关闭全部来源。
    """

    def __init__(self, *readers: ReaderLike):
        super().__init__()
        self._readers: List[TextIO] = [_as_reader(r) for r in readers]
        self._index = 0

    @classmethod
    def wrap(cls, origin: ReaderLike, header: ReaderLike = "", footer: ReaderLike = "") -> "SequenceReader":
        return cls(header, origin, footer)

    def readable(self) -> bool:
        return True

    def read(self, size: Optional[int] = -1) -> str:
        if size is None or size < 0:
            parts = []
            while self._index < len(self._readers):
                parts.append(self._readers[self._index].read())
                self._index += 1
            return "".join(parts)
        while self._index < len(self._readers):
            data = self._readers[self._index].read(size)
            if data:
                return data
            self._index += 1
        return ""

    def close(self) -> None:
        try:
            for r in self._readers:
                r.close()
        finally:
            super().close()


_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([^;\"'\s]*)", re.IGNORECASE)


def charset_from_content_type(content_type: Optional[str]) -> Optional[str]:
    """从 Content-Type 中提取 charset；无效或不支持的编码返回 None。"""
    if not content_type or not content_type.strip():
        return None
    m = _CHARSET_RE.search(content_type)
    if not m or not m.group(1):
        return None
    name = m.group(1).strip()
    try:
        return codecs.lookup(name).name
    except LookupError:
        return None
