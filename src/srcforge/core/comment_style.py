# src/srcforge/core/comment_style.py
from __future__ import annotations

import os
from enum import Enum
from typing import Dict, FrozenSet, Mapping, Optional, Union

from .errors import ConfigurationError


def _line_separator() -> str:
    return os.linesep


def _prefixed_lines(prefix: str, content: str) -> str:
    # 每个非空行加前缀；空行丢弃
    sep = _line_separator()
    return "".join(f"{prefix}{line}{sep}" for line in content.splitlines() if line.strip())


def _block(content: str, single: str, opening: Optional[str], line_prefix: Optional[str],
           closing: Optional[str]) -> str:
    """
    块注释：去掉尾部空白后，单行用 single 形式，多行用 opening/逐行前缀/closing。
    line_prefix 为 None 时多行内容原样放入。
    """
    sep = _line_separator()
    chomped = content.rstrip()
    if "\n" not in chomped:
        return single.format(content=chomped) + sep
    body = _prefixed_lines(line_prefix, chomped) if line_prefix is not None else chomped + sep
    return f"{opening}{sep}{body}{closing}{sep}"


class OutputCommentStyle(Enum):
    NONE = ()
    JAVA = ("java", "js", "kt", "kts", "cs", "cpp", "cxx", "c++", "gradle",
            "php", "go", "rs", "scala", "swift", "ts", "tsx")
    SHELL = ("txt", "text", "sh", "bash", "rb", "csh", "pl", "pm", "perl", "zsh", "fish", "ksh",
             "tcsh", "toml", "yaml", "yml")
    C_LANG = ("c", "h")
    SQL = ("sql", "plsql", "pgsql", "mysql", "sqlite", "hive", "db2", "mssql")
    INI = ("ini", "properties")
    XML = ("xml", "html", "xhtml", "htm", "svg", "xsl", "xslt", "md", "markdown")
    PYTHON = ("py", "pyi", "pyx", "pyo", "pyd")
    BASIC = ("bas", "vb", "vba", "vbs")
    MATLAB = ("matlab", "m", "mlx")
    LUA = ("lua", "luac", "luau")
    POWERSHELL = ("ps1", "psm1", "psd1")
    BATCH = ("bat", "cmd")
    JSP = ("jsp", "jspx", "jspf", "tag", "tagx", "aspx", "ascx")

    @property
    def suffixes(self) -> FrozenSet[str]:
        return frozenset(self.value)

    def create_comment_block(self, content: str) -> str:
        if self is OutputCommentStyle.NONE:
            return content
        if self in _LINE_PREFIXES:
            return _prefixed_lines(_LINE_PREFIXES[self], content)
        single, opening, line_prefix, closing = _BLOCK_FORMS[self]
        return _block(content, single, opening, line_prefix, closing)

    @classmethod
    def of_name(cls, name: Union[str, "OutputCommentStyle"]) -> "OutputCommentStyle":
        if isinstance(name, OutputCommentStyle):
            return name
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise ConfigurationError(f"Unknown comment style: {name}") from None


_LINE_PREFIXES: Dict[OutputCommentStyle, str] = {
    OutputCommentStyle.JAVA: "// ",
    OutputCommentStyle.SHELL: "# ",
    OutputCommentStyle.SQL: "-- ",
    OutputCommentStyle.INI: "; ",
    OutputCommentStyle.BASIC: "' ",
    OutputCommentStyle.MATLAB: "% ",
    OutputCommentStyle.BATCH: "REM ",
}

# (单行形式, 多行开头, 多行逐行前缀, 多行结尾)
_BLOCK_FORMS = {
    OutputCommentStyle.C_LANG: ("/* {content} */", "/*", " * ", " */"),
    OutputCommentStyle.XML: ("<!-- {content} -->", "<!--", "  -- ", "  -->"),
    OutputCommentStyle.PYTHON: ("# {content}", '"""', None, '"""'),
    OutputCommentStyle.LUA: ("-- {content}", "--[[", None, "]]"),
    OutputCommentStyle.POWERSHELL: ("# {content}", "<#", " # ", " #>"),
    OutputCommentStyle.JSP: ("<%-- {content} --%>", "<%--", "  -- ", "  --%>"),
}

DEFAULT_SUFFIX_MAP: Dict[str, OutputCommentStyle] = {
    suffix.lower(): style for style in OutputCommentStyle for suffix in style.suffixes
}


def style_for(extension: str,
              override_map: Optional[Mapping[str, Union[str, OutputCommentStyle]]] = None) -> OutputCommentStyle:
    """按扩展名查注释风格：先查覆盖表，再查默认表；都没有则报配置错误。"""
    ext = extension.lower().lstrip(".")
    if override_map:
        lowered = {str(k).lower().lstrip("."): v for k, v in override_map.items()}
        if ext in lowered:
            return OutputCommentStyle.of_name(lowered[ext])
    style = DEFAULT_SUFFIX_MAP.get(ext)
    if style is None:
        raise ConfigurationError(
            f"Unsupported suffix {extension!r}, add it to comment_styles to choose a style",
            path=extension,
        )
    return style
