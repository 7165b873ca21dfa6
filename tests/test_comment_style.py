import os

import pytest

from srcforge.core.comment_style import DEFAULT_SUFFIX_MAP, OutputCommentStyle, style_for
from srcforge.core.errors import ConfigurationError, ErrorKind

NL = os.linesep


def test_line_prefixed_styles_prefix_every_non_blank_line():
    text = "Generated file\n\nDo not edit\n"
    assert OutputCommentStyle.JAVA.create_comment_block(text) == f"// Generated file{NL}// Do not edit{NL}"
    assert OutputCommentStyle.SHELL.create_comment_block(text) == f"# Generated file{NL}# Do not edit{NL}"
    assert OutputCommentStyle.SQL.create_comment_block("x") == f"-- x{NL}"
    assert OutputCommentStyle.BATCH.create_comment_block("x") == f"REM x{NL}"


def test_c_style_single_and_multi_line():
    assert OutputCommentStyle.C_LANG.create_comment_block("Generated\n") == f"/* Generated */{NL}"
    assert OutputCommentStyle.C_LANG.create_comment_block("a\nb\n") == (
        f"/*{NL} * a{NL} * b{NL} */{NL}"
    )


def test_xml_single_line():
    assert OutputCommentStyle.XML.create_comment_block("hi") == f"<!-- hi -->{NL}"


def test_python_multi_line_keeps_content():
    assert OutputCommentStyle.PYTHON.create_comment_block("one") == f"# one{NL}"
    assert OutputCommentStyle.PYTHON.create_comment_block("a\nb") == f'"""{NL}a\nb{NL}"""{NL}'


def test_none_returns_content_unchanged():
    assert OutputCommentStyle.NONE.create_comment_block("a\n\nb") == "a\n\nb"


def test_default_suffix_map_covers_common_extensions():
    assert DEFAULT_SUFFIX_MAP["java"] is OutputCommentStyle.JAVA
    assert DEFAULT_SUFFIX_MAP["h"] is OutputCommentStyle.C_LANG
    assert DEFAULT_SUFFIX_MAP["yml"] is OutputCommentStyle.SHELL
    assert DEFAULT_SUFFIX_MAP["py"] is OutputCommentStyle.PYTHON


def test_style_for_is_case_insensitive():
    assert style_for("JAVA") is OutputCommentStyle.JAVA
    assert style_for(".sql") is OutputCommentStyle.SQL


def test_override_map_wins():
    assert style_for("java", {"java": "shell"}) is OutputCommentStyle.SHELL
    assert style_for("tpl", {".TPL": OutputCommentStyle.XML}) is OutputCommentStyle.XML
    assert style_for("c", {"java": "none"}) is OutputCommentStyle.C_LANG


def test_unknown_extension_is_a_configuration_error():
    with pytest.raises(ConfigurationError) as exc:
        style_for("zzz")
    assert exc.value.kind is ErrorKind.CONFIGURATION_ERROR


def test_of_name():
    assert OutputCommentStyle.of_name(" c_lang ") is OutputCommentStyle.C_LANG
    assert OutputCommentStyle.of_name(OutputCommentStyle.LUA) is OutputCommentStyle.LUA
    with pytest.raises(ConfigurationError):
        OutputCommentStyle.of_name("fortran")
