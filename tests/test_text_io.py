import io

import pytest

from srcforge.core import text_io
from srcforge.core.text_io import (
    SequenceReader,
    charset_from_content_type,
    iter_lines_keepends,
    iter_lines_with_newline,
)

MIXED = "a\r\nb\rc\n\nd"


def reader(text):
    return io.StringIO(text, newline="")


@pytest.mark.parametrize("chunk", [1, 2, 3, 8192])
def test_keepends_preserves_original_terminators(monkeypatch, chunk):
    monkeypatch.setattr(text_io, "_CHUNK", chunk)
    lines = list(iter_lines_keepends(reader(MIXED)))
    assert lines == ["a\r\n", "b\r", "c\n", "\n", "d"]
    assert "".join(lines) == MIXED


def test_trailing_carriage_return_at_end_of_input(monkeypatch):
    monkeypatch.setattr(text_io, "_CHUNK", 1)
    assert list(iter_lines_keepends(reader("x\r"))) == ["x\r"]


def test_with_newline_uses_given_separator():
    assert list(iter_lines_with_newline(reader(MIXED), "\n")) == ["a\n", "b\n", "c\n", "\n", "d"]
    assert list(iter_lines_with_newline(reader("x\n"), "\r\n")) == ["x\r\n"]
    assert list(iter_lines_with_newline(reader(""))) == []


def test_sequence_reader_reads_through_all_sources():
    seq = SequenceReader.wrap(reader("body\n"), header="head\n", footer="foot\n")
    assert seq.read() == "head\nbody\nfoot\n"
    assert seq.read() == ""


def test_sequence_reader_chunked_reads():
    seq = SequenceReader("ab", "", "cde")
    parts = []
    while True:
        data = seq.read(2)
        if not data:
            break
        parts.append(data)
    assert "".join(parts) == "abcde"


def test_sequence_reader_close_closes_sources():
    first, second = reader("1"), reader("2")
    with SequenceReader(first, second) as seq:
        assert list(iter_lines_keepends(seq)) == ["12"]
    assert first.closed and second.closed and seq.closed


@pytest.mark.parametrize("content_type,expected", [
    ("text/plain; charset=UTF-8", "utf-8"),
    ('text/html; charset="iso-8859-1"', "iso8859-1"),
    ("text/plain", None),
    ("text/plain; charset=nope-42", None),
    ("", None),
    (None, None),
])
def test_charset_from_content_type(content_type, expected):
    assert charset_from_content_type(content_type) == expected
