"""Tests for upload text extraction."""

import io
import zipfile

import pytest

from lorekeeper.memory.documents import extract_docx_text, extract_text

_W = "http://schemas.openxmlformats.org/wordprocessingml/2006/main"


def _docx(*paragraphs: str) -> bytes:
    body = "".join(
        f'<w:p><w:r><w:t>{text}</w:t></w:r></w:p>' if text else "<w:p/>"
        for text in paragraphs
    )
    xml = f'<?xml version="1.0" encoding="UTF-8"?><w:document xmlns:w="{_W}"><w:body>{body}</w:body></w:document>'
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("word/document.xml", xml)
    return buffer.getvalue()


def test_docx_paragraphs_joined_by_blank_line():
    content = _docx("The Kingdom of Vel", "", "Founded in the third age.")
    assert extract_docx_text(content) == "The Kingdom of Vel\n\nFounded in the third age."


def test_docx_runs_are_concatenated():
    xml = (
        f'<w:document xmlns:w="{_W}"><w:body>'
        "<w:p><w:r><w:t>Ari</w:t></w:r><w:r><w:t>a</w:t></w:r></w:p>"
        "</w:body></w:document>"
    )
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("word/document.xml", xml)
    assert extract_text("lore.DOCX", buffer.getvalue()) == "Aria"


def test_bad_docx_raises_value_error():
    with pytest.raises(ValueError):
        extract_docx_text(b"not a zip")

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr("other.xml", "<x/>")
    with pytest.raises(ValueError):
        extract_docx_text(buffer.getvalue())


def test_plain_text_decoded_as_utf8():
    assert extract_text("notes.md", "Éowyn rides.".encode("utf-8")) == "Éowyn rides."
    assert extract_text("notes.txt", b"bad \xff byte") == "bad � byte"
