"""Raw text extraction for uploaded world documents."""

from __future__ import annotations

import io
import xml.etree.ElementTree as ET
import zipfile

_DOCX_BODY = "word/document.xml"


def _docx_paragraphs(xml_bytes: bytes) -> list[str]:
    root = ET.fromstring(xml_bytes)
    paragraphs: list[str] = []
    for node in root.iter():
        if not str(node.tag).endswith("}p"):
            continue
        parts = [t.text for t in node.iter() if str(t.tag).endswith("}t") and t.text]
        line = "".join(parts).strip()
        if line:
            paragraphs.append(line)
    return paragraphs


def extract_docx_text(content: bytes) -> str:
    """Paragraph text of a .docx, one blank line between paragraphs."""
    try:
        with zipfile.ZipFile(io.BytesIO(content)) as archive:
            xml_bytes = archive.read(_DOCX_BODY)
    except (zipfile.BadZipFile, KeyError) as e:
        raise ValueError(f"Not a readable .docx file: {e}") from e
    try:
        paragraphs = _docx_paragraphs(xml_bytes)
    except ET.ParseError as e:
        raise ValueError(f"Malformed .docx body: {e}") from e
    return "\n\n".join(paragraphs)


def extract_text(filename: str, content: bytes) -> str:
    """Extract text from an upload; anything that is not .docx is read as UTF-8."""
    if filename.lower().endswith(".docx"):
        return extract_docx_text(content)
    return content.decode("utf-8", errors="replace")
