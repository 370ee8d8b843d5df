from __future__ import annotations

import logging
import sys
from types import SimpleNamespace

import pytest

from study_assistant import extraction
from study_assistant.errors import ExtractionError
from study_assistant.extraction import (
    TRUNCATION_MARKER,
    extract_text,
    material_from_file,
    truncate_text,
)


def test_plain_text_is_read_directly(tmp_path):
    source = tmp_path / "notes.md"
    source.write_text("# Heading\n\nBody\n", encoding="utf-8")

    assert extract_text(source) == "# Heading\n\nBody"


def test_documents_go_through_converter(tmp_path):
    source = tmp_path / "slides.pdf"
    source.write_bytes(b"%PDF-1.4")
    seen = []

    def convert(path):
        seen.append(path)
        return "  converted text  "

    assert extract_text(source, converter=convert) == "converted text"
    assert seen == [source]


def test_unsupported_extension(tmp_path):
    source = tmp_path / "image.png"
    source.write_bytes(b"\x89PNG")

    with pytest.raises(ExtractionError, match="Unsupported file type"):
        extract_text(source)


def test_missing_file(tmp_path):
    with pytest.raises(ExtractionError, match="File not found"):
        extract_text(tmp_path / "gone.txt")


def test_empty_text_is_rejected(tmp_path):
    source = tmp_path / "blank.txt"
    source.write_text("   \n", encoding="utf-8")

    with pytest.raises(ExtractionError, match="No text"):
        extract_text(source)


def test_converter_failure_is_wrapped(tmp_path):
    source = tmp_path / "broken.docx"
    source.write_bytes(b"PK")

    def convert(path):
        raise ValueError("corrupt archive")

    with pytest.raises(ExtractionError) as exc:
        extract_text(source, converter=convert)
    assert isinstance(exc.value.__cause__, ValueError)


def test_markitdown_converter_reads_markdown_attribute(tmp_path, monkeypatch):
    class _Engine:
        def convert(self, path):
            return SimpleNamespace(markdown=f"from {path}")

    monkeypatch.setattr(
        extraction, "_import_markitdown", lambda: SimpleNamespace(MarkItDown=_Engine)
    )
    source = tmp_path / "page.html"
    source.write_text("<p>hi</p>", encoding="utf-8")

    assert extract_text(source) == f"from {source}"


def test_missing_markitdown_raises_extraction_error(tmp_path, monkeypatch):
    monkeypatch.setitem(sys.modules, "markitdown", None)
    source = tmp_path / "page.html"
    source.write_text("<p>hi</p>", encoding="utf-8")

    with pytest.raises(ExtractionError, match="markitdown"):
        extract_text(source)


def test_truncate_text_logs_and_marks(caplog):
    with caplog.at_level(logging.WARNING, logger="study_assistant"):
        result = truncate_text("abcdef", max_chars=4)

    assert result == "abcd" + TRUNCATION_MARKER
    assert "truncated" in caplog.text
    assert truncate_text("abc", max_chars=4) == "abc"


def test_material_from_file(tmp_path):
    source = tmp_path / "week-2.txt"
    source.write_text("Enzymes speed up reactions.", encoding="utf-8")

    default = material_from_file(source)
    titled = material_from_file(source, title="Enzymes")

    assert default.title == "week-2"
    assert titled.title == "Enzymes"
    assert titled.content == "Enzymes speed up reactions."
