"""
Unit tests for uploaded note parsing
"""

import io

import fitz
import pytest
from docx import Document

from notelens.services.document_parser import DocumentParserService, extract_note_text
from notelens.exceptions import UnsupportedDocumentError


@pytest.fixture
def parser():
    return DocumentParserService(max_bytes=1_000_000)


@pytest.fixture
def pdf_bytes():
    pdf = fitz.open()
    page = pdf.new_page()
    page.insert_text((72, 72), "HPI: Patient reports low mood.")
    data = pdf.tobytes()
    pdf.close()
    return data


@pytest.fixture
def docx_bytes():
    document = Document()
    document.add_paragraph("Assessment: Generalized anxiety disorder, stable.")
    document.add_paragraph("")
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Medications:"
    table.rows[0].cells[1].text = "Sertraline 50mg"
    stream = io.BytesIO()
    document.save(stream)
    return stream.getvalue()


class TestTextDocuments:
    """Test plain text uploads"""

    def test_utf8(self, parser):
        result = parser.parse_document("Plan: continue sertraline.\n".encode("utf-8"), "note.txt")

        assert result["text"] == "Plan: continue sertraline."
        assert result["format"] == "text"
        assert result["word_count"] == 3

    def test_latin1_fallback(self, parser):
        result = parser.parse_document(b"Caf\xe9 visit note", "note.txt")
        assert result["text"] == "Café visit note"

    def test_content_type_without_extension(self, parser):
        result = parser.parse_document(b"Plan: continue.", "upload", content_type="text/plain")
        assert result["text"] == "Plan: continue."


class TestBinaryDocuments:
    """Test PDF and DOCX uploads"""

    def test_pdf(self, parser, pdf_bytes):
        result = parser.parse_document(pdf_bytes, "previous_note.pdf")

        assert "HPI: Patient reports low mood." in result["text"]
        assert result["format"] == "pdf"
        assert result["page_count"] == 1

    def test_docx_paragraphs_and_tables(self, parser, docx_bytes):
        result = parser.parse_document(docx_bytes, "previous_note.docx")

        lines = result["text"].split("\n")
        assert lines[0] == "Assessment: Generalized anxiety disorder, stable."
        assert lines[1] == "Medications: | Sertraline 50mg"

    def test_corrupt_pdf(self, parser):
        with pytest.raises(UnsupportedDocumentError):
            parser.parse_document(b"definitely not a pdf", "broken.pdf")


class TestRejectedDocuments:
    """Test upload rejection"""

    def test_unsupported_type(self, parser):
        with pytest.raises(UnsupportedDocumentError) as exc_info:
            parser.parse_document(b"MZ\x90\x00", "setup.exe")
        assert exc_info.value.context["filename"] == "setup.exe"

    def test_empty_text(self, parser):
        with pytest.raises(UnsupportedDocumentError):
            parser.parse_document(b"   \n  ", "blank.txt")

    def test_oversized(self):
        small_parser = DocumentParserService(max_bytes=10)
        with pytest.raises(UnsupportedDocumentError):
            small_parser.parse_document(b"x" * 11, "note.txt")

    def test_extract_note_text(self):
        assert extract_note_text(b"Diagnosis: GAD", "note.txt") == "Diagnosis: GAD"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
