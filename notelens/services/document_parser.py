"""
NoteLens - Note Document Parsing Service
Extracts plain note text from uploaded PDF, DOCX and text files
"""

import logging
import io
from typing import Optional, Dict, Any
from pathlib import Path

# PDF parsing
import fitz  # PyMuPDF

# DOCX parsing
from docx import Document as DocxDocument

from notelens.config import settings
from notelens.exceptions import UnsupportedDocumentError

logger = logging.getLogger(__name__)


PDF_TYPES = {"application/pdf"}
DOCX_TYPES = {"application/vnd.openxmlformats-officedocument.wordprocessingml.document"}
TEXT_TYPES = {"text/plain", "text/markdown"}

TEXT_EXTENSIONS = {".txt", ".md", ".text"}


# =============================================================================
# Document Parser Service
# =============================================================================

class DocumentParserService:
    """Turns uploaded previous notes into text for the section detector"""

    def __init__(self, max_bytes: Optional[int] = None):
        self.max_bytes = max_bytes or settings.max_upload_bytes
        logger.info("Document parser service initialized")

    # =========================================================================
    # Main Parsing Method
    # =========================================================================

    def parse_document(
        self,
        file_content: bytes,
        filename: str,
        content_type: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Extract text from an uploaded note

        Args:
            file_content: Raw file bytes
            filename: Original filename
            content_type: MIME type (optional)

        Returns:
            Dictionary with extracted text and basic counts

        Raises:
            UnsupportedDocumentError: unknown type, oversized, unreadable or empty file
        """
        file_ext = Path(filename or "").suffix.lower()
        context = {"filename": filename, "content_type": content_type}

        if len(file_content) > self.max_bytes:
            raise UnsupportedDocumentError(
                f"Document exceeds {self.max_bytes} bytes",
                context={**context, "size": len(file_content)}
            )

        logger.info(f"Parsing document: {filename} (type: {file_ext or content_type})")

        if file_ext == ".pdf" or content_type in PDF_TYPES:
            result = self._guarded(self.parse_pdf, file_content, filename, context)
        elif file_ext == ".docx" or content_type in DOCX_TYPES:
            result = self._guarded(self.parse_docx, file_content, filename, context)
        elif file_ext in TEXT_EXTENSIONS or content_type in TEXT_TYPES:
            result = self.parse_text(file_content, filename)
        else:
            raise UnsupportedDocumentError("Unsupported document type", context=context)

        if not result["text"]:
            raise UnsupportedDocumentError("Document contains no extractable text", context=context)

        return result

    @staticmethod
    def _guarded(parser, file_content: bytes, filename: str, context: Dict[str, Any]) -> Dict[str, Any]:
        try:
            return parser(file_content, filename)
        except UnsupportedDocumentError:
            raise
        except Exception as e:
            logger.error(f"Document parsing failed for {filename}: {e}")
            raise UnsupportedDocumentError(f"Could not read document: {e}", context=context) from e

    # =========================================================================
    # PDF Parsing
    # =========================================================================

    def parse_pdf(self, file_content: bytes, filename: str) -> Dict[str, Any]:
        """Text of every page, pages separated by blank lines"""
        pdf_document = fitz.open(stream=io.BytesIO(file_content), filetype="pdf")
        try:
            pages = [page.get_text() for page in pdf_document]
        finally:
            pdf_document.close()

        text = "\n\n".join(p.strip() for p in pages if p.strip())
        logger.info(f"PDF parsed: {filename} ({len(pages)} pages, {len(text)} chars)")

        return {
            "text": text,
            "filename": filename,
            "format": "pdf",
            "page_count": len(pages),
            "word_count": len(text.split()),
        }

    # =========================================================================
    # DOCX Parsing
    # =========================================================================

    def parse_docx(self, file_content: bytes, filename: str) -> Dict[str, Any]:
        """
        Paragraph text followed by table rows

        Table cells are joined with " | " so header-like first cells
        ("Medications:") still start their own line.
        """
        document = DocxDocument(io.BytesIO(file_content))

        lines = [para.text for para in document.paragraphs if para.text.strip()]
        for table in document.tables:
            for row in table.rows:
                lines.append(" | ".join(cell.text.strip() for cell in row.cells))

        text = "\n".join(lines).strip()
        logger.info(f"DOCX parsed: {filename} ({len(document.paragraphs)} paragraphs, {len(document.tables)} tables)")

        return {
            "text": text,
            "filename": filename,
            "format": "docx",
            "page_count": None,
            "word_count": len(text.split()),
        }

    # =========================================================================
    # Text Parsing
    # =========================================================================

    def parse_text(self, file_content: bytes, filename: str) -> Dict[str, Any]:
        """Decode as UTF-8, falling back to latin-1"""
        try:
            text = file_content.decode("utf-8-sig")
        except UnicodeDecodeError:
            text = file_content.decode("latin-1", errors="ignore")

        text = text.strip()
        logger.info(f"Text parsed: {filename} ({len(text)} chars)")

        return {
            "text": text,
            "filename": filename,
            "format": "text",
            "page_count": None,
            "word_count": len(text.split()),
        }


# =============================================================================
# Global Parser Instance
# =============================================================================

_document_parser: Optional[DocumentParserService] = None


def get_document_parser() -> DocumentParserService:
    """Get or create document parser instance"""
    global _document_parser
    if _document_parser is None:
        _document_parser = DocumentParserService()
    return _document_parser


# =============================================================================
# Public API Functions
# =============================================================================

def extract_note_text(
    file_content: bytes,
    filename: str,
    content_type: Optional[str] = None
) -> str:
    """
    Extract plain note text from an uploaded file

    Args:
        file_content: File bytes
        filename: Original filename
        content_type: MIME type

    Returns:
        Extracted text, never empty
    """
    return get_document_parser().parse_document(file_content, filename, content_type)["text"]
