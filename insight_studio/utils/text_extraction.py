"""Text extraction utilities for uploaded documents.

Extracts text from PDF, DOCX and plain-text style files (txt, md, csv)
so it can be sent to analysis.
"""

import io
import logging

from docx import Document
from pypdf import PdfReader

logger = logging.getLogger(__name__)

# Maximum characters kept per document
MAX_TEXT_LENGTH = 100_000


class TextExtractionError(Exception):
    """Base exception for text extraction errors."""

    pass


class UnsupportedFileTypeError(TextExtractionError):
    """Raised when a file type has no text extractor."""

    pass


def extract_text_from_pdf(file_bytes: bytes) -> str:
    """Extract text from every page of a PDF.

    Raises:
        TextExtractionError: If the PDF cannot be read or parsed.
    """
    try:
        reader = PdfReader(io.BytesIO(file_bytes))
        pages = [page.extract_text() or "" for page in reader.pages]
        return "\n\n".join(p for p in pages if p)
    except Exception as e:
        raise TextExtractionError(f"Failed to extract text from PDF: {e}") from e


def extract_text_from_docx(file_bytes: bytes) -> str:
    """Extract non-empty paragraphs and table cells from a DOCX file.

    Raises:
        TextExtractionError: If the DOCX cannot be read or parsed.
    """
    try:
        document = Document(io.BytesIO(file_bytes))
        parts = [p.text for p in document.paragraphs if p.text.strip()]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if cells:
                    parts.append(" | ".join(cells))
        return "\n\n".join(parts)
    except Exception as e:
        raise TextExtractionError(f"Failed to extract text from DOCX: {e}") from e


def extract_text_from_plain(file_bytes: bytes) -> str:
    """Decode a text file as UTF-8, falling back to latin-1."""
    try:
        return file_bytes.decode("utf-8")
    except UnicodeDecodeError:
        return file_bytes.decode("latin-1")


_EXTRACTORS = {
    "application/pdf": extract_text_from_pdf,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": extract_text_from_docx,
    "text/plain": extract_text_from_plain,
    "text/markdown": extract_text_from_plain,
    "text/csv": extract_text_from_plain,
}

_EXTENSION_TYPES = {
    ".pdf": "application/pdf",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".txt": "text/plain",
    ".md": "text/markdown",
    ".csv": "text/csv",
}


def extract_text(file_bytes: bytes, content_type: str, filename: str | None = None) -> str:
    """Extract text from a file based on its MIME type (or extension).

    Browsers often send application/octet-stream; the filename extension
    is used when the MIME type has no extractor.

    Raises:
        UnsupportedFileTypeError: If neither MIME type nor extension is supported.
        TextExtractionError: If extraction fails.
    """
    base_content_type = content_type.split(";")[0].strip().lower()
    extractor = _EXTRACTORS.get(base_content_type)

    if extractor is None and filename and "." in filename:
        extension = "." + filename.rsplit(".", 1)[-1].lower()
        guessed = _EXTENSION_TYPES.get(extension)
        if guessed:
            base_content_type = guessed
            extractor = _EXTRACTORS[guessed]

    if extractor is None:
        raise UnsupportedFileTypeError(
            f"Unsupported file type: {content_type}. "
            f"Supported types: {', '.join(_EXTRACTORS.keys())}"
        )

    text = extractor(file_bytes)

    logger.info(
        "Text extraction complete",
        extra={
            "content_type": base_content_type,
            "file_size_bytes": len(file_bytes),
            "extracted_chars": len(text),
            "will_truncate": len(text) > MAX_TEXT_LENGTH,
        },
    )

    if len(text) > MAX_TEXT_LENGTH:
        return text[:MAX_TEXT_LENGTH]
    return text
