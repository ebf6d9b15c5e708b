"""Document text extraction.

PDFs go through pdfplumber; plain text and markdown are read as UTF-8.
"""
from pathlib import Path

import pdfplumber
import structlog

from docqa.errors import DocumentNotFoundError, DocumentReadError

logger = structlog.get_logger()

TEXT_SUFFIXES = {".txt", ".md", ".markdown"}


def load_pdf(path: Path) -> str:
    text = []
    with pdfplumber.open(path) as pdf:
        for page in pdf.pages:
            text.append(page.extract_text() or "")
    return "\n".join(text)


def load_document(path: Path) -> str:
    """Extract the full text of a document.

    Args:
        path: Path to a .pdf, .txt or .md file

    Returns:
        Extracted text, stripped of leading/trailing whitespace

    Raises:
        DocumentNotFoundError: If the path does not exist
        DocumentReadError: If the extractor fails on the file
    """
    path = Path(path)
    if not path.is_file():
        logger.error("document_not_found", path=str(path))
        raise DocumentNotFoundError(path)

    try:
        if path.suffix.lower() in TEXT_SUFFIXES:
            text = path.read_text(encoding="utf-8")
        else:
            text = load_pdf(path)
    except (OSError, UnicodeDecodeError) as e:
        logger.error("document_read_failed", path=str(path), error=str(e))
        raise DocumentReadError(f"Could not read {path}: {e}") from e
    except Exception as e:
        # pdfplumber surfaces parser failures as assorted pdfminer exceptions
        logger.error(
            "pdf_extraction_failed",
            path=str(path),
            error=str(e),
            error_type=type(e).__name__,
        )
        raise DocumentReadError(f"Could not extract text from {path}: {e}") from e

    text = text.strip()

    logger.info(
        "document_loaded",
        path=str(path),
        text_length=len(text),
    )

    return text
