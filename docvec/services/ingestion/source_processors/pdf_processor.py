"""PDF extraction via PyMuPDF."""

from __future__ import annotations

from pathlib import Path

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from docvec.services.ingestion.source_processors.base import SourceProcessor
from docvec.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class PDFProcessor(SourceProcessor):
    """Extracts the text layer page by page; pages are separated by a blank line.

    Scanned PDFs without a text layer yield empty text, not an error.
    """

    name = "pdf"

    def extract(self, file_path: Path) -> str:
        try:
            doc = fitz.open(str(file_path))
        except (RuntimeError, ValueError, OSError) as exc:
            raise ExtractionError(
                message=f"Cannot open PDF {file_path.name}: {exc}",
                provider_name=self.name,
            ) from exc

        pages: list[str] = []
        try:
            for page in doc:
                text = page.get_text("text").strip()
                if text:
                    pages.append(text)
        except (RuntimeError, ValueError) as exc:
            raise ExtractionError(
                message=f"Failed reading PDF {file_path.name}: {exc}",
                provider_name=self.name,
            ) from exc
        finally:
            doc.close()

        logger.debug("pdf_extracted", file=file_path.name, pages_with_text=len(pages))
        return "\n\n".join(pages)
