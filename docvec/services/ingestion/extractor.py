"""Converts a source file of a declared type into plain text.

The extractor only reads its input; it never writes anything.  Files
larger than the configured limit are rejected from a ``stat`` probe
before a single byte is read.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from docvec.models.document import DocumentType
from docvec.services.ingestion.source_processors import (
    CodeProcessor,
    CSVProcessor,
    DocxProcessor,
    HTMLProcessor,
    JSONProcessor,
    PDFProcessor,
    SourceProcessor,
    TextProcessor,
)
from docvec.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MAX_FILE_SIZE = 50 * 1024 * 1024


class DocumentExtractor:
    """Dispatches to a format-specific :class:`SourceProcessor`.

    Parameters
    ----------
    max_file_size_bytes:
        Files above this size raise :class:`ExtractionError` without being read.
    tabular_row_limit:
        Maximum CSV data rows rendered.
    """

    def __init__(
        self,
        max_file_size_bytes: int = _DEFAULT_MAX_FILE_SIZE,
        tabular_row_limit: int = 1000,
    ) -> None:
        self._max_file_size = max_file_size_bytes
        text = TextProcessor()
        self._processors: dict[DocumentType, SourceProcessor] = {
            DocumentType.TXT: text,
            DocumentType.MD: text,
            DocumentType.CODE: CodeProcessor(),
            DocumentType.HTML: HTMLProcessor(),
            DocumentType.JSON: JSONProcessor(),
            DocumentType.CSV: CSVProcessor(row_limit=tabular_row_limit),
            DocumentType.PDF: PDFProcessor(),
            DocumentType.DOCX: DocxProcessor(),
        }

    @staticmethod
    def resolve_type(file_path: str | Path, declared_type: str | DocumentType | None = None) -> DocumentType:
        """Return the declared type, or infer it from the extension when none is given.

        Raises
        ------
        docvec.utils.errors.UnsupportedTypeError
        """
        if declared_type is None or declared_type == "":
            return DocumentType.from_filename(Path(file_path).name)
        return DocumentType.from_declared(declared_type)

    def probe_size(self, file_path: str | Path) -> int:
        """Return the file size, enforcing existence and the size limit."""
        path = Path(file_path)
        try:
            stat = path.stat()
        except FileNotFoundError as exc:
            raise ExtractionError(message=f"File not found: {path}") from exc
        except OSError as exc:
            raise ExtractionError(message=f"Cannot access {path}: {exc}") from exc
        if not path.is_file():
            raise ExtractionError(message=f"Not a regular file: {path}")
        if stat.st_size > self._max_file_size:
            raise ExtractionError(
                message=(
                    f"{path.name} is {stat.st_size} bytes, above the "
                    f"{self._max_file_size}-byte limit"
                )
            )
        return stat.st_size

    def extract(self, file_path: str | Path, declared_type: str | DocumentType | None = None) -> str:
        """Extract plain text from *file_path*.

        Parameters
        ----------
        file_path:
            Path of the source file.
        declared_type:
            One of the :class:`DocumentType` values (or its string form).
            Inferred from the extension when omitted.

        Returns
        -------
        str
            The extracted text.

        Raises
        ------
        docvec.utils.errors.UnsupportedTypeError
            If the declared type is not recognized.
        docvec.utils.errors.ExtractionError
            If the file is missing, too large, or cannot be parsed.
        """
        document_type = self.resolve_type(file_path, declared_type)
        size = self.probe_size(file_path)
        text = self._processors[document_type].extract(Path(file_path))
        logger.debug(
            "document_extracted",
            file=Path(file_path).name,
            document_type=document_type.value,
            bytes=size,
            characters=len(text),
        )
        return text
