"""Word (.docx) extraction via python-docx."""

from __future__ import annotations

import zipfile
from pathlib import Path

from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from docvec.services.ingestion.source_processors.base import SourceProcessor
from docvec.utils.errors import ExtractionError


class DocxProcessor(SourceProcessor):
    """Paragraph text followed by table rows (cells joined with ``|``)."""

    name = "docx"

    def extract(self, file_path: Path) -> str:
        try:
            doc = Document(str(file_path))
        except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
            raise ExtractionError(
                message=f"Cannot open DOCX {file_path.name}: {exc}",
                provider_name=self.name,
            ) from exc

        parts = [p.text.strip() for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                if any(cells):
                    parts.append(" | ".join(cells))
        return "\n\n".join(parts)
