"""CSV extraction: header line plus one ``Row N: ...`` line per record."""

from __future__ import annotations

import csv
import io
from pathlib import Path

import structlog

from docvec.services.ingestion.source_processors.base import SourceProcessor, read_text_file
from docvec.utils.errors import ExtractionError

logger = structlog.get_logger(logger_name=__name__)


class CSVProcessor(SourceProcessor):
    """Renders tabular data as prose-like lines.

    Parameters
    ----------
    row_limit:
        Maximum number of data rows rendered, not counting the header
        line.  The default renders rows 1 through 1000; later rows are
        dropped.
    """

    name = "csv"

    def __init__(self, row_limit: int = 1000) -> None:
        self._row_limit = row_limit

    def extract(self, file_path: Path) -> str:
        raw = read_text_file(file_path, self.name)
        dialect = "excel-tab" if file_path.suffix.lower() == ".tsv" else "excel"
        reader = csv.reader(io.StringIO(raw, newline=""), dialect)

        lines: list[str] = []
        rows_rendered = 0
        truncated = False
        try:
            for record in reader:
                if not any(cell.strip() for cell in record):
                    continue
                cells = " | ".join(cell.strip() for cell in record)
                if not lines:
                    lines.append(f"Headers: {cells}")
                    lines.append("")
                    continue
                if rows_rendered >= self._row_limit:
                    truncated = True
                    break
                rows_rendered += 1
                lines.append(f"Row {rows_rendered}: {cells}")
        except csv.Error as exc:
            raise ExtractionError(
                message=f"Malformed CSV in {file_path.name} at line {reader.line_num}: {exc}",
                provider_name=self.name,
            ) from exc

        if truncated:
            logger.info("csv_rows_truncated", file=file_path.name, row_limit=self._row_limit)
        return "\n".join(lines)
