"""Shared base for format-specific text extraction."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from docvec.utils.errors import ExtractionError


class SourceProcessor(ABC):
    """Turns one file of a known format into plain text."""

    name: str = "source"

    @abstractmethod
    def extract(self, file_path: Path) -> str:
        """Return the file's text.

        Raises
        ------
        docvec.utils.errors.ExtractionError
            If the file is unreadable or cannot be parsed.
        """


def read_text_file(file_path: Path, provider_name: str) -> str:
    """Read *file_path* as strict UTF-8 (a leading BOM is dropped)."""
    try:
        return file_path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ExtractionError(
            message=f"{file_path.name} is not valid UTF-8 (byte {exc.start})",
            provider_name=provider_name,
        ) from exc
    except OSError as exc:
        raise ExtractionError(
            message=f"Cannot read {file_path.name}: {exc}",
            provider_name=provider_name,
        ) from exc
