"""Plain text, markdown and source-code extraction."""

from __future__ import annotations

from pathlib import Path

from docvec.models.document import CODE_LANGUAGES
from docvec.services.ingestion.source_processors.base import SourceProcessor, read_text_file


class TextProcessor(SourceProcessor):
    """Returns .txt / .md content as-is."""

    name = "text"

    def extract(self, file_path: Path) -> str:
        return read_text_file(file_path, self.name)


class CodeProcessor(SourceProcessor):
    """Prefixes source code with a short header naming the file and language.

    The header gives chunks of code a little natural-language context for
    the embedding model::

        Code file: app.py
        Language: Python
        Lines: 42
    """

    name = "code"

    def extract(self, file_path: Path) -> str:
        content = read_text_file(file_path, self.name)
        language = CODE_LANGUAGES.get(file_path.suffix.lower(), "Unknown")
        line_count = len(content.splitlines())
        header = f"Code file: {file_path.name}\nLanguage: {language}\nLines: {line_count}"
        return f"{header}\n\n{content}"
