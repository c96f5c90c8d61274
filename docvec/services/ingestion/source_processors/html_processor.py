"""HTML extraction via BeautifulSoup."""

from __future__ import annotations

from pathlib import Path

from bs4 import BeautifulSoup

from docvec.services.ingestion.source_processors.base import SourceProcessor, read_text_file

# Elements whose content is never readable text.
_STRIP_TAGS = ("script", "style", "noscript", "template")


class HTMLProcessor(SourceProcessor):
    """Strips scripts and styles, then returns the visible text of ``<body>``."""

    name = "html"

    def extract(self, file_path: Path) -> str:
        return self.extract_markup(read_text_file(file_path, self.name))

    @staticmethod
    def extract_markup(markup: str) -> str:
        soup = BeautifulSoup(markup, "html.parser")
        for tag in soup(_STRIP_TAGS):
            tag.decompose()

        root = soup.body or soup
        lines = (line.strip() for line in root.get_text(separator="\n").splitlines())
        return "\n".join(line for line in lines if line)
