"""Format-specific text extractors used by DocumentExtractor.

- **TextProcessor**   -- .txt / .md, returned as-is
- **CodeProcessor**   -- source files, with a file/language/lines header
- **HTMLProcessor**   -- BeautifulSoup, scripts and styles stripped
- **JSONProcessor**   -- key/value tree linearized into indented lines
- **CSVProcessor**    -- header plus ``Row N:`` lines, row-capped
- **PDFProcessor**    -- PyMuPDF text layer, page by page
- **DocxProcessor**   -- python-docx paragraphs and tables
"""

from docvec.services.ingestion.source_processors.base import SourceProcessor
from docvec.services.ingestion.source_processors.docx_processor import DocxProcessor
from docvec.services.ingestion.source_processors.html_processor import HTMLProcessor
from docvec.services.ingestion.source_processors.pdf_processor import PDFProcessor
from docvec.services.ingestion.source_processors.structured_processor import JSONProcessor
from docvec.services.ingestion.source_processors.tabular_processor import CSVProcessor
from docvec.services.ingestion.source_processors.text_processor import CodeProcessor, TextProcessor

__all__ = [
    "CSVProcessor",
    "CodeProcessor",
    "DocxProcessor",
    "HTMLProcessor",
    "JSONProcessor",
    "PDFProcessor",
    "SourceProcessor",
    "TextProcessor",
]
