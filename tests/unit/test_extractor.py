"""Unit tests for DocumentExtractor and the per-format source processors."""

from __future__ import annotations

import json
from pathlib import Path

import docx
import fitz
import pytest

from docvec.models.document import DocumentType
from docvec.services.ingestion.extractor import DocumentExtractor
from docvec.services.ingestion.source_processors import HTMLProcessor
from docvec.services.ingestion.source_processors.structured_processor import linearize
from docvec.utils.errors import ExtractionError, UnsupportedTypeError


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


class TestTypeResolution:
    @pytest.mark.parametrize(
        ("declared", "expected"),
        [
            ("txt", DocumentType.TXT),
            ("MD", DocumentType.MD),
            ("markdown", DocumentType.MD),
            ("htm", DocumentType.HTML),
            ("code", DocumentType.CODE),
            (DocumentType.PDF, DocumentType.PDF),
        ],
    )
    def test_declared(self, declared, expected: DocumentType) -> None:
        assert DocumentExtractor.resolve_type("whatever.bin", declared) is expected

    @pytest.mark.parametrize(
        ("file_name", "expected"),
        [
            ("a.txt", DocumentType.TXT),
            ("a.markdown", DocumentType.MD),
            ("page.HTML", DocumentType.HTML),
            ("main.py", DocumentType.CODE),
            ("lib.rs", DocumentType.CODE),
            ("rows.tsv", DocumentType.CSV),
            ("report.docx", DocumentType.DOCX),
        ],
    )
    def test_inferred_from_extension(self, file_name: str, expected: DocumentType) -> None:
        assert DocumentExtractor.resolve_type(file_name) is expected
        assert DocumentExtractor.resolve_type(file_name, "") is expected

    def test_unknown_declared_type(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "a.txt", "hello")
        with pytest.raises(UnsupportedTypeError):
            DocumentExtractor().extract(path, "spreadsheet")

    def test_unknown_extension(self) -> None:
        with pytest.raises(UnsupportedTypeError):
            DocumentExtractor.resolve_type("image.png")


class TestPlainAndCode:
    def test_text(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "a.txt", "hello world\nsecond line")
        assert DocumentExtractor().extract(path, "txt") == "hello world\nsecond line"

    def test_utf8_bom_is_dropped(self, tmp_path: Path) -> None:
        path = tmp_path / "bom.txt"
        path.write_bytes(b"\xef\xbb\xbfhello")
        assert DocumentExtractor().extract(path) == "hello"

    def test_invalid_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.txt"
        path.write_bytes(b"ok \xff\xfe broken")
        with pytest.raises(ExtractionError, match="not valid UTF-8"):
            DocumentExtractor().extract(path)

    def test_code_header(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "app.py", "import os\nprint(os.name)\n")
        text = DocumentExtractor().extract(path)
        assert text.startswith("Code file: app.py\nLanguage: Python\nLines: 2\n\n")
        assert text.endswith("print(os.name)\n")

    def test_code_unknown_language(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "build.gradle", "apply plugin")
        assert "Language: Unknown" in DocumentExtractor().extract(path, "code")


class TestHTML:
    def test_scripts_and_styles_removed(self, tmp_path: Path) -> None:
        markup = (
            "<html><head><title>T</title><style>body{color:red}</style></head>"
            "<body><h1>Heading</h1><script>alert('x')</script>"
            "<p>First paragraph.</p><noscript>enable js</noscript><p>Second.</p></body></html>"
        )
        path = _write(tmp_path, "page.html", markup)
        text = DocumentExtractor().extract(path)
        assert text == "Heading\nFirst paragraph.\nSecond."
        assert "alert" not in text
        assert "color" not in text

    def test_fragment_without_body(self) -> None:
        assert HTMLProcessor.extract_markup("<div>Only <b>this</b></div>") == "Only\nthis"


class TestJSON:
    def test_linearized_tree(self, tmp_path: Path) -> None:
        data = {"name": "docvec", "tags": ["a", "b"], "owner": {"id": 7, "active": True, "team": None}}
        path = _write(tmp_path, "data.json", json.dumps(data))
        assert DocumentExtractor().extract(path).splitlines() == [
            "name: docvec",
            "tags:",
            "  [0]: a",
            "  [1]: b",
            "owner:",
            "  id: 7",
            "  active: true",
            "  team: null",
        ]

    def test_empty_containers_and_nested_arrays(self) -> None:
        assert linearize({"a": {}, "b": [], "c": [[1]]}) == ["a: {}", "b: []", "c:", "  [0]:", "    [0]: 1"]

    def test_top_level_array(self) -> None:
        assert linearize([{"k": "v"}, 2]) == ["[0]:", "  k: v", "[1]: 2"]

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "broken.json", '{"a": ')
        with pytest.raises(ExtractionError, match="Invalid JSON"):
            DocumentExtractor().extract(path)

    def test_nesting_beyond_recursion_limit(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "deep.json", "[" * 100_000 + "]" * 100_000)
        with pytest.raises(ExtractionError, match="nested too deeply"):
            DocumentExtractor().extract(path)


class TestCSV:
    def test_rows(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "people.csv", 'name,city\nAda,"London, UK"\n\nGrace,Arlington\n')
        assert DocumentExtractor().extract(path).splitlines() == [
            "Headers: name | city",
            "",
            "Row 1: Ada | London, UK",
            "Row 2: Grace | Arlington",
        ]

    def test_row_limit(self, tmp_path: Path) -> None:
        rows = "\n".join(f"{i},{i * 2}" for i in range(50))
        path = _write(tmp_path, "numbers.csv", "n,double\n" + rows)
        lines = DocumentExtractor(tabular_row_limit=10).extract(path).splitlines()
        assert lines[-1] == "Row 10: 9 | 18"
        assert len(lines) == 12

    def test_default_row_limit_renders_a_thousand_rows(self, tmp_path: Path) -> None:
        rows = "\n".join(f"{i},x" for i in range(1_500))
        path = _write(tmp_path, "big.csv", "n,label\n" + rows)
        lines = DocumentExtractor().extract(path).splitlines()
        assert lines[-1] == "Row 1000: 999 | x"

    def test_tsv(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "t.tsv", "a\tb\n1\t2\n")
        assert DocumentExtractor().extract(path).splitlines()[-1] == "Row 1: 1 | 2"


class TestBinaryFormats:
    def test_pdf(self, tmp_path: Path) -> None:
        path = tmp_path / "doc.pdf"
        pdf = fitz.open()
        pdf.new_page().insert_text((72, 72), "First page text")
        pdf.new_page().insert_text((72, 72), "Second page text")
        pdf.save(str(path))
        pdf.close()

        text = DocumentExtractor().extract(path)
        assert text == "First page text\n\nSecond page text"

    def test_corrupt_pdf(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.pdf"
        path.write_bytes(b"this is not a pdf at all")
        with pytest.raises(ExtractionError):
            DocumentExtractor().extract(path)

    def test_docx(self, tmp_path: Path) -> None:
        path = tmp_path / "memo.docx"
        document = docx.Document()
        document.add_paragraph("Quarterly summary")
        document.add_paragraph("")
        document.add_paragraph("Revenue grew.")
        table = document.add_table(rows=1, cols=2)
        table.rows[0].cells[0].text = "Region"
        table.rows[0].cells[1].text = "EMEA"
        document.save(str(path))

        assert DocumentExtractor().extract(path) == "Quarterly summary\n\nRevenue grew.\n\nRegion | EMEA"

    def test_corrupt_docx(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.docx"
        path.write_bytes(b"not a zip file")
        with pytest.raises(ExtractionError):
            DocumentExtractor().extract(path)


class TestSizeProbe:
    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ExtractionError, match="File not found"):
            DocumentExtractor().extract(tmp_path / "nope.txt")

    def test_directory(self, tmp_path: Path) -> None:
        folder = tmp_path / "folder.txt"
        folder.mkdir()
        with pytest.raises(ExtractionError, match="Not a regular file"):
            DocumentExtractor().probe_size(folder)

    def test_over_limit_rejected_before_reading(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = _write(tmp_path, "big.txt", "x" * 200)
        extractor = DocumentExtractor(max_file_size_bytes=100)

        def _fail(*_args, **_kwargs):
            raise AssertionError("file was read")

        monkeypatch.setattr(Path, "read_text", _fail)
        with pytest.raises(ExtractionError, match="limit"):
            extractor.extract(path)

    def test_at_limit_accepted(self, tmp_path: Path) -> None:
        path = _write(tmp_path, "ok.txt", "x" * 100)
        assert DocumentExtractor(max_file_size_bytes=100).probe_size(path) == 100
