"""Unit tests for DocumentAnalyzer - statistics, language and tags."""

from __future__ import annotations

from docvec.models.document import DocumentType
from docvec.services.ingestion.analyzer import DocumentAnalyzer


class TestStatistics:
    def test_counts(self) -> None:
        text = "One two three. Four five!\n\nSix seven eight nine?"
        stats = DocumentAnalyzer().statistics(text)
        assert stats.word_count == 9
        assert stats.sentence_count == 3
        assert stats.paragraph_count == 2
        assert stats.average_words_per_sentence == 3.0

    def test_empty_text(self) -> None:
        stats = DocumentAnalyzer().statistics("")
        assert stats.word_count == 0
        assert stats.readability_score == 0.0
        assert stats.complexity_score == 0.0

    def test_readability_bounded(self) -> None:
        analyzer = DocumentAnalyzer()
        easy = analyzer.statistics("The cat sat. The dog ran. I am here.")
        hard = analyzer.statistics(
            "Incomprehensibility characterizes institutionalized organizational "
            "responsibilities notwithstanding extraordinarily sophisticated considerations"
        )
        assert 0.0 <= hard.readability_score < easy.readability_score <= 100.0

    def test_complexity_rises_with_technical_content(self) -> None:
        analyzer = DocumentAnalyzer()
        plain = analyzer.statistics("A short walk by the sea.")
        technical = analyzer.statistics(
            "The algorithm implementation needs optimization. "
            "The architecture uses function calls like run(x); everywhere."
        )
        assert plain.complexity_score == 0.0
        assert technical.complexity_score > plain.complexity_score
        assert technical.complexity_score <= 100.0

    def test_idempotent(self, sample_prose: str) -> None:
        analyzer = DocumentAnalyzer()
        assert analyzer.statistics(sample_prose) == analyzer.statistics(sample_prose)
        assert analyzer.analyze(sample_prose)[0] == analyzer.analyze(sample_prose)[0]


class TestLanguageDetection:
    def test_english(self, sample_prose: str) -> None:
        language, confidence = DocumentAnalyzer().detect_language(sample_prose)
        assert language == "en"
        assert 0.0 < confidence <= 1.0

    def test_spanish(self) -> None:
        text = "El perro de la casa come en el patio con los niños y las niñas del barrio."
        assert DocumentAnalyzer().detect_language(text)[0] == "es"

    def test_german(self) -> None:
        text = "Der Hund und die Katze sind nicht in dem Haus, das auf dem Berg ist."
        assert DocumentAnalyzer().detect_language(text)[0] == "de"

    def test_unknown_below_floor(self) -> None:
        language, confidence = DocumentAnalyzer(language_confidence_floor=0.5).detect_language(
            "Vector index chunk embedding the query"
        )
        assert language == "unknown"
        assert confidence < 0.5

    def test_never_fails_on_symbols(self) -> None:
        assert DocumentAnalyzer().detect_language("{} [] ;; ---") == ("unknown", 0.0)


class TestAnalyze:
    def test_metadata(self, sample_prose: str) -> None:
        metadata, stats = DocumentAnalyzer().analyze(
            sample_prose,
            file_name="notes.md",
            file_size=123,
            document_type=DocumentType.MD,
            custom={"team": "search"},
        )
        assert metadata.file_name == "notes.md"
        assert metadata.mime_type == "text/markdown"
        assert metadata.word_count == stats.word_count
        assert metadata.character_count == len(sample_prose)
        assert metadata.custom == {"team": "search"}
        assert stats.language_confidence > 0.0

    def test_language_detection_disabled(self, sample_prose: str) -> None:
        metadata, stats = DocumentAnalyzer().analyze(sample_prose, detect_language=False)
        assert metadata.language == "unknown"
        assert stats.language_confidence == 0.0

    def test_tags(self) -> None:
        tags = DocumentAnalyzer.extract_tags("Call the API from a class method. #Search #search #vectors")
        assert tags == ["search", "vectors", "api", "class", "method"]
