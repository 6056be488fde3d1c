"""Tests for the Tesseract engine and multi-attempt OCR."""

from unittest.mock import MagicMock, patch

import numpy as np
import pytest
from pytesseract import TesseractError

from src.ocr.tesseract_engine import OCRError, OCRResult, TesseractEngine


def _mock_tesseract_data() -> dict:
    """Create mock pytesseract output data."""
    return {
        "text": ["", "John", "Doe", "", "234"],
        "conf": [-1, 95, 88, -1, 72],
    }


def _result(text: str, psm: int) -> OCRResult:
    return OCRResult(text=text, language="eng", confidence=0.8, psm=psm)


class TestOCRResult:
    """Tests for the OCRResult data class."""

    def test_line_count_ignores_blank_lines(self) -> None:
        result = _result("John Doe 234\n\n   \nJane Smith 98\n", psm=3)
        assert result.line_count == 2

    def test_line_count_empty(self) -> None:
        assert _result("", psm=3).line_count == 0


class TestTesseractEngine:
    """Tests for the TesseractEngine class (mocked)."""

    @patch("src.ocr.tesseract_engine.pytesseract")
    def test_extract_text(self, mock_pytesseract: MagicMock) -> None:
        mock_pytesseract.image_to_string.return_value = "John Doe\n234"
        mock_pytesseract.image_to_data.return_value = _mock_tesseract_data()
        mock_pytesseract.Output.DICT = "dict"

        engine = TesseractEngine(default_lang="eng")
        image = np.zeros((100, 200), dtype=np.uint8)
        result = engine.extract_text(image, psm=6)

        assert result.text == "John Doe\n234"
        assert result.psm == 6
        assert result.language == "eng"
        assert result.word_count == 3
        assert abs(result.confidence - (95 + 88 + 72) / 3 / 100) < 1e-6
        _, kwargs = mock_pytesseract.image_to_string.call_args
        assert kwargs["config"] == "--psm 6"

    @patch("src.ocr.tesseract_engine.pytesseract")
    def test_extract_text_no_words(self, mock_pytesseract: MagicMock) -> None:
        mock_pytesseract.image_to_string.return_value = ""
        mock_pytesseract.image_to_data.return_value = {"text": [""], "conf": [-1]}

        engine = TesseractEngine()
        result = engine.extract_text(np.zeros((10, 10), dtype=np.uint8))
        assert result.confidence == 0.0
        assert result.word_count == 0

    @patch("src.ocr.tesseract_engine.pytesseract")
    def test_custom_tesseract_cmd(self, mock_pytesseract: MagicMock) -> None:
        TesseractEngine(tesseract_cmd="/usr/local/bin/tesseract")
        assert mock_pytesseract.pytesseract.tesseract_cmd == "/usr/local/bin/tesseract"


class TestExtractBest:
    """Tests for choosing the best of several OCR attempts."""

    def test_keeps_attempt_with_most_lines(self) -> None:
        engine = TesseractEngine()
        attempts = {3: _result("a\nb", 3), 6: _result("a\nb\nc", 6), 4: _result("a", 4)}
        with patch.object(
            engine, "extract_text", side_effect=lambda img, lang, psm: attempts[psm]
        ):
            best = engine.extract_best(np.zeros((5, 5), np.uint8), [3, 6, 4])
        assert best.psm == 6

    def test_tie_keeps_earlier_attempt(self) -> None:
        engine = TesseractEngine()
        attempts = {3: _result("a\nb", 3), 6: _result("c\nd", 6)}
        with patch.object(
            engine, "extract_text", side_effect=lambda img, lang, psm: attempts[psm]
        ):
            best = engine.extract_best(np.zeros((5, 5), np.uint8), [3, 6])
        assert best.psm == 3

    @patch("src.ocr.tesseract_engine.pytesseract")
    def test_failed_attempts_are_skipped(self, mock_pytesseract: MagicMock) -> None:
        mock_pytesseract.TesseractError = TesseractError
        mock_pytesseract.Output.DICT = "dict"
        mock_pytesseract.image_to_string.side_effect = [
            RuntimeError("timeout"),
            "John Doe 234",
        ]
        mock_pytesseract.image_to_data.return_value = _mock_tesseract_data()

        engine = TesseractEngine()
        best = engine.extract_best(np.zeros((5, 5), np.uint8), [3, 6])
        assert best.psm == 6
        assert best.text == "John Doe 234"

    def test_empty_attempts_are_skipped(self) -> None:
        engine = TesseractEngine()
        attempts = {3: _result("   ", 3), 6: _result("x", 6)}
        with patch.object(
            engine, "extract_text", side_effect=lambda img, lang, psm: attempts[psm]
        ):
            best = engine.extract_best(np.zeros((5, 5), np.uint8), [3, 6])
        assert best.psm == 6

    @patch("src.ocr.tesseract_engine.pytesseract")
    def test_all_attempts_fail(self, mock_pytesseract: MagicMock) -> None:
        mock_pytesseract.TesseractError = TesseractError
        mock_pytesseract.image_to_string.side_effect = TesseractError(1, "broken")

        engine = TesseractEngine()
        with pytest.raises(OCRError, match="all configurations"):
            engine.extract_best(np.zeros((5, 5), np.uint8), [3, 6, 4])

    def test_no_text_anywhere(self) -> None:
        engine = TesseractEngine()
        with patch.object(engine, "extract_text", return_value=_result("", 3)):
            with pytest.raises(OCRError):
                engine.extract_best(np.zeros((5, 5), np.uint8), [3])
