"""Tesseract OCR engine wrapper with multi-attempt extraction.

Runs Tesseract under several page segmentation modes and keeps
the attempt that recovered the most text lines.
"""

from dataclasses import dataclass

import numpy as np
import pytesseract
from PIL import Image

from src.utils.logger import get_logger

logger = get_logger(__name__)


class OCRError(Exception):
    """Raised when no OCR attempt produced any text."""


@dataclass
class OCRResult:
    """OCR output for one attempt on a DR form image."""

    text: str
    language: str
    confidence: float
    psm: int
    word_count: int = 0

    @property
    def line_count(self) -> int:
        return sum(1 for line in self.text.splitlines() if line.strip())


class TesseractEngine:
    """Wrapper around Tesseract OCR for DR form text extraction.

    Args:
        tesseract_cmd: Path to the Tesseract executable.
            If ``None``, uses the system default.
        default_lang: Default OCR language code.
    """

    def __init__(
        self,
        tesseract_cmd: str | None = None,
        default_lang: str = "eng",
    ) -> None:
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd
        self.default_lang = default_lang

    def extract_text(
        self,
        image: np.ndarray,
        lang: str | None = None,
        psm: int = 3,
    ) -> OCRResult:
        """Extract text from an image with a single page segmentation mode.

        Args:
            image: Input image as a numpy array.
            lang: OCR language code. Defaults to the engine default.
            psm: Tesseract page segmentation mode.

        Returns:
            OCRResult with the text and average word confidence.
        """
        lang = lang or self.default_lang
        config = f"--psm {psm}"

        pil_image = Image.fromarray(image)
        text = pytesseract.image_to_string(pil_image, lang=lang, config=config)
        data = pytesseract.image_to_data(
            pil_image,
            lang=lang,
            config=config,
            output_type=pytesseract.Output.DICT,
        )

        confidences = [
            float(conf)
            for conf, word in zip(data["conf"], data["text"])
            if float(conf) > 0 and word.strip()
        ]
        avg_conf = sum(confidences) / len(confidences) / 100.0 if confidences else 0.0

        logger.info(
            "OCR psm=%d extracted %d words with average confidence %.2f",
            psm,
            len(confidences),
            avg_conf,
        )
        return OCRResult(
            text=text,
            language=lang,
            confidence=avg_conf,
            psm=psm,
            word_count=len(confidences),
        )

    def extract_best(
        self,
        image: np.ndarray,
        psm_attempts: list[int],
        lang: str | None = None,
    ) -> OCRResult:
        """Try several page segmentation modes and keep the richest result.

        Attempts that fail are logged and skipped. Ties keep the earlier
        attempt.

        Args:
            image: Preprocessed DR form image.
            psm_attempts: Page segmentation modes to try, in order.
            lang: OCR language code.

        Returns:
            The attempt with the most non-empty text lines.

        Raises:
            OCRError: If every attempt failed or returned no text.
        """
        best: OCRResult | None = None
        for psm in psm_attempts:
            try:
                result = self.extract_text(image, lang=lang, psm=psm)
            except (pytesseract.TesseractError, RuntimeError, OSError) as exc:
                logger.warning("OCR attempt with psm=%d failed: %s", psm, exc)
                continue

            if not result.text.strip():
                logger.debug("OCR attempt with psm=%d returned no text", psm)
                continue
            if best is None or result.line_count > best.line_count:
                best = result

        if best is None:
            raise OCRError("OCR processing failed with all configurations")

        logger.info("Best OCR attempt: psm=%d (%d lines)", best.psm, best.line_count)
        return best
