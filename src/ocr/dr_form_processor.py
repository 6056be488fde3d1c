"""End-to-end DR form text extraction.

Loads the image, preprocesses it, runs multi-attempt OCR and parses
the text into candidate results and voter statistics. Failures never
propagate: they degrade to placeholder results so the agent can
enter figures by hand.
"""

from dataclasses import dataclass, field

import numpy as np

from src.extraction.dr_form_parser import (
    DRFormParser,
    ExtractedResult,
    VoterStats,
)
from src.preprocessing.pipeline import PreprocessingPipeline
from src.storage.images import ImageStore
from src.utils.config import AppConfig
from src.utils.logger import get_logger

from .image_loader import ImageLoader, ImageLoadError
from .tesseract_engine import OCRError, TesseractEngine

logger = get_logger(__name__)

PLACEHOLDER_CANDIDATES = 2


def placeholder_results() -> list[ExtractedResult]:
    """Blank rows shown to the agent for manual entry."""
    return [ExtractedResult("", 0) for _ in range(PLACEHOLDER_CANDIDATES)]


@dataclass
class ProcessResult:
    """Outcome of processing one DR form."""

    success: bool
    results: list[ExtractedResult]
    voter_stats: VoterStats = field(default_factory=VoterStats)
    error: str | None = None
    raw_text: str = ""
    ocr_confidence: float = 0.0


def fallback_result(
    error: str,
    voter_stats: VoterStats | None = None,
    raw_text: str = "",
) -> ProcessResult:
    """Unsuccessful outcome carrying placeholder rows for manual entry."""
    return ProcessResult(
        success=False,
        results=placeholder_results(),
        voter_stats=voter_stats or VoterStats(),
        error=error,
        raw_text=raw_text,
    )


class DRFormProcessor:
    """Runs the DR form extraction pipeline.

    Args:
        config: Application configuration object.
        store: Image store for resolving stored image paths.
        allow_local_files: Whether image references may name arbitrary
            local files rather than stored uploads.
    """

    def __init__(
        self,
        config: AppConfig,
        store: ImageStore | None = None,
        allow_local_files: bool = False,
    ) -> None:
        self.config = config
        self.loader = ImageLoader(
            store=store,
            timeout=config.ocr.fetch_timeout,
            max_bytes=config.ocr.max_image_bytes,
            allow_local_files=allow_local_files,
        )
        self.preprocessing = PreprocessingPipeline(config.preprocessing)
        self.ocr_engine = TesseractEngine(
            tesseract_cmd=config.ocr.tesseract_cmd,
            default_lang=config.ocr.default_lang,
        )
        self.parser = DRFormParser()

    def process(self, image_ref: str) -> ProcessResult:
        """Extract results from an image reference (URL or stored path)."""
        try:
            image = self.loader.load(image_ref)
        except ImageLoadError as exc:
            logger.error("Error loading DR form image: %s", exc)
            return fallback_result(str(exc))
        return self.process_image(image)

    def process_image(self, image: np.ndarray) -> ProcessResult:
        """Extract results from already-decoded pixels."""
        try:
            processed, _ = self.preprocessing.process(image)
            ocr_result = self.ocr_engine.extract_best(
                processed, self.config.ocr.psm_attempts
            )
        except (OCRError, ValueError) as exc:
            logger.error("Error in DR form OCR: %s", exc)
            return fallback_result(str(exc))

        extraction = self.parser.parse(ocr_result.text)
        if not extraction.results:
            logger.warning("No candidate results found in OCR text")
            return fallback_result(
                "No candidate results could be extracted. "
                "Please enter results manually",
                voter_stats=extraction.voter_stats,
                raw_text=ocr_result.text,
            )

        return ProcessResult(
            success=True,
            results=extraction.results,
            voter_stats=extraction.voter_stats,
            raw_text=ocr_result.text,
            ocr_confidence=ocr_result.confidence,
        )
