"""Image preprocessing for photographed DR forms.

Converts phone photos into clean grayscale or binary images:
grayscale conversion, upscaling to a minimum width, noise
reduction and thresholding.
"""

from dataclasses import dataclass

import cv2
import numpy as np

from src.utils.config import PreprocessingConfig
from src.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class QualityMetrics:
    """Before/after image quality measurements."""

    sharpness_before: float
    sharpness_after: float
    contrast_before: float
    contrast_after: float


def to_gray(image: np.ndarray) -> np.ndarray:
    """Convert an RGB or RGBA image to grayscale, passing gray through."""
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2GRAY)
    if image.ndim == 3:
        return cv2.cvtColor(image, cv2.COLOR_RGB2GRAY)
    return image


def upscale_to_width(image: np.ndarray, target_width: int) -> np.ndarray:
    """Enlarge an image so that it is at least ``target_width`` pixels wide.

    Images already wide enough are returned unchanged.
    """
    h, w = image.shape[:2]
    if w == 0 or w >= target_width:
        return image
    scale = target_width / w
    resized = cv2.resize(
        image, (target_width, int(round(h * scale))), interpolation=cv2.INTER_CUBIC
    )
    logger.debug("Upscaled image from %dx%d by %.2f", w, h, scale)
    return resized


def denoise(image: np.ndarray, method: str = "bilateral") -> np.ndarray:
    """Apply noise reduction.

    Raises:
        ValueError: If an unsupported method is specified.
    """
    if method == "gaussian":
        return cv2.GaussianBlur(image, (5, 5), 0)
    if method == "bilateral":
        return cv2.bilateralFilter(image, 9, 75, 75)
    raise ValueError(f"Unsupported denoise method: {method}")


def binarize(image: np.ndarray, method: str = "otsu") -> np.ndarray:
    """Threshold a grayscale image to black and white.

    Raises:
        ValueError: If an unsupported method is specified.
    """
    if method == "otsu":
        _, binary = cv2.threshold(image, 0, 255, cv2.THRESH_BINARY + cv2.THRESH_OTSU)
        return binary
    if method == "adaptive":
        return cv2.adaptiveThreshold(
            image, 255, cv2.ADAPTIVE_THRESH_GAUSSIAN_C, cv2.THRESH_BINARY, 11, 2
        )
    raise ValueError(f"Unsupported binarize method: {method}")


def calculate_sharpness(image: np.ndarray) -> float:
    """Laplacian variance of the grayscale image (higher is sharper)."""
    return float(cv2.Laplacian(to_gray(image), cv2.CV_64F).var())


def calculate_contrast(image: np.ndarray) -> float:
    """Standard deviation of grayscale pixel intensities."""
    return float(to_gray(image).std())


class PreprocessingPipeline:
    """Configurable DR form preprocessing pipeline.

    Args:
        config: Preprocessing configuration controlling which steps to apply.
    """

    def __init__(self, config: PreprocessingConfig) -> None:
        self.config = config

    def process(self, image: np.ndarray) -> tuple[np.ndarray, QualityMetrics]:
        """Run the pipeline on an image.

        Args:
            image: Input image (RGB, RGBA or grayscale).

        Returns:
            Tuple of (processed grayscale image, quality metrics).
        """
        sharpness_before = calculate_sharpness(image)
        contrast_before = calculate_contrast(image)

        result = to_gray(image)
        result = upscale_to_width(result, self.config.target_width)

        if self.config.denoise_enabled:
            result = denoise(result, method=self.config.denoise_method)

        if self.config.binarize_enabled:
            result = binarize(result, method=self.config.binarize_method)

        metrics = QualityMetrics(
            sharpness_before=sharpness_before,
            sharpness_after=calculate_sharpness(result),
            contrast_before=contrast_before,
            contrast_after=calculate_contrast(result),
        )
        logger.info(
            "Preprocessing complete: sharpness %.1f->%.1f, contrast %.1f->%.1f",
            metrics.sharpness_before,
            metrics.sharpness_after,
            metrics.contrast_before,
            metrics.contrast_after,
        )
        return result, metrics
