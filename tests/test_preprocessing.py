"""Tests for the image preprocessing pipeline."""

import numpy as np
import pytest

from src.preprocessing.pipeline import (
    PreprocessingPipeline,
    QualityMetrics,
    binarize,
    calculate_contrast,
    calculate_sharpness,
    denoise,
    to_gray,
    upscale_to_width,
)
from src.utils.config import PreprocessingConfig


def _make_noisy_image(height: int = 200, width: int = 300) -> np.ndarray:
    """Create a synthetic noisy grayscale image for testing."""
    rng = np.random.default_rng(42)
    base = np.zeros((height, width), dtype=np.uint8)
    base[50:150, 50:250] = 200
    noise = rng.integers(0, 50, size=(height, width), dtype=np.uint8)
    return np.clip(base.astype(np.int16) + noise.astype(np.int16), 0, 255).astype(
        np.uint8
    )


def _make_color_image(height: int = 200, width: int = 300) -> np.ndarray:
    """Create a synthetic RGB color image for testing."""
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[50:150, 50:250] = (200, 200, 200)
    return image


class TestToGray:
    """Tests for grayscale conversion."""

    def test_rgb_to_gray(self) -> None:
        assert to_gray(_make_color_image()).shape == (200, 300)

    def test_rgba_to_gray(self) -> None:
        rgba = np.zeros((20, 30, 4), dtype=np.uint8)
        assert to_gray(rgba).shape == (20, 30)

    def test_gray_passthrough(self) -> None:
        image = _make_noisy_image()
        assert to_gray(image) is image


class TestUpscale:
    """Tests for minimum-width upscaling of phone photos."""

    def test_narrow_image_enlarged(self) -> None:
        image = _make_noisy_image(height=100, width=200)
        result = upscale_to_width(image, 800)
        assert result.shape == (400, 800)

    def test_wide_image_unchanged(self) -> None:
        image = _make_noisy_image()
        assert upscale_to_width(image, 300) is image
        assert upscale_to_width(image, 100) is image


class TestDenoise:
    """Tests for noise reduction."""

    def test_gaussian_reduces_variance(self) -> None:
        noisy = _make_noisy_image()
        denoised = denoise(noisy, method="gaussian")
        assert denoised.shape == noisy.shape
        assert denoised.var() <= noisy.var()

    def test_bilateral_preserves_shape(self) -> None:
        image = _make_noisy_image()
        assert denoise(image, method="bilateral").shape == image.shape

    def test_invalid_method_raises(self) -> None:
        with pytest.raises(ValueError, match="Unsupported denoise method"):
            denoise(_make_noisy_image(), method="magic")


class TestBinarize:
    """Tests for thresholding."""

    @pytest.mark.parametrize("method", ["otsu", "adaptive"])
    def test_produces_binary(self, method: str) -> None:
        binary = binarize(_make_noisy_image(), method=method)
        assert set(np.unique(binary)).issubset({0, 255})

    def test_invalid_method_raises(self) -> None:
        with pytest.raises(ValueError, match="Unsupported binarize method"):
            binarize(_make_noisy_image(), method="magic")


class TestQualityMetrics:
    """Tests for image quality measurement functions."""

    def test_sharpness_positive(self) -> None:
        assert calculate_sharpness(_make_noisy_image()) >= 0

    def test_sharpness_color_image(self) -> None:
        assert isinstance(calculate_sharpness(_make_color_image()), float)

    def test_contrast_color_image(self) -> None:
        assert isinstance(calculate_contrast(_make_color_image()), float)

    def test_blank_image_low_sharpness(self) -> None:
        blank = np.zeros((100, 100), dtype=np.uint8)
        assert calculate_sharpness(blank) == 0.0


class TestPreprocessingPipeline:
    """Tests for the full preprocessing pipeline."""

    def test_pipeline_defaults(self) -> None:
        pipeline = PreprocessingPipeline(PreprocessingConfig())
        result, metrics = pipeline.process(_make_color_image())
        assert result.ndim == 2
        assert result.shape[1] == 2000
        assert set(np.unique(result)).issubset({0, 255})
        assert isinstance(metrics, QualityMetrics)
        assert metrics.contrast_before >= 0

    def test_pipeline_all_disabled(self) -> None:
        config = PreprocessingConfig(
            target_width=300,
            denoise_enabled=False,
            binarize_enabled=False,
        )
        image = _make_noisy_image()
        result, _ = PreprocessingPipeline(config).process(image)
        np.testing.assert_array_equal(result, image)

    def test_pipeline_metrics_populated(self) -> None:
        config = PreprocessingConfig(target_width=300, binarize_enabled=False)
        _, metrics = PreprocessingPipeline(config).process(_make_noisy_image())
        assert metrics.sharpness_after >= 0
        assert metrics.contrast_after >= 0

    def test_pipeline_invalid_method(self) -> None:
        config = PreprocessingConfig(target_width=300, denoise_method="median")
        with pytest.raises(ValueError):
            PreprocessingPipeline(config).process(_make_noisy_image())
