"""
Tesseract perception source.

Crops a normalized region out of a fresh screenshot, cleans it up for small
mini-program text, and returns the recognized text.
"""

import os
from typing import Optional, Tuple

import numpy as np
import pytesseract
from PIL import Image, ImageOps, ImageStat

from .config import AgentConfig, config
from .layout import NormalizedRect
from .screenshot import ScreenCapture, get_screen_capture
from .text import collapse_cjk_spaces

TESSERACT_CONFIG = "--oem 3 --psm 6"

_WINDOWS_PATHS = (
    r"C:\Program Files\Tesseract-OCR\tesseract.exe",
    r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
    r"C:\Tesseract-OCR\tesseract.exe",
)


def binarize_otsu(gray: Image.Image, fallback: int = 160) -> Image.Image:
    """Binarize a grayscale image at its Otsu threshold."""
    arr = np.asarray(gray, dtype=np.uint8)
    if arr.size == 0:
        return gray
    hist = np.bincount(arr.ravel(), minlength=256).astype(float)
    levels = np.arange(256, dtype=float)
    w_b = np.cumsum(hist)
    w_f = arr.size - w_b
    sum_b = np.cumsum(levels * hist)
    sum_total = sum_b[-1]

    valid = (w_b > 0) & (w_f > 0)
    if not valid.any():
        threshold = fallback
    else:
        m_b = np.where(valid, sum_b / np.maximum(w_b, 1), 0.0)
        m_f = np.where(valid, (sum_total - sum_b) / np.maximum(w_f, 1), 0.0)
        between = np.where(valid, w_b * w_f * (m_b - m_f) ** 2, -1.0)
        threshold = int(np.argmax(between))
    return gray.point(lambda p: 255 if p > threshold else 0)


def prepare_for_ocr(image: Image.Image, upscale: float = 2.0) -> Image.Image:
    """Grayscale, enlarge, autocontrast and binarize; dark backgrounds are inverted."""
    gray = image.convert("L")
    if upscale and upscale != 1.0:
        w, h = gray.size
        gray = gray.resize((max(1, int(w * upscale)), max(1, int(h * upscale))), Image.Resampling.LANCZOS)
    normalized = ImageOps.autocontrast(gray, cutoff=2)
    bw = binarize_otsu(normalized)
    if ImageStat.Stat(normalized).mean[0] < 120:
        bw = ImageOps.invert(bw)
    return bw


class TesseractTextSource:
    """PerceptionSource backed by mss screenshots and Tesseract."""

    def __init__(
        self,
        screen_size: Optional[Tuple[int, int]] = None,
        cfg: Optional[AgentConfig] = None,
        capture: Optional[ScreenCapture] = None,
        origin: Optional[Tuple[int, int]] = None,
    ):
        self.config = cfg or config
        self.origin = origin or self.config.screen_origin
        self.capture = capture or get_screen_capture()
        self.screen_size = screen_size or self.config.screen_size
        if min(self.screen_size) <= 0:
            self.screen_size = self.capture.get_screen_size()
        self.language = self.config.ocr_language
        self._verify_tesseract()

    def _verify_tesseract(self):
        """Point pytesseract at a standard install and make sure it runs."""
        for path in _WINDOWS_PATHS:
            if os.path.exists(path):
                pytesseract.pytesseract.tesseract_cmd = path
                break
        try:
            pytesseract.get_tesseract_version()
        except Exception as e:
            raise RuntimeError(
                "Tesseract OCR is not installed or not found.\n"
                "Install it together with the chi_sim language data."
            ) from e

    def capture_text(self, region: NormalizedRect, label: str) -> str:
        width, height = self.screen_size
        pixels = region.to_pixel_rect(width, height).shifted(*self.origin)
        image = self.capture.capture_region(pixels)
        return self.recognize(image)

    def recognize(self, image: Image.Image) -> str:
        prepared = prepare_for_ocr(image, self.config.ocr_upscale)
        raw = pytesseract.image_to_string(prepared, lang=self.language, config=TESSERACT_CONFIG)
        return collapse_cjk_spaces(raw).strip()
