"""
Screenshot capture module with DPI awareness and region support.
"""

import ctypes
from typing import Optional, Tuple

import mss
from PIL import Image

from .layout import ScreenRegion


class ScreenCapture:
    """Grabs the primary monitor, or part of it, as a PIL image."""

    def __init__(self):
        self.sct = mss.mss()
        self._setup_dpi_awareness()

    def _setup_dpi_awareness(self):
        """Set DPI awareness on Windows so pixel regions match taps."""
        windll = getattr(ctypes, "windll", None)
        if windll is None:
            return
        try:
            windll.shcore.SetProcessDpiAwareness(2)
        except (AttributeError, OSError):
            try:
                windll.user32.SetProcessDPIAware()
            except (AttributeError, OSError):
                pass  # Already set

    def get_screen_size(self) -> Tuple[int, int]:
        """Get the primary monitor size."""
        monitor = self.sct.monitors[1]
        return monitor["width"], monitor["height"]

    def capture_region(self, region: ScreenRegion) -> Image.Image:
        """Capture a specific region of the screen."""
        monitor = {
            "left": region.left,
            "top": region.top,
            "width": max(1, region.width),
            "height": max(1, region.height),
        }
        screenshot = self.sct.grab(monitor)
        return Image.frombytes("RGB", screenshot.size, screenshot.bgra, "raw", "BGRX")

    def close(self):
        """Clean up resources."""
        self.sct.close()


# Singleton instance
_capture_instance: Optional[ScreenCapture] = None


def get_screen_capture() -> ScreenCapture:
    """Get or create the screen capture singleton."""
    global _capture_instance
    if _capture_instance is None:
        _capture_instance = ScreenCapture()
    return _capture_instance
