"""
Utility functions for the quiz agent.
"""

from typing import Tuple


def get_screen_resolution() -> Tuple[int, int]:
    """Get the primary screen resolution."""
    import pyautogui

    size = pyautogui.size()
    return (size.width, size.height)


def format_duration(seconds: float) -> str:
    """Format a duration in seconds to a human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.1f}s"
    else:
        minutes = int(seconds // 60)
        secs = seconds % 60
        return f"{minutes}m {secs:.0f}s"
