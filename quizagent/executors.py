"""
Desktop action host.

Drives a phone mirror window (scrcpy and the like) with pyautogui: taps are
left clicks, swipes are mouse drags, and field injection pastes through the
clipboard.
"""

import time

import pyautogui
import pyperclip

from .config import AgentConfig, config

# Stopping is cooperative through the session's stop flag
pyautogui.FAILSAFE = False
pyautogui.PAUSE = 0.05


class PyAutoGUIHost:
    """
    ActionHost that clicks and drags on the local desktop.

    Coordinates arrive relative to the mirror window and are shifted by its
    desktop origin.
    """

    def __init__(self, cfg: AgentConfig = None, paste_injection: bool = True, origin=None):
        self.config = cfg or config
        self.paste_injection = paste_injection
        self.origin = origin or self.config.screen_origin

    def tap(self, x: int, y: int) -> bool:
        left, top = self.origin
        pyautogui.click(left + x, top + y, button="left")
        return True

    def swipe(self, x0: int, y0: int, x1: int, y1: int, duration_ms: int) -> bool:
        left, top = self.origin
        pyautogui.moveTo(left + x0, top + y0)
        pyautogui.dragTo(left + x1, top + y1, duration=duration_ms / 1000.0, button="left")
        return True

    def set_field_text(self, text: str) -> bool:
        """Replace the focused field's content; False means fall back to key taps."""
        if not self.paste_injection:
            return False
        try:
            old_clipboard = pyperclip.paste()
        except pyperclip.PyperclipException:
            old_clipboard = ""

        pyautogui.hotkey("ctrl", "a")
        if text:
            try:
                pyperclip.copy(text)
            except pyperclip.PyperclipException:
                return False
            pyautogui.hotkey("ctrl", "v")
        else:
            pyautogui.press("backspace")
        time.sleep(self.config.key_delay)

        try:
            pyperclip.copy(old_clipboard)
        except pyperclip.PyperclipException:
            pass
        return True
