"""
Spelling drill: answer each question wrong on purpose, read the answer the
mini-program reveals, then type it in.
"""

import re
import time
from typing import Callable, List, Optional, Tuple

from .config import AgentConfig, config
from .diagnostics import DiagnosticsSink, Level, NullDiagnostics
from .gateway import ActionGateway, ActionHost
from .layout import Layout
from .loop import PerceptionSource

TAG = "SpellingRunner"

_NON_LETTERS = re.compile(r"[^A-Za-z]")


def _letter_runs(text: str) -> List[str]:
    """Whitespace-separated chunks, reduced to their ASCII letters, of length >= 3 and not all 'a'."""
    runs = []
    for chunk in text.split():
        letters = _NON_LETTERS.sub("", chunk)
        if len(letters) >= 3 and letters.lower().strip("a"):
            runs.append(letters)
    return runs


def extract_word_from_hint(text: str, marker: str = "提示") -> str:
    """
    Pull the revealed answer out of hint OCR text.

    "a a a 提示 photographic a a" -> "photographic". Tries, in order: the first
    plausible chunk after the hint marker, the longest plausible chunk
    anywhere, and finally every letter in the text.
    """
    if not text:
        return ""
    at = text.find(marker)
    if at >= 0:
        runs = _letter_runs(text[at + len(marker):])
        if runs:
            return runs[0].lower()

    runs = sorted(_letter_runs(text), key=len, reverse=True)
    if runs:
        return runs[0].lower()
    return _NON_LETTERS.sub("", text).lower()


def is_valid_word(word: str) -> bool:
    return (
        bool(word)
        and word.isascii()
        and word.isalpha()
        and 3 <= len(word) <= 20
        and len(set(word.lower())) > 1
    )


class SpellingRunner:
    """Runs the fixed-length spelling drill."""

    def __init__(
        self,
        perception: PerceptionSource,
        host: ActionHost,
        layout: Optional[Layout] = None,
        cfg: Optional[AgentConfig] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        screen_size: Optional[Tuple[int, int]] = None,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: Optional[Callable[[int, int, str], None]] = None,
    ):
        self.perception = perception
        self.layout = layout or Layout()
        self.config = cfg or config
        self.diagnostics = diagnostics or NullDiagnostics()
        self.sleep = sleep
        self.on_progress = on_progress
        self.gateway = ActionGateway(
            host,
            keyboard=self.layout.keyboard,
            screen_size=screen_size or self.config.screen_size,
            cfg=self.config,
            diagnostics=self.diagnostics,
            sleep=sleep,
            is_running=self.is_running,
        )
        self._first_time = True
        self._cancelled = False
        self.answered: List[Optional[str]] = []

    def cancel(self):
        self._cancelled = True
        self.diagnostics.event("CANCEL", TAG, "Stop requested")

    def is_running(self) -> bool:
        return not self._cancelled

    def reset(self):
        self._first_time = True
        self._cancelled = False
        self.answered = []

    def run(self) -> List[Optional[str]]:
        """
        Answer spelling_total questions.

        Returns:
            The word entered for each question, None where the hint was unreadable.
            A cancel() before run() holds until reset().
        """
        total = self.config.spelling_total

        if self._first_time and self.is_running():
            self.gateway.tap_point(self.layout.spelling.initial_dialog_confirm, "close dialog")
            self._first_time = False
            self.sleep(self.config.click_delay)

        for number in range(1, total + 1):
            if not self.is_running():
                self.diagnostics.event("SPELL_STOPPED", TAG, f"Stopped before question {number}",
                                       level=Level.WARN)
                break
            try:
                word = self.answer_question(number)
            except Exception as e:
                self.diagnostics.event("SPELL_ERROR", TAG, f"Question {number} failed: {e}",
                                       {"error": type(e).__name__}, Level.ERROR)
                word = None
            self.answered.append(word)
            if self.on_progress:
                self.on_progress(number, total, word or "")
            self.sleep(self.config.click_delay)

        solved = sum(1 for w in self.answered if w)
        self.diagnostics.event("SPELL_DONE", TAG, f"Spelled {solved}/{len(self.answered)}")
        return self.answered

    def answer_question(self, number: int) -> Optional[str]:
        spelling = self.layout.spelling
        self._focus_input()
        self.gateway.type_text(self.config.spelling_dummy_input, "dummy answer")
        self.gateway.press_enter()
        self.sleep(self.config.hint_wait)

        word = self.read_hint()
        if word is None:
            self.diagnostics.event("HINT_UNREADABLE", TAG, f"No answer found for question {number}",
                                   {"regions": len(spelling.hint_regions)}, Level.WARN)
            self.gateway.press_enter()
            return None

        self.gateway.clear_input()
        self._focus_input()
        self.gateway.type_text(word, "correct answer")
        self.gateway.press_enter()
        self.diagnostics.event("SPELLED", TAG, f"Question {number}: {word}")
        return word

    def read_hint(self) -> Optional[str]:
        """Scan the hint regions in order until one yields a valid word."""
        marker = self.layout.keywords.spelling_hint
        for index, region in enumerate(self.layout.spelling.hint_regions):
            try:
                text = self.perception.capture_text(region, f"hint-{index + 1}")
            except Exception as e:
                self.diagnostics.event("PERCEPTION_ERROR", TAG, f"Hint capture failed: {e}",
                                       {"region": index + 1}, Level.ERROR)
                continue
            word = extract_word_from_hint(text or "", marker)
            if is_valid_word(word):
                return word
        return None

    def _focus_input(self):
        self.gateway.tap_point(self.layout.spelling.input_area.center, "focus input")
