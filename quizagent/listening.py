"""
Listening drill: react to on-screen cues until the card pack is done.
"""

import time
from enum import Enum
from typing import Callable, Optional, Tuple

from .config import AgentConfig, config
from .diagnostics import DiagnosticsSink, Level, NullDiagnostics
from .gateway import ActionGateway, ActionHost
from .layout import KeywordTable, Layout
from .loop import PerceptionSource

TAG = "ListeningRunner"


class ListeningCue(Enum):
    DONE = "done"
    TIP = "tip"
    PLAY = "play"
    RECORD = "record"
    NONE = "none"


def detect_cue(text: str, keywords: Optional[KeywordTable] = None) -> ListeningCue:
    """Map full-screen OCR text to the cue it shows, most important first."""
    keywords = keywords or KeywordTable()
    if not text:
        return ListeningCue.NONE
    checks = (
        (ListeningCue.DONE, keywords.listening_done),
        (ListeningCue.TIP, keywords.listening_tip),
        (ListeningCue.PLAY, keywords.listening_play),
        (ListeningCue.RECORD, keywords.listening_record),
    )
    for cue, words in checks:
        if any(w in text for w in words):
            return cue
    return ListeningCue.NONE


class ListeningRunner:
    """Bounded poll loop over the listening screen."""

    def __init__(
        self,
        perception: PerceptionSource,
        host: ActionHost,
        layout: Optional[Layout] = None,
        cfg: Optional[AgentConfig] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        screen_size: Optional[Tuple[int, int]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.perception = perception
        self.layout = layout or Layout()
        self.config = cfg or config
        self.diagnostics = diagnostics or NullDiagnostics()
        self.sleep = sleep
        self.gateway = ActionGateway(
            host,
            keyboard=self.layout.keyboard,
            screen_size=screen_size or self.config.screen_size,
            cfg=self.config,
            diagnostics=self.diagnostics,
            sleep=sleep,
            is_running=self.is_running,
        )
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    def reset(self):
        self._cancelled = False

    def is_running(self) -> bool:
        return not self._cancelled

    def run(self) -> bool:
        """
        Returns:
            True if the pack was reported done, False on stop or loop limit.
            A cancel() before run() holds until reset().
        """
        points = self.layout.listening
        limit = self.config.listening_max_loops
        click_delay = self.config.listening_click_delay

        for loop in range(1, limit + 1):
            if not self.is_running():
                self.diagnostics.event("LISTEN_STOPPED", TAG, "Stopped", {"loop": loop}, Level.WARN)
                return False

            try:
                text = self.perception.capture_text(points.full, "listening-full") or ""
            except Exception as e:
                self.diagnostics.event("PERCEPTION_ERROR", TAG, f"Capture failed: {e}",
                                       {"loop": loop}, Level.ERROR)
                text = ""
            cue = detect_cue(text, self.layout.keywords)

            if cue == ListeningCue.DONE:
                self.diagnostics.event("LISTEN_DONE", TAG, "Card pack finished", {"loop": loop})
                self.gateway.tap_point(points.finish, "finish")
                self.sleep(click_delay)
                return True
            elif cue == ListeningCue.TIP:
                self.diagnostics.event("LISTEN_TIP", TAG, "Tip dialog", {"loop": loop})
                self.gateway.tap_point(points.star, "star")
                self.sleep(click_delay)
            elif cue == ListeningCue.PLAY:
                self.diagnostics.event("LISTEN_PLAY", TAG, "Play or replay", {"loop": loop})
                self.gateway.tap_point(points.play, "play")
                self.sleep(click_delay)
                for seq in (1, 2):
                    self.diagnostics.event("LISTEN_NEXT", TAG, "Next question",
                                           {"seq": seq, "of": 2, "loop": loop})
                    self.gateway.tap_point(points.next, "next")
                    self.sleep(click_delay / 2)
            elif cue == ListeningCue.RECORD:
                self.diagnostics.event("LISTEN_RECORD", TAG, "Record or confirm", {"loop": loop})
                self.gateway.tap_point(points.record, "record")
                self.sleep(click_delay)
            else:
                self.diagnostics.event("LISTEN_WAIT", TAG, "No cue on screen", {"loop": loop}, Level.DEBUG)
                self.sleep(self.config.listening_poll_delay)

        self.diagnostics.event("LISTEN_TIMEOUT", TAG, "Loop limit reached", {"max": limit}, Level.WARN)
        return False
