"""
Pytest Configuration and Fixtures.

Shared fakes for the host side: a recording action host, a scripted
perception source, and a config with every delay set to zero.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from quizagent.classifier import PRIMARY  # noqa: E402
from quizagent.config import AgentConfig  # noqa: E402
from quizagent.diagnostics import MemoryDiagnostics  # noqa: E402
from quizagent.layout import Layout  # noqa: E402

SCREEN = (1000, 2000)


class FakeHost:
    """
    Records every host call; can refuse actions or support field injection.

    refuse_taps lists 1-based tap numbers to refuse while accepting the rest.
    """

    def __init__(self, inject=False, refuse=False, on_tap=None, refuse_taps=()):
        self.inject = inject
        self.refuse = refuse
        self.refuse_taps = set(refuse_taps)
        self.on_tap = on_tap
        self.taps = []
        self.swipes = []
        self.injected = []

    def tap(self, x, y):
        if self.on_tap:
            self.on_tap(x, y)
        self.taps.append((x, y))
        return not (self.refuse or len(self.taps) in self.refuse_taps)

    def swipe(self, x0, y0, x1, y1, duration_ms):
        self.swipes.append((x0, y0, x1, y1, duration_ms))
        return not self.refuse

    def set_field_text(self, text):
        if not self.inject:
            return False
        self.injected.append(text)
        return True


class ScriptedPerception:
    """
    Plays back a list of samples, each a {label: text} dict.

    Capturing the advance_on label moves to the next sample; other labels read
    from the current one. Past the end every capture is empty.
    """

    def __init__(self, samples, advance_on=PRIMARY):
        self.samples = list(samples)
        self.advance_on = advance_on
        self.index = -1
        self.calls = []

    def capture_text(self, region, label):
        self.calls.append(label)
        if label == self.advance_on:
            self.index += 1
        if 0 <= self.index < len(self.samples):
            return self.samples[self.index].get(label, "")
        return ""


def make_config(**overrides) -> AgentConfig:
    values = dict(
        screen_width=SCREEN[0],
        screen_height=SCREEN[1],
        policy="state",
        batch_size=5,
        total_cycles=5,
        max_iterations=50,
        min_confidence=0.5,
        debounce_window=0.6,
        settle_delay=0.0,
        action_timeout=1.0,
        click_delay=0.0,
        swipe_delay=0.0,
        state_check_delay=0.0,
        probe_delay=0.0,
        type_initial_delay=0.0,
        warmup_key_delay=0.0,
        key_delay=0.0,
        backspace_delay=0.0,
        hint_wait=0.0,
        listening_poll_delay=0.0,
        listening_click_delay=0.0,
    )
    values.update(overrides)
    return AgentConfig(**values)


def no_sleep(seconds):
    return None


@pytest.fixture
def cfg():
    return make_config()


@pytest.fixture
def layout():
    return Layout()


@pytest.fixture
def host():
    return FakeHost()


@pytest.fixture
def diagnostics():
    return MemoryDiagnostics()


@pytest.fixture
def pixel(layout):
    """Convert a layout point to pixels on the test screen."""
    def convert(point):
        return point.to_pixel_point(*SCREEN)
    return convert
