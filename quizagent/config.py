"""
Configuration management for the quiz agent.
Every tuned delay lives here; override any of them in a .env file or the environment.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


POLICIES = ("state", "strict", "fixed")


@dataclass
class AgentConfig:
    """Configuration for a quiz session."""

    # Screen size used to translate normalized regions (0 = detect at start-up)
    screen_width: int = field(default_factory=lambda: _env_int("QUIZAGENT_SCREEN_WIDTH", 0))
    screen_height: int = field(default_factory=lambda: _env_int("QUIZAGENT_SCREEN_HEIGHT", 0))
    # Desktop position of the mirror window's top-left corner
    screen_left: int = field(default_factory=lambda: _env_int("QUIZAGENT_SCREEN_LEFT", 0))
    screen_top: int = field(default_factory=lambda: _env_int("QUIZAGENT_SCREEN_TOP", 0))

    # OCR settings
    ocr_language: str = field(default_factory=lambda: os.getenv("QUIZAGENT_OCR_LANGUAGE", "chi_sim+eng"))
    ocr_upscale: float = 2.0  # Small mini-program text reads better enlarged

    # Orchestration
    policy: str = field(default_factory=lambda: os.getenv("QUIZAGENT_POLICY", "state"))
    batch_size: int = field(default_factory=lambda: _env_int("QUIZAGENT_BATCH_SIZE", 5))
    total_cycles: int = field(default_factory=lambda: _env_int("QUIZAGENT_TOTAL_CYCLES", 5))
    max_iterations: int = field(default_factory=lambda: _env_int("QUIZAGENT_MAX_ITERATIONS", 50))
    min_confidence: float = 0.5  # Below this a quiz answer is probed instead of tapped
    debounce_window: float = 0.6  # Push mode: at most one iteration per window

    # Action timing (seconds)
    settle_delay: float = field(
        default_factory=lambda: _env_float("QUIZAGENT_SETTLE_DELAY", 0.3)
    )  # Lock stays held this long after an action completes
    action_timeout: float = 10.0  # Max wait for the action lock
    click_delay: float = 0.8  # After option/confirm taps
    swipe_delay: float = 1.2  # After swiping to the next card
    state_check_delay: float = 0.5  # Before each perception poll
    probe_delay: float = 0.8  # Between a probe tap and the re-sample
    swipe_duration_ms: int = 300

    # Simulated typing (input-method warm-up is empirical)
    type_initial_delay: float = 0.14
    warmup_keys: int = 1  # Leading characters that get the longer delay
    warmup_key_delay: float = 0.15
    key_delay: float = 0.09
    backspace_delay: float = 0.08

    # Spelling flow
    spelling_total: int = 25
    spelling_dummy_input: str = "aaaaaaaaaaaaaaaa"  # Long enough to fill most words
    hint_wait: float = 2.5  # The mini-program reveals the answer after a wrong submit

    # Listening flow
    listening_max_loops: int = 80
    listening_poll_delay: float = 0.4
    listening_click_delay: float = 0.6

    def validate(self) -> bool:
        """Validate the configuration."""
        if self.policy not in POLICIES:
            raise ValueError(
                f"Unknown policy '{self.policy}'. Expected one of: {', '.join(POLICIES)}"
            )
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if not 0.0 <= self.min_confidence <= 1.0:
            raise ValueError("min_confidence must be within [0, 1]")
        if self.screen_width < 0 or self.screen_height < 0:
            raise ValueError("Screen size cannot be negative")
        if any(self.screen_origin) and 0 in self.screen_size:
            raise ValueError("A window origin needs an explicit screen size")
        return True

    @property
    def screen_size(self):
        return (self.screen_width, self.screen_height)

    @property
    def screen_origin(self):
        return (self.screen_left, self.screen_top)


# Global config instance
config = AgentConfig()
