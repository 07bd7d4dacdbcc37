"""
Learn/quiz batch cycling.

The mini-program alternates between showing N new words and quizzing those N
words. The orchestrator tracks where in that cycle the session is and routes
each classified sample to the learn, answer or skip callback.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .diagnostics import DiagnosticsSink, Level, NullDiagnostics
from .models import PageState

TAG = "PhaseOrchestrator"


class Phase(Enum):
    LEARN = "learn"
    QUIZ = "quiz"


class Policy(str, Enum):
    """How strictly the cycle counters drive dispatch."""
    STATE = "state"  # Screen decides, counters follow
    STRICT = "strict"  # Counters decide, disagreeing screens are skipped
    FIXED = "fixed"  # STRICT, ending after a fixed number of cycles


class Dispatch(Enum):
    LEARN = "learn"
    ANSWER = "answer"
    SKIP = "skip"
    REFUSED = "refused"  # Cancelled, finished, or already dispatching


_SIGNALS = {
    PageState.WORD_WITH_DEFINITION: Phase.LEARN,
    PageState.QUIZ: Phase.QUIZ,
}


@dataclass
class CycleState:
    """Where the session is in the learn/quiz cycle."""
    batch_size: int
    phase: Optional[Phase] = None
    count_in_phase: int = 0
    total_learned: int = 0
    total_answered: int = 0
    cycles_completed: int = 0

    def summary(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value if self.phase else None,
            "count": self.count_in_phase,
            "batch": self.batch_size,
            "learned": self.total_learned,
            "answered": self.total_answered,
            "cycles": self.cycles_completed,
        }


LearnCallback = Callable[[Dict[str, Any]], Any]
AnswerCallback = Callable[[Dict[str, Any]], Any]
SkipCallback = Callable[[PageState, Dict[str, Any]], Any]


class PhaseOrchestrator:
    """
    Batch-cycling state machine: learn batch_size words, quiz batch_size words, repeat.

    Args:
        on_learn: called with the sample fields for a learning screen
        on_answer: called with the sample fields for a quiz screen
        on_skip: called with the state and fields for every other screen
        batch_size: words per learn (and per quiz) half-cycle
        policy: see Policy
        total_cycles: only used by Policy.FIXED
    """

    def __init__(
        self,
        on_learn: LearnCallback,
        on_answer: AnswerCallback,
        on_skip: SkipCallback,
        batch_size: int = 5,
        policy: Policy = Policy.STATE,
        total_cycles: int = 5,
        diagnostics: Optional[DiagnosticsSink] = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.on_learn = on_learn
        self.on_answer = on_answer
        self.on_skip = on_skip
        self.policy = Policy(policy)
        self.total_cycles = total_cycles
        self.diagnostics = diagnostics or NullDiagnostics()
        self.state = CycleState(batch_size=batch_size)
        self._cancelled = False
        self._dispatching = threading.Lock()

    @property
    def phase(self) -> Optional[Phase]:
        return self.state.phase

    @property
    def finished(self) -> bool:
        return (
            self.policy == Policy.FIXED
            and self.state.cycles_completed >= self.total_cycles
        )

    def cancel(self):
        self._cancelled = True
        self.diagnostics.event("CANCEL", TAG, "Stop requested", self.state.summary())

    def is_running(self) -> bool:
        return not self._cancelled

    def reset(self):
        """Back to an uninitialised cycle; calling it twice is the same as once."""
        self.state = CycleState(batch_size=self.state.batch_size)
        self._cancelled = False

    def on_sample(self, state: PageState, fields: Optional[Dict[str, Any]] = None) -> Dispatch:
        """Route one classified sample. Re-entrant calls are refused, not queued."""
        if not self.is_running() or self.finished:
            return Dispatch.REFUSED
        if not self._dispatching.acquire(blocking=False):
            self.diagnostics.event("DISPATCH_BUSY", TAG, "Sample dropped, dispatch in progress",
                                   {"state": state.value}, Level.DEBUG)
            return Dispatch.REFUSED
        try:
            return self._dispatch(state, fields or {})
        finally:
            self._dispatching.release()

    def _dispatch(self, state: PageState, fields: Dict[str, Any]) -> Dispatch:
        signal = _SIGNALS.get(state)
        if signal is None:
            self.on_skip(state, fields)
            return Dispatch.SKIP

        if self.state.phase is None:
            self.state.phase = signal
            self.diagnostics.event("PHASE_INFERRED", TAG, f"Starting in {signal.value} phase",
                                   self.state.summary())
        elif signal != self.state.phase:
            if self.policy == Policy.STATE:
                self.diagnostics.event("PHASE_RESYNC", TAG,
                                       f"Screen shows {signal.value}, expected {self.state.phase.value}",
                                       self.state.summary(), Level.WARN)
                self.state.phase = signal
                self.state.count_in_phase = 0
            else:
                self.diagnostics.event("PHASE_MISMATCH", TAG,
                                       f"Skipping {signal.value} screen during {self.state.phase.value} phase",
                                       self.state.summary(), Level.WARN)
                self.on_skip(state, fields)
                return Dispatch.SKIP

        # The screen was consumed whatever the callback did with it
        try:
            if signal == Phase.LEARN:
                self.on_learn(fields)
                return Dispatch.LEARN
            self.on_answer(fields)
            return Dispatch.ANSWER
        finally:
            if signal == Phase.LEARN:
                self.state.total_learned += 1
            else:
                self.state.total_answered += 1
            self._advance()

    def _advance(self):
        self.state.count_in_phase += 1
        if self.state.count_in_phase < self.state.batch_size:
            return
        self.state.count_in_phase = 0
        if self.state.phase == Phase.LEARN:
            self.state.phase = Phase.QUIZ
        else:
            self.state.phase = Phase.LEARN
            self.state.cycles_completed += 1
        self.diagnostics.event("PHASE_FLIP", TAG, f"Entering {self.state.phase.value} phase",
                               self.state.summary())
