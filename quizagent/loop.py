"""
Quiz Session Loop - drives the selection (learn/quiz) flow end to end.
Samples the screen, classifies it, lets the orchestrator route it, and acts.
"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

from rich.console import Console
from rich.panel import Panel

from .classifier import PRIMARY, SECONDARY, StateClassifier
from .config import AgentConfig, config
from .diagnostics import DiagnosticsSink, Level, NullDiagnostics
from .errors import ClassificationUnknown, PerceptionAmbiguous, PerceptionEmpty, QuizAgentError
from .gateway import ActionGateway, ActionHost
from .layout import Layout, NormalizedRect
from .memory import LexicalMemory, MatchQuery
from .models import Direction, PageState
from .orchestrator import Dispatch, PhaseOrchestrator, Policy
from .text import find_word
from .utils import format_duration


console = Console()

TAG = "QuizSession"


class PerceptionSource(Protocol):
    """Reads the text inside a normalized screen region."""

    def capture_text(self, region: NormalizedRect, label: str) -> str:
        ...


class SessionStatus(Enum):
    """Status of a quiz session."""
    RUNNING = "running"
    COMPLETED = "completed"
    STOPPED = "stopped"
    EXHAUSTED = "exhausted"


@dataclass
class SessionResult:
    """Final result of a session run."""
    status: SessionStatus
    iterations: int
    learned: int
    answered: int
    probes: int
    duration: float
    final_message: str
    history: list = field(default_factory=list)


class QuizSession:
    """
    One selection-quiz session.

    Two ways to drive it:
    1. run(): poll the screen until the session completes, is stopped, or
       hits max_iterations
    2. notify(): the host calls this whenever the screen changes; one
       iteration runs per accepted notification
    """

    def __init__(
        self,
        perception: PerceptionSource,
        host: ActionHost,
        layout: Optional[Layout] = None,
        cfg: Optional[AgentConfig] = None,
        memory: Optional[LexicalMemory] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        screen_size: Optional[Tuple[int, int]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        show_panels: bool = True,
    ):
        self.config = cfg or config
        self.config.validate()
        self.layout = layout or Layout()
        self.screen_size = screen_size or self.config.screen_size
        if min(self.screen_size) <= 0:
            raise ValueError("Screen size must be known before starting a session")

        self.perception = perception
        self.diagnostics = diagnostics or NullDiagnostics()
        self.memory = memory or LexicalMemory()
        self.sleep = sleep
        self.clock = clock
        self.show_panels = show_panels

        self.classifier = StateClassifier(self.layout.keywords, self.diagnostics)
        self.orchestrator = PhaseOrchestrator(
            on_learn=self._on_learn,
            on_answer=self._on_answer,
            on_skip=self._on_skip,
            batch_size=self.config.batch_size,
            policy=Policy(self.config.policy),
            total_cycles=self.config.total_cycles,
            diagnostics=self.diagnostics,
        )
        self.gateway = ActionGateway(
            host,
            keyboard=self.layout.keyboard,
            screen_size=self.screen_size,
            cfg=self.config,
            diagnostics=self.diagnostics,
            sleep=sleep,
            is_running=self.orchestrator.is_running,
        )

        self.iterations = 0
        self.probes = 0
        self.history: list = []
        self._iterating = threading.Lock()
        self._last_notify: Optional[float] = None

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def stop(self):
        """Request a stop; the current action finishes first."""
        self.orchestrator.cancel()

    def is_running(self) -> bool:
        return self.orchestrator.is_running()

    def reset(self):
        self.orchestrator.reset()
        self.iterations = 0
        self.probes = 0
        self.history = []
        self._last_notify = None

    # ------------------------------------------------------------------
    # Pull mode
    # ------------------------------------------------------------------

    def run(self) -> SessionResult:
        """
        Poll and act until the session ends.

        Returns:
            SessionResult; the loop never raises
        """
        start_time = self.clock()

        if self.show_panels:
            console.print(Panel(
                f"[bold cyan]Policy:[/bold cyan] {self.orchestrator.policy.value}    "
                f"[bold cyan]Batch:[/bold cyan] {self.config.batch_size}    "
                f"[bold cyan]Max iterations:[/bold cyan] {self.config.max_iterations}",
                title="QUIZ SESSION",
                border_style="cyan",
            ))

        while self.iterations < self.config.max_iterations:
            if not self.is_running() or self.orchestrator.finished:
                break
            try:
                self._safe_step()
            except KeyboardInterrupt:
                console.print("\n[yellow]Session stopped by user[/yellow]")
                self.stop()
                break

        return self._finish(start_time)

    def step(self) -> Dispatch:
        """One perception -> classification -> dispatch iteration."""
        self.iterations += 1
        self.sleep(self.config.state_check_delay)

        sample = self.sample()
        classification = self.classifier.classify(sample)
        self.diagnostics.event(
            "SAMPLE", TAG, f"#{self.iterations} {classification.state.value}",
            {"primary": sample[PRIMARY][:30]}, Level.DEBUG,
        )
        dispatched = self.orchestrator.on_sample(classification.state, classification.fields)
        self.history.append({
            "iteration": self.iterations,
            "state": classification.state.value,
            "dispatch": dispatched.value,
            **self.orchestrator.state.summary(),
        })
        return dispatched

    # ------------------------------------------------------------------
    # Push mode
    # ------------------------------------------------------------------

    def notify(self) -> bool:
        """
        Host signal that the screen changed.

        Dropped (returns False) inside the debounce window, while an action is
        in flight, while another iteration runs, or once the session is over.
        """
        now = self.clock()
        if self._last_notify is not None and now - self._last_notify < self.config.debounce_window:
            self.diagnostics.event("NOTIFY_DEBOUNCED", TAG, "Notification inside debounce window",
                                   level=Level.DEBUG)
            return False
        if self.gateway.busy:
            return False
        if not self._iterating.acquire(blocking=False):
            return False
        try:
            if (
                not self.is_running()
                or self.orchestrator.finished
                or self.iterations >= self.config.max_iterations
            ):
                return False
            self._last_notify = now
            self._safe_step()
            return True
        finally:
            self._iterating.release()

    # ------------------------------------------------------------------
    # Perception
    # ------------------------------------------------------------------

    def sample(self) -> Dict[str, str]:
        selection = self.layout.selection
        return {
            PRIMARY: self._capture(selection.word_area, PRIMARY),
            SECONDARY: self._capture(selection.options_area, SECONDARY),
        }

    def _capture(self, region: NormalizedRect, label: str) -> str:
        try:
            text = self.perception.capture_text(region, label) or ""
        except Exception as e:
            self.diagnostics.event("PERCEPTION_ERROR", TAG, f"Capture failed: {e}",
                                   {"label": label}, Level.ERROR)
            return ""
        if not text.strip():
            err = PerceptionEmpty(f"No text in {label} region")
            self.diagnostics.event(err.code, TAG, str(err), {"label": label}, Level.DEBUG)
        return text

    def _read_subject(self, direction: Direction) -> Optional[str]:
        text = self._capture(self.layout.selection.word_area, PRIMARY)
        if direction == Direction.WORD_TO_DEFINITION:
            return find_word(text)
        return self.classifier.extract_definition(text) or text.strip() or None

    # ------------------------------------------------------------------
    # Orchestrator callbacks
    # ------------------------------------------------------------------

    def _on_learn(self, fields: Dict[str, Any]):
        word = fields.get("word")
        definition = fields.get("definition")
        try:
            if not definition:
                raise ValueError(f"No definition read for {word!r}")
            self.memory.learn(word, [definition])
            self.diagnostics.event("LEARNED", TAG, f"{word} = {definition}",
                                   {"count": self.memory.get_learned_count()})
        except ValueError as e:
            self.diagnostics.event("LEARN_REJECTED", TAG, str(e), level=Level.WARN)
        self._next_card()

    def _on_answer(self, fields: Dict[str, Any]):
        direction = fields.get("direction", Direction.WORD_TO_DEFINITION)
        options = list(fields.get("options") or [])
        if direction == Direction.WORD_TO_DEFINITION:
            subject = fields.get("word")
        else:
            subject = fields.get("definition")

        try:
            if not subject:
                raise PerceptionAmbiguous("Question subject missing")
            if len(options) < 4:
                raise PerceptionAmbiguous(f"Only {len(options)} options read", {"options": options})
            match = self.memory.score(MatchQuery(subject, options, direction))
            if match.confidence < self.config.min_confidence:
                raise PerceptionAmbiguous(
                    f"Low confidence for {subject!r}",
                    {"confidence": match.confidence, "index": match.best_index},
                )
        except PerceptionAmbiguous as e:
            self.diagnostics.event(e.code, TAG, str(e), e.payload, Level.WARN)
            self._probe(subject, direction)
            return

        self.diagnostics.event(
            "ANSWER", TAG, f"{subject} -> {options[match.best_index]}",
            {"index": match.best_index, "confidence": round(match.confidence, 2)},
        )
        self.gateway.tap_point(self.layout.selection.option_points[match.best_index], "answer")
        self.sleep(self.config.click_delay)
        self._next_card()

    def _on_skip(self, state: PageState, fields: Dict[str, Any]):
        selection = self.layout.selection
        if state == PageState.WORD_ONLY:
            self.gateway.tap_point(selection.card_center, "reveal definition")
        elif state == PageState.ANSWER_PROMPT:
            self.gateway.tap_point(selection.prompt_confirm, "confirm prompt")
        elif state == PageState.COMPLETION:
            self.gateway.tap_point(selection.completion_continue, "continue")
        elif state == PageState.WORD_WITH_DEFINITION:
            # Learning card seen out of phase
            self._next_card()
            return
        elif state == PageState.QUIZ:
            # Quiz seen out of phase; the orchestrator already reported it
            self.gateway.tap_point(selection.next_tap, "advance")
        else:
            err = ClassificationUnknown("No rule matched the screen")
            self.diagnostics.event(err.code, TAG, str(err), level=Level.DEBUG)
            self.gateway.tap_point(selection.next_tap, "advance")
        self.sleep(self.config.click_delay)

    def _probe(self, subject: Optional[str], direction: Direction):
        selection = self.layout.selection
        self.probes += 1
        result = self.gateway.probe(
            candidates=[self.gateway.to_pixels(p) for p in selection.option_points],
            resample=lambda: self._read_subject(direction),
            original=subject,
            advance=self.gateway.to_pixels(selection.next_tap),
        )
        self.history.append({
            "iteration": self.iterations,
            "probe": result.accepted_index,
            "trials": result.trials,
            "advanced": result.advanced,
        })

    def _next_card(self):
        selection = self.layout.selection
        self.gateway.swipe_points(selection.swipe_start, selection.swipe_end, "next card")
        self.sleep(self.config.swipe_delay)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _safe_step(self):
        try:
            self.step()
        except QuizAgentError as e:
            self.diagnostics.event(e.code, TAG, str(e), e.payload, Level.WARN)
        except Exception as e:
            self.diagnostics.event("LOOP_ERROR", TAG, f"Iteration failed: {e}",
                                   {"error": type(e).__name__}, Level.ERROR)

    def _finish(self, start_time: float) -> SessionResult:
        if self.orchestrator.finished:
            status = SessionStatus.COMPLETED
            message = f"Finished {self.orchestrator.state.cycles_completed} learn/quiz cycles"
        elif not self.is_running():
            status = SessionStatus.STOPPED
            message = "Stopped by operator"
        else:
            status = SessionStatus.EXHAUSTED
            message = f"Max iterations ({self.config.max_iterations}) reached"

        cycle = self.orchestrator.state
        result = SessionResult(
            status=status,
            iterations=self.iterations,
            learned=cycle.total_learned,
            answered=cycle.total_answered,
            probes=self.probes,
            duration=self.clock() - start_time,
            final_message=message,
            history=list(self.history),
        )
        self.diagnostics.event("SESSION_END", TAG, message, {
            "status": status.value,
            "iterations": result.iterations,
            "learned": result.learned,
            "answered": result.answered,
        })

        if self.show_panels:
            style = {"completed": "green", "stopped": "yellow", "exhausted": "red"}[status.value]
            console.print(Panel(
                f"{message}\n"
                f"Learned {result.learned}, answered {result.answered}, "
                f"probed {result.probes} in {result.iterations} iterations "
                f"({format_duration(result.duration)})",
                title=status.value.upper(),
                border_style=style,
            ))
        return result
