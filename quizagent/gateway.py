"""
Serialized pointer and keyboard actions.

Every action goes through one lock so that two triggers (the pull loop and a
host notification, say) can never interleave taps. The lock is held for a
settle period after each action so the next perception sees the new screen.
"""

import threading
import time
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from .actions import (
    ActionResult,
    ClearInputAction,
    EnterAction,
    GatewayAction,
    ProbeResult,
    SwipeAction,
    TapAction,
    TypeTextAction,
)
from .config import AgentConfig, config
from .diagnostics import DiagnosticsSink, Level, NullDiagnostics
from .errors import ActionDenied
from .layout import KeyboardLayout, NormalizedPoint

TAG = "ActionGateway"

Point = Tuple[int, int]


class ActionHost(Protocol):
    """What the platform must provide to act on the screen."""

    def tap(self, x: int, y: int) -> bool:
        ...

    def swipe(self, x0: int, y0: int, x1: int, y1: int, duration_ms: int) -> bool:
        ...

    def set_field_text(self, text: str) -> bool:
        ...


class ActionGateway:
    """
    The single path from the agent to the host.

    A host call that returns False or raises is reported as ACTION_DENIED and
    comes back as a failed ActionResult; nothing is raised to the caller.
    Inside a key sequence a refused key is skipped and the rest are still
    tapped; the sequence then reports failure.
    """

    def __init__(
        self,
        host: ActionHost,
        keyboard: Optional[KeyboardLayout] = None,
        screen_size: Optional[Tuple[int, int]] = None,
        cfg: Optional[AgentConfig] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
        sleep: Callable[[float], None] = time.sleep,
        is_running: Optional[Callable[[], bool]] = None,
    ):
        self.host = host
        self.keyboard = keyboard or KeyboardLayout()
        self.config = cfg or config
        self.screen_size = screen_size or self.config.screen_size
        self.diagnostics = diagnostics or NullDiagnostics()
        self.sleep = sleep
        self.is_running = is_running or (lambda: True)
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def to_pixels(self, point: NormalizedPoint) -> Point:
        width, height = self.screen_size
        return point.to_pixel_point(width, height)

    # ------------------------------------------------------------------
    # Public actions
    # ------------------------------------------------------------------

    def tap(self, x: int, y: int, description: str = "") -> ActionResult:
        action = TapAction(x=x, y=y, description=description)
        return self._exclusive(action, lambda: self._host_tap(x, y) or f"Tapped ({x}, {y})")

    def tap_point(self, point: NormalizedPoint, description: str = "") -> ActionResult:
        x, y = self.to_pixels(point)
        return self.tap(x, y, description)

    def swipe(
        self, x0: int, y0: int, x1: int, y1: int,
        duration_ms: Optional[int] = None, description: str = "",
    ) -> ActionResult:
        duration_ms = max(1, duration_ms or self.config.swipe_duration_ms)
        action = SwipeAction(
            start_x=x0, start_y=y0, end_x=x1, end_y=y1,
            duration_ms=duration_ms, description=description,
        )

        def body():
            if not self.host.swipe(x0, y0, x1, y1, duration_ms):
                raise ActionDenied("Host refused swipe", {"from": (x0, y0), "to": (x1, y1)})
            return f"Swiped ({x0}, {y0}) -> ({x1}, {y1})"

        return self._exclusive(action, body)

    def swipe_points(self, start: NormalizedPoint, end: NormalizedPoint, description: str = "") -> ActionResult:
        x0, y0 = self.to_pixels(start)
        x1, y1 = self.to_pixels(end)
        return self.swipe(x0, y0, x1, y1, description=description)

    def type_text(self, text: str, description: str = "") -> ActionResult:
        """Inject text into the focused field, tapping the soft keyboard if injection is unsupported."""
        action = TypeTextAction(text=text, description=description)

        def body():
            if self._inject(text):
                return f"Injected text: {text[:50]}"
            self._tap_keys(text)
            return f"Tapped text: {text[:50]}"

        return self._exclusive(action, body)

    def clear_input(self, times: int = 20) -> ActionResult:
        action = ClearInputAction(times=times)

        def body():
            if self._inject(""):
                return "Cleared input"
            x, y = self.to_pixels(self.keyboard.backspace)
            refused = 0
            for _ in range(times):
                if not self._key_tap(x, y):
                    refused += 1
                self.sleep(self.config.backspace_delay)
            if refused:
                raise ActionDenied(f"Host refused {refused} of {times} backspace taps", {"refused": refused})
            return f"Pressed backspace {times} times"

        return self._exclusive(action, body)

    def press_enter(self) -> ActionResult:
        x, y = self.to_pixels(self.keyboard.enter)
        return self._exclusive(EnterAction(), lambda: self._host_tap(x, y) or "Pressed enter")

    def dispatch(self, action: GatewayAction) -> ActionResult:
        """Execute a parsed action schema."""
        if isinstance(action, TapAction):
            return self.tap(action.x, action.y, action.description)
        if isinstance(action, SwipeAction):
            return self.swipe(
                action.start_x, action.start_y, action.end_x, action.end_y,
                action.duration_ms, action.description,
            )
        if isinstance(action, TypeTextAction):
            return self.type_text(action.text, action.description)
        if isinstance(action, ClearInputAction):
            return self.clear_input(action.times)
        if isinstance(action, EnterAction):
            return self.press_enter()
        return ActionResult(success=False, message=f"Unknown action: {action!r}")

    def probe(
        self,
        candidates: Sequence[Point],
        resample: Callable[[], Optional[str]],
        original: Optional[str],
        advance: Point,
    ) -> ProbeResult:
        """
        Tap each candidate until the screen's subject changes.

        After each tap the subject is re-read; the first candidate whose
        non-empty subject differs from original is accepted. If none is, a
        single neutral advance tap is made. At most len(candidates) + 1 actions.
        """
        result = ProbeResult()
        baseline = (original or "").strip()

        for index, (x, y) in enumerate(candidates):
            if not self.is_running():
                self.diagnostics.event("PROBE_CANCELLED", TAG, "Probe stopped", {"trials": result.trials})
                return result

            self.tap(x, y, f"probe option {index + 1}")
            result.trials += 1
            self.sleep(self.config.probe_delay)

            observed = (resample() or "").strip()
            result.observed.append(observed or None)
            if observed and observed != baseline:
                result.accepted_index = index
                self.diagnostics.event(
                    "PROBE_ACCEPTED", TAG, f"Option {index + 1} accepted",
                    {"before": baseline, "after": observed},
                )
                return result

        if self.is_running():
            self.tap(advance[0], advance[1], "probe advance")
            result.advanced = True
            self.diagnostics.event("PROBE_EXHAUSTED", TAG, "No option changed the screen",
                                   {"trials": result.trials}, Level.WARN)
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _exclusive(self, action: GatewayAction, body: Callable[[], str]) -> ActionResult:
        if not self._lock.acquire(timeout=self.config.action_timeout):
            self._denied(action, "Timed out waiting for the action lock")
            return ActionResult(success=False, message="Action lock timeout", action=action)
        try:
            message = body()
            return ActionResult(success=True, message=message, action=action)
        except ActionDenied as e:
            self._denied(action, str(e))
            return ActionResult(success=False, message=str(e), action=action, data=e.payload)
        except Exception as e:
            self._denied(action, f"{type(e).__name__}: {e}")
            return ActionResult(success=False, message=f"Action failed: {e}", action=action)
        finally:
            self.sleep(self.config.settle_delay)
            self._lock.release()

    def _denied(self, action: GatewayAction, reason: str):
        self.diagnostics.event(
            "ACTION_DENIED", TAG, reason,
            {"action": action.action_type}, Level.WARN,
        )

    def _host_tap(self, x: int, y: int) -> None:
        if not self.host.tap(x, y):
            raise ActionDenied("Host refused tap", {"x": x, "y": y})

    def _key_tap(self, x: int, y: int) -> bool:
        """One key of a sequence; a refusal is recorded and the sequence carries on."""
        try:
            accepted = bool(self.host.tap(x, y))
        except Exception as e:
            self.diagnostics.event("KEY_REFUSED", TAG, f"Key tap failed: {e}", {"x": x, "y": y}, Level.DEBUG)
            return False
        if not accepted:
            self.diagnostics.event("KEY_REFUSED", TAG, "Host refused key tap", {"x": x, "y": y}, Level.DEBUG)
        return accepted

    def _inject(self, text: str) -> bool:
        setter = getattr(self.host, "set_field_text", None)
        if setter is None:
            return False
        try:
            return bool(setter(text))
        except Exception as e:
            self.diagnostics.event("INJECT_FAILED", TAG, f"Field injection failed: {e}", level=Level.DEBUG)
            return False

    def _tap_keys(self, text: str):
        self.sleep(self.config.type_initial_delay)
        missing: List[str] = []
        refused: List[str] = []
        for i, char in enumerate(text):
            point = self.keyboard.point_for(char, first=(i == 0))
            if point is None:
                missing.append(char)
                continue
            x, y = self.to_pixels(point)
            if not self._key_tap(x, y):
                refused.append(char)
            if i < self.config.warmup_keys:
                self.sleep(self.config.warmup_key_delay)
            else:
                self.sleep(self.config.key_delay)
        if missing:
            self.diagnostics.event("KEY_UNMAPPED", TAG, "Characters not on the keyboard map",
                                   {"chars": "".join(missing)}, Level.WARN)
        if refused:
            raise ActionDenied(f"Host refused {len(refused)} key taps", {"chars": "".join(refused)})
