"""
Diagnostics sinks.
The core only ever writes events; where they end up is up to the sink.
"""

import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Protocol

from rich.console import Console
from rich.text import Text


console = Console()


class Level(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


_LEVEL_STYLES = {
    Level.DEBUG: "dim",
    Level.INFO: "cyan",
    Level.WARN: "yellow",
    Level.ERROR: "red",
}


class DiagnosticsSink(Protocol):
    def event(
        self,
        code: str,
        tag: str,
        message: str,
        payload: Optional[Dict[str, Any]] = None,
        level: Level = Level.INFO,
    ) -> None:
        ...


@dataclass
class DiagnosticEvent:
    """One structured event emitted by the core."""
    code: str
    tag: str
    message: str
    payload: Dict[str, Any] = field(default_factory=dict)
    level: Level = Level.INFO
    ts: float = field(default_factory=time.time)

    def format(self) -> str:
        stamp = time.strftime("%H:%M:%S", time.localtime(self.ts))
        text = f"{stamp} [{self.tag}/{self.code}] {self.message}"
        if self.payload:
            details = ", ".join(f"{k}={v}" for k, v in self.payload.items())
            text += f" ({details})"
        return text


class ConsoleDiagnostics:
    """Prints events to the rich console."""

    def __init__(self, verbose: bool = False, out: Optional[Console] = None):
        self.verbose = verbose
        self.console = out or console

    def event(self, code, tag, message, payload=None, level=Level.INFO):
        if level == Level.DEBUG and not self.verbose:
            return
        entry = DiagnosticEvent(code, tag, message, dict(payload or {}), level)
        style = _LEVEL_STYLES[level]
        self.console.print(Text(entry.format(), style=style))


class MemoryDiagnostics:
    """Keeps the most recent events in memory."""

    def __init__(self, max_events: int = 500):
        self.events: Deque[DiagnosticEvent] = deque(maxlen=max_events)

    def event(self, code, tag, message, payload=None, level=Level.INFO):
        self.events.append(DiagnosticEvent(code, tag, message, dict(payload or {}), level))

    def codes(self) -> List[str]:
        return [e.code for e in self.events]

    def find(self, code: str) -> List[DiagnosticEvent]:
        return [e for e in self.events if e.code == code]

    def clear(self):
        self.events.clear()


class NullDiagnostics:
    def event(self, code, tag, message, payload=None, level=Level.INFO):
        return None
