"""
Action schemas and types for the quiz agent.
Defines every action the gateway can dispatch and the result it reports back.
"""

from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field


class TapAction(BaseModel):
    """Tap at pixel coordinates."""
    action_type: Literal["tap"] = "tap"
    x: int = Field(description="X coordinate")
    y: int = Field(description="Y coordinate")
    description: str = Field(default="", description="Human-readable description")


class SwipeAction(BaseModel):
    """Swipe from one position to another."""
    action_type: Literal["swipe"] = "swipe"
    start_x: int
    start_y: int
    end_x: int
    end_y: int
    duration_ms: int = Field(default=300, ge=1, description="Gesture duration")
    description: str = Field(default="", description="Human-readable description")


class TypeTextAction(BaseModel):
    """Enter text, by field injection when the host supports it."""
    action_type: Literal["type"] = "type"
    text: str = Field(description="Text to type")
    description: str = Field(default="", description="Human-readable description")


class ClearInputAction(BaseModel):
    """Empty the focused input."""
    action_type: Literal["clear"] = "clear"
    times: int = Field(default=20, ge=0, description="Backspace taps when injection is unavailable")
    description: str = Field(default="", description="Human-readable description")


class EnterAction(BaseModel):
    """Tap the soft keyboard's confirm key."""
    action_type: Literal["enter"] = "enter"
    description: str = Field(default="", description="Human-readable description")


GatewayAction = Union[
    TapAction,
    SwipeAction,
    TypeTextAction,
    ClearInputAction,
    EnterAction,
]


class ActionResult(BaseModel):
    """Result of an action dispatched through the gateway."""
    success: bool
    message: str
    action: Optional[GatewayAction] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class ProbeResult(BaseModel):
    """Outcome of sequential fallback probing."""
    accepted_index: Optional[int] = None
    trials: int = 0
    advanced: bool = False
    observed: List[Optional[str]] = Field(default_factory=list)

    @property
    def actions_taken(self) -> int:
        return self.trials + (1 if self.advanced else 0)


def parse_action_from_dict(data: dict) -> GatewayAction:
    """Parse an action from a dictionary."""
    action_type = data.get("action_type")

    action_classes = {
        "tap": TapAction,
        "swipe": SwipeAction,
        "type": TypeTextAction,
        "clear": ClearInputAction,
        "enter": EnterAction,
    }

    action_class = action_classes.get(action_type)
    if action_class is None:
        raise ValueError(f"Unknown action type: {action_type}")

    return action_class(**data)
