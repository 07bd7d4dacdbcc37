"""
Coordinate and keyword map for the target mini-program.

All geometry is normalized to [0, 1] and converted to pixels with the screen size
supplied by the caller. The defaults were measured on a 1080x2400 screen; a
different layout can be loaded from JSON.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, field_validator, model_validator


@dataclass
class ScreenRegion:
    """Represents a region of the screen in pixels."""
    left: int
    top: int
    width: int
    height: int

    def shifted(self, dx: int, dy: int) -> "ScreenRegion":
        return ScreenRegion(self.left + dx, self.top + dy, self.width, self.height)


class NormalizedPoint(BaseModel):
    x: float = Field(ge=0.0, le=1.0)
    y: float = Field(ge=0.0, le=1.0)

    def to_pixel_point(self, screen_width: int, screen_height: int) -> Tuple[int, int]:
        return (int(self.x * screen_width), int(self.y * screen_height))


class NormalizedRect(BaseModel):
    left: float = Field(ge=0.0, le=1.0)
    top: float = Field(ge=0.0, le=1.0)
    right: float = Field(ge=0.0, le=1.0)
    bottom: float = Field(ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_order(self):
        if self.right <= self.left or self.bottom <= self.top:
            raise ValueError("Region must have right > left and bottom > top")
        return self

    def to_pixel_rect(self, screen_width: int, screen_height: int) -> ScreenRegion:
        left = int(self.left * screen_width)
        top = int(self.top * screen_height)
        return ScreenRegion(
            left=left,
            top=top,
            width=int(self.right * screen_width) - left,
            height=int(self.bottom * screen_height) - top,
        )

    @property
    def center(self) -> NormalizedPoint:
        return NormalizedPoint(x=(self.left + self.right) / 2, y=(self.top + self.bottom) / 2)


def _pt(x: float, y: float) -> NormalizedPoint:
    return NormalizedPoint(x=x, y=y)


def _rect(left: float, top: float, right: float, bottom: float) -> NormalizedRect:
    return NormalizedRect(left=left, top=top, right=right, bottom=bottom)


class SelectionLayout(BaseModel):
    """Learn/quiz card screens."""
    word_area: NormalizedRect = _rect(0.1698, 0.3056, 0.9150, 0.4053)
    options_area: NormalizedRect = _rect(0.0883, 0.4865, 0.9150, 0.8316)
    option_points: List[NormalizedPoint] = Field(
        default_factory=lambda: [
            _pt(0.5060, 0.5284),
            _pt(0.5060, 0.5938),
            _pt(0.5060, 0.6633),
            _pt(0.5060, 0.7353),
        ]
    )
    next_tap: NormalizedPoint = _pt(0.5060, 0.3006)  # Neutral "advance"
    prompt_confirm: NormalizedPoint = _pt(0.5, 0.6)
    completion_continue: NormalizedPoint = _pt(0.5069, 0.8755)
    swipe_start: NormalizedPoint = _pt(0.5, 0.7)
    swipe_end: NormalizedPoint = _pt(0.5, 0.3)

    @field_validator("option_points")
    @classmethod
    def _four_options(cls, value: List[NormalizedPoint]) -> List[NormalizedPoint]:
        if len(value) != 4:
            raise ValueError("Exactly four option points are required")
        return value

    @property
    def card_center(self) -> NormalizedPoint:
        return self.word_area.center


class SpellingLayout(BaseModel):
    definition: NormalizedRect = _rect(0.10, 0.27, 0.90, 0.32)
    input_area: NormalizedRect = _rect(0.15, 0.36, 0.85, 0.40)
    # Scanned in order until one yields a word
    hint_regions: List[NormalizedRect] = Field(
        default_factory=lambda: [
            _rect(0.10, 0.46, 0.90, 0.52),
            _rect(0.10, 0.36, 0.90, 0.54),
            _rect(0.10, 0.35, 0.90, 0.60),
            _rect(0.10, 0.36, 0.90, 0.56),
        ]
    )
    initial_dialog_confirm: NormalizedPoint = _pt(0.5, 0.62)


class ListeningLayout(BaseModel):
    full: NormalizedRect = _rect(0.0, 0.0, 1.0, 1.0)
    star: NormalizedPoint = _pt(0.5, 0.62)
    play: NormalizedPoint = _pt(0.5, 0.49)
    record: NormalizedPoint = _pt(0.5, 0.80)
    finish: NormalizedPoint = _pt(0.5, 0.85)
    next: NormalizedPoint = _pt(0.88, 0.93)


class KeyboardLayout(BaseModel):
    """QWERTY soft keyboard, standard Android layout."""
    keys: Dict[str, NormalizedPoint] = Field(
        default_factory=lambda: {
            "q": _pt(0.055, 0.755), "w": _pt(0.159, 0.755), "e": _pt(0.263, 0.755),
            "r": _pt(0.367, 0.755), "t": _pt(0.471, 0.755), "y": _pt(0.575, 0.755),
            "u": _pt(0.679, 0.755), "i": _pt(0.783, 0.755), "o": _pt(0.887, 0.755),
            "p": _pt(0.945, 0.755),
            "a": _pt(0.107, 0.822), "s": _pt(0.211, 0.822), "d": _pt(0.315, 0.822),
            "f": _pt(0.419, 0.822), "g": _pt(0.523, 0.822), "h": _pt(0.627, 0.822),
            "j": _pt(0.731, 0.822), "k": _pt(0.835, 0.822), "l": _pt(0.939, 0.822),
            "z": _pt(0.211, 0.889), "x": _pt(0.315, 0.889), "c": _pt(0.419, 0.889),
            "v": _pt(0.523, 0.889), "b": _pt(0.627, 0.889), "n": _pt(0.731, 0.889),
            "m": _pt(0.835, 0.889),
        }
    )
    # Edge keys pulled inwards when typed first
    first_key_overrides: Dict[str, NormalizedPoint] = Field(
        default_factory=lambda: {"p": _pt(0.930, 0.755), "l": _pt(0.925, 0.822)}
    )
    backspace: NormalizedPoint = _pt(0.945, 0.889)
    enter: NormalizedPoint = _pt(0.875, 0.956)

    def point_for(self, char: str, first: bool = False) -> Optional[NormalizedPoint]:
        key = char.lower()
        if first and key in self.first_key_overrides:
            return self.first_key_overrides[key]
        return self.keys.get(key)


class KeywordTable(BaseModel):
    completion: List[str] = Field(
        default_factory=lambda: ["恭喜你完成", "任务已完成", "学习完成", "全部完成", "打卡成功"]
    )
    # Every word of a group must be present
    completion_groups: List[List[str]] = Field(default_factory=lambda: [["强化", "继续"]])
    must_answer: List[str] = Field(default_factory=lambda: ["必须要作答", "必须作答"])
    option_markers: str = "ABCD"
    option_separators: str = ".．、:："
    spelling_hint: str = "提示"
    listening_done: List[str] = Field(default_factory=lambda: ["当前卡包已完成"])
    listening_tip: List[str] = Field(default_factory=lambda: ["温馨提示"])
    listening_play: List[str] = Field(default_factory=lambda: ["内容会慢慢呈现", "已播放"])
    listening_record: List[str] = Field(default_factory=lambda: ["点击按钮", "不能暂停"])

    @field_validator("option_markers")
    @classmethod
    def _four_markers(cls, value: str) -> str:
        if len(value) != 4 or not value.isalpha():
            raise ValueError("option_markers must be four letters")
        return value


class Layout(BaseModel):
    """Everything the agent needs to know about one target screen layout."""
    name: str = "flip-english-miniprogram"
    selection: SelectionLayout = Field(default_factory=SelectionLayout)
    spelling: SpellingLayout = Field(default_factory=SpellingLayout)
    listening: ListeningLayout = Field(default_factory=ListeningLayout)
    keyboard: KeyboardLayout = Field(default_factory=KeyboardLayout)
    keywords: KeywordTable = Field(default_factory=KeywordTable)


def load_layout(path: Optional[Union[str, Path]] = None) -> Layout:
    """Load a layout from a JSON file, or return the built-in one."""
    if path is None:
        return Layout()
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise FileNotFoundError(f"Layout file not found: {path}") from None
    return Layout.model_validate_json(text)
