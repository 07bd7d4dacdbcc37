"""
Shared enums for page states and quiz directions.
"""

from enum import Enum


class PageState(Enum):
    WORD_ONLY = "word_only"
    WORD_WITH_DEFINITION = "word_with_definition"
    QUIZ = "quiz"
    ANSWER_PROMPT = "answer_prompt"
    COMPLETION = "completion"
    UNKNOWN = "unknown"


class Direction(Enum):
    WORD_TO_DEFINITION = "word_to_definition"
    DEFINITION_TO_WORD = "definition_to_word"
