"""
Page state classification from OCR text.

The agent cannot see the mini-program's widgets, only the text OCR pulls out
of two screen regions: the primary (word/question) area and the secondary
(definition/options) area. Rules are tried in priority order and the first
match wins.
"""

import re
from typing import Any, Dict, List, NamedTuple, Optional

from .diagnostics import DiagnosticsSink, Level, NullDiagnostics
from .layout import KeywordTable
from .models import Direction, PageState
from .text import (
    BARE_WORD,
    POS_TAG_PATTERN,
    find_word,
    has_non_latin,
    split_lines,
)

PRIMARY = "primary"
SECONDARY = "secondary"

TAG = "StateClassifier"


class Classification(NamedTuple):
    state: PageState
    fields: Dict[str, Any]


class StateClassifier:
    """Turns one perception sample into a page state plus extracted fields."""

    def __init__(
        self,
        keywords: Optional[KeywordTable] = None,
        diagnostics: Optional[DiagnosticsSink] = None,
    ):
        self.keywords = keywords or KeywordTable()
        self.diagnostics = diagnostics or NullDiagnostics()

        markers = re.escape(self.keywords.option_markers)
        seps = re.escape(self.keywords.option_separators)
        self._marker = re.compile(rf"(?<![A-Za-z])([{markers}])\s*[{seps}]")
        self._option_split = re.compile(
            rf"(?<![A-Za-z])([{markers}])\s*[{seps}](.*?)(?=(?<![A-Za-z])[{markers}]\s*[{seps}]|$)",
            re.DOTALL,
        )

    def classify(self, sample: Dict[str, str]) -> Classification:
        """
        Classify a perception sample.

        Never raises: anything unexpected yields UNKNOWN with empty fields.
        """
        try:
            return self._classify(sample or {})
        except Exception as e:
            self.diagnostics.event(
                "CLASSIFY_ERROR", TAG, f"Classification failed: {e}",
                {"error": type(e).__name__}, Level.ERROR,
            )
            return Classification(PageState.UNKNOWN, {})

    def _classify(self, sample: Dict[str, str]) -> Classification:
        primary = (sample.get(PRIMARY) or "").strip()
        secondary = (sample.get(SECONDARY) or "").strip()

        if self._has_completion(secondary):
            return Classification(PageState.COMPLETION, {})

        if any(k in secondary for k in self.keywords.must_answer):
            return Classification(PageState.ANSWER_PROMPT, {})

        has_markers = self._marker.search(secondary) is not None
        secondary_non_latin = has_non_latin(secondary)

        # Question shown as a definition, options are English words
        if has_markers and has_non_latin(primary):
            options = self.extract_word_options(secondary)
            if options:
                return Classification(PageState.QUIZ, {
                    "direction": Direction.DEFINITION_TO_WORD,
                    "definition": self.extract_definition(primary) or primary,
                    "options": options,
                })

        word = find_word(primary)
        if word is None:
            return Classification(PageState.UNKNOWN, {})

        if has_markers:
            return Classification(PageState.QUIZ, {
                "direction": Direction.WORD_TO_DEFINITION,
                "word": word,
                "options": self.extract_options(secondary),
            })

        if secondary_non_latin:
            return Classification(PageState.WORD_WITH_DEFINITION, {
                "word": word,
                "definition": self.extract_definition(secondary),
            })

        return Classification(PageState.WORD_ONLY, {"word": word})

    def _has_completion(self, text: str) -> bool:
        if any(k in text for k in self.keywords.completion):
            return True
        return any(
            group and all(k in text for k in group)
            for group in self.keywords.completion_groups
        )

    @staticmethod
    def extract_definition(text: str) -> Optional[str]:
        """First line with a part-of-speech tag and non-Latin text, else the first non-Latin line."""
        lines = split_lines(text)
        for line in lines:
            if POS_TAG_PATTERN.search(line) and has_non_latin(line):
                return line
        return next((line for line in lines if has_non_latin(line)), None)

    def extract_options(self, text: str) -> List[str]:
        """
        Pull the four definition options out of the options area.

        Tiers, first to produce four wins:
            1. regex split on marker + separator ("A.你好 B.再见 ...")
            2. lines starting with the expected marker sequence
            3. the first four lines containing non-Latin script
        """
        by_regex = self._split_on_markers(text, has_non_latin)
        if len(by_regex) >= 4:
            return by_regex[:4]

        lines = split_lines(text)
        by_lines = self._split_on_line_prefixes(lines)
        if len(by_lines) >= 4:
            return by_lines[:4]

        by_script = [line for line in lines if has_non_latin(line)][:4]
        if len(by_script) >= 4:
            return by_script

        self.diagnostics.event(
            "OPTIONS_PARTIAL", TAG, "Fewer than four options extracted",
            {"regex": len(by_regex), "lines": len(by_lines), "script": len(by_script)},
            Level.WARN,
        )
        return by_regex or by_lines or by_script

    def extract_word_options(self, text: str) -> List[str]:
        """Same tiers as extract_options, for English word options."""
        def is_word(body: str) -> bool:
            return BARE_WORD.match(body) is not None

        by_regex = self._split_on_markers(text, is_word)
        if len(by_regex) >= 4:
            return by_regex[:4]

        lines = split_lines(text)
        by_lines = [o for o in self._split_on_line_prefixes(lines) if is_word(o)]
        if len(by_lines) >= 4:
            return by_lines[:4]

        by_script = [line for line in lines if is_word(line)][:4]
        if len(by_script) >= 4:
            return by_script
        return by_regex or by_lines or by_script

    def _split_on_markers(self, text: str, accept) -> List[str]:
        found: Dict[str, str] = {}
        for match in self._option_split.finditer(text):
            label = match.group(1)
            body = " ".join(match.group(2).split())
            if body and accept(body) and label not in found:
                found[label] = body
        return [found[m] for m in self.keywords.option_markers if m in found]

    def _split_on_line_prefixes(self, lines: List[str]) -> List[str]:
        options: List[str] = []
        markers = self.keywords.option_markers
        for line in lines:
            if len(options) >= len(markers):
                break
            expected = markers[len(options)]
            if (
                len(line) >= 2
                and line[0] == expected
                and line[1] in self.keywords.option_separators
            ):
                options.append(line[2:].strip())
        return options
