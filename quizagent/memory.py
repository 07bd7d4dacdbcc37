"""
Lexical memory: learned word -> definition associations with fuzzy lookup.

Definitions are split into segments at part-of-speech markers ("n.", "adj.",
"v.&n." ...). Matching compares segment tokens pairwise with a Levenshtein
similarity and strongly rewards near-exact token hits, which is what survives
OCR noise best on short Chinese glosses.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .models import Direction
from .text import BARE_WORD, POS_MARKERS

TOKEN_SEPARATORS = ",;，；"
EXACT_THRESHOLD = 98  # Similarity treated as a near-exact hit
EXACT_BONUS = 1000

_MARKER_LENGTHS = sorted({len(m) for m in POS_MARKERS}, reverse=True)
_MARKERS = frozenset(POS_MARKERS)


@dataclass(frozen=True)
class Segment:
    tag: str
    body: str


@dataclass
class MatchQuery:
    subject: str
    candidates: List[str]
    direction: Direction = Direction.WORD_TO_DEFINITION


@dataclass
class MatchResult:
    best_index: int
    confidence: float


def levenshtein_similarity(a: str, b: str) -> int:
    """Similarity in [0, 100] from a single-row edit distance."""
    if not a or not b:
        return 0
    la, lb = len(a), len(b)
    row = list(range(lb + 1))
    for i in range(1, la + 1):
        prev = row[0]
        row[0] = i
        for j in range(1, lb + 1):
            tmp = row[j]
            cost = 0 if a[i - 1] == b[j - 1] else 1
            row[j] = min(row[j] + 1, row[j - 1] + 1, prev + cost)
            prev = tmp
    # Halves round up
    sim = int((1.0 - row[lb] / max(la, lb)) * 100 + 0.5)
    return max(0, min(100, sim))


def parse_segments(lines: Iterable[str]) -> List[Segment]:
    """Split definition lines into (tag, body) segments at part-of-speech markers."""
    tags: List[str] = []
    bodies: List[List[str]] = []
    for raw in lines:
        line = _normalize(raw)
        i = 0
        while i < len(line):
            marker = _marker_at(line, i)
            if marker:
                tags.append(marker)
                bodies.append([])
                i += len(marker)
                continue
            if not tags:
                tags.append("")
                bodies.append([])
            bodies[-1].append(line[i])
            i += 1
    return [Segment(tag, "".join(body)) for tag, body in zip(tags, bodies)]


def split_tokens(body: str) -> List[str]:
    tokens = [""]
    for ch in body:
        if ch in TOKEN_SEPARATORS:
            tokens.append("")
        else:
            tokens[-1] += ch
    return [t.strip() for t in tokens if t.strip()]


def _marker_at(line: str, i: int) -> Optional[str]:
    for length in _MARKER_LENGTHS:
        candidate = line[i:i + length]
        if len(candidate) == length and candidate in _MARKERS:
            return candidate
    return None


def _normalize(text: str) -> str:
    # Only ASCII capitals are folded; CJK must stay untouched
    return "".join(chr(ord(c) + 32) if "A" <= c <= "Z" else c for c in text)


def _tags_compatible(left: str, right: str) -> bool:
    # Untagged segments (options usually omit the part of speech) match any tag
    return not left or not right or len(left) == len(right)


class LexicalMemory:
    """Stores learned words and answers fuzzy match queries in both directions."""

    def __init__(self):
        self._entries: "OrderedDict[str, List[Segment]]" = OrderedDict()

    def learn(self, word: str, definition_lines: Sequence[str]) -> List[Segment]:
        """
        Store word -> definition, replacing any previous entry for the word.

        Raises:
            ValueError: word is not 2-32 letters, or the definition is empty
        """
        if not word or not BARE_WORD.match(word.strip()):
            raise ValueError(f"Not a learnable word: {word!r}")
        if isinstance(definition_lines, str):
            definition_lines = [definition_lines]
        segments = [s for s in parse_segments(definition_lines) if s.tag or s.body.strip()]
        if not segments:
            raise ValueError(f"Empty definition for {word!r}")
        self._entries[word.strip().lower()] = segments
        return segments

    def get_learned_count(self) -> int:
        return len(self._entries)

    def entry(self, word: str) -> Optional[List[Segment]]:
        return self._entries.get((word or "").strip().lower())

    def words(self) -> List[str]:
        return list(self._entries)

    def forget_all(self):
        self._entries.clear()

    def __contains__(self, word: str) -> bool:
        return self.entry(word) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def match(self, word: str, options: Sequence[str]) -> int:
        """Index of the option that best matches the learned definition of word (0 if unknown)."""
        return self.score(MatchQuery(word, list(options), Direction.WORD_TO_DEFINITION)).best_index

    def match_by_definition(self, definition: str, options: Sequence[str]) -> int:
        """Index of the English option whose learned definition best matches definition."""
        return self.score(MatchQuery(definition, list(options), Direction.DEFINITION_TO_WORD)).best_index

    def score(self, query: MatchQuery) -> MatchResult:
        if not query.candidates:
            return MatchResult(0, 0.0)

        if query.direction == Direction.WORD_TO_DEFINITION:
            stored = self.entry(query.subject)
            if stored is None:
                return MatchResult(0, 0.0)
            scored = [_score_segments(stored, parse_segments([c])) for c in query.candidates]
        else:
            asked = parse_segments([query.subject])
            scored = []
            for candidate in query.candidates:
                stored = self.entry(candidate)
                scored.append(_score_segments(stored, asked) if stored else (0.0, 0))

        scores = [s for s, _ in scored]
        best = 0
        for i in range(1, len(scores)):
            if scores[i] > scores[best]:
                best = i

        if all(s == scores[0] for s in scores):
            confidence = 0.0
        else:
            confidence = scored[best][1] / 100.0
        return MatchResult(best, confidence)


def _score_segments(stored: List[Segment], asked: List[Segment]) -> Tuple[float, int]:
    """Normalized score plus the best single token similarity seen."""
    score = 0.0
    count = 1
    top = 0
    for a in asked:
        for s in stored:
            if not _tags_compatible(s.tag, a.tag):
                count += 1
                continue
            for lt in split_tokens(s.body):
                for rt in split_tokens(a.body):
                    sim = levenshtein_similarity(lt, rt)
                    score += sim
                    if sim >= EXACT_THRESHOLD:
                        score += EXACT_BONUS
                    top = max(top, sim)
                    count += 1
    return score / count, top
