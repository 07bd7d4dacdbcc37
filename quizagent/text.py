"""
Text helpers shared by the classifier and the lexical memory.
"""

import re
from typing import List, Optional

# Longest first, the memory scanner relies on this order
POS_MARKERS = ("v.&n.", "prep.", "conj.", "pron.", "adj.", "adv.", "num.", "vt.", "vi.", "n.", "v.")

WORD_PATTERN = re.compile(r"(?<![A-Za-z])[A-Za-z]{2,32}(?![A-Za-z])")
BARE_WORD = re.compile(r"^[A-Za-z]{2,32}$")
POS_TAG_PATTERN = re.compile(r"[nvadj]{1,4}\.")

NON_LATIN_PATTERN = re.compile(
    "["
    "\u0400-\u04ff"  # Cyrillic
    "\u0590-\u06ff"  # Hebrew, Arabic
    "\u3040-\u30ff"  # Kana
    "\u3400-\u4dbf"  # CJK extension A
    "\u4e00-\u9fff"  # CJK unified
    "\uac00-\ud7af"  # Hangul
    "]"
)

# Tesseract splits CJK runs with spaces
_CJK_GAP = re.compile("(?<=[\u3400-\u9fff])[ \t]+(?=[\u3400-\u9fff])")


def has_non_latin(text: str) -> bool:
    return bool(text) and NON_LATIN_PATTERN.search(text) is not None


def find_word(text: str) -> Optional[str]:
    """Return the first 2-32 letter English word in text, if any."""
    if not text:
        return None
    match = WORD_PATTERN.search(text)
    return match.group(0) if match else None


def split_lines(text: str) -> List[str]:
    """Split OCR output into stripped, non-empty lines."""
    if not text:
        return []
    return [line.strip() for line in text.splitlines() if line.strip()]


def collapse_cjk_spaces(text: str) -> str:
    return _CJK_GAP.sub("", text)
