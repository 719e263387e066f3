"""
Fuzzy Matcher

Decides whether, and how strongly, takeoff item text matches the keywords
extracted from a question. Construction vocabulary is full of synonyms
(roofing vs. shingles) and plural noise, so scoring is tiered:
exact substring > word containment > edit-distance similarity.
"""

import re
from typing import Iterable, List, Optional, Set

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")

# Tokens this short are ignored for word-level comparison
MIN_WORD_LENGTH = 3

# Common construction term synonyms
TERM_SYNONYMS = {
    "roof": ["roof", "roofing", "shingle", "shingles", "asphalt", "tile", "membrane", "covering"],
    "window": ["window", "windows", "glazing", "fenestration"],
    "door": ["door", "doors", "entry", "entries"],
    "wall": ["wall", "walls", "partition", "partitions"],
    "floor": ["floor", "flooring", "slab", "concrete floor"],
    "foundation": ["foundation", "footing", "footings", "concrete foundation"],
}


def normalize(text: Optional[str]) -> str:
    """Lowercase, spell out '&', collapse non-alphanumerics to single spaces."""
    if not text:
        return ""
    lowered = text.lower().replace("&", "and")
    return _NON_ALNUM_RE.sub(" ", lowered).strip()


def strip_plural(word: str) -> str:
    """Strip common plural endings (simple heuristic)"""
    if len(word) <= 3:
        return word
    if word.endswith("ies"):
        return word[:-3] + "y"
    if word.endswith("es") and len(word) > 4:
        return word[:-2]
    if word.endswith("s"):
        return word[:-1]
    return word


def levenshtein(a: str, b: str) -> int:
    """Edit distance via the full dynamic-programming matrix"""
    rows, cols = len(a) + 1, len(b) + 1
    matrix = [[0] * cols for _ in range(rows)]

    for i in range(rows):
        matrix[i][0] = i
    for j in range(cols):
        matrix[0][j] = j

    for i in range(1, rows):
        for j in range(1, cols):
            cost = 0 if a[i - 1] == b[j - 1] else 1
            matrix[i][j] = min(
                matrix[i - 1][j] + 1,  # deletion
                matrix[i][j - 1] + 1,  # insertion
                matrix[i - 1][j - 1] + cost,  # substitution
            )

    return matrix[-1][-1]


def similarity(a: str, b: str) -> float:
    """1.0 for identical strings, 0.0 for completely different ones"""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / max_len


def expand_targets(targets: Iterable[str]) -> Set[str]:
    """Lowercase targets and add every synonym group a target touches."""
    expanded = set()
    for target in targets:
        if not target:
            continue
        lowered = target.lower()
        expanded.add(lowered)
        for key, synonyms in TERM_SYNONYMS.items():
            if key in lowered or any(s in lowered for s in synonyms):
                expanded.update(synonyms)
                expanded.add(key)
    return expanded


def _words(normalized: str) -> List[str]:
    return [w for w in normalized.split() if len(w) >= MIN_WORD_LENGTH]


def matches(text: Optional[str], targets: List[str], threshold: float = 0.7) -> bool:
    """Check if text mentions any target, tolerating plurals, synonyms and typos."""
    if not text or not targets:
        return False

    normalized_text = normalize(text)
    text_words = [strip_plural(w) for w in _words(normalized_text)]

    for target in expand_targets(targets):
        normalized_target = normalize(target)
        if not normalized_target:
            continue

        if normalized_target in normalized_text:
            return True

        for target_word in _words(normalized_target):
            stripped_target = strip_plural(target_word)
            for stripped_text in text_words:
                if stripped_target in stripped_text or stripped_text in stripped_target:
                    return True
                if similarity(stripped_text, stripped_target) >= threshold:
                    return True

    return False


def score(text: Optional[str], targets: List[str], threshold: float = 0.6) -> float:
    """
    Score how well text matches the targets (0-1).

    Exact substring → 1.0, word containment → 0.8,
    similarity at or above threshold → that similarity, otherwise 0.
    """
    if not text or not targets:
        return 0.0

    normalized_text = normalize(text)
    text_words = [strip_plural(w) for w in _words(normalized_text)]
    best = 0.0

    for target in expand_targets(targets):
        normalized_target = normalize(target)
        if not normalized_target:
            continue

        if normalized_target in normalized_text:
            return 1.0

        for target_word in _words(normalized_target):
            stripped_target = strip_plural(target_word)
            for stripped_text in text_words:
                if stripped_text == stripped_target:
                    return 1.0
                if stripped_target in stripped_text or stripped_text in stripped_target:
                    best = max(best, 0.8)
                    continue
                sim = similarity(stripped_text, stripped_target)
                if sim >= threshold:
                    best = max(best, sim)

    return best
