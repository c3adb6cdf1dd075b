"""
Approximate string search over a list of strings.

Bitap (shift-or) search with error tolerance. Every candidate gets a score
between 0 (exact) and 1 (no match); only candidates whose bitap score stays
within the threshold are returned. Scores are then weighted by the number of
words in the candidate, and results are sorted best first.
"""
import re
from dataclasses import dataclass

from vault_policy.config.config_policy import (
    FUZZY_DISTANCE,
    FUZZY_LOCATION,
    FUZZY_MAX_BITS,
    FUZZY_MIN_SCORE,
    FUZZY_NORM_MANTISSA,
)

_WORD = re.compile(r"[^ ]+")


@dataclass(frozen=True)
class FuzzyMatch:
    """
    A single search hit.

    Attributes:
        item: The matched candidate, as it was indexed.
        ref_index: Position of the candidate in the indexed list.
        score: 0 for an exact match, higher for weaker matches.
    """
    item: str
    ref_index: int
    score: float


def compute_score(pattern_len: int, errors: int = 0, current_location: int = 0,
                  expected_location: int = 0, distance: int = FUZZY_DISTANCE) -> float:
    """Score a match by error rate and distance from the expected location."""
    accuracy = errors / pattern_len
    proximity = abs(expected_location - current_location)
    if not distance:
        return 1.0 if proximity else accuracy
    return accuracy + proximity / distance


def pattern_alphabet(pattern: str) -> dict[str, int]:
    """Bit mask per character, marking where it occurs in the pattern."""
    mask: dict[str, int] = {}
    size = len(pattern)
    for i, char in enumerate(pattern):
        mask[char] = mask.get(char, 0) | (1 << (size - i - 1))
    return mask


def bitap_search(text: str, pattern: str, alphabet: dict[str, int], *,
                 location: int = FUZZY_LOCATION,
                 distance: int = FUZZY_DISTANCE,
                 threshold: float = 0.6) -> tuple[bool, float]:
    """
    Search for an approximate occurrence of `pattern` in `text`.

    Args:
        text: Text to search in.
        pattern: At most FUZZY_MAX_BITS characters.
        alphabet: Result of `pattern_alphabet(pattern)`.
        location: Where the match is expected.
        distance: How far from `location` a match may drift before its
            score reaches 1.
        threshold: Worst acceptable score.

    Returns:
        (is_match, score)
    """
    if len(pattern) > FUZZY_MAX_BITS:
        raise ValueError(f"Pattern length exceeds max of {FUZZY_MAX_BITS}.")

    pattern_len = len(pattern)
    text_len = len(text)
    expected_location = max(0, min(location, text_len))
    current_threshold = threshold
    best_location = expected_location

    # Exact occurrences tighten the threshold before the fuzzy pass
    index = text.find(pattern, best_location)
    while index > -1:
        score = compute_score(pattern_len, 0, index, expected_location, distance)
        current_threshold = min(score, current_threshold)
        best_location = index + pattern_len
        index = text.find(pattern, best_location)

    best_location = -1
    last_bits: list[int] = []
    final_score = 1.0
    bin_max = pattern_len + text_len
    mask = 1 << (pattern_len - 1)

    for i in range(pattern_len):
        # Binary search for how far from the expected location we may look
        # with this many errors
        bin_min = 0
        bin_mid = bin_max
        while bin_min < bin_mid:
            score = compute_score(pattern_len, i, expected_location + bin_mid,
                                  expected_location, distance)
            if score <= current_threshold:
                bin_min = bin_mid
            else:
                bin_max = bin_mid
            bin_mid = (bin_max - bin_min) // 2 + bin_min

        bin_max = bin_mid

        start = max(1, expected_location - bin_mid + 1)
        finish = min(expected_location + bin_mid, text_len) + pattern_len

        bits = [0] * (finish + 2)
        bits[finish + 1] = (1 << i) - 1

        j = finish
        while j >= start:
            current_location = j - 1
            char_match = alphabet.get(text[current_location], 0) if current_location < text_len else 0

            bits[j] = ((bits[j + 1] << 1) | 1) & char_match

            if i:
                bits[j] |= (((_bit(last_bits, j + 1) | _bit(last_bits, j)) << 1)
                            | 1 | _bit(last_bits, j + 1))

            if bits[j] & mask:
                final_score = compute_score(pattern_len, i, current_location,
                                            expected_location, distance)
                if final_score <= current_threshold:
                    current_threshold = final_score
                    best_location = current_location

                    if best_location <= expected_location:
                        break

                    start = max(1, 2 * expected_location - best_location)
            j -= 1

        # One more error can not beat the current best
        score = compute_score(pattern_len, i + 1, expected_location,
                              expected_location, distance)
        if score > current_threshold:
            break

        last_bits = bits

    return best_location >= 0, max(FUZZY_MIN_SCORE, final_score)


def _bit(bits: list[int], index: int) -> int:
    return bits[index] if index < len(bits) else 0


def token_norm(value: str, mantissa: int = FUZZY_NORM_MANTISSA) -> float:
    """Field length norm: 1 / sqrt(number of space separated words)."""
    num_tokens = len(_WORD.findall(value)) or 1
    return round(1 / num_tokens ** 0.5, mantissa)


class FuzzySearch:
    """
    Fuzzy index over a fixed list of strings.

    Args:
        items: Candidates to search in.
        threshold: Worst acceptable bitap score, 0.0 requires an exact match.
        case_sensitive: Compare case exactly. Off by default.
        location: Where in a candidate a match is expected.
        distance: How quickly the score degrades away from `location`.
    """

    def __init__(self, items, threshold: float = 0.6, case_sensitive: bool = False,
                 location: int = FUZZY_LOCATION, distance: int = FUZZY_DISTANCE):
        self.threshold = threshold
        self.case_sensitive = case_sensitive
        self.location = location
        self.distance = distance

        # (index, original, searchable text, norm)
        self._records = []
        for idx, item in enumerate(items):
            if not item.strip():
                continue
            text = item if case_sensitive else item.lower()
            self._records.append((idx, item, text, token_norm(item)))

    def search(self, pattern: str) -> list[FuzzyMatch]:
        """
        Find candidates containing an approximate occurrence of `pattern`.

        Returns:
            Matches sorted by score, then by index. Empty if none.
        """
        if not pattern:
            return []
        if not self.case_sensitive:
            pattern = pattern.lower()

        chunks = self._chunks(pattern)

        results = []
        for idx, item, text, norm in self._records:
            is_match, score = self._search_in(text, pattern, chunks)
            if not is_match:
                continue
            results.append(FuzzyMatch(item=item, ref_index=idx, score=score ** norm))

        results.sort(key=lambda match: (match.score, match.ref_index))
        return results

    def _search_in(self, text: str, pattern: str, chunks) -> tuple[bool, float]:
        if text == pattern:
            return True, 0.0

        total_score = 0.0
        has_matches = False
        for chunk, alphabet, start_index in chunks:
            is_match, score = bitap_search(
                text,
                chunk,
                alphabet,
                location=self.location + start_index,
                distance=self.distance,
                threshold=self.threshold,
            )
            if is_match:
                has_matches = True
            total_score += score

        if not has_matches:
            return False, 1.0
        return True, total_score / len(chunks)

    @staticmethod
    def _chunks(pattern: str) -> list[tuple[str, dict[str, int], int]]:
        """Split long patterns into pieces bitap can handle."""
        size = len(pattern)
        if size <= FUZZY_MAX_BITS:
            return [(pattern, pattern_alphabet(pattern), 0)]

        chunks = []
        remainder = size % FUZZY_MAX_BITS
        end = size - remainder
        for i in range(0, end, FUZZY_MAX_BITS):
            piece = pattern[i:i + FUZZY_MAX_BITS]
            chunks.append((piece, pattern_alphabet(piece), i))

        if remainder:
            start_index = size - FUZZY_MAX_BITS
            piece = pattern[start_index:]
            chunks.append((piece, pattern_alphabet(piece), start_index))

        return chunks
