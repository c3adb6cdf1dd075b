from functools import lru_cache

from vault_policy.config.config_policy import (
    MIN_SUBSTRING_LENGTH,
    MIN_SUBSTRING_LENGTH_STEP,
    STRICTNESS_THRESHOLDS,
    SUBSTRING_CACHE_SIZE,
)
from vault_policy.utils.fuzzy_search import FuzzyMatch, FuzzySearch
from vault_policy.utils.secret_value import SecretValue


def detect_partial_string_match(a: str | SecretValue,
                                b: str | SecretValue,
                                strictness: str = "normal") -> FuzzyMatch | None:
    """
    Detect whether one string contains (part of) the other.

    Both strings are cut into overlapping substrings. The substrings of `a`
    are indexed for fuzzy search and every substring of `b` is looked up,
    longest first. Small edits, like swapping a letter for a look-alike
    digit or changing case, still match.

    Not suited for long strings.

    Args:
        a: String or SecretValue. A SecretValue is exposed while splitting.
        b: String or SecretValue.
        strictness: "loose", "normal" or "strict". Stricter needs a closer
            match.

    Returns:
        The best hit for the first substring of `b` that matched anything,
        or None if nothing matched.

    Raises:
        ValueError: If the strictness is unknown.
    """
    if strictness not in STRICTNESS_THRESHOLDS:
        raise ValueError(f"Unknown strictness '{strictness}'")
    threshold = STRICTNESS_THRESHOLDS[strictness]

    min_string_length = min(len(a), len(b))
    length_step = max(MIN_SUBSTRING_LENGTH_STEP, min_string_length // 5)

    a_substrings = possible_substrings(a, MIN_SUBSTRING_LENGTH, length_step)
    b_substrings = possible_substrings(b, MIN_SUBSTRING_LENGTH, length_step)

    matcher = FuzzySearch(a_substrings, threshold=threshold)

    for b_substring in b_substrings:
        matches = matcher.search(b_substring)
        if matches:
            return matches[0]

    return None


def possible_substrings(full_string: str | SecretValue, min_length: int,
                        length_step: int) -> list[str]:
    """
    Split up a string in many different ways.

    Plain strings are memoized. Secrets are exposed and split every time so
    no plaintext stays behind in the cache.
    """
    if isinstance(full_string, SecretValue):
        return make_possible_substrings(full_string.expose(), min_length, length_step)
    return list(_memoized_substrings(full_string, min_length, length_step))


def make_possible_substrings(exposed: str, min_length: int, length_step: int) -> list[str]:
    """
    All substrings from `min_length` up to the full string, longest first.

    Lengths grow by `length_step`. A string no longer than `min_length` is
    its own only substring.
    """
    if len(exposed) <= min_length:
        return [exposed]

    substrings = []
    for length in range(min_length, len(exposed), length_step):
        for i in range(len(exposed) - length):
            substrings.append(exposed[i:i + length])

    substrings.append(exposed)
    substrings.reverse()
    return substrings


@lru_cache(maxsize=SUBSTRING_CACHE_SIZE)
def _memoized_substrings(full_string: str, min_length: int, length_step: int) -> tuple[str, ...]:
    return tuple(make_possible_substrings(full_string, min_length, length_step))
