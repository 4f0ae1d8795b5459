"""
Answer normalization for quiz comparisons.

Answers are compared after lowercasing, trimming and collapsing whitespace.
Runs of spelled-out number words are rewritten as digits, so "Seven" and "7"
compare equal, as do "twelve tribes" and "12 tribes".
"""
from typing import List, Optional

from word2number import w2n


# "point" is a decimal marker for word2number and never a number on its own
NUMBER_WORDS = frozenset(word for word in w2n.american_number_system if word != "point")

SCALE_WORDS = frozenset({"hundred", "thousand", "million", "billion"})
TEEN_WORDS = frozenset({
    "ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen",
    "sixteen", "seventeen", "eighteen", "nineteen",
})
TENS_WORDS = frozenset({"twenty", "thirty", "forty", "fifty", "sixty", "seventy", "eighty", "ninety"})


def _is_number_token(token: str) -> bool:
    parts = token.split("-")
    return all(part in NUMBER_WORDS for part in parts if part) and any(parts)


def _word_class(token: str) -> str:
    """Classify a number token by its last part: scale, tens, teen or unit."""
    last = [part for part in token.split("-") if part][-1]
    if last in SCALE_WORDS:
        return "scale"
    if last in TENS_WORDS:
        return "tens"
    if last in TEEN_WORDS:
        return "teen"
    return "unit"


def _continues_number(previous: str, token: str) -> bool:
    """
    Whether token extends the number ending in previous.

    "twenty five" and "hundred six" are one number; "one two" and
    "twenty thirty" are two.
    """
    previous_class = _word_class(previous)
    token_class = _word_class(token)
    if previous_class == "scale" or token_class == "scale":
        return True
    if previous_class == "tens":
        return token_class == "unit" and "-" not in token
    return False


def _convert_run(words: List[str]) -> Optional[str]:
    """Convert a run of number words to a digit string, or None."""
    spoken = list(words)
    if spoken[0] == "a":
        spoken[0] = "one"
    try:
        value = w2n.word_to_num(" ".join(spoken))
    except (ValueError, IndexError):
        # word2number rejects some orderings ("thousand one") with IndexError
        return None
    if value is None:
        return None
    return str(value)


def normalize_answer(raw) -> str:
    """
    Canonicalize a free-text answer for comparison.

    Args:
        raw: Submitted or stored answer text

    Returns:
        Lowercased, trimmed text with number words converted to digits
        when conversion succeeds
    """
    if not isinstance(raw, str):
        return ""

    tokens = raw.lower().split()
    converted: List[str] = []
    run: List[str] = []

    def flush():
        if not run:
            return
        digits = _convert_run(run)
        if digits is None:
            converted.extend(run)
        else:
            converted.append(digits)
        run.clear()

    for index, token in enumerate(tokens):
        following = tokens[index + 1] if index + 1 < len(tokens) else ""

        if _is_number_token(token):
            last = next((word for word in reversed(run) if word not in ("a", "and")), None)
            if last is not None and not _continues_number(last, token):
                flush()
            run.append(token)
            continue

        # "one hundred and five", "a thousand"
        if token == "and" and run and _word_class(run[-1]) == "scale" and _is_number_token(following):
            run.append(token)
            continue
        if token == "a" and _is_number_token(following) and _word_class(following) == "scale":
            flush()
            run.append(token)
            continue

        flush()
        converted.append(token)
    flush()

    return " ".join(converted)


def answers_match(given, expected) -> bool:
    """Exact equality of two answers after normalization."""
    normalized_expected = normalize_answer(expected)
    if not normalized_expected:
        return False
    return normalize_answer(given) == normalized_expected
