"""Name similarity used to fold near-duplicate topics together.

    similarity = 0.7 * edit_similarity + 0.3 * word_overlap

``edit_similarity`` is ``1 - levenshtein(a, b) / max(len(a), len(b))`` over the
lower-cased, stripped names. ``word_overlap`` is the number of distinct shared
words divided by the distinct-word count of the longer name:
``|A & B| / max(|A|, |B|)``. Both parts are symmetric, so the blend is too.
"""

EDIT_WEIGHT = 0.7
WORD_WEIGHT = 0.3


def _normalize(name: str) -> str:
    return " ".join(name.lower().split())


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance with a rolling row."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, 1):
        current = [i]
        for j, char_b in enumerate(b, 1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def edit_similarity(a: str, b: str) -> float:
    a, b = _normalize(a), _normalize(b)
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


def word_overlap(a: str, b: str) -> float:
    words_a = set(_normalize(a).split())
    words_b = set(_normalize(b).split())
    largest = max(len(words_a), len(words_b))
    if largest == 0:
        return 0.0
    return len(words_a & words_b) / largest


def similarity(a: str, b: str) -> float:
    return EDIT_WEIGHT * edit_similarity(a, b) + WORD_WEIGHT * word_overlap(a, b)
