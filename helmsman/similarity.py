"""
N-gram similarity scoring used to resolve typed selectors against node names.

How it scores
- A string is case-folded, prefixed with a start-of-word marker and cut into
  every contiguous substring of length WINDOW ("bigrams"). Strings shorter
  than the window (only the empty string, once the marker is added) become a
  single gram made of the whole string.
- similarity(a, b) is the size of the multiset intersection of both gram
  bags: a gram shared twice by one side and three times by the other counts 2.
- normalized_similarity(a, b) divides by similarity(a, a), so 1.0 means the
  candidate contains every gram of the input. The marker makes prefixes count
  (an abbreviation keeps the opening gram of the word it abbreviates).

Examples
    >>> normalized_similarity("ad", "add")
    1.0
    >>> [c for c in rank("applepie", ["pie", "apple", "applepie"], 0)]
    ['applepie', 'apple', 'pie']

rank() is a stable sort: candidates with equal ratios keep declaration order,
which keeps resolution deterministic.
"""
import functools
import numbers
from collections import Counter

WINDOW = 2
MARKER = "\x02"


@functools.lru_cache(maxsize=4096)
def _grams(text, /):
    # Cached and shared: never mutate the returned counter.
    text = MARKER + text.casefold()
    if len(text) < WINDOW:
        return Counter((text,))
    return Counter(text[index:index + WINDOW] for index in range(len(text) - WINDOW + 1))


def ngrams(text, /):
    """
    Return the gram multiset of a string (a fresh Counter, safe to mutate).
    """
    if not isinstance(text, str):
        raise TypeError("ngrams() argument must be a string")
    return Counter(_grams(text))


def similarity(a, b, /):
    """
    Raw score: how many grams (with multiplicity) `a` and `b` share.
    """
    if not isinstance(a, str) or not isinstance(b, str):
        raise TypeError("similarity() arguments must be strings")
    return sum((_grams(a) & _grams(b)).values())


def normalized_similarity(a, b, /):
    """
    Ratio in [0, 1]: similarity(a, b) relative to the self-similarity of `a`.
    """
    return similarity(a, b) / similarity(a, a)


def score(input, candidate, /):
    """
    Best ratio of `input` against any name of `candidate`.

    `candidate` is either a plain string or an object exposing `names`
    (primary name first, aliases after), such as a tree node or a parameter.
    """
    names = (candidate,) if isinstance(candidate, str) else candidate.names
    return max((normalized_similarity(input, name) for name in names), default=0.0)


def rank(input, candidates, threshold, /):
    """
    Order candidates by descending ratio against `input`, dropping those below
    `threshold`.

    Parameters
    - input: str, the selector token.
    - candidates: iterable of strings or objects exposing `names`.
    - threshold: real number; ratios strictly below it are discarded. 0 keeps
      everything, anything above 1 keeps nothing.

    Returns
    - list of the retained candidates, best first; ties keep input order.
    """
    if not isinstance(input, str):
        raise TypeError("rank() first argument must be a string")
    if not isinstance(threshold, numbers.Real) or isinstance(threshold, bool):
        raise TypeError("rank() threshold must be a real number")

    scored = []
    for candidate in candidates:
        if (ratio := score(input, candidate)) >= threshold:
            scored.append((ratio, candidate))
    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [candidate for _, candidate in scored]


__all__ = (
    "WINDOW",
    "ngrams",
    "similarity",
    "normalized_similarity",
    "score",
    "rank",
)
