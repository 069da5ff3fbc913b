import re
from typing import Set


def trigrams(text: str) -> Set[str]:
    """
    Trigram set of a string, the way Postgres pg_trgm builds it: lower-cased
    alphanumeric words, each padded with two leading and one trailing space.
    """
    result: Set[str] = set()
    for word in re.findall(r"\w+", (text or "").lower()):
        padded = f"  {word} "
        for i in range(len(padded) - 2):
            result.add(padded[i : i + 3])
    return result


def similarity(a: str, b: str) -> float:
    """pg_trgm similarity(): shared trigrams over the union, in [0, 1]."""
    ta = trigrams(a)
    tb = trigrams(b)
    if not ta or not tb:
        return 0.0
    shared = len(ta & tb)
    return shared / float(len(ta) + len(tb) - shared)
