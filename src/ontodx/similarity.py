import math
import typing

from collections import Counter


def similarity(a: typing.Iterable[str], b: typing.Iterable[str]) -> float:
    """
    Cosine similarity of the term-frequency vectors of two identifier sequences.

    Repeated identifiers add weight. If either side is empty the similarity is 0.0.
    """
    tf_a = Counter(a)
    tf_b = Counter(b)
    norm_a = math.sqrt(sum(n * n for n in tf_a.values()))
    norm_b = math.sqrt(sum(n * n for n in tf_b.values()))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    dot = sum(n * tf_b[term] for term, n in tf_a.items())
    return min(1.0, dot / (norm_a * norm_b))
