import math

import pytest
from ontodx.similarity import similarity


def test_disjoint_inputs_score_zero():
    assert similarity(["a", "b"], ["c", "d"]) == 0.0


@pytest.mark.parametrize("terms", [["a"], ["a", "b", "c"], ["a", "a", "b"]])
def test_identical_inputs_score_one(terms):
    assert similarity(terms, list(terms)) == pytest.approx(1.0)
    assert similarity(terms, list(terms)) <= 1.0


@pytest.mark.parametrize("other", [[], ["a"], ["a", "b"]])
def test_empty_side_scores_zero(other):
    """No division by zero: an empty vector has zero magnitude."""
    assert similarity([], other) == 0.0
    assert similarity(other, []) == 0.0


@pytest.mark.parametrize(
    "a, b",
    [
        (["a", "b"], ["b", "c", "d"]),
        (["a", "a", "b"], ["a", "c"]),
        (["x"], ["x", "y", "z", "z"]),
    ],
)
def test_similarity_is_symmetric(a, b):
    assert similarity(a, b) == similarity(b, a)


def test_partial_overlap_is_cosine_of_presence_vectors():
    # {a, b} vs {b, c}: dot = 1, norms = sqrt(2) each
    assert similarity(["a", "b"], ["b", "c"]) == pytest.approx(0.5)
    assert similarity(["a", "b", "c", "d"], ["a"]) == pytest.approx(0.5)


def test_duplicates_count_as_term_frequency():
    # a=(2,1) over {x, y}; b=(1,0): cos = 2 / sqrt(5)
    assert similarity(["x", "x", "y"], ["x"]) == pytest.approx(2 / math.sqrt(5))
    assert similarity(["x", "x", "y"], ["x"]) != similarity(["x", "y"], ["x"])


def test_order_does_not_matter():
    assert similarity(["a", "b", "c"], ["c", "a"]) == similarity(["c", "b", "a"], ["a", "c"])
