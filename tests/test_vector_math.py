"""
Vector Math Tests
=================
Cosine similarity and threshold filtering.

Run:
  pytest tests/test_vector_math.py -v
"""

import pytest

from knowledge.domain import cosine_similarity, find_similar


class TestCosineSimilarity:

    def test_identical_vectors(self):
        """same direction → 1.0"""
        assert cosine_similarity([1.0, 2.0, 3.0], [2.0, 4.0, 6.0]) == pytest.approx(1.0)

    def test_orthogonal_vectors(self):
        """orthogonal → 0.0"""
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)

    def test_opposite_vectors(self):
        """opposite → -1.0"""
        assert cosine_similarity([1.0, 1.0], [-1.0, -1.0]) == pytest.approx(-1.0)

    def test_zero_magnitude_is_zero(self):
        """a zero vector never divides by zero"""
        assert cosine_similarity([0.0, 0.0, 0.0], [1.0, 2.0, 3.0]) == 0.0
        assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0

    def test_zero_magnitude_on_either_side(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [0.0, 0.0, 0.0]) == 0.0
        assert cosine_similarity([0.0, 0.0, 0.0], [-1.0, 0.5, 2.0]) == 0.0

    @pytest.mark.parametrize("vec_a,vec_b", [
        ([0.3, -1.2, 4.0], [2.5, 0.7, -0.1]),
        ([1.0, 0.0, 0.0], [0.6, 0.8, 0.0]),
        ([-2.0, -3.0], [4.0, 1.0]),
    ])
    def test_symmetric(self, vec_a, vec_b):
        assert cosine_similarity(vec_a, vec_b) == pytest.approx(cosine_similarity(vec_b, vec_a))

    def test_length_mismatch_raises(self):
        with pytest.raises(ValueError):
            cosine_similarity([1.0, 2.0], [1.0, 2.0, 3.0])

    def test_result_stays_in_range(self):
        vec = [0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7]
        assert -1.0 <= cosine_similarity(vec, vec) <= 1.0


class TestFindSimilar:

    def test_filters_below_threshold(self):
        candidates = [("a", [1.0, 0.0]), ("b", [0.0, 1.0])]
        result = find_similar([1.0, 0.0], candidates, 0.5)
        assert [item for item, _ in result] == ["a"]

    def test_threshold_is_inclusive(self):
        """similarity exactly at the threshold is kept"""
        result = find_similar([1.0, 0.0], [("a", [1.0, 0.0])], 1.0)
        assert len(result) == 1

    def test_sorted_descending(self):
        candidates = [
            ("low", [1.0, 1.0]),
            ("high", [1.0, 0.1]),
            ("exact", [1.0, 0.0]),
        ]
        result = find_similar([1.0, 0.0], candidates, 0.0)
        assert [item for item, _ in result] == ["exact", "high", "low"]

    def test_ties_keep_corpus_order(self):
        candidates = [("first", [2.0, 0.0]), ("second", [1.0, 0.0]), ("third", [3.0, 0.0])]
        result = find_similar([1.0, 0.0], candidates, 0.5)
        assert [item for item, _ in result] == ["first", "second", "third"]

    def test_empty_candidates(self):
        assert find_similar([1.0, 0.0], [], 0.4) == []
