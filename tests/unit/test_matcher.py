# Unit tests for:
#   - similarity()        (cosine, length mismatch, zero vectors)
#   - find_best_match()   (threshold, ties, empty gallery)
#   - MatchResult
#
# Pure numpy — no models required.

from __future__ import annotations

import numpy as np
import pytest

from config.settings import SIMILARITY_THRESHOLD
from core.gallery.models import SuspiciousRecord
from core.matcher import MatchResult, find_best_match, similarity


def _rand_vec(dim: int = 512, seed: int = 0) -> np.ndarray:
    """Return a random unit-normalised float32 vector."""
    rng = np.random.default_rng(seed)
    v = rng.standard_normal(dim).astype(np.float32)
    return v / np.linalg.norm(v)


def _record(signature, name: str = "a.jpg") -> SuspiciousRecord:
    return SuspiciousRecord(
        filename=name,
        storage_path=f"/uploads/{name}",
        signature=np.asarray(signature, dtype=np.float32),
    )


# ============================================================
# similarity()
# ============================================================

class TestSimilarity:

    def test_identical_vectors_score_one(self):
        v = _rand_vec(seed=1)
        assert similarity(v, v) == pytest.approx(1.0, abs=1e-6)

    def test_opposite_vectors_score_minus_one(self):
        v = _rand_vec(seed=2)
        assert similarity(v, -v) == pytest.approx(-1.0, abs=1e-6)

    def test_orthogonal_vectors_score_zero(self):
        assert similarity(np.array([1.0, 0.0]), np.array([0.0, 1.0])) == pytest.approx(0.0)

    def test_symmetric(self):
        a, b = _rand_vec(seed=3), _rand_vec(seed=4)
        assert similarity(a, b) == pytest.approx(similarity(b, a))

    def test_scale_invariant(self):
        a, b = _rand_vec(seed=5), _rand_vec(seed=6)
        assert similarity(a * 7.5, b) == pytest.approx(similarity(a, b), abs=1e-6)

    def test_exact_value(self):
        assert similarity(np.array([1.0, 0.0]), np.array([3.0, 4.0])) == pytest.approx(0.6)

    def test_length_mismatch_scores_zero(self):
        assert similarity(_rand_vec(512), _rand_vec(128)) == 0.0

    def test_zero_vector_scores_zero(self):
        assert similarity(np.zeros(512), _rand_vec()) == 0.0
        assert similarity(_rand_vec(), np.zeros(512)) == 0.0

    def test_result_in_range(self):
        for seed in range(10):
            s = similarity(_rand_vec(seed=seed), _rand_vec(seed=seed + 100))
            assert -1.0 <= s <= 1.0

    def test_returns_python_float(self):
        assert isinstance(similarity(_rand_vec(), _rand_vec(seed=9)), float)


# ============================================================
# find_best_match()
# ============================================================

class TestFindBestMatch:

    def test_empty_gallery(self):
        result = find_best_match(_rand_vec(), [])
        assert result.record is None
        assert result.similarity == 0.0
        assert result.best_similarity == 0.0
        assert not result.is_match

    def test_match_above_threshold(self):
        v = _rand_vec(seed=1)
        target = _record(v, "target.jpg")
        others = [_record(_rand_vec(seed=s), f"{s}.jpg") for s in range(10, 15)]
        result = find_best_match(v, others + [target])
        assert result.is_match
        assert result.record.record_id == target.record_id
        assert result.similarity == pytest.approx(1.0, abs=1e-6)

    def test_no_match_below_threshold(self):
        gallery = [_record(_rand_vec(seed=s)) for s in range(20, 25)]
        result = find_best_match(_rand_vec(seed=1), gallery)
        assert result.record is None
        assert result.similarity == 0.0
        assert result.best_similarity < SIMILARITY_THRESHOLD

    def test_best_similarity_reported_without_match(self):
        query = np.array([1.0, 0.0])
        gallery = [_record([3.0, 4.0])]  # similarity 0.6
        result = find_best_match(query, gallery, threshold=0.85)
        assert result.record is None
        assert result.best_similarity == pytest.approx(0.6)

    def test_threshold_is_inclusive(self):
        query = np.array([1.0, 0.0])
        gallery = [_record([3.0, 4.0])]
        result = find_best_match(query, gallery, threshold=0.6)
        assert result.is_match
        assert result.similarity == pytest.approx(0.6)

    def test_highest_similarity_wins(self):
        query = np.array([1.0, 0.0])
        weak = _record([1.0, 0.2], "weak.jpg")
        strong = _record([1.0, 0.05], "strong.jpg")
        result = find_best_match(query, [weak, strong], threshold=0.5)
        assert result.record.record_id == strong.record_id

    def test_tie_keeps_earliest_record(self):
        v = np.array([1.0, 0.0, 0.0])
        first = _record(v, "first.jpg")
        second = _record(v, "second.jpg")
        result = find_best_match(v, [first, second], threshold=0.5)
        assert result.record.record_id == first.record_id

    def test_negative_similarities_never_match(self):
        v = _rand_vec(seed=1)
        result = find_best_match(v, [_record(-v)], threshold=0.0)
        assert result.record is None
        assert result.best_similarity == 0.0

    def test_mismatched_dimension_records_ignored(self):
        v = _rand_vec(512, seed=1)
        result = find_best_match(v, [_record(_rand_vec(128, seed=1))], threshold=0.0)
        assert result.record is None

    def test_matched_record_similarity_never_below_threshold(self):
        gallery = [_record(_rand_vec(8, seed=s)) for s in range(50)]
        for seed in range(50, 60):
            result = find_best_match(_rand_vec(8, seed=seed), gallery, threshold=0.7)
            if result.is_match:
                assert result.similarity >= 0.7
            assert result.best_similarity >= result.similarity


class TestMatchResult:

    def test_repr_without_record(self):
        r = MatchResult(record=None, similarity=0.0, best_similarity=0.42)
        assert "none" in repr(r)
        assert "0.4200" in repr(r)

    def test_is_frozen(self):
        r = MatchResult(record=None, similarity=0.0, best_similarity=0.0)
        with pytest.raises(AttributeError):
            r.similarity = 1.0  # type: ignore[misc]
