"""
Tests for attention metrics and history helpers.
"""

import numpy as np
from synergy.utils import (
    compute_attention_metrics,
    history_matrix,
    jain_fairness,
    selection_shares,
)


class TestFairness:
    """Test Jain's index."""

    def test_even_allocation(self):
        assert np.isclose(jain_fairness([5, 5, 5, 5]), 1.0)

    def test_single_winner(self):
        assert np.isclose(jain_fairness([10, 0, 0, 0]), 0.25)

    def test_degenerate_inputs(self):
        assert jain_fairness([]) == 1.0
        assert jain_fairness([0, 0]) == 1.0


class TestAttentionMetrics:
    def test_metrics(self):
        metrics = compute_attention_metrics([30.0, 10.0], [1024, 2048])

        assert metrics['sti_mean'] == 20.0
        assert metrics['sti_min'] == 10.0
        assert metrics['sti_max'] == 30.0
        assert metrics['top_share'] == 0.75
        assert metrics['memory_total'] == 3072.0
        assert 0.5 <= metrics['fairness'] <= 1.0

    def test_empty(self):
        metrics = compute_attention_metrics([], [])

        assert metrics['sti_mean'] == 0.0
        assert metrics['fairness'] == 1.0


class TestHistory:
    def test_matrix_marks_missing_entries(self):
        history = [{"a": 50.0}, {"a": 49.5, "b": 20.0}]
        matrix = history_matrix(history, ["a", "b"])

        assert matrix.shape == (2, 2)
        assert np.isnan(matrix[0, 1])
        assert matrix[1, 1] == 20.0

    def test_empty_history(self):
        assert history_matrix([], ["a", "b"]).shape == (0, 2)

    def test_selection_shares(self):
        shares = selection_shares(["a", "a", "b", "a"], ["a", "b", "c"])

        assert shares == {"a": 0.75, "b": 0.25, "c": 0.0}
        assert selection_shares([], ["a"]) == {"a": 0.0}
