"""
Quality metrics comparing returned ids with exact ground truth.
"""

from typing import Sequence


def count_true_positives(returned_ids: Sequence[int], true_ids: Sequence[int]) -> int:
    return len(set(returned_ids) & set(true_ids))


def compute_recall_at_k(returned_ids: Sequence[int], true_ids: Sequence[int], k: int) -> float:
    """
    Compute Recall@k for one query.

    Args:
        returned_ids: Ids returned by the backend, best first
        true_ids: Exact top-k ids (``min(k, N)`` long)
        k: Number of neighbors requested

    Returns:
        ``|returned[:k] ∩ true| / |true|``, or 1.0 if there is nothing to find
    """
    expected = min(k, len(true_ids))
    if expected == 0:
        return 1.0
    return count_true_positives(returned_ids[:k], true_ids[:expected]) / expected


def compute_precision(returned_ids: Sequence[int], true_ids: Sequence[int]) -> float:
    """
    Fraction of returned ids that are true neighbors.

    Equal to recall when exactly k ids are returned.
    """
    if not returned_ids:
        return 1.0 if not true_ids else 0.0
    tp = count_true_positives(returned_ids, true_ids)
    if tp == 0:
        return 0.0
    return tp / len(set(returned_ids))
