from __future__ import annotations

from .proper_scoring import (
    RANDOM_BASELINE,
    brier_binary,
    compute_prevalence_log_loss,
    log_loss_binary,
    score_round,
)
from .ranking import median, rank_with_ties, spearman_correlation, winsorize

__all__ = [
    "RANDOM_BASELINE",
    "brier_binary",
    "compute_prevalence_log_loss",
    "log_loss_binary",
    "score_round",
    "median",
    "rank_with_ties",
    "spearman_correlation",
    "winsorize",
]
