"""Ground truth resolution.

Labels are computed only from candles (or annotations) available at the
horizon's cutoff, ``instant + horizon duration``.
"""

from .drawdown import compute_max_drawdown, is_drawdown_valid
from .pivots import resolve_pivot_ground_truth
from .reference import compute_reference_extreme, resolve_label, resolve_no_new_low

__all__ = [
    "compute_max_drawdown",
    "is_drawdown_valid",
    "resolve_pivot_ground_truth",
    "compute_reference_extreme",
    "resolve_label",
    "resolve_no_new_low",
]
