from .online import (
    compute_ensemble_prediction,
    compute_model_weights,
    run_online_ensemble,
    score_ensemble,
)

__all__ = [
    "compute_ensemble_prediction",
    "compute_model_weights",
    "run_online_ensemble",
    "score_ensemble",
]
