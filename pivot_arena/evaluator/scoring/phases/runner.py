"""Drive the tournament: per-round scoring, then each phase in order.

The runner owns the only mutable state of a run (``ModelStateManager``).
Each ``score_round`` call is a barrier: every model's prediction (or its
recorded failure) is scored before the returned clock moves on.
"""

from __future__ import annotations

import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pivot_arena.shared.enums import HORIZONS, ContractKey, Horizon, Side
from pivot_arena.shared.probability import PredictionInput, to_probability

from ...config.scoring_params import ArenaParams, get_arena_params
from ...state.clock import ClockState
from ...state.model_state import ModelStateManager
from ..audit.hashing import compute_hash
from ..audit.logging import ArenaAuditLogger
from ..audit.records import append_jsonl, build_round_record
from ..ensemble.online import (
    EnsemblePerformance,
    EnsembleRoundResult,
    MembershipMode,
    ModelHistory,
    ModelRoundPrediction,
    run_online_ensemble,
    score_ensemble,
)
from ..ground_truth.drawdown import Trade
from ..ground_truth.pivots import PivotAnnotation, resolve_pivot_ground_truth
from ..ground_truth.reference import resolve_no_new_low
from ..metrics.proper_scoring import compute_prevalence_log_loss, score_round
from ..timing import TimingMetrics, compute_timing_metrics, mean_time_to_pivot_ratio
from ..types import (
    Candle,
    DataError,
    GroundTruthLabel,
    ModelValidity,
    NotYetResolved,
    Resolution,
    Resolved,
    RoundScore,
)
from ..validity import ValidityGateEngine
from .phase0 import Phase0Decision, evaluate_phase0
from .phase1 import ModelQualificationInput, QualificationResult, mean_percentile, percentiles_by_model, qualify_models
from .phase2 import Phase2Result, compute_stability_metrics, run_phase2
from .phase3 import GlobalMetrics, GlobalRanking, HorizonMetrics, HorizonRanking, rank_global, rank_per_horizon

logger = logging.getLogger(__name__)

LabelInput = Resolution[Union[GroundTruthLabel, bool]]
PredictionKey = Union[ContractKey, Horizon, str]
ModelPredictions = Mapping[PredictionKey, Optional[PredictionInput]]


def _unwrap_label(item: LabelInput) -> Optional[Tuple[bool, Optional[float]]]:
    """(label, time_to_pivot_ratio), or None while unresolved."""
    if not isinstance(item, Resolved):
        return None
    value = item.value
    if isinstance(value, GroundTruthLabel):
        return value.label, value.time_to_pivot_ratio
    return bool(value), None


def _lookup_prediction(predictions: ModelPredictions, horizon: Horizon) -> Optional[PredictionInput]:
    for key in (ContractKey(Side.NO_NEW_LOW, horizon), horizon, str(ContractKey(Side.NO_NEW_LOW, horizon))):
        if key in predictions:
            return predictions[key]
    return None


class TournamentRunner:
    """Score rounds and apply the four tournament phases to one cohort.

    Args:
        model_ids: Models taking part
        params: Arena parameters (defaults to the global ones)
        audit: Audit logger for every decision
        symbol_id: Instrument id stamped on audit records
        records_path: Optional JSONL file receiving per-round audit records
    """

    def __init__(
        self,
        model_ids: Sequence[str],
        params: ArenaParams | None = None,
        audit: ArenaAuditLogger | None = None,
        symbol_id: str = "",
        records_path: Path | str | None = None,
    ):
        self.params = params or get_arena_params()
        self.manager = ModelStateManager(model_ids)
        self.audit = audit or ArenaAuditLogger()
        self.symbol_id = symbol_id
        self.records_path = Path(records_path) if records_path is not None else None
        self.validity_engine = ValidityGateEngine(self.params)

        self.rounds_scored = 0
        self.labels_by_round: Dict[Horizon, List[Optional[bool]]] = {h: [] for h in HORIZONS}
        self.validity: Dict[str, ModelValidity] = {}
        self.phase0_decisions: Dict[str, Phase0Decision] = {}
        self.qualification: Optional[QualificationResult] = None
        self.phase2_result: Optional[Phase2Result] = None

    # ─────────────────────────────────────────────────────────────────────
    # Rounds
    # ─────────────────────────────────────────────────────────────────────

    def label_counts(self) -> Dict[Horizon, Tuple[int, int]]:
        out = {}
        for h, labels in self.labels_by_round.items():
            resolved = [y for y in labels if y is not None]
            t = sum(1 for y in resolved if y)
            out[h] = (t, len(resolved) - t)
        return out

    def prevalence_log_loss(self) -> Dict[Horizon, float]:
        return {h: compute_prevalence_log_loss(t, f) for h, (t, f) in self.label_counts().items()}

    def resolve_labels(
        self,
        candles: Mapping[Horizon, Sequence[Candle]],
        clock: ClockState,
    ) -> Dict[Horizon, LabelInput]:
        """Resolve every horizon at the clock's snap time.

        ``candles`` holds each horizon's own bar timeframe (5m bars for 15m,
        15m bars for 1h, and so on).

        A horizon without enough candles stays NotYetResolved and is skipped
        by ``score_round``; it never receives a default label.
        """
        out: Dict[Horizon, LabelInput] = {}
        for h in HORIZONS:
            try:
                out[h] = Resolved(resolve_no_new_low(candles.get(h, ()), clock.snap_ms, h))
            except DataError as e:
                logger.warning(f"Round {clock.round_number} {h}: label unavailable ({e})")
                out[h] = NotYetResolved(str(e))
        return out

    def resolve_pivot_labels(
        self,
        annotations: Mapping[Horizon, Sequence[PivotAnnotation]],
        trades: Sequence[Trade],
        clock: ClockState,
    ) -> Dict[Horizon, LabelInput]:
        """Resolve every horizon from pivot annotations and the drawdown gate.

        Labels carry the first pivot time and time-to-pivot ratio, which feed
        the timing metrics and the early bonus in the global ranking. A
        horizon missing from ``annotations``, or with no entry price, stays
        NotYetResolved.
        """
        out: Dict[Horizon, LabelInput] = {}
        for h in HORIZONS:
            if h not in annotations:
                out[h] = NotYetResolved("no annotations")
                continue
            try:
                gt = resolve_pivot_ground_truth(h, clock.snap_ms, annotations[h], trades)
            except DataError as e:
                logger.warning(f"Round {clock.round_number} {h}: pivot label unavailable ({e})")
                out[h] = NotYetResolved(str(e))
                continue
            out[h] = Resolved(gt.to_label())
        return out

    def score_round(
        self,
        clock: ClockState,
        labels: Mapping[Horizon, LabelInput],
        predictions: Mapping[str, ModelPredictions],
    ) -> ClockState:
        """Score every active model for one round and return the next clock.

        A missing, None or malformed prediction is recorded as a failure for
        that model and horizon; it never aborts the round.
        """
        r = clock.round_number
        resolved: Dict[Horizon, Tuple[bool, Optional[float]]] = {}
        for h in HORIZONS:
            unwrapped = _unwrap_label(labels.get(h, NotYetResolved("missing")))
            self.labels_by_round[h].extend([None] * (r + 1 - len(self.labels_by_round[h])))
            if unwrapped is not None:
                resolved[h] = unwrapped
                self.labels_by_round[h][r] = unwrapped[0]

        active = self.manager.get_active_models()
        self.manager.begin_round(active)
        prevalence = self.prevalence_log_loss()
        extreme = self.params.phase0.extreme_error_threshold
        records: List[Dict[str, Any]] = []
        failures = 0

        for model_id in active:
            model_preds = predictions.get(model_id, {})
            for h, (label, ttp) in resolved.items():
                raw = _lookup_prediction(model_preds, h)
                if raw is None:
                    self.manager.record_failure(model_id, h, r)
                    failures += 1
                    continue
                try:
                    p = to_probability(raw)
                except ValueError as e:
                    logger.warning(f"Round {r} {model_id} {h}: rejected prediction ({e})")
                    self.manager.record_failure(model_id, h, r)
                    failures += 1
                    continue
                score = score_round(r, h, p, label, extreme_threshold=extreme, time_to_pivot_ratio=ttp)
                self.manager.add_round_score(model_id, score)
                records.append(build_round_record(
                    model_id,
                    score,
                    symbol_id=self.symbol_id,
                    snap_ms=clock.snap_ms,
                    prevalence_log_loss=prevalence.get(h),
                ))

        if self.records_path is not None and records:
            append_jsonl(self.records_path, records)
        round_hash = compute_hash({"round": r, "records": [rec["record_hash"] for rec in records]})
        self.audit.log_round_scored(r, len(active), failures, round_hash)
        self.rounds_scored += 1
        return clock.advance()

    # ─────────────────────────────────────────────────────────────────────
    # Phases
    # ─────────────────────────────────────────────────────────────────────

    def _eliminate(self, model_id: str, phase: int, reason: str) -> None:
        if self.manager.get(model_id).is_active:
            self.manager.eliminate_model(model_id, phase, reason)
            self.audit.log_model_eliminated(model_id, phase, reason)

    def _disqualify(self, model_id: str, horizon: Horizon, phase: int, reason: str) -> None:
        if self.manager.is_qualified_for_horizon(model_id, horizon):
            self.manager.disqualify_from_horizon(model_id, horizon, phase, reason)
            self.audit.log_horizon_disqualified(model_id, horizon, phase, reason)

    def _finish_phase(self, phase: int) -> None:
        for model_id in self.manager.get_active_models():
            if not self.manager.has_qualified_horizons(model_id):
                self._eliminate(model_id, phase, "No qualified horizons")
        self.audit.log_phase_complete(
            phase,
            self.manager.get_active_models(),
            [s.model_id for s in self.manager.get_eliminated_models()],
        )
        self.manager.advance_phase()

    def run_phase0(self) -> Dict[str, Phase0Decision]:
        for model_id in self.manager.get_active_models():
            state = self.manager.get(model_id)
            decision = evaluate_phase0(model_id, state.scores, self.params)
            self.phase0_decisions[model_id] = decision
            if decision.eliminated:
                self._eliminate(model_id, 0, decision.reason or "Failed sanity check")
                continue
            for h, reason in decision.disqualified_horizons.items():
                self._disqualify(model_id, h, 0, reason)
        self._finish_phase(0)
        return self.phase0_decisions

    def run_validity(self) -> Dict[str, ModelValidity]:
        """Gate every active model on every horizon it was asked about."""
        self.validity = {}
        for model_id in self.manager.get_active_models():
            state = self.manager.get(model_id)
            inputs = {}
            for h in HORIZONS:
                failed = len(state.failed_rounds[h])
                total = state.effective_rounds(h) + failed
                if total > 0:
                    inputs[h] = (state.predictions(h), state.labels(h), failed, total)
            self.validity[model_id] = self.validity_engine.check_model(model_id, inputs)
        return self.validity

    def run_phase1(self) -> QualificationResult:
        validity = self.run_validity()
        inputs = []
        for model_id in self.manager.get_active_models():
            state = self.manager.get(model_id)
            means = {
                h: sum(state.losses(h)) / len(state.losses(h)) if state.losses(h) else math.nan
                for h in HORIZONS
            }
            valid = frozenset(validity[model_id].valid_horizons) & frozenset(state.qualified_horizons)
            inputs.append(ModelQualificationInput(model_id, means, valid))

        result = qualify_models(inputs, self.prevalence_log_loss(), self.params.phase1)
        self.qualification = result

        for m in inputs:
            invalid = validity[m.model_id].invalid_horizons
            for h in HORIZONS:
                if result.is_qualified(m.model_id, h):
                    continue
                ranked_out = m.model_id in result.by_horizon[h].disqualified
                if h in invalid:
                    reason = f"invalid: {', '.join(invalid[h])}"
                elif self.manager.is_qualified_for_horizon(m.model_id, h) and ranked_out:
                    reason = "below qualification threshold"
                else:
                    reason = "not ranked"
                self._disqualify(m.model_id, h, 1, reason)
        self._finish_phase(1)
        return result

    def run_phase2(self) -> Phase2Result:
        losses = {
            model_id: {h: self.manager.get(model_id).losses(h) for h in self.manager.get(model_id).qualified_horizons}
            for model_id in self.manager.get_active_models()
        }
        result = run_phase2(losses, self.params.phase2)
        self.phase2_result = result
        for model_id, reason in result.eliminated.items():
            self._eliminate(model_id, 2, reason)
        for model_id, by_horizon in result.disqualified_horizons.items():
            for h, reason in by_horizon.items():
                self._disqualify(model_id, h, 2, reason)
        self._finish_phase(2)
        return result

    def _stability(self, model_id: str, horizon: Horizon):
        if self.phase2_result is not None and model_id in self.phase2_result.scores:
            metrics = self.phase2_result.scores[model_id].stability.get(horizon)
            if metrics is not None:
                return metrics
        return compute_stability_metrics(self.manager.get(model_id).losses(horizon), self.params.phase2.window_size)

    def run_phase3(self) -> Tuple[Dict[Horizon, List[HorizonRanking]], List[GlobalRanking]]:
        """Per-horizon composite rankings plus the single global list."""
        metrics_by_horizon: Dict[Horizon, List[HorizonMetrics]] = {}
        for h in HORIZONS:
            rows = []
            for model_id in self.manager.get_models_for_horizon(h):
                losses = self.manager.get(model_id).losses(h)
                if not losses:
                    continue
                stab = self._stability(model_id, h)
                rows.append(HorizonMetrics(model_id, sum(losses) / len(losses), stab.best_window, stab.variance))
            metrics_by_horizon[h] = rows
        per_horizon = rank_per_horizon(metrics_by_horizon, self.params.phase3)
        ranking = rank_global(self.global_metrics(), self.params.phase3)
        self.audit.log_phase_complete(
            3,
            self.manager.get_active_models(),
            [s.model_id for s in self.manager.get_eliminated_models()],
        )
        return per_horizon, ranking

    def global_metrics(self) -> List[GlobalMetrics]:
        """Cross-horizon inputs to the global ranking for every ranked model.

        Models without a Phase 1 percentile on a qualified horizon are left out.
        """
        percentiles = percentiles_by_model(self.qualification) if self.qualification else {}
        global_rows = []
        for model_id in self.manager.get_active_models():
            state = self.manager.get(model_id)
            pct = mean_percentile({h: p for h, p in percentiles.get(model_id, {}).items() if h in state.qualified_horizons})
            horizons = [h for h in state.qualified_horizons if state.losses(h)]
            if pct is None or not horizons:
                continue
            stabs = [self._stability(model_id, h) for h in horizons]
            global_rows.append(GlobalMetrics(
                model_id=model_id,
                avg_percentile=pct,
                avg_best_window=sum(s.best_window for s in stabs) / len(stabs),
                avg_stability=sum(s.variance for s in stabs) / len(stabs),
                avg_time_to_pivot_ratio=mean_time_to_pivot_ratio(state.scores, horizons),
            ))
        return global_rows

    # ─────────────────────────────────────────────────────────────────────
    # Ensemble
    # ─────────────────────────────────────────────────────────────────────

    def run_ensemble(
        self,
        horizon: Horizon,
        mode: MembershipMode = "wide",
    ) -> Tuple[List[EnsembleRoundResult], EnsemblePerformance]:
        """Replay the online ensemble over every scored round of ``horizon``."""
        total = len(self.labels_by_round[horizon])
        states = self.manager.all_states()
        histories = [ModelHistory(s.model_id, s.loss_by_round(horizon, total)) for s in states]

        per_round: List[List[ModelRoundPrediction]] = [[] for _ in range(total)]
        for s in states:
            for score in s.scores[horizon]:
                per_round[score.round].append(ModelRoundPrediction(s.model_id, score.prediction))
            for r in s.failed_rounds[horizon]:
                per_round[r].append(ModelRoundPrediction(s.model_id, 0.5, failed=True))

        valid_models = None
        if mode == "strict":
            valid_models = {m for m, v in self.validity.items() if horizon in v.valid_horizons}
        results = run_online_ensemble(histories, per_round, horizon, self.params.ensemble, mode, valid_models)
        for res in results:
            self.audit.log_ensemble_round(horizon, res.round, res.p_ensemble, res.is_scoreable, res.weight_entropy)
        performance = score_ensemble(results, self.labels_by_round[horizon], horizon, self.params.ensemble.window_size)
        return results, performance

    def scores_for(self, model_id: str) -> Dict[Horizon, List[RoundScore]]:
        return self.manager.get(model_id).scores

    def timing_for(self, model_id: str) -> Dict[Horizon, TimingMetrics]:
        return compute_timing_metrics(self.manager.get(model_id).scores)


__all__ = ["TournamentRunner", "LabelInput"]
