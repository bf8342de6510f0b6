"""Replay driver: one full tournament over historical candles.

Rounds run strictly in order. Within a round every model is asked for its
predictions, then the round is scored, then the clock advances. Phases run
when the round count reaches their configured boundary; any phase not yet
reached when the rounds run out is run at the end, in order. Phase 3 is the
final ranking, so the run stops once it has been reached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from pivot_arena.config.settings import RunSettings, load_settings
from pivot_arena.shared.enums import HORIZONS, Horizon
from pivot_arena.shared.logging import configure_logging, setup_events_logger

from .config.scoring_params import ArenaParams
from .config.timeframes import validate_all_timeframes
from .reports.invariants import RunInvariants, build_run_invariants
from .reports.leaderboard import LeaderboardEntry, build_leaderboards
from .scoring.ensemble.online import EnsemblePerformance
from .scoring.ground_truth.drawdown import Trade
from .scoring.ground_truth.pivots import PivotAnnotation
from .scoring.phases.phase3 import GlobalRanking, HorizonRanking
from .scoring.phases.runner import ModelPredictions, TournamentRunner
from .scoring.types import Candle
from .state.clock import ClockState

logger = logging.getLogger(__name__)

PredictFn = Callable[[str, ClockState], ModelPredictions]


@dataclass
class ReplayReport:
    rounds: int
    per_horizon: Dict[Horizon, List[HorizonRanking]] = field(default_factory=dict)
    global_ranking: List[GlobalRanking] = field(default_factory=list)
    leaderboards: Dict[Horizon, List[LeaderboardEntry]] = field(default_factory=dict)
    ensemble: Dict[Horizon, EnsemblePerformance] = field(default_factory=dict)
    invariants: Optional[RunInvariants] = None


def _collect_predictions(runner: TournamentRunner, predict: PredictFn, clock: ClockState) -> Dict[str, ModelPredictions]:
    out: Dict[str, ModelPredictions] = {}
    for model_id in runner.manager.get_active_models():
        try:
            out[model_id] = predict(model_id, clock)
        except Exception as e:
            # recorded as a failure on every horizon by score_round
            logger.warning(f"Round {clock.round_number}: prediction source for {model_id} failed: {e}")
            out[model_id] = {}
    return out


def run_replay(
    model_ids: Sequence[str],
    candles: Mapping[Horizon, Sequence[Candle]],
    predict: PredictFn,
    settings: RunSettings | None = None,
    params: ArenaParams | None = None,
    annotations: Optional[Mapping[Horizon, Sequence[PivotAnnotation]]] = None,
    trades: Sequence[Trade] = (),
) -> ReplayReport:
    """Run every round and phase for ``model_ids`` over ``candles``.

    Args:
        model_ids: Competing models
        candles: Bars per horizon, in that horizon's bar timeframe, covering
            every lookback and forward window
        predict: Returns a model's predictions for the round at ``clock``
        settings: Run settings (loaded from YAML and environment when omitted)
        params: Arena parameters (defaults to the global ones)
        annotations: Pivot annotations per horizon. When given, labels come
            from the pivot resolver and its drawdown gate instead of the
            no-new-low check on ``candles``
        trades: Trades for entry prices and drawdown, used with ``annotations``

    Returns:
        ReplayReport

    Raises:
        ConfigurationError: If the timeframe table is inconsistent or no
            start time is configured
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level)
    events = setup_events_logger(str(settings.log_dir), settings.events_retention_bytes)
    validate_all_timeframes()

    if settings.simulation_start_time is not None:
        clock = ClockState.initial(settings.simulation_start_time)
    else:
        clock = ClockState.from_env()

    runner = TournamentRunner(
        model_ids,
        params,
        symbol_id=settings.symbol_id,
        records_path=settings.results_dir / "rounds.jsonl",
    )
    ranked = False
    per_horizon: Dict[Horizon, List[HorizonRanking]] = {}
    global_ranking: List[GlobalRanking] = []

    def rank() -> None:
        nonlocal ranked, per_horizon, global_ranking
        per_horizon, global_ranking = runner.run_phase3()
        ranked = True

    schedule = settings.phases
    phases: List[tuple[int, Callable[[], object]]] = [
        (schedule.phase0_round, runner.run_phase0),
        (schedule.phase1_round, runner.run_phase1),
        (schedule.phase2_round, runner.run_phase2),
        (schedule.phase3_round, rank),
    ]
    next_phase = 0

    for _ in range(settings.total_rounds):
        if annotations is not None:
            labels = runner.resolve_pivot_labels(annotations, trades, clock)
        else:
            labels = runner.resolve_labels(candles, clock)
        predictions = _collect_predictions(runner, predict, clock)
        clock = runner.score_round(clock, labels, predictions)
        while next_phase < len(phases) and runner.rounds_scored >= phases[next_phase][0]:
            phases[next_phase][1]()
            events.event(f"Phase {next_phase} complete after round {runner.rounds_scored}")
            next_phase += 1
        if ranked:
            break
        if not runner.manager.get_active_models():
            logger.info(f"All models eliminated after round {runner.rounds_scored}")
            break

    while next_phase < len(phases):
        phases[next_phase][1]()
        next_phase += 1

    events.event(f"Tournament complete: {len(global_ranking)} ranked")

    report = ReplayReport(rounds=runner.rounds_scored, per_horizon=per_horizon, global_ranking=global_ranking)
    report.leaderboards = build_leaderboards(runner.manager.all_states(), runner.params.rankability)
    report.ensemble = {h: runner.run_ensemble(h)[1] for h in HORIZONS}
    report.invariants = build_run_invariants(
        runner.manager,
        runner.label_counts(),
        runner.validity or None,
        runner.params,
    )
    return report


__all__ = ["PredictFn", "ReplayReport", "run_replay"]
