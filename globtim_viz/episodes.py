"""
Episode-level records of reinforcement-learning training runs.

Where :class:`~globtim_viz.training_dashboard.TrainingResults` holds three
flat per-episode series, a :class:`TrainingRun` keeps the full record of
every episode: reward, minimizers found, steps, function evaluations, L2
errors and how often each action was chosen.  The policy and dashboard
figures read runs through the helpers here.

JSON layout accepted by :func:`load_training_run_json`::

    {
      "episodes": [
        {"episode": 1, "total_reward": 3.5, "minimizers_found": 2,
         "steps_taken": 14, "function_evals": 900,
         "mean_l2_error": 0.02, "final_l2_error": 0.004,
         "actions": {"SUBDIVIDE": 6, "INCREASE_DEGREE": 7, "DONE": 1},
         "strategy_name": "dqn", "function_name": "himmelblau"},
        ...
      ],
      "aggregate": {...}          # optional, fields of RunAggregate
    }

A bare list of episodes is accepted as well.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Iterable

import numpy as np
import pandas as pd


# Action names emitted by the refinement agent.
SUBDIVIDE       = "SUBDIVIDE"
INCREASE_DEGREE = "INCREASE_DEGREE"
COMPUTE_MINIMA  = "COMPUTE_MINIMA"
DONE            = "DONE"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EpisodeRecord:
    """Metrics of one training episode."""

    episode: int
    total_reward: float
    minimizers_found: int
    steps_taken: int
    function_evals: int
    mean_l2_error: float
    final_l2_error: float
    actions: Mapping[str, int] = field(default_factory=dict)
    strategy_name: str = ""
    function_name: str = ""

    def action_count(self, name: str) -> int:
        return int(self.actions.get(name, 0))


@dataclass(frozen=True)
class RunAggregate:
    """Summary statistics of a whole run.

    ``success_rate`` is a fraction in [0, 1]; ``efficiency`` is minimizers
    found per function evaluation.
    """

    mean_reward: float
    std_reward: float
    mean_minimizers: float
    total_minimizers: int
    success_rate: float
    efficiency: float
    mean_steps: float
    mean_function_evals: float


@dataclass(frozen=True)
class TrainingRun:
    """All episodes of one strategy on one objective, in training order."""

    episodes: tuple[EpisodeRecord, ...]
    aggregate: RunAggregate | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "episodes", tuple(self.episodes))
        if not self.episodes:
            raise ValueError("No episodes to plot")

    @property
    def n_episodes(self) -> int:
        return len(self.episodes)

    @property
    def strategy_name(self) -> str:
        return self.episodes[0].strategy_name

    @property
    def function_name(self) -> str:
        return self.episodes[0].function_name

    @property
    def label(self) -> str:
        """``"<strategy> on <function>"``, dropping whichever part is empty."""
        if self.strategy_name and self.function_name:
            return f"{self.strategy_name} on {self.function_name}"
        return self.strategy_name or self.function_name

    def column(self, name: str) -> np.ndarray:
        """Per-episode values of the numeric field *name* as a float array."""
        return np.array([getattr(ep, name) for ep in self.episodes], dtype=np.float64)

    @property
    def episode_numbers(self) -> np.ndarray:
        return np.array([ep.episode for ep in self.episodes], dtype=np.int64)

    @property
    def action_names(self) -> list[str]:
        """Every action seen in any episode, sorted by name."""
        return sorted({name for ep in self.episodes for name in ep.actions})

    def action_counts(self, name: str) -> np.ndarray:
        return np.array([ep.action_count(name) for ep in self.episodes], dtype=np.int64)

    def action_matrix(self) -> pd.DataFrame:
        """Action counts: one row per episode (indexed by episode number),
        one column per action name, missing actions counted as 0."""
        names = self.action_names
        return pd.DataFrame(
            [[ep.action_count(a) for a in names] for ep in self.episodes],
            index=pd.Index(self.episode_numbers, name="episode"),
            columns=names,
            dtype=np.int64,
        )


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


_MISSING = object()


def _get(obj: Any, name: str, default: Any = _MISSING) -> Any:
    """Read *name* from a mapping or an attribute-bearing object."""
    if isinstance(obj, Mapping):
        value = obj.get(name, default)
    else:
        value = getattr(obj, name, default)
    if value is _MISSING:
        raise ValueError(f"episode is missing required field {name!r}")
    return value


_NUMERIC_FIELDS = (
    ("episode", int),
    ("total_reward", float),
    ("minimizers_found", int),
    ("steps_taken", int),
    ("function_evals", int),
    ("mean_l2_error", float),
    ("final_l2_error", float),
)


def episode_from_dict(raw: Any) -> EpisodeRecord:
    """Build an :class:`EpisodeRecord` from a mapping or attribute-bearing object.

    Raises
    ------
    ValueError
        If a numeric field is absent.  ``actions``, ``strategy_name`` and
        ``function_name`` are optional.
    """
    if isinstance(raw, EpisodeRecord):
        return raw
    values = {name: cast(_get(raw, name)) for name, cast in _NUMERIC_FIELDS}

    actions = _get(raw, "actions", None) or {}
    return EpisodeRecord(
        **values,
        actions={str(k): int(v) for k, v in actions.items()},
        strategy_name=str(_get(raw, "strategy_name", "") or ""),
        function_name=str(_get(raw, "function_name", "") or ""),
    )


def aggregate_from_dict(raw: Mapping[str, Any]) -> RunAggregate:
    missing = [f.name for f in fields(RunAggregate) if f.name not in raw]
    if missing:
        raise ValueError(f"aggregate is missing required field(s) {missing}")
    return RunAggregate(**{f.name: raw[f.name] for f in fields(RunAggregate)})


def run_from_records(records: Iterable[Any], aggregate: Any = None) -> TrainingRun:
    """Build a :class:`TrainingRun` from episode mappings or objects."""
    if aggregate is not None and not isinstance(aggregate, RunAggregate):
        aggregate = aggregate_from_dict(aggregate)
    return TrainingRun(
        episodes=tuple(episode_from_dict(r) for r in records),
        aggregate=aggregate,
    )


def aggregate_run(run: TrainingRun, expected_minima: float | None = None) -> RunAggregate:
    """Compute summary statistics from the episodes of *run*.

    An episode succeeds when it finds at least *expected_minima* minimizers;
    without an expected count the success rate is NaN.  The reward spread is
    the sample standard deviation (0 for a single episode).
    """
    rewards = run.column("total_reward")
    minimizers = run.column("minimizers_found")
    evals = run.column("function_evals")

    if expected_minima is None:
        success_rate = math.nan
    else:
        success_rate = float(np.mean(minimizers >= expected_minima))

    total_evals = float(evals.sum())
    return RunAggregate(
        mean_reward=float(rewards.mean()),
        std_reward=float(rewards.std(ddof=1)) if rewards.shape[0] > 1 else 0.0,
        mean_minimizers=float(minimizers.mean()),
        total_minimizers=int(minimizers.sum()),
        success_rate=success_rate,
        efficiency=float(minimizers.sum() / total_evals) if total_evals > 0 else 0.0,
        mean_steps=float(run.column("steps_taken").mean()),
        mean_function_evals=float(evals.mean()),
    )


def with_aggregate(run: TrainingRun, expected_minima: float | None = None) -> TrainingRun:
    """*run* with its aggregate filled in when it has none."""
    if run.aggregate is not None:
        return run
    return TrainingRun(episodes=run.episodes, aggregate=aggregate_run(run, expected_minima))


def load_training_run_json(path: str | Path) -> TrainingRun:
    """Load a training run saved as JSON (see module docstring).

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the JSON is invalid, empty or incomplete.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Training run file not found: {path}")
    try:
        raw = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Could not parse training run JSON '{path}': {exc}") from exc

    if isinstance(raw, list):
        return run_from_records(raw)
    if not isinstance(raw, dict) or "episodes" not in raw:
        raise ValueError(
            f"Training run JSON '{path}' must hold a list of episodes or an "
            "object with an 'episodes' list."
        )
    return run_from_records(raw["episodes"], aggregate=raw.get("aggregate"))
