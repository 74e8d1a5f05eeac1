"""
How a refinement policy's decisions change during training.

The agent repeatedly chooses between splitting a subdomain (SUBDIVIDE) and
raising the polynomial degree (INCREASE_DEGREE).  These figures show that
choice across episodes, across states and within a single episode:

  plot_action_ratio_evolution       (SUBDIVIDE + 1) / (INCREASE_DEGREE + 1) per episode
  plot_action_stacked_area          share of every action per episode
  plot_state_action_heatmap         preference by L2 error and degree
  plot_policy_evolution_comparison  ratios and counts for several strategies
  plot_episode_decision_timeline    one episode, step by step

States are sequences ``[width, center, l2_error, degree, cond]``; only the
L2 error (index 2) and the degree (index 3) are used.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

import matplotlib
matplotlib.use("Agg")  # Non-interactive; safe for headless/CI environments
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
import numpy as np
import pandas as pd
import seaborn as sns

from .episodes import COMPUTE_MINIMA, DONE, INCREASE_DEGREE, SUBDIVIDE, TrainingRun
from .training_dashboard import ACCENT, titled
from .tree_plot import save_figure


STATE_L2_INDEX = 2
STATE_DEGREE_INDEX = 3
N_L2_EDGES = 10
LOG_OFFSET = 1e-10
MAX_SMOOTHING = 5

# Timeline rows, bottom to top; unknown actions land on row 0.
ACTION_ROWS = {SUBDIVIDE: 1, INCREASE_DEGREE: 2, COMPUTE_MINIMA: 3, DONE: 4}
ACTION_COLORS = {SUBDIVIDE: "red", INCREASE_DEGREE: "blue", COMPUTE_MINIMA: "green"}
OTHER_ACTION_COLOR = "gray"


def _finish(fig: Figure, output_path, dpi: int) -> Figure:
    fig.tight_layout()
    if output_path is not None:
        save_figure(fig, output_path, dpi=dpi, component="policy_evolution")
    return fig


# ---------------------------------------------------------------------------
# Action ratios
# ---------------------------------------------------------------------------


def action_ratios(run: TrainingRun) -> np.ndarray:
    """``(SUBDIVIDE + 1) / (INCREASE_DEGREE + 1)`` per episode.

    Above 1 the policy prefers splitting, below 1 raising the degree.
    """
    subdivide = run.action_counts(SUBDIVIDE)
    degree = run.action_counts(INCREASE_DEGREE)
    return (subdivide + 1) / (degree + 1)


def smoothing_window(n_episodes: int) -> int:
    """Half-width of the centred moving average: ``min(5, n // 2)``."""
    return min(MAX_SMOOTHING, n_episodes // 2)


def centred_mean(xs, half_window: int) -> np.ndarray:
    """Element i averages ``xs[i - half_window : i + half_window + 1]``,
    clipped at both ends."""
    if half_window < 0:
        raise ValueError(f"half_window must be >= 0, got {half_window}")
    series = pd.Series(np.asarray(xs, dtype=np.float64))
    return series.rolling(2 * half_window + 1, center=True, min_periods=1).mean().to_numpy()


def plot_action_ratio_evolution(
    run: TrainingRun,
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Raw SUBDIVIDE / INCREASE_DEGREE ratio per episode with a smoothed trend."""
    sns.set_theme(style="whitegrid")
    episodes = run.episode_numbers
    ratios = action_ratios(run)
    window = smoothing_window(run.n_episodes)

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.axhline(1.0, color="gray", linestyle="--", linewidth=1)
    ax.scatter(episodes, ratios, color="steelblue", s=40, alpha=0.5, label="Raw ratio")
    if window > 0:
        ax.plot(episodes, centred_mean(ratios, window), color="red", linewidth=3,
                label=f"Smoothed (window={window})")
    ax.set(xlabel="Episode", ylabel="SUBDIVIDE / INCREASE_DEGREE Ratio",
           title="Policy Decision Making")
    ax.legend(loc="upper right")
    fig.text(0.5, 0.01,
             "Ratio > 1: Prefers subdivision | Ratio < 1: Prefers degree increase",
             ha="center", fontsize=12)

    fig.suptitle(titled("Action Ratio Evolution", run.label), fontsize=18,
                 fontweight="bold", color=ACCENT)
    return _finish(fig, output_path, dpi)


# ---------------------------------------------------------------------------
# Action shares
# ---------------------------------------------------------------------------


def action_proportions(run: TrainingRun) -> pd.DataFrame:
    """Share of each action per episode; episodes without actions are all zero."""
    matrix = run.action_matrix()
    totals = matrix.sum(axis=1).clip(lower=1)
    return matrix.div(totals, axis=0)


def plot_action_stacked_area(
    run: TrainingRun,
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Stacked bands of action shares, actions stacked in name order.

    Raises
    ------
    ValueError
        If no episode recorded any action.
    """
    proportions = action_proportions(run)
    if proportions.shape[1] == 0:
        raise ValueError(f"No actions recorded in run '{run.label}'.")

    sns.set_theme(style="whitegrid")
    episodes = np.arange(1, run.n_episodes + 1)
    colors = sns.color_palette("colorblind", proportions.shape[1])

    fig, ax = plt.subplots(figsize=(10, 6))
    lower = np.zeros(run.n_episodes)
    for action, color in zip(proportions.columns, colors):
        upper = lower + proportions[action].to_numpy()
        ax.fill_between(episodes, lower, upper, color=color, alpha=0.6, label=action)
        lower = upper
    ax.set(xlabel="Episode", ylabel="Action Proportion",
           title="How does action distribution change?")
    ax.legend(loc="upper right")

    fig.suptitle(titled("Action Distribution Evolution", run.label), fontsize=18,
                 fontweight="bold", color=ACCENT)
    return _finish(fig, output_path, dpi)


# ---------------------------------------------------------------------------
# State-action map
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StateActionMap:
    """Binned SUBDIVIDE vs INCREASE_DEGREE preference.

    Attributes
    ----------
    l2_edges : np.ndarray
        ``N_L2_EDGES`` log-spaced bin edges over the observed L2 errors.
    degrees : np.ndarray
        Every integer degree from the smallest to the largest observed.
    subdivide_counts, degree_counts : np.ndarray
        Counts of shape ``(len(l2_edges) - 1, len(degrees))``.
    """

    l2_edges: np.ndarray
    degrees: np.ndarray
    subdivide_counts: np.ndarray
    degree_counts: np.ndarray

    @property
    def preference(self) -> np.ndarray:
        """``(subdivide - degree) / max(total, 1)`` per cell, in [-1, 1]."""
        total = self.subdivide_counts + self.degree_counts
        return (self.subdivide_counts - self.degree_counts) / np.maximum(total, 1)


def state_action_map(state_action_pairs: Sequence[tuple[Sequence[float], str]]) -> StateActionMap:
    """Count SUBDIVIDE and INCREASE_DEGREE choices per (L2 error, degree) cell.

    L2 errors outside the edge range fall into the first or last row.
    Other actions are ignored.

    Raises
    ------
    ValueError
        If *state_action_pairs* is empty.
    """
    if len(state_action_pairs) == 0:
        raise ValueError("No state-action pairs provided")

    l2 = np.array([float(s[STATE_L2_INDEX]) for s, _ in state_action_pairs])
    deg = np.array([int(s[STATE_DEGREE_INDEX]) for s, _ in state_action_pairs])
    actions = [a for _, a in state_action_pairs]

    l2_edges = np.logspace(
        np.log10(l2.min() + LOG_OFFSET), np.log10(l2.max() + LOG_OFFSET), N_L2_EDGES
    )
    degrees = np.arange(deg.min(), deg.max() + 1)
    n_rows = N_L2_EDGES - 1

    rows = np.clip(np.searchsorted(l2_edges, l2, side="right"), 1, n_rows) - 1
    cols = deg - degrees[0]

    subdivide = np.zeros((n_rows, degrees.shape[0]), dtype=np.int64)
    degree = np.zeros_like(subdivide)
    for r, c, action in zip(rows, cols, actions):
        if action == SUBDIVIDE:
            subdivide[r, c] += 1
        elif action == INCREASE_DEGREE:
            degree[r, c] += 1

    return StateActionMap(l2_edges=l2_edges, degrees=degrees,
                          subdivide_counts=subdivide, degree_counts=degree)


def plot_state_action_heatmap(
    state_action_pairs: Sequence[tuple[Sequence[float], str]],
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Preference map: red cells favour SUBDIVIDE, blue cells INCREASE_DEGREE."""
    sa_map = state_action_map(state_action_pairs)

    sns.set_theme(style="white")
    fig, ax = plt.subplots(figsize=(12, 8))

    x_edges = np.append(sa_map.degrees - 0.5, sa_map.degrees[-1] + 0.5)
    y_edges = sa_map.l2_edges
    if not y_edges[-1] > y_edges[0]:
        # All errors equal: give the single populated row half a decade each way.
        y_edges = y_edges[0] * np.logspace(-0.5, 0.5, N_L2_EDGES)

    mesh = ax.pcolormesh(x_edges, y_edges, sa_map.preference,
                         cmap="RdBu_r", vmin=-1, vmax=1)
    ax.set_yscale("log")
    ax.set_xticks(sa_map.degrees)
    ax.set(xlabel="Polynomial Degree", ylabel="L2 Error", title="Decision Boundaries")

    cbar = fig.colorbar(mesh, ax=ax, label="Preference")
    cbar.set_ticks([-1, 0, 1], labels=["Degree ↑", "Neutral", "Subdivide"])

    fig.text(0.5, 0.01,
             "Red = Agent prefers SUBDIVIDE | Blue = Agent prefers INCREASE_DEGREE",
             ha="center", fontsize=12)
    fig.suptitle("Policy State-Action Map: SUBDIVIDE vs INCREASE_DEGREE", fontsize=18,
                 fontweight="bold", color=ACCENT)
    return _finish(fig, output_path, dpi)


# ---------------------------------------------------------------------------
# Several strategies
# ---------------------------------------------------------------------------


def plot_policy_evolution_comparison(
    runs: Sequence[TrainingRun],
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Action ratios, raw SUBDIVIDE / INCREASE_DEGREE counts and mean counts
    per episode for several strategies."""
    if not runs:
        raise ValueError("No runs to compare")

    sns.set_theme(style="whitegrid")
    names = [run.strategy_name or f"run {i}" for i, run in enumerate(runs, start=1)]
    colors = sns.color_palette("colorblind", max(len(runs), 2))

    fig, (ax_ratio, ax_counts, ax_summary) = plt.subplots(3, 1, figsize=(14, 14))

    ax_ratio.axhline(1.0, color="gray", linestyle="--", linewidth=1)
    for run, name, color in zip(runs, names, colors):
        episodes = run.episode_numbers
        ax_ratio.plot(episodes, action_ratios(run), color=color, linewidth=2, label=name)
        ax_counts.plot(episodes, run.action_counts(SUBDIVIDE), color=color, linewidth=2,
                       linestyle="-", label=f"{name} - SUBDIVIDE")
        ax_counts.plot(episodes, run.action_counts(INCREASE_DEGREE), color=color, linewidth=2,
                       linestyle="--", label=f"{name} - DEGREE")
    ax_ratio.set(xlabel="Episode", ylabel="SUBDIVIDE / INCREASE_DEGREE",
                 title="Action Preference Evolution")
    ax_ratio.legend(loc="upper right")
    ax_counts.set(xlabel="Episode", ylabel="Action Count", title="Raw Action Frequencies")
    ax_counts.legend(loc="upper right")

    x = np.arange(1, len(runs) + 1)
    width = 0.35
    mean_subdivide = [run.action_counts(SUBDIVIDE).mean() for run in runs]
    mean_degree = [run.action_counts(INCREASE_DEGREE).mean() for run in runs]
    ax_summary.bar(x - width / 2, mean_subdivide, width=width, color=colors[0], label=SUBDIVIDE)
    ax_summary.bar(x + width / 2, mean_degree, width=width, color=colors[1], label=INCREASE_DEGREE)
    ax_summary.set_xticks(x, names)
    ax_summary.set(xlabel="Strategy", ylabel="Mean Action Count",
                   title="Average Action Distribution per Episode")
    ax_summary.legend(loc="upper right")

    fig.suptitle(titled("Policy Evolution Comparison", runs[0].function_name), fontsize=20,
                 fontweight="bold", color=ACCENT)
    return _finish(fig, output_path, dpi)


# ---------------------------------------------------------------------------
# One episode
# ---------------------------------------------------------------------------


def plot_episode_decision_timeline(
    episode: Any,
    history: Sequence[tuple[int, Sequence[float], str]],
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """L2 error, degree and chosen action at every step of one episode.

    Parameters
    ----------
    episode : EpisodeRecord or object
        Supplies ``episode``, ``strategy_name`` and ``function_name`` for
        the title.
    history : sequence of (step, state, action)
        Decisions in the order they were made.

    Raises
    ------
    ValueError
        If *history* is empty.
    """
    if len(history) == 0:
        raise ValueError("No state-action history provided")

    steps = np.array([h[0] for h in history])
    l2 = np.array([float(h[1][STATE_L2_INDEX]) for h in history])
    degrees = np.array([int(h[1][STATE_DEGREE_INDEX]) for h in history])
    actions = [h[2] for h in history]
    rows = [ACTION_ROWS.get(a, 0) for a in actions]
    colors = [ACTION_COLORS.get(a, OTHER_ACTION_COLOR) for a in actions]

    sns.set_theme(style="whitegrid")
    fig, (ax_l2, ax_deg, ax_act) = plt.subplots(3, 1, figsize=(12, 9), sharex=True)

    ax_l2.plot(steps, l2, color="blue", linewidth=2, marker="o", markersize=6)
    ax_l2.set_yscale("log")
    ax_l2.set(ylabel="L2 Error", title="Approximation Quality")

    ax_deg.plot(steps, degrees, color="green", linewidth=2, marker="o", markersize=6)
    ax_deg.set(ylabel="Polynomial Degree", title="Approximation Complexity")

    ax_act.plot(steps, rows, color="lightgray", alpha=0.5, zorder=1)
    ax_act.scatter(steps, rows, c=colors, s=80, zorder=2)
    ax_act.set_yticks(list(ACTION_ROWS.values()), list(ACTION_ROWS))
    ax_act.set(xlabel="Step", ylabel="Action", title="Decisions Made")

    label = " on ".join(
        part for part in (getattr(episode, "strategy_name", ""),
                          getattr(episode, "function_name", "")) if part
    )
    prefix = f"Episode {getattr(episode, 'episode', '?')} Decision Timeline"
    fig.suptitle(titled(prefix, label), fontsize=18, fontweight="bold", color=ACCENT)
    return _finish(fig, output_path, dpi)
