"""
Reinforcement-learning training dashboards.

Two kinds of input are drawn.

Flat series (:class:`TrainingResults`): per episode, the cumulative reward,
the number of minimizers found and the TD loss (NaN for episodes without a
learning update).

  plot_training_curves
      One run: discovery rate, reward signal, TD loss, final performance.

  plot_strategy_comparison
      Several runs (one per strategy) on the same objective.

Full episode records (:class:`~globtim_viz.episodes.TrainingRun`):

  plot_training_progress      reward, minimizers, steps and evaluations
  plot_action_distribution    action counts per episode and in total
  plot_l2_error_evolution     mean and final L2 error per episode
  plot_run_comparison         several strategies, episode by episode
  create_training_dashboard   all of the above for one run, plus a summary
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import matplotlib
matplotlib.use("Agg")  # Non-interactive; safe for headless/CI environments
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
import numpy as np
import pandas as pd
import scipy.stats as stats
import seaborn as sns

from .episodes import RunAggregate, TrainingRun
from .tree_plot import save_figure


ACCENT = "#2C3E50"
FINAL_WINDOW = 25


# ---------------------------------------------------------------------------
# Container
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrainingResults:
    """Per-episode training metrics for one strategy."""

    episode_rewards: np.ndarray
    episode_minimizers: np.ndarray
    episode_losses: np.ndarray
    expected_minima: float | None = None
    name: str = ""

    def __post_init__(self) -> None:
        for field_name in ("episode_rewards", "episode_minimizers", "episode_losses"):
            object.__setattr__(
                self, field_name, np.asarray(getattr(self, field_name), dtype=np.float64)
            )
        n = self.episode_rewards.shape[0]
        if n == 0:
            raise ValueError("No episodes to plot")
        if self.episode_minimizers.shape[0] != n or self.episode_losses.shape[0] != n:
            raise ValueError(
                "episode_rewards, episode_minimizers and episode_losses must "
                f"have equal length; got {n}, {self.episode_minimizers.shape[0]}, "
                f"{self.episode_losses.shape[0]}."
            )

    @property
    def n_episodes(self) -> int:
        return int(self.episode_rewards.shape[0])


def load_training_csv(path: str | Path, name: str | None = None,
                      expected_minima: float | None = None) -> TrainingResults:
    """Load a per-episode CSV with columns ``reward``, ``minimizers`` and optional ``loss``.

    Raises
    ------
    FileNotFoundError, ValueError
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Training CSV not found: {path}")
    df = pd.read_csv(path)
    if df.empty:
        raise ValueError("No episodes to plot")

    missing = {"reward", "minimizers"} - set(df.columns)
    if missing:
        raise ValueError(
            f"Training CSV is missing required columns: {sorted(missing)}. "
            f"Found: {sorted(df.columns.tolist())}."
        )
    losses = df["loss"].to_numpy(dtype=np.float64) if "loss" in df.columns else np.full(len(df), np.nan)
    return TrainingResults(
        episode_rewards=df["reward"].to_numpy(dtype=np.float64),
        episode_minimizers=df["minimizers"].to_numpy(dtype=np.float64),
        episode_losses=losses,
        expected_minima=expected_minima,
        name=name if name is not None else path.stem,
    )


# ---------------------------------------------------------------------------
# Statistics helpers
# ---------------------------------------------------------------------------


def rolling_mean(xs, window: int) -> np.ndarray:
    """Trailing mean: element i averages ``xs[max(0, i - window + 1) : i + 1]``.

    Unlike a centred or full-window rolling mean, the output has the same
    length as the input and the first ``window - 1`` entries average over
    the shorter available prefix.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    xs = np.asarray(xs, dtype=np.float64)
    return pd.Series(xs).rolling(window, min_periods=1).mean().to_numpy()


def fit_linear_trend(x, y) -> np.ndarray:
    """Least-squares line through (x, y), evaluated at x.

    Raises
    ------
    ValueError
        If fewer than two points are given or all x are equal.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)
    if x.shape[0] < 2:
        raise ValueError("Need at least 2 points to fit a trend.")
    if np.all(x == x[0]):
        raise ValueError("Cannot fit a trend when all x values are identical.")
    fit = stats.linregress(x, y)
    return fit.slope * x + fit.intercept


def final_performance(results: TrainingResults, window: int = FINAL_WINDOW) -> dict[str, float]:
    """Averages over the last *window* episodes.

    Returns
    -------
    dict
        ``avg_minimizers``, ``avg_reward`` and ``success_rate`` (percentage of
        window episodes with at least ``expected_minima`` minimizers; NaN when
        the expected count is unknown).
    """
    start = max(0, results.n_episodes - window)
    minimizers = results.episode_minimizers[start:]
    rewards = results.episode_rewards[start:]

    if results.expected_minima is None:
        success_rate = float("nan")
    else:
        success_rate = float(np.mean(minimizers >= results.expected_minima) * 100)

    return {
        "avg_minimizers": float(np.mean(minimizers)),
        "avg_reward": float(np.mean(rewards)),
        "success_rate": success_rate,
    }


# ---------------------------------------------------------------------------
# Single-run dashboard
# ---------------------------------------------------------------------------


def plot_training_curves(
    results: TrainingResults,
    title: str = "Training Progress",
    window_size: int = FINAL_WINDOW,
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Four-panel training dashboard for one run."""
    sns.set_theme(style="whitegrid")
    episodes = np.arange(1, results.n_episodes + 1)
    fig, axes = plt.subplots(2, 2, figsize=(14, 10))
    ax1, ax2, ax3, ax4 = axes.ravel()

    # ── Discovery rate ──────────────────────────────────────────────────────
    ax1.plot(episodes, results.episode_minimizers, color="steelblue", alpha=0.4,
             linewidth=1, label="Raw")
    ax1.plot(episodes, rolling_mean(results.episode_minimizers, window_size),
             color="steelblue", linewidth=3, label=f"Rolling Avg ({window_size})")
    if results.expected_minima is not None:
        ax1.axhline(results.expected_minima, color="red", linestyle="--",
                    linewidth=2, label="Expected")
    ax1.set(xlabel="Episode", ylabel="Minimizers Found", title="Discovery Rate")
    ax1.legend(loc="upper left")

    # ── Reward ──────────────────────────────────────────────────────────────
    ax2.plot(episodes, results.episode_rewards, color="orange", alpha=0.4, linewidth=1)
    ax2.plot(episodes, rolling_mean(results.episode_rewards, window_size),
             color="orange", linewidth=3, label="Rolling Avg")
    if results.n_episodes > 1:
        ax2.plot(episodes, fit_linear_trend(episodes, results.episode_rewards),
                 color="red", linestyle="--", linewidth=1.5, label="Trend")
    ax2.set(xlabel="Episode", ylabel="Cumulative Reward", title="Reward Signal")
    ax2.legend(loc="upper left")

    # ── TD loss ─────────────────────────────────────────────────────────────
    valid = np.isfinite(results.episode_losses)
    if valid.any():
        loss_episodes = episodes[valid]
        losses = results.episode_losses[valid]
        ax3.plot(loss_episodes, losses, color="purple", linewidth=2)
        if losses.shape[0] > window_size:
            ax3.plot(loss_episodes, rolling_mean(losses, window_size), color="black",
                     linewidth=3, linestyle="--", label="Trend")
            ax3.legend(loc="upper right")
        ax3.set(xlabel="Episode", ylabel="TD Loss", title="Learning Progress")
    else:
        ax3.axis("off")

    # ── Final performance ───────────────────────────────────────────────────
    perf = final_performance(results, window=FINAL_WINDOW)
    # Reward is divided by 10 so both bars share one axis.
    values = [perf["avg_minimizers"], perf["avg_reward"] / 10]
    ax4.bar([1, 2], values, color=["steelblue", "orange"])
    ax4.set_xticks([1, 2], ["Avg\nMinimizers", "Avg\nReward"])
    ax4.text(1, values[0], f"{perf['avg_minimizers']:.1f}", ha="center", va="bottom", fontsize=14)
    ax4.text(2, values[1], f"{perf['avg_reward']:.1f}", ha="center", va="bottom", fontsize=14)
    if not np.isnan(perf["success_rate"]):
        ax4.text(1.5, max(values) * 0.8, f"Success: {perf['success_rate']:.0f}%",
                 ha="center", va="center", fontsize=16, fontweight="bold")
    ax4.set(xlabel="Metric", ylabel="Value",
            title=f"Final Performance (last {FINAL_WINDOW} episodes)")

    fig.suptitle(title, fontsize=20, fontweight="bold", color=ACCENT)
    fig.tight_layout()

    if output_path is not None:
        save_figure(fig, output_path, dpi=dpi, component="training_dashboard")
    return fig


# ---------------------------------------------------------------------------
# Multi-strategy comparison
# ---------------------------------------------------------------------------


def plot_strategy_comparison(
    results_by_name: dict[str, TrainingResults],
    expected_minima: float = 5,
    window_size: int = FINAL_WINDOW,
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Compare several strategies: smoothed discovery and reward, final bars.

    Strategies are drawn in name order so colours are stable across calls.
    """
    if not results_by_name:
        raise ValueError("No episodes to plot")

    sns.set_theme(style="whitegrid")
    names = sorted(results_by_name)
    colors = sns.color_palette("colorblind", len(names))

    fig = plt.figure(figsize=(16, 11))
    grid = fig.add_gridspec(2, 3)
    ax_main = fig.add_subplot(grid[0, 0:2])
    ax_bar = fig.add_subplot(grid[0, 2])
    ax_reward = fig.add_subplot(grid[1, :])

    final_perfs = []
    for name, color in zip(names, colors):
        res = results_by_name[name]
        episodes = np.arange(1, res.n_episodes + 1)
        ax_main.plot(episodes, res.episode_minimizers, color=color, alpha=0.2, linewidth=1)
        ax_main.plot(episodes, rolling_mean(res.episode_minimizers, window_size),
                     color=color, linewidth=3, label=name)
        ax_reward.plot(episodes, rolling_mean(res.episode_rewards, window_size),
                       color=color, linewidth=3, label=name)
        final_perfs.append(final_performance(res)["avg_minimizers"])

    ax_main.axhline(expected_minima, color="red", linestyle="--", linewidth=2, label="Expected")
    ax_main.set(xlabel="Episode", ylabel="Minimizers Found (rolling avg)",
                title="Discovery Rate Comparison")
    ax_main.legend(loc="upper left", framealpha=0.9)

    positions = np.arange(1, len(names) + 1)
    ax_bar.bar(positions, final_perfs, color=colors)
    ax_bar.set_xticks(positions, names, rotation=45, ha="right")
    for x, val in zip(positions, final_perfs):
        ax_bar.text(x, val, f"{val:.1f}", ha="center", va="bottom", fontsize=12)
    ax_bar.set(xlabel="Strategy", ylabel=f"Avg Minimizers (last {FINAL_WINDOW})",
               title="Final Performance")

    ax_reward.set(xlabel="Episode", ylabel="Cumulative Reward (rolling avg)",
                  title="Reward Signal Comparison")
    ax_reward.legend(loc="upper left", framealpha=0.9)

    fig.suptitle("Training Strategy Comparison", fontsize=20, fontweight="bold", color=ACCENT)
    fig.tight_layout()

    if output_path is not None:
        save_figure(fig, output_path, dpi=dpi, component="training_dashboard")
    return fig


# ---------------------------------------------------------------------------
# Episode-record panels
# ---------------------------------------------------------------------------


def titled(prefix: str, label: str) -> str:
    return f"{prefix}: {label}" if label else prefix


def _draw_series(ax, x, y, color: str, ylabel: str, title: str, markersize: float = 5) -> None:
    ax.plot(x, y, color=color, linewidth=2, marker="o", markersize=markersize)
    ax.set(xlabel="Episode", ylabel=ylabel, title=title)


def _draw_reward(ax, run: TrainingRun, title: str, legend_loc: str) -> None:
    episodes = run.episode_numbers
    rewards = run.column("total_reward")
    _draw_series(ax, episodes, rewards, "blue", "Total Reward", title)
    if np.unique(episodes).shape[0] > 1:
        ax.plot(episodes, fit_linear_trend(episodes, rewards), color="red",
                linestyle="--", linewidth=1.5, label="Trend")
        ax.legend(loc=legend_loc)


def _draw_l2(ax, run: TrainingRun, markersize: float = 5) -> None:
    episodes = run.episode_numbers
    ax.plot(episodes, run.column("mean_l2_error"), color="blue", linewidth=2,
            marker="o", markersize=markersize, label="Mean L2")
    ax.plot(episodes, run.column("final_l2_error"), color="red", linewidth=2,
            marker="o", markersize=markersize, label="Final L2")
    ax.set_yscale("log")
    ax.set(xlabel="Episode", ylabel="L2 Error", title="Approximation Quality")
    ax.legend(loc="upper right")


def _draw_action_totals(ax, matrix: pd.DataFrame, title: str) -> None:
    if matrix.shape[1] == 0:
        ax.text(0.5, 0.5, "No actions recorded", ha="center", va="center",
                transform=ax.transAxes, fontsize=12)
        ax.set_title(title)
        ax.axis("off")
        return
    totals = matrix.sum(axis=0)
    positions = np.arange(1, totals.shape[0] + 1)
    ax.bar(positions, totals.to_numpy(), color="steelblue")
    ax.set_xticks(positions, totals.index.tolist(), rotation=45, ha="right")
    ax.set(xlabel="Action", ylabel="Total Count", title=title)


def plot_training_progress(
    run: TrainingRun,
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Reward (with linear trend), minimizers, steps and evaluations per episode."""
    sns.set_theme(style="whitegrid")
    episodes = run.episode_numbers
    fig, axes = plt.subplots(2, 2, figsize=(12, 8))
    ax_reward, ax_min, ax_steps, ax_evals = axes.ravel()

    _draw_reward(ax_reward, run, "Cumulative Reward", legend_loc="upper left")
    _draw_series(ax_min, episodes, run.column("minimizers_found"), "green",
                 "Minimizers Found", "Discovery Progress")
    _draw_series(ax_steps, episodes, run.column("steps_taken"), "orange",
                 "Steps", "Steps per Episode")
    _draw_series(ax_evals, episodes, run.column("function_evals"), "purple",
                 "Function Evals", "Computational Cost")

    fig.suptitle(titled("Training Progress", run.label), fontsize=20,
                 fontweight="bold", color=ACCENT)
    fig.tight_layout()

    if output_path is not None:
        save_figure(fig, output_path, dpi=dpi, component="training_dashboard")
    return fig


def plot_action_distribution(
    run: TrainingRun,
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Heatmap of action counts per episode above a bar chart of totals.

    Raises
    ------
    ValueError
        If no episode recorded any action.
    """
    matrix = run.action_matrix()
    if matrix.shape[1] == 0:
        raise ValueError(f"No actions recorded in run '{run.label}'.")

    sns.set_theme(style="whitegrid")
    fig, (ax_hm, ax_bar) = plt.subplots(
        2, 1, figsize=(10, 9), gridspec_kw={"height_ratios": [3, 2]}
    )

    sns.heatmap(matrix, cmap="viridis", ax=ax_hm, cbar_kws={"label": "Count"})
    ax_hm.set(xlabel="Action", ylabel="Episode", title="Action Counts per Episode")
    ax_hm.tick_params(axis="x", labelrotation=45)

    _draw_action_totals(ax_bar, matrix, "Total Actions Taken")

    fig.suptitle(titled("Action Distribution", run.strategy_name), fontsize=20,
                 fontweight="bold", color=ACCENT)
    fig.tight_layout()

    if output_path is not None:
        save_figure(fig, output_path, dpi=dpi, component="training_dashboard")
    return fig


def plot_l2_error_evolution(
    run: TrainingRun,
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Mean and final L2 error per episode on a log axis."""
    sns.set_theme(style="whitegrid")
    fig, ax = plt.subplots(figsize=(8, 5))
    _draw_l2(ax, run, markersize=6)
    fig.suptitle(titled("L2 Error Evolution", run.strategy_name), fontsize=18,
                 fontweight="bold", color=ACCENT)
    fig.tight_layout()

    if output_path is not None:
        save_figure(fig, output_path, dpi=dpi, component="training_dashboard")
    return fig


def plot_run_comparison(
    runs: list[TrainingRun],
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Compare strategies episode by episode.

    Reward, minimizers, steps and evaluations are overlaid per strategy.
    When every run carries a :class:`RunAggregate`, a bottom row compares
    mean reward, mean minimizers, success rate (%) and efficiency (x100).
    """
    if not runs:
        raise ValueError("No runs to compare")

    sns.set_theme(style="whitegrid")
    names = [run.strategy_name or f"run {i}" for i, run in enumerate(runs, start=1)]
    colors = sns.color_palette("colorblind", max(len(runs), 4))
    with_aggregates = all(run.aggregate is not None for run in runs)

    n_rows = 3 if with_aggregates else 2
    fig = plt.figure(figsize=(14, 5 * n_rows))
    grid = fig.add_gridspec(n_rows, 2)
    panels = [
        (fig.add_subplot(grid[0, 0]), "total_reward", "Total Reward", "Learning Curves"),
        (fig.add_subplot(grid[0, 1]), "minimizers_found", "Minimizers Found", "Discovery Efficiency"),
        (fig.add_subplot(grid[1, 0]), "steps_taken", "Steps", "Steps per Episode"),
        (fig.add_subplot(grid[1, 1]), "function_evals", "Function Evals", "Computational Cost"),
    ]

    for ax, column, ylabel, title in panels:
        for run, name, color in zip(runs, names, colors):
            ax.plot(run.episode_numbers, run.column(column), color=color, linewidth=2,
                    marker="o", markersize=4, label=name)
        ax.set(xlabel="Episode", ylabel=ylabel, title=title)
        ax.legend(loc="upper left", framealpha=0.9)

    if with_aggregates:
        ax_agg = fig.add_subplot(grid[2, :])
        _draw_aggregate_bars(ax_agg, [run.aggregate for run in runs], names, colors)

    fig.suptitle(titled("Strategy Comparison", runs[0].function_name), fontsize=20,
                 fontweight="bold", color=ACCENT)
    fig.tight_layout()

    if output_path is not None:
        save_figure(fig, output_path, dpi=dpi, component="training_dashboard")
    return fig


def _draw_aggregate_bars(ax, aggregates: list[RunAggregate], names: list[str], colors) -> None:
    x = np.arange(1, len(names) + 1)
    width = 0.2
    bars = [
        ([a.mean_reward for a in aggregates], "Mean Reward"),
        ([a.mean_minimizers for a in aggregates], "Mean Minimizers"),
        ([a.success_rate * 100 for a in aggregates], "Success Rate (%)"),
        ([a.efficiency * 100 for a in aggregates], "Efficiency (×100)"),
    ]
    for offset, (values, label), color in zip((-1.5, -0.5, 0.5, 1.5), bars, colors):
        ax.bar(x + offset * width, values, width=width, color=color, label=label)
    ax.set_xticks(x, names)
    ax.set(xlabel="Strategy", ylabel="Value", title="Aggregate Metrics Comparison")
    ax.legend(loc="upper left", framealpha=0.9)


# ---------------------------------------------------------------------------
# Full dashboard
# ---------------------------------------------------------------------------


def format_summary(agg: RunAggregate) -> str:
    """Multi-line text summary of a run's aggregate metrics."""
    if np.isnan(agg.success_rate):
        success = "n/a"
    else:
        success = f"{agg.success_rate * 100:.1f}%"
    return "\n".join([
        f"Mean Reward: {agg.mean_reward:.2f} ± {agg.std_reward:.2f}",
        f"Mean Minimizers: {agg.mean_minimizers:.2f}",
        f"Total Minimizers: {agg.total_minimizers}",
        f"Success Rate: {success}",
        f"Efficiency: {agg.efficiency:.4f} min/eval",
        f"Mean Steps: {agg.mean_steps:.1f}",
        f"Mean Evals: {agg.mean_function_evals:.1f}",
    ])


def create_training_dashboard(
    run: TrainingRun,
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Six-panel dashboard for one run, with a text summary when the run
    carries a :class:`RunAggregate`.

    Rows: reward and minimizers; steps and evaluations; L2 errors and
    total action counts.
    """
    sns.set_theme(style="whitegrid")
    episodes = run.episode_numbers
    has_summary = run.aggregate is not None

    n_rows = 4 if has_summary else 3
    height_ratios = [1, 1, 1, 0.6] if has_summary else [1, 1, 1]
    fig = plt.figure(figsize=(16, 4 * n_rows))
    grid = fig.add_gridspec(n_rows, 2, height_ratios=height_ratios)

    _draw_reward(fig.add_subplot(grid[0, 0]), run, "Learning Curve", legend_loc="lower left")
    _draw_series(fig.add_subplot(grid[0, 1]), episodes, run.column("minimizers_found"),
                 "green", "Minimizers Found", "Discovery Progress")
    _draw_series(fig.add_subplot(grid[1, 0]), episodes, run.column("steps_taken"),
                 "orange", "Steps", "Steps per Episode")
    _draw_series(fig.add_subplot(grid[1, 1]), episodes, run.column("function_evals"),
                 "purple", "Function Evals", "Computational Cost")
    _draw_l2(fig.add_subplot(grid[2, 0]), run)
    _draw_action_totals(fig.add_subplot(grid[2, 1]), run.action_matrix(), "Action Distribution")

    if has_summary:
        ax_text = fig.add_subplot(grid[3, :])
        ax_text.axis("off")
        ax_text.text(0.0, 1.0, format_summary(run.aggregate), ha="left", va="top",
                     fontsize=14, family="monospace", transform=ax_text.transAxes)

    fig.suptitle(titled("Training Dashboard", run.label), fontsize=24,
                 fontweight="bold", color=ACCENT)
    fig.tight_layout()

    if output_path is not None:
        save_figure(fig, output_path, dpi=dpi, component="training_dashboard")
    return fig
