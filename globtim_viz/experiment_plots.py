"""
Experiment results dashboard.

Plots per-degree metrics from a polynomial-approximation experiment:

  1. L2 norm of the approximation vs. degree (log scale)
  2. Euclidean distance of recovered critical points to the true parameters
  3. Condition number of the approximation system
  4. Parameter convergence factor (ratio of consecutive minimum distances)

Missing values are NaN; panels without any finite data are skipped or
replaced by a short note.
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
import seaborn as sns

from .tree_plot import save_figure


ACCENT = "#2C3E50"

REQUIRED_COLUMNS = {"degree", "l2_norm"}
OPTIONAL_COLUMNS = ("min_distance", "mean_distance", "condition_number")


# ---------------------------------------------------------------------------
# Metrics container
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ExperimentMetrics:
    """Per-degree experiment metrics; all arrays share one length.

    Attributes
    ----------
    degrees : np.ndarray
        Polynomial degrees, ascending.
    l2_norms : np.ndarray
        L2 approximation error per degree.
    min_distances : np.ndarray
        Distance of the best critical point to the true parameters (NaN if unknown).
    mean_distances : np.ndarray
        Mean distance over all critical points (NaN if unknown).
    condition_numbers : np.ndarray
        Condition number of the approximation system (NaN if unknown).
    """

    degrees: np.ndarray
    l2_norms: np.ndarray
    min_distances: np.ndarray
    mean_distances: np.ndarray
    condition_numbers: np.ndarray

    def __post_init__(self) -> None:
        lengths = set()
        for name in ("degrees", "l2_norms", "min_distances", "mean_distances", "condition_numbers"):
            arr = np.asarray(getattr(self, name), dtype=np.float64)
            object.__setattr__(self, name, arr)
            lengths.add(arr.shape[0])
        if len(lengths) != 1:
            raise ValueError(f"ExperimentMetrics arrays differ in length: {sorted(lengths)}")
        if self.degrees.shape[0] == 0:
            raise ValueError("ExperimentMetrics needs at least one degree.")

    @property
    def has_distances(self) -> bool:
        return bool(np.isfinite(self.min_distances).any())

    @property
    def has_condition_numbers(self) -> bool:
        return bool(np.isfinite(self.condition_numbers).any())


def metrics_from_dataframe(df: pd.DataFrame) -> ExperimentMetrics:
    """Build metrics from a per-degree results table.

    Required columns: ``degree``, ``l2_norm``.  Optional: ``min_distance``,
    ``mean_distance``, ``condition_number`` (NaN when absent).

    Raises
    ------
    ValueError
        If required columns are missing or the table is empty.
    """
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(
            f"Experiment table is missing required columns: {sorted(missing)}. "
            f"Found: {sorted(df.columns.tolist())}."
        )
    if df.empty:
        raise ValueError("Experiment table is empty.")

    df = df.sort_values("degree").reset_index(drop=True)
    n = len(df)
    optional = {
        col: df[col].to_numpy(dtype=np.float64) if col in df.columns else np.full(n, np.nan)
        for col in OPTIONAL_COLUMNS
    }
    return ExperimentMetrics(
        degrees=df["degree"].to_numpy(dtype=np.float64),
        l2_norms=df["l2_norm"].to_numpy(dtype=np.float64),
        min_distances=optional["min_distance"],
        mean_distances=optional["mean_distance"],
        condition_numbers=optional["condition_number"],
    )


# ---------------------------------------------------------------------------
# Derived quantities
# ---------------------------------------------------------------------------


def convergence_rates(
    degrees: np.ndarray, min_distances: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Ratios of consecutive finite minimum distances.

    For finite entries at positions i_1 < i_2 < ..., returns
    ``d[i_{k-1}] / d[i_k]`` paired with ``degrees[i_k]``.  A factor above 1
    means the estimate moved closer to the true parameters.

    Returns
    -------
    (rate_degrees, rates) : tuple of np.ndarray
        Both empty when fewer than two finite distances exist.
    """
    degrees = np.asarray(degrees, dtype=np.float64)
    min_distances = np.asarray(min_distances, dtype=np.float64)
    valid = np.flatnonzero(np.isfinite(min_distances))
    if valid.size < 2:
        return np.array([]), np.array([])

    prev, curr = valid[:-1], valid[1:]
    with np.errstate(divide="ignore", invalid="ignore"):
        rates = min_distances[prev] / min_distances[curr]
    return degrees[curr], rates


# ---------------------------------------------------------------------------
# Plot
# ---------------------------------------------------------------------------


def plot_experiment_results(
    experiment_name: str,
    metrics: ExperimentMetrics,
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Four-panel experiment dashboard.

    Parameters
    ----------
    experiment_name : str
        Used in the figure title; no title when empty.
    metrics : ExperimentMetrics
    output_path : str or Path, optional
        When given, the figure is saved there (format from the extension)
        and closed.
    dpi : int
        Resolution used when saving.

    Returns
    -------
    matplotlib.figure.Figure
    """
    sns.set_theme(style="whitegrid")
    fig, axes = plt.subplots(2, 2, figsize=(14, 9))
    ax1, ax2, ax3, ax4 = axes.ravel()
    deg = metrics.degrees

    # ── L2 norm ─────────────────────────────────────────────────────────────
    ax1.plot(deg, metrics.l2_norms, marker="o", color="tab:blue", linewidth=3,
             markersize=9, label="L2 Approximation Error")
    ax1.set_yscale("log")
    ax1.set_title("L2 Norm of Polynomial Approximation", fontweight="bold", color=ACCENT)
    ax1.set_xlabel("Polynomial Degree")
    ax1.set_ylabel("L2 Norm (log scale)")
    ax1.legend(loc="upper right")

    # ── Distance to true parameters ─────────────────────────────────────────
    if metrics.has_distances:
        ax2.plot(deg, metrics.min_distances, marker="o", color="tab:green",
                 linewidth=3, markersize=9, label="Min Distance")
        if np.isfinite(metrics.mean_distances).any():
            ax2.plot(deg, metrics.mean_distances, marker="o", color="tab:orange",
                     linewidth=2, markersize=7, linestyle="--", label="Mean Distance")
        ax2.set_yscale("log")
        ax2.set_title("Euclidean Distance to True Parameters", fontweight="bold", color=ACCENT)
        ax2.set_ylabel("Distance (log scale)")
        ax2.legend(loc="upper right")
    else:
        ax2.set_title("Distance to True Parameters (N/A)", fontweight="bold", color=ACCENT)
        ax2.set_ylabel("Distance")
        ax2.text(0.5, 0.5, "No true parameters available\nfor this experiment",
                 transform=ax2.transAxes, ha="center", va="center", fontsize=14)
    ax2.set_xlabel("Polynomial Degree")

    # ── Condition number ────────────────────────────────────────────────────
    if metrics.has_condition_numbers:
        ax3.plot(deg, metrics.condition_numbers, marker="o", color="tab:red",
                 linewidth=3, markersize=9, label="Condition Number")
        ax3.set_title("Condition Number (Numerical Stability)", fontweight="bold", color=ACCENT)
        ax3.set_xlabel("Polynomial Degree")
        ax3.set_ylabel("Condition Number")
        ax3.legend(loc="upper right")
    else:
        ax3.axis("off")

    # ── Convergence factor ──────────────────────────────────────────────────
    rate_deg, rates = convergence_rates(deg, metrics.min_distances)
    if rates.size:
        ax4.plot(rate_deg, rates, marker="o", color="tab:purple", linewidth=3,
                 markersize=9, label="Convergence Factor")
        ax4.set_yscale("log")
        ax4.set_title("Parameter Convergence Rate", fontweight="bold", color=ACCENT)
        ax4.set_xlabel("Polynomial Degree")
        ax4.set_ylabel("Convergence Rate (log scale)")
        ax4.legend(loc="upper right")
    else:
        ax4.axis("off")

    if experiment_name:
        fig.suptitle(f"Experiment: {experiment_name}", fontsize=18, fontweight="bold", color=ACCENT)
    fig.tight_layout()

    if output_path is not None:
        save_figure(fig, output_path, dpi=dpi, component="experiment_plots")
    return fig
