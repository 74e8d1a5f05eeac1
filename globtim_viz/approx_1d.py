"""
One-dimensional polynomial approximation plots.

Draws an objective next to its polynomial approximant over the
approximation domain ``[center - scale, center + scale]``, with the
critical points the solver recovered marked as stars.

The polynomial object is duck-typed.  It must expose ``center`` and
``scale_factor`` (scalars or one-element sequences); ``nrm`` (the L2
approximation error) and ``degree`` are read when present.  Evaluation is
delegated to a caller-supplied ``poly_eval`` callable, since the
polynomial types live in the optimization core.

Critical points come as a DataFrame with columns ``x1`` (location) and
``z`` (objective value).
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable

import matplotlib
matplotlib.use("Agg")  # Non-interactive; safe for headless/CI environments
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from matplotlib.lines import Line2D
import numpy as np
import pandas as pd
import seaborn as sns

from .styling import format_error_value
from .tree_plot import save_figure


ORIGINAL_COLOR = "blue"
POLY_COLOR     = "red"
CRIT_COLOR     = "green"
SAMPLE_COLOR   = "#7F7F7F"
NOTE_COLOR     = "#999999"

CRITICAL_POINT_COLUMNS = ("x1", "z")


# ---------------------------------------------------------------------------
# Polynomial metadata
# ---------------------------------------------------------------------------


def _scalar(value: Any) -> float:
    # Accept 5.0 as well as [5.0].
    return float(np.ravel(np.asarray(value, dtype=np.float64))[0])


def approximation_domain(poly: Any) -> tuple[float, float]:
    """``(center, scale)`` of the first coordinate of *poly*."""
    return _scalar(poly.center), _scalar(poly.scale_factor)


def degree_label(poly: Any) -> str:
    """Printable degree of *poly*; ``"?"`` when it cannot be determined.

    Accepts an integer degree or a tagged pair: ``("one_d_for_all", d)``
    gives ``d``, ``("one_d_per_dim", [d1, d2, ...])`` gives the largest.
    """
    degree = getattr(poly, "degree", None)
    if isinstance(degree, (int, np.integer)) and not isinstance(degree, bool):
        return str(int(degree))
    if isinstance(degree, (tuple, list)) and len(degree) >= 2:
        tag, value = str(degree[0]).lstrip(":"), degree[1]
        if tag == "one_d_for_all":
            return str(value)
        if tag == "one_d_per_dim":
            return str(max(value))
    return "?"


def chebyshev_sample_points(n_samples: int, center: float = 0.0, scale: float = 1.0) -> np.ndarray:
    """The ``n_samples + 1`` Chebyshev nodes ``cos(pi (2i + 1) / (2n + 2))``,
    mapped to ``center + scale * node``.

    >>> chebyshev_sample_points(1)
    array([ 0.70710678, -0.70710678])
    """
    if n_samples < 0:
        raise ValueError(f"n_samples must be >= 0, got {n_samples}")
    i = np.arange(n_samples + 1)
    return center + scale * np.cos(np.pi * (2 * i + 1) / (2 * n_samples + 2))


def _check_critical_points(df: pd.DataFrame) -> None:
    if len(df) == 0:
        return
    missing = [c for c in CRITICAL_POINT_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(
            f"Critical points table is missing columns {missing}. "
            f"Found: {sorted(map(str, df.columns))}."
        )


def _evaluate(fn: Callable[[float], float], xs: np.ndarray) -> np.ndarray:
    return np.array([fn(float(x)) for x in xs], dtype=np.float64)


# ---------------------------------------------------------------------------
# Single approximation
# ---------------------------------------------------------------------------


def plot_1d_polynomial_approximation(
    f: Callable[[float], float],
    poly: Any,
    critical_points: pd.DataFrame,
    poly_eval: Callable[[float], float] | None = None,
    n_plot_points: int = 500,
    title: str = "1D Polynomial Approximation",
    show_l2_error: bool = True,
    func_label: str | None = None,
    n_samples: int | None = None,
    output_path: str | Path | None = None,
    figsize: tuple[float, float] = (8, 6),
    dpi: int = 150,
) -> Figure:
    """Objective, polynomial approximant and critical points on one axis.

    Parameters
    ----------
    f : callable
        Objective, scalar in and scalar out.
    poly : object
        Approximant metadata (see module docstring).
    critical_points : DataFrame
        Columns ``x1`` and ``z``; may be empty.
    poly_eval : callable
        Evaluates the approximant at a scalar.  Required.
    show_l2_error : bool
        Annotate ``poly.nrm`` to three significant digits when available.
    func_label : str, optional
        Legend entry for *f* (default ``"Original f(x)"``).
    n_samples : int, optional
        Size of the sample set used to build *poly*; annotated and drawn as
        ticks at y = 0 on the Chebyshev nodes.

    Raises
    ------
    ValueError
        If *poly_eval* is missing or the critical points lack a column.
    """
    if poly_eval is None:
        raise ValueError(
            "poly_eval is required: pass a callable that evaluates the "
            "polynomial at a scalar x."
        )
    _check_critical_points(critical_points)

    center, scale = approximation_domain(poly)
    x_min, x_max = center - scale, center + scale
    xs = np.linspace(x_min, x_max, n_plot_points)
    y_original = _evaluate(f, xs)
    y_poly = _evaluate(poly_eval, xs)

    sns.set_theme(style="whitegrid", rc={"grid.linestyle": "--"})
    fig, ax = plt.subplots(figsize=figsize)

    ax.plot(xs, y_original, color=ORIGINAL_COLOR, linewidth=2.5,
            label=func_label or "Original f(x)")
    ax.plot(xs, y_poly, color=POLY_COLOR, linewidth=2.0, linestyle="--",
            label=f"Polynomial (degree {degree_label(poly)})")

    n_crit = len(critical_points)
    if n_crit > 0:
        ax.scatter(critical_points["x1"], critical_points["z"], color=CRIT_COLOR,
                   marker="*", s=200, edgecolors="black", linewidths=1.2, zorder=3,
                   label=f"Critical Points ({n_crit})")

    ax.legend(loc="upper right", framealpha=0.9, fontsize=12)
    ax.set(xlabel="x", ylabel="f(x)", title=title)

    # Notes stack upwards from near the bottom of the objective's range.
    y_lo, y_hi = float(np.nanmin(y_original)), float(np.nanmax(y_original))
    y_range = y_hi - y_lo
    note_x = x_min + 0.03 * (x_max - x_min)
    note_y = y_lo + 0.08 * y_range

    nrm = getattr(poly, "nrm", None)
    if show_l2_error and nrm is not None:
        ax.text(note_x, note_y, f"L² error: {format_error_value(nrm, sigdigits=3)}",
                fontsize=11, color=NOTE_COLOR)
        note_y -= 0.05 * y_range

    if n_samples is not None:
        ax.text(note_x, note_y, f"Sample set size: {n_samples}", fontsize=11, color=NOTE_COLOR)
        nodes = chebyshev_sample_points(n_samples, center, scale)
        ax.scatter(nodes, np.zeros_like(nodes), marker="|", s=100, color=SAMPLE_COLOR)

    fig.tight_layout()
    if output_path is not None:
        save_figure(fig, output_path, dpi=dpi, component="approx_1d")
    return fig


# ---------------------------------------------------------------------------
# Degree comparison
# ---------------------------------------------------------------------------


def _entry(result: Any, name: str) -> Any:
    if isinstance(result, Mapping):
        if name not in result:
            raise ValueError(f"Comparison entry is missing {name!r}.")
        return result[name]
    if not hasattr(result, name):
        raise ValueError(f"Comparison entry is missing {name!r}.")
    return getattr(result, name)


def plot_1d_comparison(
    f: Callable[[float], float],
    results: Mapping[int, Any],
    poly_eval_factory: Callable[[Any], Callable[[float], float]],
    n_plot_points: int = 500,
    func_label: str | None = None,
    n_samples: int | None = None,
    output_path: str | Path | None = None,
    figsize: tuple[float, float] = (12, 4),
    dpi: int = 150,
) -> Figure:
    """One panel per degree, ascending, sharing a legend below the panels.

    Parameters
    ----------
    results : Mapping[int, entry]
        Degree to an entry exposing ``poly`` and ``df`` (critical points),
        as a mapping or as attributes.  The domain is read from the lowest
        degree's polynomial.
    poly_eval_factory : callable
        Maps a polynomial to a scalar evaluation function.

    Raises
    ------
    ValueError
        If *results* is empty or an entry is incomplete.
    """
    if not results:
        raise ValueError("No approximation results to compare")

    degrees = sorted(results)
    center, scale = approximation_domain(_entry(results[degrees[0]], "poly"))
    xs = np.linspace(center - scale, center + scale, n_plot_points)
    y_original = _evaluate(f, xs)
    nodes = chebyshev_sample_points(n_samples, center, scale) if n_samples is not None else None

    sns.set_theme(style="whitegrid")
    fig, axes = plt.subplots(1, len(degrees), figsize=figsize, squeeze=False)

    for i, (ax, degree) in enumerate(zip(axes[0], degrees)):
        poly = _entry(results[degree], "poly")
        df = _entry(results[degree], "df")
        _check_critical_points(df)
        y_poly = _evaluate(poly_eval_factory(poly), xs)

        nrm = getattr(poly, "nrm", None)
        l2 = "?" if nrm is None else format_error_value(nrm)
        ax.set(xlabel="x", ylabel="f(x)" if i == 0 else "", title=f"Degree {degree} (L²={l2})")

        ax.plot(xs, y_original, color=ORIGINAL_COLOR, linewidth=2)
        ax.plot(xs, y_poly, color=POLY_COLOR, linewidth=2, linestyle="--")
        if len(df) > 0:
            ax.scatter(df["x1"], df["z"], color=CRIT_COLOR, marker="*", s=120,
                       edgecolors="black", linewidths=1, zorder=3)
        if nodes is not None:
            ax.scatter(nodes, np.zeros_like(nodes), marker="|", s=64, color=SAMPLE_COLOR)

    samples = "" if n_samples is None else f" ({n_samples} samples)"
    handles = [
        Line2D([], [], color=ORIGINAL_COLOR, linewidth=2),
        Line2D([], [], color=POLY_COLOR, linewidth=2, linestyle="--"),
        Line2D([], [], color=CRIT_COLOR, marker="*", markersize=12, linestyle="",
               markeredgecolor="black"),
    ]
    labels = [func_label or "Original f(x)", f"Polynomial Approx.{samples}", "Critical Points"]
    fig.legend(handles, labels, loc="lower center", ncol=3, frameon=False, fontsize=12)
    fig.tight_layout(rect=(0, 0.1, 1, 1))

    if output_path is not None:
        save_figure(fig, output_path, dpi=dpi, component="approx_1d")
    return fig
