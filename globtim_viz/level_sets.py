"""
Level sets of three-dimensional objectives.

A level set is approximated by the sample points whose objective value lies
within a tolerance of the level.  Grids are arrays whose last axis holds
the three coordinates, e.g. shape ``(nx, ny, nz, 3)``; values have the grid
shape without that axis.
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

from .tree_plot import save_figure


@dataclass(frozen=True)
class LevelSetData:
    """Points near one level.

    Attributes
    ----------
    points : np.ndarray
        Shape ``(n, 3)``.
    values : np.ndarray
        Objective value at each point, shape ``(n,)``.
    level : float
    """

    points: np.ndarray
    values: np.ndarray
    level: float

    def __post_init__(self) -> None:
        points = np.asarray(self.points, dtype=np.float64).reshape(-1, 3)
        values = np.asarray(self.values, dtype=np.float64).ravel()
        if points.shape[0] != values.shape[0]:
            raise ValueError(
                f"Points and values must have the same length; got "
                f"{points.shape[0]} and {values.shape[0]}."
            )
        object.__setattr__(self, "points", points)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "level", float(self.level))

    def __len__(self) -> int:
        return int(self.points.shape[0])

    @property
    def xyz(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        return self.points[:, 0], self.points[:, 1], self.points[:, 2]


def prepare_level_set_data(
    grid,
    values,
    level: float,
    tolerance: float = 0.01,
) -> LevelSetData:
    """Keep the grid points with ``|value - level| < tolerance``.

    Raises
    ------
    ValueError
        If the grid's last axis is not 3, the grid and value shapes
        disagree, or *tolerance* is not positive.
    """
    grid = np.asarray(grid, dtype=np.float64)
    values = np.asarray(values, dtype=np.float64)
    if grid.ndim < 1 or grid.shape[-1] != 3:
        raise ValueError(f"Grid must have a last axis of length 3; got shape {grid.shape}.")
    if grid.shape[:-1] != values.shape:
        raise ValueError(
            f"Grid and values must have the same dimensions; got {grid.shape[:-1]} "
            f"and {values.shape}."
        )
    if not tolerance > 0:
        raise ValueError(f"Tolerance must be positive, got {tolerance!r}")

    flat_points = grid.reshape(-1, 3)
    flat_values = values.ravel()
    mask = np.abs(flat_values - level) < tolerance
    return LevelSetData(points=flat_points[mask], values=flat_values[mask], level=level)


def plot_level_set(
    level_set: LevelSetData,
    critical_points: pd.DataFrame | None = None,
    title: str = "Level Set Visualization",
    marker_size: float = 4,
    figsize: tuple[float, float] = (8, 6),
    output_path: str | Path | None = None,
    dpi: int = 150,
) -> Figure:
    """Static 3D scatter of a level set, optionally with critical points.

    *critical_points* needs columns ``x1``, ``x2`` and ``x3``; they are drawn
    as red diamonds.
    """
    fig = plt.figure(figsize=figsize)
    ax = fig.add_subplot(projection="3d")

    if len(level_set) > 0:
        ax.scatter(*level_set.xyz, s=marker_size, color="steelblue", alpha=0.6,
                   label=f"Level {level_set.level:g}")

    if critical_points is not None and len(critical_points) > 0:
        missing = [c for c in ("x1", "x2", "x3") if c not in critical_points.columns]
        if missing:
            raise ValueError(f"Critical points table is missing columns {missing}.")
        ax.scatter(critical_points["x1"], critical_points["x2"], critical_points["x3"],
                   s=60, color="red", marker="D", label="Critical Points")

    ax.set_xlabel("x₁")
    ax.set_ylabel("x₂")
    ax.set_zlabel("x₃")
    ax.set_title(title)
    if ax.get_legend_handles_labels()[0]:
        ax.legend(loc="upper right")

    if output_path is not None:
        save_figure(fig, output_path, dpi=dpi, component="level_sets")
    return fig
