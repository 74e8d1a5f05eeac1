"""
Rendering of subdivision trees with matplotlib and networkx.

The heavy lifting (positions, colours, labels, legend content) happens in
:mod:`globtim_viz.styling`; this module only turns a :class:`TreeDrawing`
into a matplotlib figure and writes it to disk.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import matplotlib
matplotlib.use("Agg")  # Non-interactive; safe for headless/CI environments
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from matplotlib.lines import Line2D
import networkx as nx

from .config import TreeVizStyle
from .styling import TreeDrawing, build_tree_drawing


BACKGROUND = "#FFFFFF"
ACCENT     = "#2C3E50"
BAND_HALF_HEIGHT = 0.45      # fraction of vertical_spacing
X_MARGIN = 2.0


# ---------------------------------------------------------------------------
# Pieces
# ---------------------------------------------------------------------------


def draw_depth_bands(ax, drawing: TreeDrawing, style: TreeVizStyle) -> None:
    """Shade horizontal bands behind even depths."""
    if not style.show_depth_bands or not drawing.positions:
        return

    xs = [p[0] for p in drawing.positions.values()]
    x_min, x_max = min(xs) - X_MARGIN, max(xs) + X_MARGIN

    y_by_depth: dict[int, float] = {}
    for node_id, (_, y) in drawing.positions.items():
        y_by_depth[drawing.view.node(node_id).depth] = y

    half = style.vertical_spacing * BAND_HALF_HEIGHT
    for depth, y in sorted(y_by_depth.items()):
        if depth % 2 == 1:
            continue
        ax.fill_between(
            [x_min, x_max], y - half, y + half,
            color=style.depth_band_color, alpha=style.depth_band_alpha,
            linewidth=0, zorder=0,
        )


def draw_tree(ax, drawing: TreeDrawing, style: TreeVizStyle) -> None:
    """Draw edges, nodes (grouped by marker) and labels onto *ax*."""
    pos = drawing.positions
    drawn = [n for n in drawing.graph.nodes() if n in pos]
    G = drawing.graph.subgraph(drawn)

    edges = [e for e in G.edges()]
    if edges:
        nx.draw_networkx_edges(
            G, pos, ax=ax,
            edgelist=edges,
            edge_color=[drawing.edge_styles[e].color for e in edges],
            width=[drawing.edge_styles[e].width for e in edges],
            arrows=False,
        )

    # networkx takes one node_shape per call.
    by_marker: dict[str, list[int]] = {}
    for node_id in drawn:
        by_marker.setdefault(drawing.node_styles[node_id].marker, []).append(node_id)

    for marker, node_ids in by_marker.items():
        collection = nx.draw_networkx_nodes(
            G, pos, ax=ax,
            nodelist=node_ids,
            node_shape=marker,
            node_color=[drawing.node_styles[n].color for n in node_ids],
            node_size=[drawing.node_styles[n].size ** 2 for n in node_ids],
            edgecolors=style.node_strokecolor,
            linewidths=style.node_strokewidth,
        )
        collection.set_zorder(3)

    label_offset = max(8, round(12 * drawing.scale.font_scale))
    for node_id in drawn:
        label = drawing.node_styles[node_id].label
        if not label:
            continue
        ax.annotate(
            label,
            xy=pos[node_id],
            xytext=(0, -label_offset - drawing.node_styles[node_id].size / 2),
            textcoords="offset points",
            ha="center", va="top",
            fontsize=drawing.scale.label_fontsize,
            color=ACCENT,
            zorder=4,
        )


def draw_legend(fig: Figure, ax, drawing: TreeDrawing) -> None:
    """Legend to the right of the tree axis; nothing when the tree has no splits."""
    if not drawing.legend:
        return
    handles = [
        Line2D(
            [], [], linestyle="none",
            marker=entry.marker, markersize=10,
            markerfacecolor=entry.color, markeredgecolor="black",
            label=entry.label,
        )
        for entry in drawing.legend
    ]
    ax.legend(
        handles=handles,
        loc="upper left",
        bbox_to_anchor=(1.01, 1.0),
        frameon=True,
        framealpha=0.9,
        fontsize=max(8, drawing.scale.label_fontsize),
    )


# ---------------------------------------------------------------------------
# Main entry points
# ---------------------------------------------------------------------------


def plot_subdivision_tree(
    tree: Any,
    style: TreeVizStyle | None = None,
    title: str = "",
    show_legend: bool = True,
    balanced_layout: bool = True,
) -> Figure:
    """Publication-quality drawing of a subdivision tree.

    Parameters
    ----------
    tree : object, Mapping or SubdivisionTreeView
        Subdivision tree to draw.
    style : TreeVizStyle, optional
        Visual styling; defaults to ``TreeVizStyle()``.  Auto-scaling of
        node sizes, fonts and figure size is on by default.
    title : str
        Axis title; "Subdivision Tree" when empty.
    show_legend : bool
        Draw the dimension / leaf-status legend.
    balanced_layout : bool
        Use the split-aware layout (recommended).

    Returns
    -------
    matplotlib.figure.Figure
        Caller owns the figure; use :func:`save_figure` to write and close it.
    """
    style = style if style is not None else TreeVizStyle()
    drawing = build_tree_drawing(tree, style, balanced_layout=balanced_layout)

    width_px, height_px = drawing.fig_size
    fig, ax = plt.subplots(
        figsize=(width_px / style.dpi, height_px / style.dpi),
        dpi=style.dpi,
        facecolor=BACKGROUND,
    )
    ax.set_facecolor(BACKGROUND)

    draw_depth_bands(ax, drawing, style)
    draw_tree(ax, drawing, style)
    if show_legend:
        draw_legend(fig, ax, drawing)

    ax.set_title(
        title or "Subdivision Tree",
        fontsize=style.title_fontsize, fontweight="bold", color=ACCENT,
    )
    ax.set_aspect("equal", adjustable="datalim")
    ax.axis("off")
    fig.tight_layout()
    return fig


def save_figure(
    fig: Figure,
    output_path: str | Path,
    dpi: int | None = None,
    component: str = "tree_plot",
) -> Path:
    """Write *fig* to *output_path* and close it.

    The file format follows the extension (png, pdf, svg, ...).  Parent
    directories are created as needed.  The confirmation line is prefixed
    with ``[component]`` so each figure family reports under its own name.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    kwargs = {"bbox_inches": "tight"}
    if dpi is not None:
        kwargs["dpi"] = dpi
    fig.savefig(output_path, **kwargs)
    plt.close(fig)
    print(f"  [{component}] Figure → {output_path}")
    return output_path
