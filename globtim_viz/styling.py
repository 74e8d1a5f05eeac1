"""
Node and edge styling for subdivision tree drawings.

Maps every node to a colour, marker, size and label, and every edge to a
colour and width, then bundles the result with the layout into a
:class:`TreeDrawing`: plain data that the renderer consumes without
looking at the tree again.

Colour rules
------------
* converged leaf        → ``style.converged_color``, star
* active leaf, gradient → ``RdYlGn`` by log10 error (green = low, red = high)
* active leaf, no grad. → ``style.active_color``, circle
* internal node         → palette colour of its split dimension, square
* edge                  → palette colour of the parent's split dimension
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

import matplotlib
import matplotlib.colors as mcolors
import networkx as nx
import numpy as np

from .config import FALLBACK_EDGE_COLOR, TreeVizStyle
from .layout import (
    AutoScale,
    Point,
    balanced_tree_layout,
    compute_auto_scale,
    compute_figure_size,
    topology_tree_layout,
)
from .tree import SubdomainNode, SubdivisionTreeView, extract_tree, tree_to_graph


# ---------------------------------------------------------------------------
# Marker kinds (matplotlib marker codes)
# ---------------------------------------------------------------------------

MARKER_CONVERGED = "*"
MARKER_ACTIVE    = "o"
MARKER_SPLIT     = "s"

ELLIPSIS = "…"

# Smallest positive double; keeps log10 finite for zero errors.
_TINY = np.finfo(float).tiny


# ---------------------------------------------------------------------------
# Plain-data records handed to the renderer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NodeStyle:
    color: str
    marker: str
    size: float
    label: str


@dataclass(frozen=True)
class EdgeStyle:
    color: str
    width: float


@dataclass(frozen=True)
class LegendEntry:
    color: str
    marker: str
    label: str


@dataclass(frozen=True)
class TreeDrawing:
    """Everything the renderer needs to draw one tree."""

    view: SubdivisionTreeView
    graph: nx.DiGraph
    positions: dict[int, Point]
    node_styles: dict[int, NodeStyle]
    edge_styles: dict[tuple[int, int], EdgeStyle]
    legend: list[LegendEntry]
    scale: AutoScale
    fig_size: tuple[int, int]
    error_range: tuple[float, float] | None
    balanced_layout: bool


# ---------------------------------------------------------------------------
# Colours
# ---------------------------------------------------------------------------


def dimension_color(dim: int | None, palette: Sequence[str]) -> str:
    """Palette colour for a 1-based split dimension, cycling past the end.

    Returns the fallback grey when *dim* is None.
    """
    if dim is None:
        return FALLBACK_EDGE_COLOR
    return palette[(dim - 1) % len(palette)]


def gradient_color(t: float, colormap: str = "RdYlGn") -> str:
    """Hex colour at position *t* in [0, 1] of *colormap*."""
    cmap = matplotlib.colormaps[colormap]
    return mcolors.to_hex(cmap(float(t)))


def compute_error_range(nodes: Sequence[SubdomainNode]) -> tuple[float, float] | None:
    """(min, max) finite L2 error over active leaves, or None if there is none."""
    errors = [
        n.l2_error for n in nodes
        if n.is_leaf and not n.is_converged and math.isfinite(n.l2_error)
    ]
    if not errors:
        return None
    return (min(errors), max(errors))


def node_color(
    node: SubdomainNode,
    style: TreeVizStyle,
    error_range: tuple[float, float] | None,
) -> str:
    """Colour for *node* according to its role."""
    if not node.is_leaf:
        return dimension_color(node.split_dim, style.dim_colors)
    if node.is_converged:
        return style.converged_color
    if not style.use_error_gradient or not math.isfinite(node.l2_error):
        return style.active_color

    if error_range is None or not error_range[1] > error_range[0]:
        return gradient_color(0.5, style.error_colormap)

    lo = math.log10(max(error_range[0], _TINY))
    hi = math.log10(max(error_range[1], _TINY))
    if not hi > lo:
        return gradient_color(0.5, style.error_colormap)
    t = (math.log10(max(node.l2_error, _TINY)) - lo) / (hi - lo)
    return gradient_color(1.0 - min(max(t, 0.0), 1.0), style.error_colormap)


def node_marker(node: SubdomainNode) -> str:
    if node.is_leaf:
        return MARKER_CONVERGED if node.is_converged else MARKER_ACTIVE
    return MARKER_SPLIT


def node_size(node: SubdomainNode, scale: AutoScale) -> float:
    return scale.leaf_node_size if node.is_leaf else scale.split_node_size


def edge_color(parent: SubdomainNode, style: TreeVizStyle) -> str:
    """Edges take the colour of the parent's split dimension."""
    return dimension_color(parent.split_dim, style.dim_colors)


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


def split_position_label(split_pos: float, width: int = 10) -> str:
    """ASCII marker of a split position, e.g. ``[----|-----]``."""
    pos = round((split_pos + 1) / 2 * (width - 1))
    pos = min(max(pos, 0), width - 1)
    return "[" + "-" * pos + "|" + "-" * (width - 1 - pos) + "]"


def compute_error_reduction(
    view: SubdivisionTreeView, node: SubdomainNode
) -> float | None:
    """Percentage error reduction from *node* to the sum of its children.

    ``(parent - (left + right)) / parent * 100``.  Negative values mean the
    split increased the error.  None for leaves, for non-finite errors and
    for a non-positive parent error.
    """
    if node.is_leaf:
        return None

    left_err = view.node(node.left_id).l2_error
    right_err = view.node(node.right_id).l2_error
    if not (math.isfinite(left_err) and math.isfinite(right_err)):
        return None
    if not math.isfinite(node.l2_error) or node.l2_error <= 0:
        return None

    return (node.l2_error - (left_err + right_err)) / node.l2_error * 100


def truncate_label(label: str, max_chars: int) -> str:
    """Cut *label* to exactly *max_chars* characters ending in an ellipsis."""
    if len(label) > max_chars:
        return label[: max_chars - 1] + ELLIPSIS
    return label


def format_error_value(value: float, sigdigits: int = 2) -> str:
    """Round *value* to *sigdigits* significant digits and print it compactly.

    Magnitudes in [1e-4, 1e6) print in positional notation with at least
    one decimal (``0.012``, ``1200.0``); others in scientific notation
    without exponent padding (``1.0e-6``, ``2.5e7``).
    """
    rounded = float(f"{value:.{sigdigits}g}")
    if rounded == 0.0:
        return "0.0"
    if not math.isfinite(rounded) or 1e-4 <= abs(rounded) < 1e6:
        return repr(rounded)
    mantissa, exponent = f"{rounded:e}".split("e")
    return f"{float(mantissa)!r}e{int(exponent)}"


def format_node_label(
    node: SubdomainNode,
    view: SubdivisionTreeView,
    style: TreeVizStyle,
    balanced_layout: bool = True,
) -> str:
    """Label text for *node*.

    Leaves show their error to two significant digits.  Internal nodes show
    ``x{dim}``, the ASCII split marker when the layout does not already
    encode the split position, and the error reduction with an arrow.
    """
    if node.is_leaf:
        if style.show_error_values and math.isfinite(node.l2_error):
            label = format_error_value(node.l2_error)
        else:
            label = ""
        return truncate_label(label, style.label_max_chars)

    dim = "?" if node.split_dim is None else str(node.split_dim)
    parts = [f"x{dim}"]

    if not balanced_layout and style.show_split_info and node.split_pos is not None:
        parts.append(split_position_label(node.split_pos))

    if style.show_error_reduction:
        reduction = compute_error_reduction(view, node)
        if reduction is not None:
            if reduction >= 0:
                parts.append(f"{round(reduction)}%↓")
            else:
                parts.append(f"{round(-reduction)}%↑")

    return truncate_label(" ".join(parts), style.label_max_chars)


# ---------------------------------------------------------------------------
# Legend
# ---------------------------------------------------------------------------


def legend_entries(
    nodes: Sequence[SubdomainNode], style: TreeVizStyle
) -> list[LegendEntry]:
    """Legend items: split dimensions in use, then leaf status.

    Empty when the tree has no splits (a lone root needs no legend).
    """
    dims_used = sorted({n.split_dim for n in nodes if n.split_dim is not None})
    if not dims_used:
        return []

    entries = [
        LegendEntry(dimension_color(d, style.dim_colors), MARKER_SPLIT, f"x{d} split")
        for d in dims_used
    ]
    entries.append(LegendEntry(style.converged_color, MARKER_CONVERGED, "Converged"))
    if style.use_error_gradient:
        entries.append(LegendEntry(
            gradient_color(1.0, style.error_colormap), MARKER_ACTIVE, "Low error"))
        entries.append(LegendEntry(
            gradient_color(0.0, style.error_colormap), MARKER_ACTIVE, "High error"))
    else:
        entries.append(LegendEntry(style.active_color, MARKER_ACTIVE, "Active"))
    return entries


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------


def build_tree_drawing(
    tree: Any,
    style: TreeVizStyle | None = None,
    balanced_layout: bool = True,
) -> TreeDrawing:
    """Lay out and style *tree*.

    Parameters
    ----------
    tree : object, Mapping or SubdivisionTreeView
        External tree (converted with :func:`extract_tree`) or a view.
    style : TreeVizStyle, optional
        Defaults to ``TreeVizStyle()``.
    balanced_layout : bool
        Split-aware layout when True, topology layout otherwise.

    Returns
    -------
    TreeDrawing
    """
    style = style if style is not None else TreeVizStyle()
    view = extract_tree(tree)

    scale = compute_auto_scale(view, style)
    fig_size = compute_figure_size(view, style)
    graph = tree_to_graph(view)

    if balanced_layout:
        layout = balanced_tree_layout(view, h_scale=scale.h_scale, v_spacing=style.vertical_spacing)
    else:
        layout = topology_tree_layout(view, h_scale=scale.h_scale, v_spacing=style.vertical_spacing)

    error_range = compute_error_range(view.nodes)

    node_styles = {
        node.id: NodeStyle(
            color=node_color(node, style, error_range),
            marker=node_marker(node),
            size=node_size(node, scale),
            label=format_node_label(node, view, style, balanced_layout=balanced_layout),
        )
        for node in view.nodes
    }
    edge_styles = {
        (u, v): EdgeStyle(color=edge_color(view.node(u), style), width=scale.edge_width)
        for u, v in graph.edges()
    }

    return TreeDrawing(
        view=view,
        graph=graph,
        positions=layout.positions,
        node_styles=node_styles,
        edge_styles=edge_styles,
        legend=legend_entries(view.nodes, style),
        scale=scale,
        fig_size=fig_size,
        error_range=error_range,
        balanced_layout=balanced_layout,
    )
