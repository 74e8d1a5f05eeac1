"""
Tree layout and auto-scaling for subdivision tree drawings.

Two layouts are provided:

  balanced_tree_layout
      Split-aware.  Each node owns a horizontal interval; children divide it
      in proportion to where the split happened in the real domain, so the
      picture shows *where* each subdomain was cut, not only the topology.

  topology_tree_layout
      Classic tidy layout: leaves evenly spaced left to right, parents
      centred over their children.

Both place depth d at ``y = -d * vertical_spacing``.

Auto-scaling shrinks markers and fonts and widens the canvas as trees grow,
so that trees with a handful to hundreds of nodes stay legible.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .config import TreeVizStyle
from .tree import MalformedTreeError, SubdivisionTreeView


Point = tuple[float, float]

AUTO_SCALE_THRESHOLD = 10


# ---------------------------------------------------------------------------
# Layout result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TreeLayout:
    """Node coordinates keyed by node id.

    Attributes
    ----------
    positions : dict[int, (float, float)]
        Final (x, y) per node, after horizontal scaling and origin offset.
    intervals : dict[int, (float, float)]
        Unscaled horizontal interval owned by each node.  Empty for the
        topology layout.
    """

    positions: dict[int, Point]
    intervals: dict[int, tuple[float, float]]


def _clamp(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)


def _child_ids(view: SubdivisionTreeView, node_id: int) -> tuple[int, int] | None:
    node = view.node(node_id)
    if node.is_leaf:
        return None
    n = len(view.nodes)
    for child_id in node.children:
        if not 1 <= child_id <= n:
            raise MalformedTreeError(
                f"child id out of range: node {node_id} references {child_id}, "
                f"valid ids are [1, {n}]"
            )
    return node.children


def _mark_seen(seen: set[int], node_id: int) -> None:
    if node_id in seen:
        raise MalformedTreeError(
            f"node {node_id} reached twice; subdivision tree has a cycle or shared child"
        )
    seen.add(node_id)


# ---------------------------------------------------------------------------
# Split-aware layout
# ---------------------------------------------------------------------------


def split_interval(
    x_min: float, x_max: float, split_pos: float | None
) -> tuple[tuple[float, float], tuple[float, float]]:
    """Divide ``[x_min, x_max]`` between a left and a right child.

    ``split_pos`` in [-1, 1] maps to ``split_frac = (split_pos + 1) / 2``;
    the left child receives that fraction of the width.  None is treated
    as a centred split.

    >>> split_interval(0.0, 10.0, 0.0)
    ((0.0, 5.0), (5.0, 10.0))
    >>> split_interval(0.0, 10.0, -1.0)
    ((0.0, 0.0), (0.0, 10.0))
    """
    pos = 0.0 if split_pos is None else float(split_pos)
    split_frac = (pos + 1.0) / 2.0
    x_split = x_min + (x_max - x_min) * split_frac
    return (x_min, x_split), (x_split, x_max)


def balanced_tree_layout(
    view: SubdivisionTreeView,
    h_scale: float = 10.0,
    v_spacing: float = 1.5,
    x_range: tuple[float, float] = (0.0, 1.0),
    origin: Point = (0.0, 0.0),
) -> TreeLayout:
    """Split-aware layout of *view*.

    Parameters
    ----------
    view : SubdivisionTreeView
        Tree to lay out.
    h_scale : float
        Multiplier applied to every x coordinate after subdivision.
    v_spacing : float
        Vertical distance between consecutive depths.
    x_range : (float, float)
        Interval owned by the root before scaling.
    origin : (float, float)
        Offset added to every scaled position.

    Returns
    -------
    TreeLayout
        Positions ``((x_min + x_max) / 2 * h_scale + ox, -depth * v_spacing + oy)``
        and the unscaled interval of every node reachable from the root.

    Raises
    ------
    MalformedTreeError
        If a child id does not name a node, or a node is reached twice
        (a cycle or a child shared between parents).
    """
    ox, oy = origin
    positions: dict[int, Point] = {}
    intervals: dict[int, tuple[float, float]] = {}

    # Pre-order traversal; the stack holds at most one pending sibling per level.
    stack: list[tuple[int, float, float]] = [(view.root_id, x_range[0], x_range[1])]
    seen: set[int] = set()
    while stack:
        node_id, x_min, x_max = stack.pop()
        _mark_seen(seen, node_id)
        node = view.node(node_id)
        intervals[node_id] = (x_min, x_max)
        x_center = (x_min + x_max) / 2.0
        positions[node_id] = (x_center * h_scale + ox, -node.depth * v_spacing + oy)

        children = _child_ids(view, node_id)
        if children is None:
            continue
        left, right = split_interval(x_min, x_max, node.split_pos)
        stack.append((children[1], *right))
        stack.append((children[0], *left))

    return TreeLayout(positions=positions, intervals=intervals)


# ---------------------------------------------------------------------------
# Topology layout
# ---------------------------------------------------------------------------


def topology_tree_layout(
    view: SubdivisionTreeView,
    h_scale: float = 10.0,
    v_spacing: float = 1.5,
    origin: Point = (0.0, 0.0),
) -> TreeLayout:
    """Tidy layout that ignores split positions.

    Leaves are placed at evenly spaced x in [0, 1] in left-to-right order;
    every internal node sits at the mean x of its two children.
    """
    ox, oy = origin

    # Left-to-right leaf order, then post-order for parents.
    leaf_order: list[int] = []
    post_order: list[int] = []
    stack: list[tuple[int, bool]] = [(view.root_id, False)]
    seen: set[int] = set()
    while stack:
        node_id, expanded = stack.pop()
        if not expanded:
            _mark_seen(seen, node_id)
        children = _child_ids(view, node_id)
        if children is None:
            leaf_order.append(node_id)
            post_order.append(node_id)
        elif expanded:
            post_order.append(node_id)
        else:
            stack.append((node_id, True))
            stack.append((children[1], False))
            stack.append((children[0], False))

    n_leaves = len(leaf_order)
    x_unit: dict[int, float] = {}
    for rank, leaf_id in enumerate(leaf_order):
        x_unit[leaf_id] = 0.5 if n_leaves == 1 else rank / (n_leaves - 1)
    for node_id in post_order:
        if node_id not in x_unit:
            left_id, right_id = view.node(node_id).children
            x_unit[node_id] = (x_unit[left_id] + x_unit[right_id]) / 2.0

    positions = {
        node_id: (x * h_scale + ox, -view.node(node_id).depth * v_spacing + oy)
        for node_id, x in x_unit.items()
    }
    return TreeLayout(positions=positions, intervals={})


# ---------------------------------------------------------------------------
# Auto-scaling
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AutoScale:
    """Size-dependent drawing parameters."""

    node_scale: float
    font_scale: float
    h_scale: float
    split_node_size: float
    leaf_node_size: float
    label_fontsize: int
    edge_width: float


def compute_auto_scale(view: SubdivisionTreeView, style: TreeVizStyle) -> AutoScale:
    """Scale node sizes, fonts, edge width and horizontal spread to tree size.

    Trees with at most ``AUTO_SCALE_THRESHOLD`` nodes (or with auto-scaling
    disabled) get the configured values unchanged.  Larger trees use

        node_scale = clamp(3 / log2(n + 2), node_scale_min, node_scale_max)
        font_scale = clamp(4 / log2(n + 2), font_scale_min, font_scale_max)
        h_scale    = horizontal_scale * (1 + 0.5 * log2(leaves / 10))  if leaves > 10

    Both scale factors are non-increasing in n.
    """
    n_nodes = len(view.nodes)
    n_leaves = len(view.leaves)

    if not style.auto_scale or n_nodes <= AUTO_SCALE_THRESHOLD:
        return AutoScale(
            node_scale=1.0,
            font_scale=1.0,
            h_scale=style.horizontal_scale,
            split_node_size=style.split_node_size,
            leaf_node_size=style.leaf_node_size,
            label_fontsize=style.label_fontsize,
            edge_width=style.edge_width,
        )

    log_n = math.log2(n_nodes + 2)
    node_scale = _clamp(3.0 / log_n, style.node_scale_min, style.node_scale_max)
    font_scale = _clamp(4.0 / log_n, style.font_scale_min, style.font_scale_max)

    if n_leaves > 10:
        h_scale = style.horizontal_scale * (1.0 + 0.5 * math.log2(n_leaves / 10))
    else:
        h_scale = style.horizontal_scale

    return AutoScale(
        node_scale=node_scale,
        font_scale=font_scale,
        h_scale=h_scale,
        split_node_size=_clamp(
            style.split_node_size * node_scale, style.min_node_size, style.max_node_size
        ),
        leaf_node_size=_clamp(
            style.leaf_node_size * node_scale, style.min_node_size, style.max_node_size
        ),
        label_fontsize=max(style.min_fontsize, round(style.label_fontsize * font_scale)),
        edge_width=max(1.0, style.edge_width * node_scale),
    )


def compute_figure_size(view: SubdivisionTreeView, style: TreeVizStyle) -> tuple[int, int]:
    """Figure (width, height) in pixels.

    Width grows with the leaf count and height with the maximum depth, each
    clamped to the style's floor and ceiling.
    """
    if not style.auto_fig_size:
        return style.fig_size

    n_leaves = len(view.leaves)
    width = _clamp(
        n_leaves * style.px_per_leaf + style.width_offset,
        style.min_fig_width, style.max_fig_width,
    )
    height = _clamp(
        (view.max_depth + 1) * style.px_per_level + style.height_offset,
        style.min_fig_height, style.max_fig_height,
    )
    return (round(width), round(height))
