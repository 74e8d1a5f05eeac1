"""
Subdivision tree data model and extraction adapter.

An adaptive subdivision tree arrives from the optimization core as a foreign
object.  :func:`extract_tree` converts it once, at the boundary, into an
immutable :class:`SubdivisionTreeView` of :class:`LeafNode` /
:class:`InternalNode` records.  Everything downstream (layout, styling,
rendering) reads only the view.

Node ids are 1-based: ``view.nodes[id - 1].id == id``.
"""

from __future__ import annotations

import math
import sys
import warnings
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Sequence, TextIO, Union

import networkx as nx


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class MalformedTreeError(ValueError):
    """Raised when a subdivision tree violates a structural invariant."""


class MissingFieldError(MalformedTreeError):
    """Raised when a required field is absent from the external tree."""


# ---------------------------------------------------------------------------
# Node records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LeafNode:
    """Leaf subdomain.  ``converged`` is False for active leaves."""

    id: int
    depth: int
    l2_error: float
    parent_id: int | None
    converged: bool

    is_leaf = True

    @property
    def is_converged(self) -> bool:
        return self.converged

    @property
    def split_dim(self) -> None:
        return None

    @property
    def split_pos(self) -> None:
        return None

    @property
    def children(self) -> None:
        return None


@dataclass(frozen=True)
class InternalNode:
    """Subdomain split along ``split_dim`` at relative position ``split_pos``.

    ``split_pos`` lies in [-1, 1]; -1 is the lower edge of the domain, +1 the
    upper edge.  It may be None, in which case layouts treat the split as
    centred.
    """

    id: int
    depth: int
    l2_error: float
    parent_id: int | None
    split_dim: int | None
    split_pos: float | None
    left_id: int
    right_id: int

    is_leaf = False
    is_converged = False

    @property
    def children(self) -> tuple[int, int]:
        return (self.left_id, self.right_id)


SubdomainNode = Union[LeafNode, InternalNode]


@dataclass(frozen=True)
class SubdivisionTreeView:
    """Read-only snapshot of a subdivision tree."""

    nodes: tuple[SubdomainNode, ...]
    root_id: int
    converged_ids: frozenset[int]
    active_ids: frozenset[int]

    def node(self, node_id: int) -> SubdomainNode:
        """Look up a node by its 1-based id."""
        if not 1 <= node_id <= len(self.nodes):
            raise MalformedTreeError(
                f"node id {node_id} out of range [1, {len(self.nodes)}]"
            )
        return self.nodes[node_id - 1]

    @property
    def leaves(self) -> list[LeafNode]:
        return [n for n in self.nodes if n.is_leaf]

    @property
    def max_depth(self) -> int:
        return max(n.depth for n in self.nodes)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


_MISSING = object()


def _require(obj: Any, name: str, where: str) -> Any:
    """Read *name* from a mapping or an attribute-bearing object."""
    if isinstance(obj, Mapping):
        value = obj.get(name, _MISSING)
    else:
        value = getattr(obj, name, _MISSING)
    if value is _MISSING:
        raise MissingFieldError(f"{where} is missing required field {name!r}")
    return value


def _as_error(value: Any) -> float:
    # None stands for "never evaluated", i.e. infinite error.
    if value is None:
        return math.inf
    return float(value)


def extract_tree(tree: Any) -> SubdivisionTreeView:
    """Convert an external subdivision tree into a :class:`SubdivisionTreeView`.

    The tree may be any object (or mapping) exposing ``subdomains``,
    ``root_id``, ``converged_leaves`` and ``active_leaves``.  Each subdomain
    must expose ``children``, ``split_dim``, ``split_pos``, ``l2_error``,
    ``depth`` and ``parent_id``.

    Parameters
    ----------
    tree : object or Mapping
        External tree.  Never mutated.

    Returns
    -------
    SubdivisionTreeView

    Raises
    ------
    MissingFieldError
        If a required field is absent.
    MalformedTreeError
        If a child or root id is out of range, or an internal node has no
        split dimension.
    """
    if isinstance(tree, SubdivisionTreeView):
        return tree

    subdomains: Sequence[Any] = _require(tree, "subdomains", "tree")
    root_id = int(_require(tree, "root_id", "tree"))
    converged_ids = frozenset(int(i) for i in _require(tree, "converged_leaves", "tree"))
    active_ids = frozenset(int(i) for i in _require(tree, "active_leaves", "tree"))

    n = len(subdomains)
    if not 1 <= root_id <= n:
        raise MalformedTreeError(f"root id {root_id} out of range [1, {n}]")

    both = converged_ids & active_ids
    if both:
        warnings.warn(
            f"extract_tree: {len(both)} leaf id(s) listed as both converged and "
            f"active ({sorted(both)[:10]}); treating them as converged.",
            UserWarning,
            stacklevel=2,
        )

    nodes: list[SubdomainNode] = []
    for node_id, sd in enumerate(subdomains, start=1):
        where = f"subdomain {node_id}"
        children = _require(sd, "children", where)
        split_dim = _require(sd, "split_dim", where)
        split_pos = _require(sd, "split_pos", where)
        l2_error = _as_error(_require(sd, "l2_error", where))
        depth = int(_require(sd, "depth", where))
        parent_id = _require(sd, "parent_id", where)
        parent_id = None if parent_id is None else int(parent_id)

        if children is None:
            nodes.append(LeafNode(
                id=node_id,
                depth=depth,
                l2_error=l2_error,
                parent_id=parent_id,
                converged=node_id in converged_ids,
            ))
            continue

        left_id, right_id = (int(c) for c in children)
        for child_id in (left_id, right_id):
            if not 1 <= child_id <= n:
                raise MalformedTreeError(
                    f"child id out of range: {where} references {child_id}, "
                    f"valid ids are [1, {n}]"
                )
        if split_dim is None:
            raise MalformedTreeError(f"missing split_dim on internal node {node_id}")

        nodes.append(InternalNode(
            id=node_id,
            depth=depth,
            l2_error=l2_error,
            parent_id=parent_id,
            split_dim=int(split_dim),
            split_pos=None if split_pos is None else float(split_pos),
            left_id=left_id,
            right_id=right_id,
        ))

    return SubdivisionTreeView(
        nodes=tuple(nodes),
        root_id=root_id,
        converged_ids=converged_ids,
        active_ids=active_ids,
    )


# ---------------------------------------------------------------------------
# Graph conversion
# ---------------------------------------------------------------------------


def tree_to_graph(view: SubdivisionTreeView) -> nx.DiGraph:
    """Directed graph with nodes 1..n and parent → child edges (left first)."""
    G = nx.DiGraph()
    G.add_nodes_from(range(1, len(view.nodes) + 1))
    for node in view.nodes:
        if not node.is_leaf:
            G.add_edge(node.id, node.left_id)
            G.add_edge(node.id, node.right_id)
    return G


# ---------------------------------------------------------------------------
# Summary statistics
# ---------------------------------------------------------------------------


def tree_summary(view: SubdivisionTreeView) -> dict[str, Any]:
    """Summary statistics for a tree.

    Returns
    -------
    dict
        ``n_leaves``, ``n_converged``, ``n_active``, ``max_depth``,
        ``split_counts`` (dimension → number of splits, sorted by dimension)
        and ``total_l2_error`` (sum over leaves with finite error).
    """
    split_counts: dict[int, int] = {}
    for node in view.nodes:
        if node.split_dim is not None:
            split_counts[node.split_dim] = split_counts.get(node.split_dim, 0) + 1

    total_err = sum(
        n.l2_error for n in view.nodes if n.is_leaf and math.isfinite(n.l2_error)
    )

    return {
        "n_leaves": len(view.converged_ids) + len(view.active_ids),
        "n_converged": len(view.converged_ids),
        "n_active": len(view.active_ids),
        "max_depth": view.max_depth,
        "split_counts": dict(sorted(split_counts.items())),
        "total_l2_error": float(total_err),
    }


def print_tree_summary(tree: Any, file: TextIO | None = None) -> None:
    """Print a short text report for *tree* (external tree or view)."""
    out = file if file is not None else sys.stdout
    summary = tree_summary(extract_tree(tree))

    print("Subdivision Tree Summary", file=out)
    print("=" * 40, file=out)
    print(
        f"Leaves: {summary['n_leaves']} ({summary['n_converged']} converged, "
        f"{summary['n_active']} active)",
        file=out,
    )
    print(f"Max depth: {summary['max_depth']}", file=out)
    if summary["split_counts"]:
        dims = " ".join(f"x{d}={c}" for d, c in summary["split_counts"].items())
        print(f"Splits: {dims}", file=out)
    print(f"Total L2 error: {summary['total_l2_error']:.4g}", file=out)
