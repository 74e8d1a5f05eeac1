"""
Unit tests for node/edge styling and drawing assembly.

Covers:
  - Dimension palette lookup and cycling
  - Leaf colouring (converged, active, gradient, degenerate range)
  - Label formatting, truncation and error-reduction arrows
  - Legend contents
  - End-to-end drawing of a three-node tree
"""

from __future__ import annotations

import sys
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from globtim_viz.config import (
    ACTIVE_COLOR,
    CONVERGED_COLOR,
    DARK2_PALETTE,
    FALLBACK_EDGE_COLOR,
    TreeVizStyle,
)
from globtim_viz.styling import (
    ELLIPSIS,
    MARKER_ACTIVE,
    MARKER_CONVERGED,
    MARKER_SPLIT,
    build_tree_drawing,
    compute_error_range,
    compute_error_reduction,
    dimension_color,
    format_error_value,
    format_node_label,
    gradient_color,
    legend_entries,
    node_color,
    split_position_label,
    truncate_label,
)
from globtim_viz.tree import extract_tree


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _leaf(l2_error, depth=1, parent_id=1):
    return {"children": None, "split_dim": None, "split_pos": None,
            "l2_error": l2_error, "depth": depth, "parent_id": parent_id}


def _three_node_tree(root_error=0.1, left_error=1e-6, right_error=0.01):
    return {
        "subdomains": [
            {"children": [2, 3], "split_dim": 1, "split_pos": 0.0,
             "l2_error": root_error, "depth": 0, "parent_id": None},
            _leaf(left_error),
            _leaf(right_error),
        ],
        "root_id": 1,
        "converged_leaves": [2],
        "active_leaves": [3],
    }


def _five_node_tree():
    """Root splits x2; its right child splits x1 into two active leaves."""
    return extract_tree({
        "subdomains": [
            {"children": [2, 3], "split_dim": 2, "split_pos": 0.5,
             "l2_error": 1.0, "depth": 0, "parent_id": None},
            _leaf(1e-8),
            {"children": [4, 5], "split_dim": 1, "split_pos": -0.5,
             "l2_error": 0.5, "depth": 1, "parent_id": 1},
            _leaf(1e-4, depth=2, parent_id=3),
            _leaf(1e-1, depth=2, parent_id=3),
        ],
        "root_id": 1,
        "converged_leaves": [2],
        "active_leaves": [4, 5],
    })


# ---------------------------------------------------------------------------
# Colours
# ---------------------------------------------------------------------------


class TestColours(unittest.TestCase):

    def test_dimension_color_is_one_based(self):
        self.assertEqual(dimension_color(1, DARK2_PALETTE), DARK2_PALETTE[0])
        self.assertEqual(dimension_color(6, DARK2_PALETTE), DARK2_PALETTE[5])

    def test_dimension_color_cycles(self):
        self.assertEqual(dimension_color(7, DARK2_PALETTE), DARK2_PALETTE[0])
        self.assertEqual(dimension_color(9, ("#111111", "#222222")), "#111111")

    def test_dimension_color_none_is_fallback(self):
        self.assertEqual(dimension_color(None, DARK2_PALETTE), FALLBACK_EDGE_COLOR)

    def test_gradient_endpoints_differ(self):
        self.assertNotEqual(gradient_color(0.0), gradient_color(1.0))
        self.assertTrue(gradient_color(0.5).startswith("#"))

    def test_converged_leaf(self):
        view = _five_node_tree()
        self.assertEqual(node_color(view.node(2), TreeVizStyle(), (1e-4, 1e-1)), CONVERGED_COLOR)

    def test_internal_node_uses_dimension(self):
        view = _five_node_tree()
        style = TreeVizStyle()
        self.assertEqual(node_color(view.node(1), style, None), DARK2_PALETTE[1])
        self.assertEqual(node_color(view.node(3), style, None), DARK2_PALETTE[0])

    def test_active_leaf_without_gradient(self):
        view = _five_node_tree()
        style = TreeVizStyle(use_error_gradient=False)
        self.assertEqual(node_color(view.node(4), style, (1e-4, 1e-1)), ACTIVE_COLOR)

    def test_gradient_low_error_green_end(self):
        view = _five_node_tree()
        style = TreeVizStyle()
        rng = compute_error_range(view.nodes)
        self.assertEqual(rng, (1e-4, 1e-1))
        self.assertEqual(node_color(view.node(4), style, rng), gradient_color(1.0))
        self.assertEqual(node_color(view.node(5), style, rng), gradient_color(0.0))

    def test_degenerate_range_uses_midpoint(self):
        view = extract_tree(_three_node_tree())
        rng = compute_error_range(view.nodes)
        self.assertEqual(rng, (0.01, 0.01))
        self.assertEqual(node_color(view.node(3), TreeVizStyle(), rng), gradient_color(0.5))

    def test_missing_range_uses_midpoint(self):
        view = extract_tree(_three_node_tree())
        self.assertEqual(node_color(view.node(3), TreeVizStyle(), None), gradient_color(0.5))

    def test_infinite_error_uses_active_colour(self):
        view = extract_tree(_three_node_tree(right_error=None))
        self.assertIsNone(compute_error_range(view.nodes))
        self.assertEqual(node_color(view.node(3), TreeVizStyle(), None), ACTIVE_COLOR)

    def test_zero_error_does_not_crash(self):
        view = extract_tree({
            "subdomains": [
                {"children": [2, 3], "split_dim": 1, "split_pos": 0.0,
                 "l2_error": 1.0, "depth": 0, "parent_id": None},
                _leaf(0.0),
                _leaf(1e-3),
            ],
            "root_id": 1,
            "converged_leaves": [],
            "active_leaves": [2, 3],
        })
        rng = compute_error_range(view.nodes)
        self.assertEqual(node_color(view.node(2), TreeVizStyle(), rng), gradient_color(1.0))


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


class TestLabels(unittest.TestCase):

    def test_truncate_to_exact_length(self):
        label = truncate_label("x1 [----|-----] 90%↓", 8)
        self.assertEqual(len(label), 8)
        self.assertTrue(label.endswith(ELLIPSIS))

    def test_short_label_unchanged(self):
        self.assertEqual(truncate_label("x1", 15), "x1")
        self.assertEqual(truncate_label("abcde", 5), "abcde")

    def test_error_reduction(self):
        view = extract_tree(_three_node_tree())
        self.assertAlmostEqual(compute_error_reduction(view, view.node(1)), 89.999)

    def test_error_reduction_negative_when_split_hurts(self):
        view = extract_tree(_three_node_tree(root_error=0.01, left_error=0.01, right_error=0.01))
        self.assertAlmostEqual(compute_error_reduction(view, view.node(1)), -100.0)
        label = format_node_label(view.node(1), view, TreeVizStyle())
        self.assertEqual(label, "x1 100%↑")

    def test_error_reduction_undefined(self):
        view = extract_tree(_three_node_tree(right_error=None))
        self.assertIsNone(compute_error_reduction(view, view.node(1)))
        self.assertIsNone(compute_error_reduction(view, view.node(2)))
        zero = extract_tree(_three_node_tree(root_error=0.0))
        self.assertIsNone(compute_error_reduction(zero, zero.node(1)))
        self.assertEqual(format_node_label(zero.node(1), zero, TreeVizStyle()), "x1")

    def test_leaf_label_two_significant_digits(self):
        view = extract_tree(_three_node_tree(right_error=0.012345))
        self.assertEqual(format_node_label(view.node(3), view, TreeVizStyle()), "0.012")

    def test_error_value_formatting(self):
        self.assertEqual(format_error_value(1e-6), "1.0e-6")
        self.assertEqual(format_error_value(1234.0), "1200.0")
        self.assertEqual(format_error_value(0.012345), "0.012")
        self.assertEqual(format_error_value(1e-4), "0.0001")
        self.assertEqual(format_error_value(5.0), "5.0")
        self.assertEqual(format_error_value(2.46e7), "2.5e7")
        self.assertEqual(format_error_value(999999.0), "1.0e6")
        self.assertEqual(format_error_value(0.0), "0.0")

    def test_error_value_more_digits(self):
        self.assertEqual(format_error_value(1.2345e-6, sigdigits=3), "1.23e-6")
        self.assertEqual(format_error_value(1e-6, sigdigits=3), "1.0e-6")
        self.assertEqual(format_error_value(0.0123456, sigdigits=3), "0.0123")

    def test_leaf_label_large_error(self):
        view = extract_tree(_three_node_tree(right_error=1234.0))
        self.assertEqual(format_node_label(view.node(3), view, TreeVizStyle()), "1200.0")

    def test_leaf_label_hidden(self):
        view = extract_tree(_three_node_tree())
        style = TreeVizStyle(show_error_values=False)
        self.assertEqual(format_node_label(view.node(2), view, style), "")

    def test_split_marker_only_in_topology_layout(self):
        view = extract_tree(_three_node_tree())
        style = TreeVizStyle(label_max_chars=40)
        balanced = format_node_label(view.node(1), view, style, balanced_layout=True)
        topology = format_node_label(view.node(1), view, style, balanced_layout=False)
        self.assertNotIn("|", balanced)
        self.assertIn(split_position_label(0.0), topology)

    def test_split_position_label(self):
        self.assertEqual(split_position_label(-1.0), "[|---------]")
        self.assertEqual(split_position_label(1.0), "[---------|]")
        self.assertEqual(len(split_position_label(0.3)), 12)

    def test_labels_respect_max_chars(self):
        style = TreeVizStyle(label_max_chars=4)
        view = _five_node_tree()
        for node in view.nodes:
            self.assertLessEqual(len(format_node_label(node, view, style, False)), 4)


# ---------------------------------------------------------------------------
# Legend
# ---------------------------------------------------------------------------


class TestLegend(unittest.TestCase):

    def test_dimensions_then_status(self):
        entries = legend_entries(_five_node_tree().nodes, TreeVizStyle())
        labels = [e.label for e in entries]
        self.assertEqual(labels, ["x1 split", "x2 split", "Converged", "Low error", "High error"])
        self.assertEqual(entries[0].marker, MARKER_SPLIT)
        self.assertEqual(entries[2].color, CONVERGED_COLOR)

    def test_without_gradient(self):
        entries = legend_entries(_five_node_tree().nodes, TreeVizStyle(use_error_gradient=False))
        self.assertEqual(entries[-1].label, "Active")
        self.assertEqual(entries[-1].color, ACTIVE_COLOR)

    def test_lone_root_has_no_legend(self):
        view = extract_tree({
            "subdomains": [_leaf(0.5, depth=0, parent_id=None)],
            "root_id": 1,
            "converged_leaves": [],
            "active_leaves": [1],
        })
        self.assertEqual(legend_entries(view.nodes, TreeVizStyle()), [])


# ---------------------------------------------------------------------------
# End-to-end drawing
# ---------------------------------------------------------------------------


class TestBuildTreeDrawing(unittest.TestCase):

    def setUp(self):
        self.drawing = build_tree_drawing(_three_node_tree())

    def test_positions(self):
        pos = self.drawing.positions
        self.assertEqual(pos[1], (5.0, 0.0))
        self.assertEqual(pos[2], (2.5, -1.5))
        self.assertEqual(pos[3], (7.5, -1.5))

    def test_node_styles(self):
        styles = self.drawing.node_styles
        self.assertEqual(styles[1].marker, MARKER_SPLIT)
        self.assertEqual(styles[1].color, DARK2_PALETTE[0])
        self.assertEqual(styles[2].marker, MARKER_CONVERGED)
        self.assertEqual(styles[2].color, CONVERGED_COLOR)
        self.assertEqual(styles[3].marker, MARKER_ACTIVE)
        self.assertEqual(styles[3].color, gradient_color(0.5))

    def test_labels(self):
        styles = self.drawing.node_styles
        self.assertEqual(styles[1].label, "x1 90%↓")
        self.assertEqual(styles[2].label, "1.0e-6")
        self.assertEqual(styles[3].label, "0.01")

    def test_edges_take_parent_dimension_colour(self):
        edges = self.drawing.edge_styles
        self.assertEqual(set(edges), {(1, 2), (1, 3)})
        for edge in edges.values():
            self.assertEqual(edge.color, DARK2_PALETTE[0])
            self.assertEqual(edge.width, TreeVizStyle().edge_width)

    def test_unscaled_small_tree(self):
        self.assertEqual(self.drawing.scale.node_scale, 1.0)
        self.assertEqual(self.drawing.node_styles[2].size, TreeVizStyle().leaf_node_size)
        self.assertEqual(self.drawing.node_styles[1].size, TreeVizStyle().split_node_size)

    def test_topology_layout_flag(self):
        drawing = build_tree_drawing(_three_node_tree(), balanced_layout=False)
        self.assertFalse(drawing.balanced_layout)
        self.assertEqual(drawing.positions[1], (5.0, 0.0))
        self.assertEqual(drawing.positions[2], (0.0, -1.5))

    def test_does_not_mutate_input(self):
        tree = _three_node_tree()
        before = repr(tree)
        build_tree_drawing(tree)
        self.assertEqual(repr(tree), before)


if __name__ == "__main__":
    unittest.main()
