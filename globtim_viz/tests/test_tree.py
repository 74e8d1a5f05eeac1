"""Unit tests for subdivision tree extraction, graph conversion and summary."""

from __future__ import annotations

import io
import math
import sys
import unittest
import warnings
from pathlib import Path
from types import SimpleNamespace

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from globtim_viz.tree import (
    InternalNode,
    LeafNode,
    MalformedTreeError,
    MissingFieldError,
    extract_tree,
    print_tree_summary,
    tree_summary,
    tree_to_graph,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _sd(children=None, split_dim=None, split_pos=None, l2_error=1.0, depth=0, parent_id=None):
    return SimpleNamespace(
        children=children, split_dim=split_dim, split_pos=split_pos,
        l2_error=l2_error, depth=depth, parent_id=parent_id,
    )


def _three_node_tree(root_error=0.1):
    """Root split at x1 centre; left leaf converged, right leaf active."""
    return SimpleNamespace(
        subdomains=[
            _sd(children=(2, 3), split_dim=1, split_pos=0.0, l2_error=root_error),
            _sd(l2_error=1e-6, depth=1, parent_id=1),
            _sd(l2_error=0.01, depth=1, parent_id=1),
        ],
        root_id=1,
        converged_leaves=[2],
        active_leaves=[3],
    )


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


class TestExtractTree(unittest.TestCase):

    def test_node_variants(self):
        view = extract_tree(_three_node_tree())
        root, left, right = view.nodes
        self.assertIsInstance(root, InternalNode)
        self.assertIsInstance(left, LeafNode)
        self.assertIsInstance(right, LeafNode)
        self.assertFalse(root.is_leaf)
        self.assertTrue(left.is_leaf)

    def test_ids_are_one_based(self):
        view = extract_tree(_three_node_tree())
        self.assertEqual([n.id for n in view.nodes], [1, 2, 3])
        self.assertEqual(view.node(3).id, 3)

    def test_converged_membership(self):
        view = extract_tree(_three_node_tree())
        self.assertTrue(view.node(2).is_converged)
        self.assertFalse(view.node(3).is_converged)
        self.assertFalse(view.node(1).is_converged)

    def test_internal_fields(self):
        root = extract_tree(_three_node_tree()).node(1)
        self.assertEqual(root.split_dim, 1)
        self.assertEqual(root.split_pos, 0.0)
        self.assertEqual(root.children, (2, 3))
        self.assertIsNone(root.parent_id)

    def test_leaf_has_no_split_metadata(self):
        leaf = extract_tree(_three_node_tree()).node(2)
        self.assertIsNone(leaf.split_dim)
        self.assertIsNone(leaf.split_pos)
        self.assertIsNone(leaf.children)
        self.assertEqual(leaf.parent_id, 1)

    def test_mapping_input_accepted(self):
        tree = {
            "subdomains": [
                {"children": [2, 3], "split_dim": 2, "split_pos": 0.5,
                 "l2_error": 1.0, "depth": 0, "parent_id": None},
                {"children": None, "split_dim": None, "split_pos": None,
                 "l2_error": 0.1, "depth": 1, "parent_id": 1},
                {"children": None, "split_dim": None, "split_pos": None,
                 "l2_error": 0.2, "depth": 1, "parent_id": 1},
            ],
            "root_id": 1,
            "converged_leaves": [],
            "active_leaves": [2, 3],
        }
        view = extract_tree(tree)
        self.assertEqual(view.node(1).split_dim, 2)
        self.assertEqual(view.active_ids, frozenset({2, 3}))

    def test_none_error_is_infinite(self):
        tree = _three_node_tree()
        tree.subdomains[2].l2_error = None
        self.assertTrue(math.isinf(extract_tree(tree).node(3).l2_error))

    def test_missing_split_pos_tolerated(self):
        tree = _three_node_tree()
        tree.subdomains[0].split_pos = None
        self.assertIsNone(extract_tree(tree).node(1).split_pos)

    def test_does_not_mutate_input(self):
        tree = _three_node_tree()
        before = [vars(sd).copy() for sd in tree.subdomains]
        extract_tree(tree)
        self.assertEqual([vars(sd) for sd in tree.subdomains], before)

    def test_view_passes_through(self):
        view = extract_tree(_three_node_tree())
        self.assertIs(extract_tree(view), view)


class TestExtractTreeErrors(unittest.TestCase):

    def test_missing_top_level_field(self):
        tree = _three_node_tree()
        del tree.active_leaves
        with self.assertRaises(MissingFieldError) as ctx:
            extract_tree(tree)
        self.assertIn("active_leaves", str(ctx.exception))

    def test_missing_subdomain_field(self):
        tree = _three_node_tree()
        del tree.subdomains[1].depth
        with self.assertRaises(MissingFieldError) as ctx:
            extract_tree(tree)
        self.assertIn("depth", str(ctx.exception))

    def test_missing_field_is_malformed_tree_error(self):
        self.assertTrue(issubclass(MissingFieldError, MalformedTreeError))
        self.assertTrue(issubclass(MalformedTreeError, ValueError))

    def test_child_id_out_of_range(self):
        tree = _three_node_tree()
        tree.subdomains[0].children = (2, 9)
        with self.assertRaises(MalformedTreeError) as ctx:
            extract_tree(tree)
        self.assertIn("child id out of range", str(ctx.exception))

    def test_missing_split_dim_on_internal_node(self):
        tree = _three_node_tree()
        tree.subdomains[0].split_dim = None
        with self.assertRaises(MalformedTreeError) as ctx:
            extract_tree(tree)
        self.assertIn("missing split_dim", str(ctx.exception))

    def test_root_id_out_of_range(self):
        tree = _three_node_tree()
        tree.root_id = 7
        with self.assertRaises(MalformedTreeError):
            extract_tree(tree)

    def test_leaf_in_both_sets_warns_and_is_converged(self):
        tree = _three_node_tree()
        tree.active_leaves = [2, 3]
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            view = extract_tree(tree)
        user_warnings = [w for w in caught if issubclass(w.category, UserWarning)]
        self.assertEqual(len(user_warnings), 1)
        self.assertTrue(view.node(2).is_converged)

    def test_clean_tree_no_warnings(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            extract_tree(_three_node_tree())
        self.assertEqual(len(caught), 0)


# ---------------------------------------------------------------------------
# Graph and summary
# ---------------------------------------------------------------------------


class TestTreeToGraph(unittest.TestCase):

    def test_edges_parent_to_children(self):
        G = tree_to_graph(extract_tree(_three_node_tree()))
        self.assertEqual(sorted(G.nodes()), [1, 2, 3])
        self.assertEqual(list(G.edges()), [(1, 2), (1, 3)])
        self.assertTrue(G.is_directed())


class TestTreeSummary(unittest.TestCase):

    def test_summary_counts(self):
        summary = tree_summary(extract_tree(_three_node_tree()))
        self.assertEqual(summary["n_leaves"], 2)
        self.assertEqual(summary["n_converged"], 1)
        self.assertEqual(summary["n_active"], 1)
        self.assertEqual(summary["max_depth"], 1)
        self.assertEqual(summary["split_counts"], {1: 1})
        self.assertAlmostEqual(summary["total_l2_error"], 1e-6 + 0.01)

    def test_total_error_skips_infinite_leaves(self):
        tree = _three_node_tree()
        tree.subdomains[2].l2_error = float("inf")
        summary = tree_summary(extract_tree(tree))
        self.assertAlmostEqual(summary["total_l2_error"], 1e-6)

    def test_print_summary(self):
        buf = io.StringIO()
        print_tree_summary(_three_node_tree(), file=buf)
        text = buf.getvalue()
        self.assertIn("Subdivision Tree Summary", text)
        self.assertIn("Leaves: 2 (1 converged, 1 active)", text)
        self.assertIn("Max depth: 1", text)
        self.assertIn("Splits: x1=1", text)


if __name__ == "__main__":
    unittest.main()
