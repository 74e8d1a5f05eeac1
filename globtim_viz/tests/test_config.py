"""Unit tests for the styling configuration module."""

from __future__ import annotations
import json, sys, tempfile, unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))
from globtim_viz.config import (
    DARK2_PALETTE, TreeVizStyle, load_style, style_from_dict,
)


def _write_style(d):
    f = tempfile.NamedTemporaryFile(suffix=".json", delete=False, mode="w")
    json.dump(d, f); f.close()
    return Path(f.name)


class TestTreeVizStyle(unittest.TestCase):

    def test_defaults_are_valid(self):
        style = TreeVizStyle()
        self.assertEqual(style.dim_colors, DARK2_PALETTE)
        self.assertEqual(style.horizontal_scale, 10.0)
        self.assertEqual(style.vertical_spacing, 1.5)
        self.assertEqual(style.label_max_chars, 15)

    def test_inverted_node_size_bounds_rejected(self):
        with self.assertRaises(ValueError):
            TreeVizStyle(min_node_size=40.0, max_node_size=30.0)

    def test_inverted_font_scale_bounds_rejected(self):
        with self.assertRaises(ValueError):
            TreeVizStyle(font_scale_min=0.9, font_scale_max=0.5)

    def test_inverted_figure_bounds_rejected(self):
        with self.assertRaises(ValueError):
            TreeVizStyle(min_fig_width=3000)

    def test_non_positive_size_rejected(self):
        with self.assertRaises(ValueError):
            TreeVizStyle(leaf_node_size=0.0)
        with self.assertRaises(ValueError):
            TreeVizStyle(vertical_spacing=-1.0)

    def test_empty_palette_rejected(self):
        with self.assertRaises(ValueError):
            TreeVizStyle(dim_colors=())

    def test_label_max_chars_must_be_positive(self):
        with self.assertRaises(ValueError):
            TreeVizStyle(label_max_chars=0)

    def test_equal_bounds_allowed(self):
        style = TreeVizStyle(min_node_size=12.0, max_node_size=12.0)
        self.assertEqual(style.min_node_size, style.max_node_size)

    def test_replace_revalidates(self):
        style = TreeVizStyle()
        self.assertEqual(style.replace(edge_width=3.0).edge_width, 3.0)
        with self.assertRaises(ValueError):
            style.replace(node_scale_min=2.0)

    def test_lists_become_tuples(self):
        style = TreeVizStyle(dim_colors=["#000000", "#ffffff"], fig_size=[640, 480])
        self.assertEqual(style.dim_colors, ("#000000", "#ffffff"))
        self.assertEqual(style.fig_size, (640, 480))
        hash(style)


class TestLoadStyle(unittest.TestCase):

    def test_overrides_applied(self):
        style = load_style(_write_style({"horizontal_scale": 4.0, "use_error_gradient": False}))
        self.assertEqual(style.horizontal_scale, 4.0)
        self.assertFalse(style.use_error_gradient)
        self.assertEqual(style.vertical_spacing, 1.5)

    def test_unknown_key_raises(self):
        with self.assertRaises(ValueError):
            load_style(_write_style({"node_colour": "red"}))

    def test_invalid_value_raises(self):
        with self.assertRaises(ValueError):
            load_style(_write_style({"min_fontsize": 20, "label_fontsize": 10}))

    def test_non_object_raises(self):
        with self.assertRaises(ValueError):
            style_from_dict([1, 2, 3])

    def test_file_not_found_raises(self):
        with self.assertRaises(FileNotFoundError):
            load_style("/nonexistent/path/style.json")


if __name__ == "__main__":
    unittest.main()
