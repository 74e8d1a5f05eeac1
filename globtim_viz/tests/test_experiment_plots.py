"""Unit tests for the experiment results dashboard."""

from __future__ import annotations

import contextlib
import io
import sys
import tempfile
import unittest
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from globtim_viz.experiment_plots import (
    ExperimentMetrics,
    convergence_rates,
    metrics_from_dataframe,
    plot_experiment_results,
)


def _full_frame():
    return pd.DataFrame({
        "degree": [8, 4, 6],
        "l2_norm": [1e-6, 1e-2, 1e-4],
        "min_distance": [1e-4, 1e-1, 1e-2],
        "mean_distance": [1e-3, 5e-1, 5e-2],
        "condition_number": [1e8, 1e3, 1e5],
    })


class TestMetricsFromDataFrame(unittest.TestCase):

    def test_sorted_by_degree(self):
        metrics = metrics_from_dataframe(_full_frame())
        np.testing.assert_array_equal(metrics.degrees, [4, 6, 8])
        np.testing.assert_allclose(metrics.l2_norms, [1e-2, 1e-4, 1e-6])
        np.testing.assert_allclose(metrics.min_distances, [1e-1, 1e-2, 1e-4])

    def test_optional_columns_default_to_nan(self):
        df = pd.DataFrame({"degree": [2, 3], "l2_norm": [0.5, 0.1]})
        metrics = metrics_from_dataframe(df)
        self.assertTrue(np.isnan(metrics.min_distances).all())
        self.assertFalse(metrics.has_distances)
        self.assertFalse(metrics.has_condition_numbers)

    def test_missing_required_column(self):
        with self.assertRaises(ValueError) as ctx:
            metrics_from_dataframe(pd.DataFrame({"degree": [1]}))
        self.assertIn("l2_norm", str(ctx.exception))

    def test_empty_table(self):
        with self.assertRaises(ValueError):
            metrics_from_dataframe(pd.DataFrame({"degree": [], "l2_norm": []}))


class TestExperimentMetrics(unittest.TestCase):

    def test_length_mismatch(self):
        with self.assertRaises(ValueError):
            ExperimentMetrics(
                degrees=[1, 2], l2_norms=[0.1], min_distances=[np.nan, np.nan],
                mean_distances=[np.nan, np.nan], condition_numbers=[np.nan, np.nan],
            )

    def test_lists_become_float_arrays(self):
        m = ExperimentMetrics(degrees=[1, 2], l2_norms=[1, 2], min_distances=[1, 2],
                              mean_distances=[1, 2], condition_numbers=[1, 2])
        self.assertEqual(m.degrees.dtype, np.float64)
        self.assertTrue(m.has_distances)


class TestConvergenceRates(unittest.TestCase):

    def test_consecutive_ratios(self):
        deg, rates = convergence_rates(np.array([4, 6, 8]), np.array([1e-1, 1e-2, 1e-4]))
        np.testing.assert_array_equal(deg, [6, 8])
        np.testing.assert_allclose(rates, [10.0, 100.0])

    def test_skips_missing_distances(self):
        deg, rates = convergence_rates(
            np.array([2, 4, 6, 8]), np.array([0.8, np.nan, 0.2, 0.1])
        )
        np.testing.assert_array_equal(deg, [6, 8])
        np.testing.assert_allclose(rates, [4.0, 2.0])

    def test_too_few_points(self):
        deg, rates = convergence_rates(np.array([2, 4]), np.array([np.nan, 0.5]))
        self.assertEqual(deg.size, 0)
        self.assertEqual(rates.size, 0)


class TestPlotExperimentResults(unittest.TestCase):

    def tearDown(self):
        plt.close("all")

    def test_four_panels(self):
        fig = plot_experiment_results("demo", metrics_from_dataframe(_full_frame()))
        self.assertEqual(len(fig.axes), 4)
        self.assertEqual(fig.axes[0].get_yscale(), "log")

    def test_without_true_parameters(self):
        df = pd.DataFrame({"degree": [2, 3, 4], "l2_norm": [0.5, 0.1, 0.05]})
        fig = plot_experiment_results("", metrics_from_dataframe(df))
        self.assertIn("N/A", fig.axes[1].get_title())

    def test_saved_to_disk(self):
        with tempfile.TemporaryDirectory() as tmp:
            out = Path(tmp) / "experiment.png"
            with contextlib.redirect_stdout(io.StringIO()):
                plot_experiment_results("demo", metrics_from_dataframe(_full_frame()), output_path=out)
            self.assertTrue(out.exists())

    def test_save_reports_under_own_prefix(self):
        buf = io.StringIO()
        with tempfile.TemporaryDirectory() as tmp:
            with contextlib.redirect_stdout(buf):
                plot_experiment_results("demo", metrics_from_dataframe(_full_frame()),
                                        output_path=Path(tmp) / "experiment.png")
        self.assertIn("[experiment_plots] Figure", buf.getvalue())
        self.assertNotIn("[tree_plot]", buf.getvalue())


if __name__ == "__main__":
    unittest.main()
