"""
Command-line entry point for globtim_viz.

Subcommands
-----------
tree        Draw a subdivision tree from JSON.
experiment  Draw the experiment-results dashboard from a per-degree CSV.
training    Draw the training dashboard from a per-episode CSV.
episodes    Draw episode-level training and policy figures from a run JSON.

Usage
-----
    python runner.py tree results/tree.json --output figures/tree.pdf --summary
    python runner.py experiment results/degrees.csv --name trefethen_3d
    python runner.py training results/dqn.csv --expected-minima 5
    python runner.py episodes results/dqn_run.json --figure ratio -o figures/ratio.png

Input errors are reported as ``ERROR: ...`` on stderr with exit status 1.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import TreeVizStyle, load_style
from .data_adapter import load_data, load_tree_json
from .episodes import load_training_run_json, with_aggregate
from .experiment_plots import metrics_from_dataframe, plot_experiment_results
from .policy_evolution import plot_action_ratio_evolution, plot_action_stacked_area
from .training_dashboard import (
    create_training_dashboard,
    load_training_csv,
    plot_action_distribution,
    plot_l2_error_evolution,
    plot_training_curves,
    plot_training_progress,
)
from .tree import print_tree_summary
from .tree_plot import plot_subdivision_tree, save_figure


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Visualizations for global-optimization experiment results."
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_tree = sub.add_parser("tree", help="Draw a subdivision tree from JSON.")
    p_tree.add_argument("tree", type=Path, help="Path to the subdivision tree JSON.")
    p_tree.add_argument("--output", "-o", type=Path, default=Path("subdivision_tree.png"),
                        help="Output image; format from extension (default: subdivision_tree.png).")
    p_tree.add_argument("--style", type=Path, default=None,
                        help="JSON file overriding TreeVizStyle fields.")
    p_tree.add_argument("--title", default="", help="Figure title.")
    p_tree.add_argument("--no-legend", dest="show_legend", action="store_false",
                        help="Omit the legend.")
    p_tree.add_argument("--topology-layout", dest="balanced_layout", action="store_false",
                        help="Ignore split positions in the layout.")
    p_tree.add_argument("--dpi", type=int, default=None,
                        help="Output resolution (default: style dpi).")
    p_tree.add_argument("--summary", action="store_true",
                        help="Print tree summary statistics.")

    p_exp = sub.add_parser("experiment", help="Draw the experiment results dashboard.")
    p_exp.add_argument("csv", type=Path,
                       help="CSV with degree, l2_norm and optional distance/condition columns.")
    p_exp.add_argument("--name", default="", help="Experiment name for the title.")
    p_exp.add_argument("--output", "-o", type=Path, default=Path("experiment_results.png"))
    p_exp.add_argument("--dpi", type=int, default=150)

    p_train = sub.add_parser("training", help="Draw the training dashboard.")
    p_train.add_argument("csv", type=Path,
                         help="CSV with reward, minimizers and optional loss columns.")
    p_train.add_argument("--title", default="Training Progress")
    p_train.add_argument("--expected-minima", dest="expected_minima", type=float, default=None)
    p_train.add_argument("--window", type=int, default=25, help="Rolling-average window.")
    p_train.add_argument("--output", "-o", type=Path, default=Path("training_progress.png"))
    p_train.add_argument("--dpi", type=int, default=150)

    p_ep = sub.add_parser("episodes", help="Draw episode-level training figures.")
    p_ep.add_argument("json", type=Path, help="Training run JSON (episodes and optional aggregate).")
    p_ep.add_argument("--figure", choices=sorted(_EPISODE_FIGURES), default="dashboard",
                      help="Which figure to draw (default: dashboard).")
    p_ep.add_argument("--expected-minima", dest="expected_minima", type=float, default=None,
                      help="Compute summary statistics when the run has none.")
    p_ep.add_argument("--output", "-o", type=Path, default=Path("training_dashboard.png"))
    p_ep.add_argument("--dpi", type=int, default=150)

    return parser


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _run_tree(args: argparse.Namespace) -> Path:
    style = load_style(args.style) if args.style is not None else TreeVizStyle()
    tree = load_tree_json(args.tree)
    print(f"[tree] {len(tree.subdomains)} subdomain(s) from {args.tree}")
    if args.summary:
        print_tree_summary(tree)
    fig = plot_subdivision_tree(
        tree,
        style=style,
        title=args.title,
        show_legend=args.show_legend,
        balanced_layout=args.balanced_layout,
    )
    return save_figure(fig, args.output, dpi=args.dpi if args.dpi is not None else style.dpi)


def _run_experiment(args: argparse.Namespace) -> Path:
    metrics = metrics_from_dataframe(load_data(args.csv))
    print(f"[experiment] {metrics.degrees.shape[0]} degree(s) from {args.csv}")
    plot_experiment_results(args.name, metrics, output_path=args.output, dpi=args.dpi)
    return args.output


def _run_training(args: argparse.Namespace) -> Path:
    results = load_training_csv(args.csv, expected_minima=args.expected_minima)
    print(f"[training] {results.n_episodes} episode(s) from {args.csv}")
    plot_training_curves(
        results, title=args.title, window_size=args.window,
        output_path=args.output, dpi=args.dpi,
    )
    return args.output


_EPISODE_FIGURES = {
    "dashboard": create_training_dashboard,
    "progress": plot_training_progress,
    "actions": plot_action_distribution,
    "l2": plot_l2_error_evolution,
    "ratio": plot_action_ratio_evolution,
    "stacked": plot_action_stacked_area,
}


def _run_episodes(args: argparse.Namespace) -> Path:
    run = load_training_run_json(args.json)
    print(f"[episodes] {run.n_episodes} episode(s) of '{run.label}' from {args.json}")
    if args.expected_minima is not None:
        run = with_aggregate(run, args.expected_minima)
    _EPISODE_FIGURES[args.figure](run, output_path=args.output, dpi=args.dpi)
    return args.output


_COMMANDS = {
    "tree": _run_tree,
    "experiment": _run_experiment,
    "training": _run_training,
    "episodes": _run_episodes,
}


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        output = _COMMANDS[args.command](args)
    except (FileNotFoundError, ValueError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    print(f"  Output saved to : {Path(output).resolve()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
