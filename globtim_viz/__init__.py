"""
globtim_viz — Visualization for Global-Optimization Experiments
================================================================

Renders results produced by the optimization core:

  Subdivision trees
      Split-aware layout of adaptive subdivision trees, auto-scaled to tree
      size, with nodes coloured by split dimension, convergence status and
      approximation error.

  Experiment dashboards
      L2 norm, distance to true parameters, condition number and
      convergence factor vs. polynomial degree.

  Training dashboards
      Discovery rate, reward, TD loss, action counts and L2 errors of
      reinforcement-learning runs.

  Policy evolution
      How often the agent subdivides versus raising the degree, by episode,
      by state and within one episode.

  Approximation plots
      1D objectives against their polynomial approximants; 3D level sets.

Quick start
-----------
>>> from globtim_viz import load_tree_json, plot_subdivision_tree, save_figure
>>> tree = load_tree_json("tree.json")
>>> fig = plot_subdivision_tree(tree, title="Adaptive refinement")
>>> save_figure(fig, "tree.pdf")
"""

from .config import TreeVizStyle, load_style, style_from_dict
from .tree import (
    LeafNode,
    InternalNode,
    SubdivisionTreeView,
    MalformedTreeError,
    MissingFieldError,
    extract_tree,
    tree_to_graph,
    tree_summary,
    print_tree_summary,
)
from .layout import (
    TreeLayout,
    AutoScale,
    balanced_tree_layout,
    topology_tree_layout,
    compute_auto_scale,
    compute_figure_size,
)
from .styling import (
    TreeDrawing,
    LegendEntry,
    build_tree_drawing,
    compute_error_reduction,
    format_node_label,
)
from .tree_plot import plot_subdivision_tree, save_figure
from .experiment_plots import (
    ExperimentMetrics,
    metrics_from_dataframe,
    convergence_rates,
    plot_experiment_results,
)
from .training_dashboard import (
    TrainingResults,
    load_training_csv,
    rolling_mean,
    fit_linear_trend,
    final_performance,
    plot_training_curves,
    plot_strategy_comparison,
    plot_training_progress,
    plot_action_distribution,
    plot_l2_error_evolution,
    plot_run_comparison,
    create_training_dashboard,
)
from .episodes import (
    EpisodeRecord,
    RunAggregate,
    TrainingRun,
    run_from_records,
    aggregate_run,
    with_aggregate,
    load_training_run_json,
)
from .policy_evolution import (
    StateActionMap,
    action_ratios,
    action_proportions,
    state_action_map,
    plot_action_ratio_evolution,
    plot_action_stacked_area,
    plot_state_action_heatmap,
    plot_policy_evolution_comparison,
    plot_episode_decision_timeline,
)
from .approx_1d import (
    chebyshev_sample_points,
    plot_1d_polynomial_approximation,
    plot_1d_comparison,
)
from .level_sets import LevelSetData, prepare_level_set_data, plot_level_set
from .data_adapter import (
    load_data,
    save_data,
    create_results_dataframe,
    load_tree_json,
)

__version__ = "0.1.0"

__all__ = [
    # config
    "TreeVizStyle", "load_style", "style_from_dict",
    # tree
    "LeafNode", "InternalNode", "SubdivisionTreeView",
    "MalformedTreeError", "MissingFieldError",
    "extract_tree", "tree_to_graph", "tree_summary", "print_tree_summary",
    # layout
    "TreeLayout", "AutoScale", "balanced_tree_layout", "topology_tree_layout",
    "compute_auto_scale", "compute_figure_size",
    # styling / rendering
    "TreeDrawing", "LegendEntry", "build_tree_drawing",
    "compute_error_reduction", "format_node_label",
    "plot_subdivision_tree", "save_figure",
    # experiment dashboard
    "ExperimentMetrics", "metrics_from_dataframe", "convergence_rates",
    "plot_experiment_results",
    # training dashboard
    "TrainingResults", "load_training_csv", "rolling_mean", "fit_linear_trend",
    "final_performance", "plot_training_curves", "plot_strategy_comparison",
    "plot_training_progress", "plot_action_distribution", "plot_l2_error_evolution",
    "plot_run_comparison", "create_training_dashboard",
    # episodes
    "EpisodeRecord", "RunAggregate", "TrainingRun", "run_from_records",
    "aggregate_run", "with_aggregate", "load_training_run_json",
    # policy evolution
    "StateActionMap", "action_ratios", "action_proportions", "state_action_map",
    "plot_action_ratio_evolution", "plot_action_stacked_area",
    "plot_state_action_heatmap", "plot_policy_evolution_comparison",
    "plot_episode_decision_timeline",
    # approximation plots
    "chebyshev_sample_points", "plot_1d_polynomial_approximation", "plot_1d_comparison",
    "LevelSetData", "prepare_level_set_data", "plot_level_set",
    # data
    "load_data", "save_data", "create_results_dataframe", "load_tree_json",
]
