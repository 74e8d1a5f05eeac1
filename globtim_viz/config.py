"""
Styling configuration for subdivision tree visualization.

``TreeVizStyle`` is an immutable bundle of colours, sizes and auto-scaling
bounds.  Bounds are validated when the style is constructed, so a bad style
fails before any layout work starts.  Styles can be overridden from a JSON
file with :func:`load_style`.
"""

from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any


# ---------------------------------------------------------------------------
# Palette constants
# ---------------------------------------------------------------------------

# First six colours of ColorBrewer Dark2 (muted, print-friendly).
DARK2_PALETTE: tuple[str, ...] = (
    "#1b9e77",
    "#d95f02",
    "#7570b3",
    "#e7298a",
    "#66a61e",
    "#e6ab02",
)

CONVERGED_COLOR = "#2e8c57"   # seagreen
ACTIVE_COLOR    = "#ff8c00"   # darkorange
FALLBACK_EDGE_COLOR = "gray"
ERROR_COLORMAP  = "RdYlGn"

StyleDict = dict[str, Any]


# ---------------------------------------------------------------------------
# Style
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TreeVizStyle:
    """Visual parameters for one subdivision-tree render.

    Node sizes are marker diameters in points (the renderer squares them
    into matplotlib marker areas); fonts are in points; figure dimensions
    are in pixels and converted to inches through ``dpi``.
    """

    # Dimension colours, cycled by split dimension.
    dim_colors: tuple[str, ...] = DARK2_PALETTE

    # Leaf colours
    converged_color: str = CONVERGED_COLOR
    active_color: str = ACTIVE_COLOR

    # Error-based colouring for active leaves
    use_error_gradient: bool = True
    error_colormap: str = ERROR_COLORMAP

    # Depth bands (alternating stripes)
    show_depth_bands: bool = True
    depth_band_color: str = "#e6e6e6"
    depth_band_alpha: float = 0.3

    # Node outline
    node_strokewidth: float = 1.5
    node_strokecolor: str = "black"

    # Base node sizes, scaled by auto-scaling
    split_node_size: float = 20.0
    leaf_node_size: float = 25.0

    edge_width: float = 2.0

    # Used when auto_fig_size is False
    fig_size: tuple[int, int] = (1200, 800)
    dpi: int = 100

    # Labels
    show_split_info: bool = True
    show_error_values: bool = True
    show_error_reduction: bool = True
    label_fontsize: int = 10
    title_fontsize: int = 16
    label_max_chars: int = 15

    # Layout
    horizontal_scale: float = 10.0
    vertical_spacing: float = 1.5

    # Auto-scaling
    auto_scale: bool = True
    min_node_size: float = 8.0
    max_node_size: float = 30.0
    node_scale_min: float = 0.3
    node_scale_max: float = 1.0
    font_scale_min: float = 0.5
    font_scale_max: float = 1.0
    min_fontsize: int = 6

    # Auto figure sizing
    auto_fig_size: bool = True
    px_per_leaf: float = 60.0
    width_offset: float = 200.0
    px_per_level: float = 100.0
    height_offset: float = 250.0
    min_fig_width: int = 600
    max_fig_width: int = 2400
    min_fig_height: int = 400
    max_fig_height: int = 1400

    def __post_init__(self) -> None:
        # JSON hands us lists; keep the frozen style hashable.
        object.__setattr__(self, "dim_colors", tuple(self.dim_colors))
        object.__setattr__(self, "fig_size", tuple(self.fig_size))
        _validate_style(self)

    def replace(self, **changes: Any) -> "TreeVizStyle":
        """Return a copy with *changes* applied (validated again)."""
        return dataclasses.replace(self, **changes)


_POSITIVE_FIELDS = (
    "split_node_size", "leaf_node_size", "edge_width", "node_strokewidth",
    "label_fontsize", "title_fontsize", "horizontal_scale", "vertical_spacing",
    "min_node_size", "max_node_size", "node_scale_min", "node_scale_max",
    "font_scale_min", "font_scale_max", "min_fontsize", "dpi",
    "px_per_leaf", "px_per_level",
    "min_fig_width", "max_fig_width", "min_fig_height", "max_fig_height",
)

_ORDERED_PAIRS = (
    ("min_node_size", "max_node_size"),
    ("node_scale_min", "node_scale_max"),
    ("font_scale_min", "font_scale_max"),
    ("min_fontsize", "label_fontsize"),
    ("min_fig_width", "max_fig_width"),
    ("min_fig_height", "max_fig_height"),
)


def _validate_style(style: TreeVizStyle) -> None:
    """Reject inverted or non-positive bounds.

    Raises
    ------
    ValueError
        On the first violated constraint.
    """
    for name in _POSITIVE_FIELDS:
        value = getattr(style, name)
        if not value > 0:
            raise ValueError(f"{name} must be positive, got {value!r}")

    for lo_name, hi_name in _ORDERED_PAIRS:
        lo, hi = getattr(style, lo_name), getattr(style, hi_name)
        if lo > hi:
            raise ValueError(
                f"{lo_name} ({lo!r}) must not exceed {hi_name} ({hi!r})"
            )

    if len(style.dim_colors) == 0:
        raise ValueError("dim_colors must contain at least one colour")
    if len(style.fig_size) != 2 or min(style.fig_size) <= 0:
        raise ValueError(f"fig_size must be two positive ints, got {style.fig_size!r}")
    if style.label_max_chars < 1:
        raise ValueError(f"label_max_chars must be >= 1, got {style.label_max_chars!r}")
    if not 0.0 <= style.depth_band_alpha <= 1.0:
        raise ValueError(
            f"depth_band_alpha must be in [0, 1], got {style.depth_band_alpha!r}"
        )


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def load_style(path: str | Path) -> TreeVizStyle:
    """Load a style override file.

    The file is a JSON object whose keys are ``TreeVizStyle`` field names;
    omitted fields keep their defaults.

    Parameters
    ----------
    path : str or Path
        Path to the JSON style file.

    Returns
    -------
    TreeVizStyle
        Validated style.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file holds unknown keys or invalid values.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Style file not found: {path}")

    with path.open("r") as fh:
        raw: StyleDict = json.load(fh)

    return style_from_dict(raw)


def style_from_dict(raw: StyleDict) -> TreeVizStyle:
    """Build a ``TreeVizStyle`` from a plain dict, rejecting unknown keys."""
    if not isinstance(raw, dict):
        raise ValueError(f"Style must be a JSON object, got {type(raw).__name__}")

    known = {f.name for f in dataclasses.fields(TreeVizStyle)}
    unknown = set(raw) - known
    if unknown:
        raise ValueError(f"Unknown style field(s): {sorted(unknown)}")

    return TreeVizStyle(**raw)
