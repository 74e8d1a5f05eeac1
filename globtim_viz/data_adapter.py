"""
File adapters: CSV result tables and subdivision-tree JSON.

Subdivision-tree JSON layout
----------------------------
::

    {
      "root_id": 1,
      "converged_leaves": [2],
      "active_leaves": [3],
      "subdomains": [
        {"children": [2, 3], "split_dim": 1, "split_pos": 0.0,
         "l2_error": 0.1, "depth": 0, "parent_id": null},
        {"children": null, "split_dim": null, "split_pos": null,
         "l2_error": 1e-6, "depth": 1, "parent_id": 1},
        ...
      ]
    }

Subdomain ``i`` in the list has id ``i + 1``.  ``l2_error`` may be ``null``
or the string ``"inf"`` for a subdomain that was never evaluated.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pandas as pd


REQUIRED_TREE_KEYS = {"root_id", "converged_leaves", "active_leaves", "subdomains"}
SUBDOMAIN_KEYS = ("children", "split_dim", "split_pos", "l2_error", "depth", "parent_id")

RESULTS_COLUMNS = {
    "function_name": "object",
    "critical_points": "int64",
    "computation_time": "float64",
    "degree": "int64",
    "samples": "int64",
}


# ---------------------------------------------------------------------------
# CSV tables
# ---------------------------------------------------------------------------


def load_data(path: str | Path) -> pd.DataFrame:
    """Load a CSV results table.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file cannot be parsed or has no rows.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"CSV not found: {path}")
    try:
        df = pd.read_csv(path)
    except pd.errors.EmptyDataError as exc:
        raise ValueError(f"CSV '{path}' is empty.") from exc
    except pd.errors.ParserError as exc:
        raise ValueError(f"Failed to parse CSV '{path}': {exc}") from exc
    if df.empty:
        raise ValueError(f"CSV '{path}' contains no rows.")
    return df


def save_data(df: pd.DataFrame, path: str | Path) -> Path:
    """Write *df* as CSV (no index), creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    return path


def create_results_dataframe() -> pd.DataFrame:
    """Empty results table with the standard experiment columns."""
    return pd.DataFrame({
        col: pd.Series(dtype=dtype) for col, dtype in RESULTS_COLUMNS.items()
    })


# ---------------------------------------------------------------------------
# Subdivision tree JSON
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SubdomainRecord:
    children: tuple[int, int] | None
    split_dim: int | None
    split_pos: float | None
    l2_error: float
    depth: int
    parent_id: int | None


@dataclass(frozen=True)
class SubdivisionTreeRecord:
    """Plain-data subdivision tree, accepted by ``extract_tree``."""

    subdomains: tuple[SubdomainRecord, ...]
    root_id: int
    converged_leaves: tuple[int, ...]
    active_leaves: tuple[int, ...]


def _parse_error(value: Any) -> float:
    if value is None:
        return math.inf
    return float(value)  # float("inf") accepts the "inf" string


def tree_from_dict(raw: dict[str, Any]) -> SubdivisionTreeRecord:
    """Build a :class:`SubdivisionTreeRecord` from parsed JSON.

    Raises
    ------
    ValueError
        If a top-level key or a subdomain field is missing.
    """
    missing = REQUIRED_TREE_KEYS - raw.keys()
    if missing:
        raise ValueError(f"Tree JSON missing required fields: {sorted(missing)}")

    subdomains = []
    for i, sd in enumerate(raw["subdomains"], start=1):
        absent = [k for k in SUBDOMAIN_KEYS if k not in sd]
        if absent:
            raise ValueError(f"subdomain {i} missing field(s): {absent}")
        children = sd["children"]
        subdomains.append(SubdomainRecord(
            children=None if children is None else (int(children[0]), int(children[1])),
            split_dim=None if sd["split_dim"] is None else int(sd["split_dim"]),
            split_pos=None if sd["split_pos"] is None else float(sd["split_pos"]),
            l2_error=_parse_error(sd["l2_error"]),
            depth=int(sd["depth"]),
            parent_id=None if sd["parent_id"] is None else int(sd["parent_id"]),
        ))

    return SubdivisionTreeRecord(
        subdomains=tuple(subdomains),
        root_id=int(raw["root_id"]),
        converged_leaves=tuple(int(i) for i in raw["converged_leaves"]),
        active_leaves=tuple(int(i) for i in raw["active_leaves"]),
    )


def load_tree_json(path: str | Path) -> SubdivisionTreeRecord:
    """Load a subdivision tree saved as JSON (see module docstring).

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the JSON is invalid or incomplete.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Tree file not found: {path}")
    try:
        raw = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"Could not parse tree JSON '{path}': {exc}") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"Tree JSON '{path}' must hold an object.")
    return tree_from_dict(raw)
