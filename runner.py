"""Repository-level CLI entrypoint for globtim_viz.

Preserves the documented invocation style:

    python runner.py tree <tree.json> [--output figures/tree.pdf]

It delegates execution to :mod:`globtim_viz.runner`.
"""

from __future__ import annotations

import sys

from globtim_viz.runner import main


if __name__ == "__main__":
    sys.exit(main())
