# conftest.py — project root
#
# Ensures that the repository root is on sys.path when pytest is invoked
# from the project root, so "import globtim_viz" resolves without requiring
# a package install.
#
# Usage:
#   pytest globtim_viz/tests/ -v
#   pytest globtim_viz/tests/test_layout.py -v

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))
