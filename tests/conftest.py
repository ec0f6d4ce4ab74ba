"""
Shared pytest setup: imports resolve from src/, and an inherited
MEMC_LOAD_CONFIG never redirects config loading during tests.
"""

import os
import sys
from pathlib import Path

os.environ.pop("MEMC_LOAD_CONFIG", None)

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
