#!/usr/bin/env python3
"""UIMF container maintenance runner.

Usage:
    python scripts/run_uimf_tool.py data.uimf
    python scripts/run_uimf_tool.py data.uimf --config scripts/user_config.py --update-global-stats

Note: User config in scripts/user_config.py, expert defaults in uimf.schemas.param
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from uimf.cli import main


if __name__ == "__main__":
    sys.exit(main())
