#!/usr/bin/env python3
"""``radvol`` PPI runner.

Usage:
    python scripts/run_ppi.py KBGM20240501_000512_V06
    python scripts/run_ppi.py KBGM20240501_000512_V06 --config scripts/user_config.py
    python scripts/run_ppi.py KBGM20240501_000512_V06 --elevation 1.5 --plot

Note: User config in scripts/user_config.py, expert defaults in radvol.schemas.param
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from radvol.cli.run_ppi import main


if __name__ == "__main__":
    sys.exit(main())
