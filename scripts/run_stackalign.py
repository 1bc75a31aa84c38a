#!/usr/bin/env python3
"""stackalign reconciliation runner.

Usage:
    python scripts/run_stackalign.py scripts/user_config.py
    python scripts/run_stackalign.py scripts/user_config.py --met-file /data/5100.met
    python scripts/run_stackalign.py scripts/user_config.py --format-version v2 --replace-all
    python scripts/run_stackalign.py scripts/user_config.py --trakem2-project /data/montage.xml

Note: User config in scripts/user_config.py, expert defaults in stackalign.schemas.param
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from stackalign.cli.run_stackalign import main


if __name__ == "__main__":
    sys.exit(main())
