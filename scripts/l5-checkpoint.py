#!/usr/bin/env python3
"""
L5 checkpoint hook.

Reads .esmc-athena-vetting-result.json and .esmc-execution-state.json from
the working directory, writes .esmc-l5-checkpoint-result.json and exits 0
when strategic mode must be forced, 1 otherwise.
"""

import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from esmc_gate.cli import checkpoint_main

if __name__ == "__main__":
    raise SystemExit(checkpoint_main())
