#!/usr/bin/env python3
"""
Phase-1 mesh cache hook.

Usage:
    mesh-cache.py check "<topic>" [--silent]
    mesh-cache.py load "<topic>" [--silent]
    mesh-cache.py save "<topic>" '<json>' [--silent]
"""

import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from esmc_gate.cli import cache_main

if __name__ == "__main__":
    raise SystemExit(cache_main())
