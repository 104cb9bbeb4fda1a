#!/usr/bin/env python3
"""
plotcalc - numeric plotting engine

Thin launcher that delegates all functionality to the plotcalc_pkg package.

Usage:
    python plotcalc.py --serve                      # JSON-lines requests on stdin
    python plotcalc.py -e "1/x" --zeros --extrema    # Plot one expression
    python plotcalc.py --help                       # Show help
"""

from __future__ import annotations

import sys
from multiprocessing import freeze_support


def main() -> int:
    """
    Main entry point for plotcalc.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    # Frozen executables on Windows need this before spawning the worker
    freeze_support()

    from plotcalc_pkg.cli import main_entry

    try:
        return main_entry(sys.argv[1:])
    except KeyboardInterrupt:
        from plotcalc_pkg.worker import shutdown_worker

        shutdown_worker()
        return 130


if __name__ == "__main__":
    sys.exit(main())
