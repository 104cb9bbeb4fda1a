"""Main entry point for running plotcalc_pkg as a module.

This allows running plotcalc with:
    python -m plotcalc_pkg --serve
    python -m plotcalc_pkg -e "sin(x)/x" --zeros --extrema
    python -m plotcalc_pkg --request '{"type": "autoRange", "payload": {"expression": "x^2"}}'

This is equivalent to running:
    python -m plotcalc_pkg.cli
    python plotcalc.py
"""

from __future__ import annotations

import sys

from .cli import main_entry

if __name__ == "__main__":
    sys.exit(main_entry())
