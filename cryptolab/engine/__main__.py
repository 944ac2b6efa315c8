"""
CLI entry point for the backtest engine.

Allows running as: python -m cryptolab.engine
"""

import sys

from cryptolab.engine.runner import main

if __name__ == "__main__":
    sys.exit(main())
