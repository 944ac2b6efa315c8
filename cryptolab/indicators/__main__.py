"""
CLI entry point for the indicators module.

Allows running as: python -m cryptolab.indicators
"""

import sys

from cryptolab.indicators.main import main

if __name__ == "__main__":
    sys.exit(main())
