"""
Main entry point for Psych Engine package

This allows running the package with: python -m psych_engine
"""

import sys

from .cli.main import main

if __name__ == "__main__":
    sys.exit(main())
