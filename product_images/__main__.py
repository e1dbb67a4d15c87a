"""
Main entry point for running the package as a module.

Usage:
    python -m product_images gc --manifest gc.json
    python -m product_images report --manifest gc.json
    python -m product_images reprocess --execute
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
