"""
Main entry point for running the package as a module.

Usage:
    python -m planner_bot import --sources report-grid,calendar,tickets
"""

import sys
from .cli import main

if __name__ == '__main__':
    sys.exit(main())
