"""Service Entry Point - Root Module.

Runs the ingestion scheduler and read API from the repository root.
It imports from the quakewatch package.
"""

import sys

from quakewatch.main import main

__all__ = [
    "main",
]


if __name__ == "__main__":
    sys.exit(main())
