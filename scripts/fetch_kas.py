"""Fetch every ASKdata table into ./data (or --out).

Usage:
    python scripts/fetch_kas.py --out data --partners ALL
"""

import sys

from kas_data.runner import main


if __name__ == "__main__":
    sys.exit(main())
