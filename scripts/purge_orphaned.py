"""Remove orphaned or invalid word count entries.

Usage: python scripts/purge_orphaned.py [--limit N] [--dry-run]
"""

import sys
from pathlib import Path

# Add the parent directory to the path so we can import from wordcounter
sys.path.insert(0, str(Path(__file__).parent.parent))

from wordcounter.cli import main


if __name__ == "__main__":
    sys.exit(main(["purge-orphaned", *sys.argv[1:]]))
