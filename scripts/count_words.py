"""Count words in pages and update the database.

Usage: python scripts/count_words.py [--force | --outdated] [--limit N] [--pages "A|B"] [--dry-run]
"""

import sys
from pathlib import Path

# Add the parent directory to the path so we can import from wordcounter
sys.path.insert(0, str(Path(__file__).parent.parent))

from wordcounter.cli import main


if __name__ == "__main__":
    sys.exit(main(["count-words", *sys.argv[1:]]))
