"""WordCounter - per-page word counts and sitewide aggregates."""

__version__ = "0.1.0"
