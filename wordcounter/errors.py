"""WordCounter error hierarchy.

All project exceptions inherit from WordCounterError, so HTTP handlers and
the maintenance CLI can catch one base class at their boundary while the
engine raises the specific kind:

    WordCounterError
    ├── UnsupportedContentError   content model cannot be tokenized
    ├── NotQualifyingError        page fails namespace/redirect/existence checks
    ├── StoreUnavailableError     transient I/O failure in the store or cache
    ├── InvalidIdentityError      page id/title cannot resolve to any page
    └── ConfigurationError        deployment mistake, raised at startup
"""

from __future__ import annotations

from typing import Optional


class WordCounterError(Exception):
    """Base class for all WordCounter errors."""


class UnsupportedContentError(WordCounterError):
    """Content of this kind cannot be counted (not wikitext or plain text)."""

    def __init__(self, content_kind: str, page_id: Optional[int] = None):
        self.content_kind = content_kind
        self.page_id = page_id
        # Stored counts dropped for the page when this was raised
        self.removed = 0
        where = f" for page {page_id}" if page_id is not None else ""
        super().__init__(f"Unsupported content model <{content_kind}>{where}")


class NotQualifyingError(WordCounterError):
    """Page exists in some form but must not carry a word count."""

    def __init__(self, page_id: int, reason: str, transient: bool = False):
        self.page_id = page_id
        self.reason = reason
        # The page still qualifies; only this attempt to count it failed
        self.transient = transient
        super().__init__(f"Page {page_id} does not qualify: {reason}")


class StoreUnavailableError(WordCounterError):
    """The count store or cache could not be reached."""


class InvalidIdentityError(WordCounterError):
    """A page reference does not resolve to any page."""

    def __init__(self, identity: object):
        self.identity = identity
        super().__init__(f"Invalid page: {identity!r}")


class ConfigurationError(WordCounterError):
    """Invalid configuration value."""
