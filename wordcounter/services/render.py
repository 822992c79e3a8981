"""Inline helpers for templates: page words, total words, total pages.

Template rendering must never fail, so every helper falls back to ``0``.
Pass ``fmt="R"`` for the raw number, anything else gives thousands separators.
"""

from typing import Optional, Union

from wordcounter.config.logger import app_logger
from wordcounter.errors import WordCounterError
from wordcounter.services.query import QueryFacade

RAW_FORMAT = "R"


def format_number(value: int, fmt: Optional[str] = None) -> str:
    if (fmt or "").strip().upper() == RAW_FORMAT:
        return str(int(value))
    return f"{int(value):,}"


async def render_page_words(
    facade: QueryFacade,
    page: Union[int, str],
    fmt: Optional[str] = None,
) -> str:
    """Word count of a page given by id or title."""
    try:
        if isinstance(page, int):
            count = await facade.count_for(page)
        else:
            count = await facade.count_for_title(page)
    except WordCounterError as e:
        app_logger.debug(f"pagewords for {page!r} rendered as 0: {e}")
        count = 0
    return format_number(count, fmt)


async def render_total_words(facade: QueryFacade, fmt: Optional[str] = None) -> str:
    try:
        total = (await facade.totals()).total_words
    except WordCounterError as e:
        app_logger.warning(f"totalwords rendered as 0: {e}")
        total = 0
    return format_number(total, fmt)


async def render_total_pages(facade: QueryFacade, fmt: Optional[str] = None) -> str:
    try:
        total = (await facade.totals()).total_documents
    except WordCounterError as e:
        app_logger.warning(f"totalpages rendered as 0: {e}")
        total = 0
    return format_number(total, fmt)
