"""FastAPI dependencies and helpers shared by the routers."""

from fastapi import HTTPException, Request, status

from wordcounter.config.logger import app_logger
from wordcounter.engine import Engine
from wordcounter.errors import StoreUnavailableError
from wordcounter.utils.responses import error_detail


def get_engine(request: Request) -> Engine:
    """The engine built during application startup."""
    return request.app.state.engine


def store_unavailable(e: StoreUnavailableError) -> HTTPException:
    app_logger.error(f"Word count store unavailable: {e}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=error_detail("wc-store-unavailable", "The word count store is temporarily unavailable"),
    )
