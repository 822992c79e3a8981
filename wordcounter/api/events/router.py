"""Webhooks through which the host delivers page save/delete events."""

from fastapi import APIRouter, Depends, status

from wordcounter.api.deps import get_engine, store_unavailable
from wordcounter.api.events.schemas import DocumentDeletedRequest, DocumentSavedRequest, EventAccepted
from wordcounter.config.logger import app_logger
from wordcounter.engine import Engine
from wordcounter.errors import StoreUnavailableError
from wordcounter.services.events import DocumentDeleted, DocumentSaved
from wordcounter.utils.responses import SuccessResponse, success_response

router = APIRouter(prefix="/v1/wordcounter/events", tags=["events"])


@router.post(
    "/saved",
    response_model=SuccessResponse[EventAccepted],
    status_code=status.HTTP_202_ACCEPTED,
)
async def document_saved(
    request: DocumentSavedRequest,
    engine: Engine = Depends(get_engine),
) -> SuccessResponse[EventAccepted]:
    app_logger.info(f"Page saved event for page {request.page_id}")
    try:
        await engine.events.publish(
            DocumentSaved(
                page_id=request.page_id,
                text=request.text,
                content_kind=request.content_kind.value,
                rendered=request.rendered,
            )
        )
    except StoreUnavailableError as e:
        raise store_unavailable(e) from e

    return success_response(EventAccepted(event="saved", page_id=request.page_id), message="Event accepted")


@router.post(
    "/deleted",
    response_model=SuccessResponse[EventAccepted],
    status_code=status.HTTP_202_ACCEPTED,
)
async def document_deleted(
    request: DocumentDeletedRequest,
    engine: Engine = Depends(get_engine),
) -> SuccessResponse[EventAccepted]:
    app_logger.info(f"Page deleted event for page {request.page_id}")
    try:
        await engine.events.publish(DocumentDeleted(page_id=request.page_id))
    except StoreUnavailableError as e:
        raise store_unavailable(e) from e

    return success_response(EventAccepted(event="deleted", page_id=request.page_id), message="Event accepted")
