"""Read-only word count query endpoints."""

from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from wordcounter.api.deps import get_engine, store_unavailable
from wordcounter.api.wordcounter.schemas import (
    ApiWarning,
    JobStatusResponse,
    PageWordsItem,
    PageWordsResponse,
    RankedPageItem,
    RankedPagesResponse,
    TotalsResponse,
    UncountedPageItem,
    UncountedPagesResponse,
)
from wordcounter.engine import Engine
from wordcounter.errors import InvalidIdentityError, StoreUnavailableError
from wordcounter.models.page import DocumentRef
from wordcounter.utils.responses import SuccessResponse, error_detail, success_response

router = APIRouter(prefix="/v1/wordcounter", tags=["wordcounter"])

MAX_LIMIT = 500
MULTI_VALUE_SEPARATOR = "|"


def _split(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(MULTI_VALUE_SEPARATOR) if part.strip()]


@router.get("/totals", response_model=SuccessResponse[TotalsResponse])
async def get_totals(engine: Engine = Depends(get_engine)) -> SuccessResponse[TotalsResponse]:
    """Sitewide totals, served from the aggregate cache."""
    try:
        snapshot = await engine.facade.totals()
    except StoreUnavailableError as e:
        raise store_unavailable(e) from e

    return success_response(
        TotalsResponse(
            total_words=snapshot.total_words,
            total_pages=snapshot.total_documents,
            uncounted_pages=snapshot.pending_count,
            average_words=snapshot.average_words,
            computed_at=snapshot.computed_at,
        ),
        message="Totals retrieved successfully",
    )


@router.get("/pagewords", response_model=SuccessResponse[PageWordsResponse])
async def get_page_words(
    titles: Optional[str] = Query(default=None, description="Page titles separated by '|'"),
    pageids: Optional[str] = Query(default=None, description="Page ids separated by '|'"),
    engine: Engine = Depends(get_engine),
) -> SuccessResponse[PageWordsResponse]:
    """Word counts for pages given by title or by id (not both)."""
    title_values, id_values = _split(titles), _split(pageids)

    if not title_values and not id_values:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_detail("wc-no-page-specified", "Specify either titles or pageids"),
        )
    if title_values and id_values:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error_detail("wc-multi-methods", "Use only one of titles or pageids"),
        )

    warnings: List[ApiWarning] = []
    refs: List[DocumentRef] = []

    try:
        for value in title_values:
            try:
                ref = await engine.documents.find_by_title(value)
            except InvalidIdentityError:
                ref = None
            if ref is None:
                warnings.append(ApiWarning(code="wc-invalid-title", message="The page does not exist", value=value))
            else:
                refs.append(ref)

        for value in id_values:
            ref = await engine.documents.get(int(value)) if value.isdigit() and int(value) > 0 else None
            if ref is None or not ref.exists:
                warnings.append(ApiWarning(code="wc-invalid-pageid", message="No page with this id", value=value))
            else:
                refs.append(ref)

        results: List[PageWordsItem] = []
        for ref in refs:
            if ref.namespace not in engine.predicate.namespaces:
                warnings.append(
                    ApiWarning(code="wc-unsupported-namespace", message="Namespace is not counted", value=ref.title)
                )
                continue
            word_count = await engine.facade.count_for_ref(ref)
            results.append(
                PageWordsItem(
                    page_id=ref.id,
                    page_title=ref.title,
                    namespace=ref.namespace,
                    word_count=word_count,
                    exists=word_count > 0,
                )
            )
    except StoreUnavailableError as e:
        raise store_unavailable(e) from e

    return success_response(
        PageWordsResponse(
            results=results,
            count=len(results),
            total_words=sum(item.word_count for item in results),
            warnings=warnings,
        ),
        message="Page word counts retrieved successfully",
    )


@router.get("/pages", response_model=SuccessResponse[RankedPagesResponse])
async def get_ranked_pages(
    limit: int = Query(default=50, ge=1, le=MAX_LIMIT),
    offset: int = Query(default=0, ge=0),
    sort: Literal["desc", "asc"] = Query(default="desc"),
    engine: Engine = Depends(get_engine),
) -> SuccessResponse[RankedPagesResponse]:
    """Counted pages ordered by word count."""
    try:
        results = [
            RankedPageItem(
                page_id=entry.page_id,
                page_title=entry.title,
                namespace=entry.namespace,
                word_count=entry.word_count,
            )
            async for entry in engine.facade.ranked_documents(limit, offset, descending=sort == "desc")
        ]
    except StoreUnavailableError as e:
        raise store_unavailable(e) from e

    return success_response(
        RankedPagesResponse(results=results, count=len(results), limit=limit, offset=offset, sort=sort),
        message="Pages retrieved successfully",
    )


@router.get("/uncounted", response_model=SuccessResponse[UncountedPagesResponse])
async def get_uncounted_pages(
    limit: int = Query(default=50, ge=1, le=MAX_LIMIT),
    offset: int = Query(default=0, ge=0),
    engine: Engine = Depends(get_engine),
) -> SuccessResponse[UncountedPagesResponse]:
    """Qualifying pages that have not been counted yet."""
    try:
        refs = await engine.facade.uncounted(limit, offset)
        total = await engine.facade.pending_count()
    except StoreUnavailableError as e:
        raise store_unavailable(e) from e

    results = [UncountedPageItem(page_id=ref.id, page_title=ref.title, namespace=ref.namespace) for ref in refs]
    return success_response(
        UncountedPagesResponse(results=results, count=len(results), limit=limit, offset=offset, total=total),
        message="Uncounted pages retrieved successfully",
    )


@router.get("/jobs", response_model=SuccessResponse[JobStatusResponse])
async def get_job_status(engine: Engine = Depends(get_engine)) -> SuccessResponse[JobStatusResponse]:
    """State of the background reconciliation jobs."""
    return success_response(
        JobStatusResponse(
            jobs=engine.scheduler.job_status(),
            pending=engine.queue.pending(),
            cache_service=engine.settings.WORDCOUNTER_CACHE_SERVICE,
        ),
        message="Job status retrieved successfully",
    )
