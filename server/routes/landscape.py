"""Opinion Landscape API - clustering results, ordering and triggers

Endpoints per poll:
- Eligibility and persisted landscape (positions, groups, classifications)
- Group agreement grid with coalition analysis
- Manual recompute (admin only, enqueues)
- Next statements for a voter, in the poll's presentation order
- Hooks called by the poll service (vote recorded, statement approved)
- Demographic agreement heatmap
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from config import get_logger
from deliberation import (
    BackgroundTrigger,
    DemographicHeatmapService,
    LandscapeService,
    StatementOrderingService,
    StatementWeightingService,
)
from exceptions import ValidationError
from server.dependencies import (
    get_heatmap_service,
    get_landscape_service,
    get_ordering_service,
    get_trigger,
    get_weighting_service,
    verify_admin_token,
)
from server.models.requests import VoteRecordedRequest

logger = get_logger(__name__).bind(component="landscape_api")

router = APIRouter(prefix="/api/v1/polls/{poll_id}", tags=["landscape"])

MAX_BATCH_SIZE = 100


def _bad_request(e: ValidationError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.args[0])


# -----------------------------------------------------------------------------
# Landscape
# -----------------------------------------------------------------------------


@router.get("/eligibility")
async def get_eligibility(
    poll_id: str,
    service: LandscapeService = Depends(get_landscape_service),
):
    """Count-only floor check. Never computes."""
    eligibility = await service.is_eligible_for_clustering(poll_id)
    return eligibility.to_dict()


@router.get("/landscape")
async def get_landscape(
    poll_id: str,
    service: LandscapeService = Depends(get_landscape_service),
):
    """Last persisted landscape: metadata, voter positions, classifications."""
    view = await service.get_landscape(poll_id)
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No landscape computed for this poll",
        )
    return view.to_dict()


@router.get("/landscape/agreement")
async def get_agreement_matrix(
    poll_id: str,
    service: LandscapeService = Depends(get_landscape_service),
):
    grid = await service.get_group_agreement_matrix(poll_id)
    if grid is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No landscape computed for this poll",
        )
    return grid


@router.post("/landscape/compute", status_code=status.HTTP_202_ACCEPTED)
async def request_recompute(
    poll_id: str,
    service: LandscapeService = Depends(get_landscape_service),
    trigger: BackgroundTrigger = Depends(get_trigger),
    is_admin: bool = Depends(verify_admin_token),
):
    """Enqueue a recompute. The worker does the computation."""
    eligibility = await service.is_eligible_for_clustering(poll_id)
    if not eligibility.eligible:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=eligibility.to_dict(),
        )

    job_id = await trigger.trigger_background_clustering(poll_id)
    logger.info("manual recompute requested", poll_id=poll_id, job_id=job_id)
    return {
        "poll_id": poll_id,
        "queued": job_id is not None,
        "job_id": job_id,
        "note": None if job_id is not None else "already_queued",
    }


# -----------------------------------------------------------------------------
# Ordering
# -----------------------------------------------------------------------------


@router.get("/statements/next")
async def get_next_statements(
    poll_id: str,
    voter_id: str = Query(..., min_length=1),
    batch_size: int = Query(10, ge=1, le=MAX_BATCH_SIZE),
    ordering: StatementOrderingService = Depends(get_ordering_service),
):
    """Statements the voter has not voted on yet, in presentation order"""
    try:
        batch = await ordering.get_statement_batch(poll_id, voter_id, batch_size)
    except ValidationError as e:
        raise _bad_request(e)

    return {
        "poll_id": poll_id,
        "voter_id": voter_id,
        "statements": [s.to_dict() for s in batch],
    }


# -----------------------------------------------------------------------------
# Poll service hooks
# -----------------------------------------------------------------------------


@router.post("/votes/recorded")
async def vote_recorded(
    poll_id: str,
    request: VoteRecordedRequest,
    trigger: BackgroundTrigger = Depends(get_trigger),
    heatmap: DemographicHeatmapService = Depends(get_heatmap_service),
):
    """Called after a vote is stored. May enqueue a recompute."""
    decision = await trigger.on_vote_recorded(poll_id, request.voter_id)
    if decision.triggered:
        heatmap.invalidate(poll_id)
    return decision.to_dict()


@router.post("/statements/{statement_id}/approved")
async def statement_approved(
    poll_id: str,
    statement_id: str,
    weighting: StatementWeightingService = Depends(get_weighting_service),
):
    """A new approved statement invalidates every cached weight of the poll"""
    removed = await weighting.on_statement_approved(poll_id)
    logger.info(
        "statement approved, weights invalidated",
        poll_id=poll_id,
        statement_id=statement_id,
        removed=removed,
    )
    return {"poll_id": poll_id, "statement_id": statement_id, "weights_invalidated": removed}


# -----------------------------------------------------------------------------
# Demographics
# -----------------------------------------------------------------------------


@router.get("/heatmap/{attribute}")
async def get_heatmap(
    poll_id: str,
    attribute: str,
    privacy_threshold: Optional[int] = Query(None),
    heatmap: DemographicHeatmapService = Depends(get_heatmap_service),
):
    try:
        return await heatmap.get_heatmap(poll_id, attribute, privacy_threshold)
    except ValidationError as e:
        raise _bad_request(e)
