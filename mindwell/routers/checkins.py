"""
Check-ins router.

POST   /checkins               : create (optionally analyse inline)
GET    /checkins               : list (paginated, newest first)
GET    /checkins/stats         : distributions + analysis summary
POST   /checkins/analyze       : analyse ad-hoc input without storing it
GET    /checkins/{id}          : one check-in
PUT    /checkins/{id}          : edit inputs (only before analysis)
DELETE /checkins/{id}          : delete
POST   /checkins/{id}/analyze  : run the classifier on a stored check-in
PUT    /checkins/{id}/analysis : attach an externally produced analysis

Any response carrying a crisis-level analysis includes an `alert` object.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from mindwell.core.enums import enum_value
from mindwell.db.base import get_db
from mindwell.models.checkin import CheckinResponse as CheckinRow
from mindwell.models.user import User
from mindwell.routers.deps import get_current_user
from mindwell.schemas.checkin import (
    AnalysisEnvelope,
    AnalyzeTextRequest,
    AttachAnalysisRequest,
    CheckinCreateRequest,
    CheckinEnvelope,
    CheckinListResponse,
    CheckinResponse,
    CheckinStatsResponse,
    CheckinUpdateRequest,
    RiskAnalysisResponse,
)
from mindwell.schemas.common import MessageResponse
from mindwell.services.checkins import (
    CheckinDraft,
    analyze_existing,
    attach_analysis,
    create_checkin,
    create_checkin_with_analysis,
    crisis_alert,
    delete_checkin,
    get_checkin,
    get_checkin_stats,
    list_checkins,
    update_checkin,
)
from mindwell.services.sentiment import analyze_checkin

router = APIRouter(prefix="/checkins", tags=["checkins"])


# ---------------------------------------------------------------------------
# Serialization helper
# ---------------------------------------------------------------------------

def _checkin_to_response(row: CheckinRow) -> CheckinResponse:
    return CheckinResponse(
        id=row.id,
        mood_rating=enum_value(row.mood_rating),
        stress_level=row.stress_level,
        selected_emotions=list(row.selected_emotions or []),
        check_in_text=row.check_in_text or "",
        ai_analysis=row.ai_analysis,
        created_at=row.created_at.isoformat() if row.created_at else "",
    )


def _envelope(row: CheckinRow) -> CheckinEnvelope:
    return CheckinEnvelope(
        checkin=_checkin_to_response(row),
        alert=crisis_alert(row.ai_analysis),
    )


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=CheckinEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Record a check-in",
    responses={
        201: {"description": "Check-in stored (with analysis when auto_analyze is set)."},
        422: {"description": "Validation error."},
    },
)
async def create(
    payload: CheckinCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Store a check-in. With `auto_analyze` the classifier runs first; if it
    fails the check-in is still stored, without analysis.

    Recording a check-in advances `check_in` goals, and `journaling` goals
    when `check_in_text` is non-empty.
    """
    draft = CheckinDraft(
        mood_rating=payload.mood_rating,
        stress_level=payload.stress_level,
        selected_emotions=payload.selected_emotions,
        check_in_text=payload.check_in_text,
    )
    if payload.auto_analyze:
        row = await create_checkin_with_analysis(db, user.id, draft)
    else:
        row = create_checkin(db, user.id, draft)
    return _envelope(row)


@router.get(
    "",
    response_model=CheckinListResponse,
    summary="List check-ins (newest first)",
)
def list_all(
    start: Optional[datetime] = Query(default=None, description="Inclusive lower bound."),
    end: Optional[datetime] = Query(default=None, description="Inclusive upper bound."),
    limit: int = Query(default=30, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    total, items = list_checkins(db, user.id, start=start, end=end, limit=limit, offset=offset)
    return CheckinListResponse(total=total, items=[_checkin_to_response(c) for c in items])


@router.get(
    "/stats",
    response_model=CheckinStatsResponse,
    summary="Check-in statistics",
)
def stats(
    start: Optional[datetime] = Query(default=None),
    end: Optional[datetime] = Query(default=None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return CheckinStatsResponse(**get_checkin_stats(db, user.id, start=start, end=end))


@router.post(
    "/analyze",
    response_model=AnalysisEnvelope,
    summary="Analyse input without storing it",
    responses={422: {"description": "Neither text nor mood_rating + stress_level given."}},
)
async def analyze_text(
    payload: AnalyzeTextRequest,
    user: User = Depends(get_current_user),
):
    analysis = await analyze_checkin(
        payload.text,
        payload.mood_rating,
        payload.stress_level,
        payload.selected_emotions,
    )
    result = analysis.to_dict()
    return AnalysisEnvelope(
        analysis=RiskAnalysisResponse(**result),
        alert=crisis_alert(result),
    )


# ---------------------------------------------------------------------------
# Item
# ---------------------------------------------------------------------------

@router.get(
    "/{checkin_id}",
    response_model=CheckinEnvelope,
    summary="Retrieve one check-in",
    responses={404: {"description": "Check-in not found."}},
)
def get_one(
    checkin_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _envelope(get_checkin(db, user.id, checkin_id))


@router.put(
    "/{checkin_id}",
    response_model=CheckinEnvelope,
    summary="Edit a check-in",
    responses={
        404: {"description": "Check-in not found."},
        409: {"description": "RECORD_LOCKED: the check-in has already been analysed."},
        422: {"description": "Validation error."},
    },
)
def update(
    checkin_id: int,
    payload: CheckinUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    row = update_checkin(db, user.id, checkin_id, **payload.model_dump())
    return _envelope(row)


@router.delete(
    "/{checkin_id}",
    response_model=MessageResponse,
    summary="Delete a check-in",
    responses={404: {"description": "Check-in not found."}},
)
def delete(
    checkin_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    delete_checkin(db, user.id, checkin_id)
    return MessageResponse(message="Check-in deleted successfully")


@router.post(
    "/{checkin_id}/analyze",
    response_model=CheckinEnvelope,
    summary="Analyse a stored check-in",
    responses={404: {"description": "Check-in not found."}},
)
async def analyze_one(
    checkin_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Runs the classifier (or the rule-based fallback) and stores the result."""
    row, _ = await analyze_existing(db, user.id, checkin_id)
    return _envelope(row)


@router.put(
    "/{checkin_id}/analysis",
    response_model=CheckinEnvelope,
    summary="Attach an analysis to a check-in",
    responses={
        404: {"description": "Check-in not found."},
        422: {"description": "ai_analysis missing or empty."},
    },
)
def attach(
    checkin_id: int,
    payload: AttachAnalysisRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Every field is validated the same way as a classifier reply."""
    return _envelope(attach_analysis(db, user.id, checkin_id, payload.ai_analysis))
