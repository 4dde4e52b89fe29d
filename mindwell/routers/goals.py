"""
Goals router.

GET    /goals               : active goals with live progress
GET    /goals/templates     : template catalogue
GET    /goals/summary       : counts + average progress
GET    /goals/history       : inactive goals (paginated)
DELETE /goals/history       : purge history
POST   /goals               : create (from scratch or template)
GET    /goals/{id}          : one goal
PUT    /goals/{id}          : update title / target_count / time_frame
DELETE /goals/{id}          : abandon (soft delete)
POST   /goals/{id}/complete : manual completion (target must be met)
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from mindwell.core.enums import enum_value
from mindwell.db.base import get_db
from mindwell.models.goal import Goal
from mindwell.models.user import User
from mindwell.routers.deps import get_current_user
from mindwell.schemas.goal import (
    DeleteHistoryResponse,
    GoalCreateRequest,
    GoalHistoryResponse,
    GoalListResponse,
    GoalResponse,
    GoalSummaryResponse,
    GoalTemplateListResponse,
    GoalTemplateResponse,
    GoalUpdateRequest,
    ProgressResponse,
    TimeRemainingResponse,
)
from mindwell.services.goal_progress import (
    GoalProgress,
    calculate_progress_for_goals,
    get_time_remaining,
)
from mindwell.services.goal_templates import list_templates
from mindwell.services.goals import (
    MAX_ACTIVE_GOALS,
    GoalDraft,
    abandon_goal,
    complete_goal,
    create_goal,
    delete_goal_history,
    get_goal,
    get_goal_history,
    get_goals_summary,
    list_active_goals,
    update_goal,
)

router = APIRouter(prefix="/goals", tags=["goals"])


# ---------------------------------------------------------------------------
# Serialization helper
# ---------------------------------------------------------------------------

def _goal_to_response(goal: Goal, result: Optional[GoalProgress] = None) -> GoalResponse:
    extra: dict = {}
    if result is not None:
        if result.ok:
            extra["progress"] = ProgressResponse(**result.progress.to_dict())
        else:
            extra["progress_error"] = result.error
    if goal.is_active:
        extra["time_remaining"] = TimeRemainingResponse(
            **get_time_remaining(goal.time_frame, anchor=goal.created_at).to_dict()
        )
    return GoalResponse(
        id=goal.id,
        title=goal.title,
        activity_type=enum_value(goal.activity_type),
        target_count=goal.target_count,
        time_frame=enum_value(goal.time_frame),
        is_active=goal.is_active,
        completed_at=goal.completed_at.isoformat() if goal.completed_at else None,
        created_at=goal.created_at.isoformat() if goal.created_at else "",
        updated_at=goal.updated_at.isoformat() if goal.updated_at else None,
        **extra,
    )


def _with_progress(db: Session, goal: Goal) -> GoalResponse:
    if not goal.is_active:
        return _goal_to_response(goal)
    result = calculate_progress_for_goals(db, [goal])[0]
    return _goal_to_response(goal, result)


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=GoalListResponse,
    summary="List active goals with progress",
)
def list_goals(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Every active goal with its progress in the current window. A goal whose
    activity store cannot be read carries `progress_error` instead of
    failing the whole list.
    """
    goals = list_active_goals(db, user.id)
    results = calculate_progress_for_goals(db, goals)
    return GoalListResponse(
        total=len(goals),
        max_active=MAX_ACTIVE_GOALS,
        items=[_goal_to_response(r.goal, r) for r in results],
    )


@router.get(
    "/templates",
    response_model=GoalTemplateListResponse,
    summary="List goal templates",
)
def get_templates(
    category: Optional[str] = Query(default=None, examples=["stress_relief"]),
    activity_type: Optional[str] = Query(default=None, examples=["breathing"]),
):
    templates = list_templates(category=category, activity_type=activity_type)
    return GoalTemplateListResponse(
        total=len(templates),
        items=[GoalTemplateResponse(**t.to_dict()) for t in templates],
    )


@router.get(
    "/summary",
    response_model=GoalSummaryResponse,
    summary="Goal counts and average progress",
)
def goals_summary(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    summary = get_goals_summary(db, user.id)
    return GoalSummaryResponse(**summary.__dict__)


@router.get(
    "/history",
    response_model=GoalHistoryResponse,
    summary="Completed and abandoned goals (newest first)",
)
def goal_history(
    completed_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200, description="Page size."),
    offset: int = Query(default=0, ge=0, description="Skip N items."),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    total, items = get_goal_history(
        db, user.id, completed_only=completed_only, limit=limit, offset=offset
    )
    return GoalHistoryResponse(total=total, items=[_goal_to_response(g) for g in items])


@router.delete(
    "/history",
    response_model=DeleteHistoryResponse,
    summary="Delete goal history",
)
def clear_goal_history(
    older_than_days: Optional[int] = Query(
        default=None, ge=0, description="Only delete goals untouched for N days. Omit for all."
    ),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    deleted = delete_goal_history(db, user.id, older_than_days=older_than_days)
    return DeleteHistoryResponse(deleted=deleted)


@router.post(
    "",
    response_model=GoalResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a goal",
    responses={
        201: {"description": "Goal created."},
        409: {"description": "CAPACITY_EXCEEDED: already at the active-goal limit."},
        422: {"description": "Validation error."},
    },
)
def create(
    payload: GoalCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Create a goal. With `template_id` the template pre-fills every field;
    explicit fields in the body override it.

    ### Rules
    | Field | Constraint |
    |---|---|
    | `title` | 1 – 50 characters |
    | `activity_type` | check_in, quick_mood, mindfulness, breathing, journaling |
    | `target_count` | 1 – 100 |
    | `time_frame` | daily, weekly, monthly |

    At most 10 goals may be active at once.
    """
    goal = create_goal(db, user.id, GoalDraft(**payload.model_dump()))
    return _with_progress(db, goal)


# ---------------------------------------------------------------------------
# Item
# ---------------------------------------------------------------------------

@router.get(
    "/{goal_id}",
    response_model=GoalResponse,
    summary="Retrieve one goal",
    responses={404: {"description": "Goal not found."}},
)
def get_one(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return _with_progress(db, get_goal(db, user.id, goal_id))


@router.put(
    "/{goal_id}",
    response_model=GoalResponse,
    summary="Update a goal",
    responses={
        404: {"description": "Goal not found."},
        409: {"description": "INVALID_GOAL_STATE: goal is no longer active."},
        422: {"description": "Validation error."},
    },
)
def update(
    goal_id: int,
    payload: GoalUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Only `title`, `target_count` and `time_frame` can change; `activity_type` is fixed."""
    goal = update_goal(
        db, user.id, goal_id,
        title=payload.title,
        target_count=payload.target_count,
        time_frame=payload.time_frame,
    )
    return _with_progress(db, goal)


@router.delete(
    "/{goal_id}",
    response_model=GoalResponse,
    summary="Abandon a goal",
    responses={
        404: {"description": "Goal not found."},
        409: {"description": "INVALID_GOAL_STATE: goal is already inactive."},
    },
)
def abandon(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Soft delete: the goal moves to history with `completed_at` unset."""
    return _goal_to_response(abandon_goal(db, user.id, goal_id))


@router.post(
    "/{goal_id}/complete",
    response_model=GoalResponse,
    summary="Mark a goal as completed",
    responses={
        404: {"description": "Goal not found."},
        409: {"description": "GOAL_NOT_YET_ACHIEVED (details.progress) or INVALID_GOAL_STATE."},
    },
)
def complete(
    goal_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Succeeds only when the current window already meets the target."""
    return _goal_to_response(complete_goal(db, user.id, goal_id))
