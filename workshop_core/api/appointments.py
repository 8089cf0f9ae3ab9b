"""
Appointment Approval API Routes.

Admin endpoints for the approvals screen:
1. GET /appointments/pending-approval - Paginated queue of undecided appointments
2. GET /appointments/alerts - Derived alerts for the dashboard
3. GET /appointments/stats/overview - Approval analytics
4. POST /appointments/{id}/approve - Approve with notes, optionally creating the work order
5. POST /appointments/{id}/decline - Decline, optionally assigning a follow-up
"""

import logging
from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, status

from ..core import AdminDep, SessionDep, get_settings
from ..models import ApprovalStatus
from ..schemas import (
    AlertResponse,
    AppointmentResponse,
    ApprovalDecisionResponse,
    ApprovalHistoryResponse,
    ApproveRequest,
    DeclineRequest,
    ErrorDetail,
    PaginationInfo,
    PendingApprovalsResponse,
    StatsOverviewResponse,
    WorkOrderResponse,
)
from ..services import (
    AlertConfig,
    ConflictError,
    NotFoundError,
    ValidationError,
    WorkshopError,
    approval_overview,
    compute_alerts,
)
from .dependencies import CoordinatorDep, SynthesizerDep, http_error
from .work_orders import build_created_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["appointments"])


# =============================================================================
# QUEUE, ALERTS, STATS
# =============================================================================


@router.get(
    "/pending-approval",
    response_model=PendingApprovalsResponse,
    summary="List appointments awaiting approval",
)
async def list_pending_approvals(
    current_user: AdminDep,
    coordinator: CoordinatorDep,
    page: int = Query(default=1, ge=1, description="Page number"),
    limit: int = Query(default=10, ge=1, le=100, description="Items per page"),
    include_follow_up: bool = Query(
        default=False,
        description="Also list declined appointments waiting on a follow-up",
    ),
    sort_by: Literal["scheduled_at", "created_at", "estimated_total", "priority"] = Query(
        default="scheduled_at",
        description="Sort key; priority sorts urgent first",
    ),
    sort_order: Literal["asc", "desc"] = Query(default="asc"),
):
    """Pending appointments, soonest scheduled first unless sorted otherwise."""
    try:
        result = await coordinator.list_pending(
            page=page,
            limit=limit,
            include_follow_up=include_follow_up,
            sort_by=sort_by,
            sort_order=sort_order,
        )
    except ValidationError as e:
        raise http_error(status.HTTP_422_UNPROCESSABLE_CONTENT, e)

    return PendingApprovalsResponse(
        appointments=[AppointmentResponse.model_validate(a) for a in result.items],
        pagination=PaginationInfo(
            current_page=result.page,
            total_pages=result.total_pages,
            total_items=result.total,
            limit=result.limit,
            has_next_page=result.has_next_page,
            has_prev_page=result.has_prev_page,
        ),
    )


@router.get(
    "/alerts",
    response_model=list[AlertResponse],
    summary="Derived approval alerts",
    description="""
    Recomputed on every call from the current backlog. Nothing is stored;
    alert ids are fixed per rule so the dashboard can hide one for the
    session and see it again on the next load.
    """,
)
async def get_alerts(
    current_user: AdminDep,
    coordinator: CoordinatorDep,
):
    config = AlertConfig.from_settings(get_settings())

    pending = await coordinator.list_by_status(ApprovalStatus.PENDING)
    upcoming = await coordinator.list_upcoming(window=config.upcoming_window)

    alerts = compute_alerts(pending, upcoming=upcoming, config=config)
    return [AlertResponse(**alert.to_dict()) for alert in alerts]


@router.get(
    "/stats/overview",
    response_model=StatsOverviewResponse,
    summary="Approval analytics",
)
async def get_stats_overview(
    current_user: AdminDep,
    session: SessionDep,
    start_date: datetime | None = Query(default=None, description="Created on or after"),
    end_date: datetime | None = Query(default=None, description="Created on or before"),
):
    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail={
                "error": ValidationError.code,
                "message": "start_date must not be after end_date",
            },
        )

    overview = await approval_overview(
        session,
        start=start_date,
        end=end_date,
        config=AlertConfig.from_settings(get_settings()),
    )
    return StatsOverviewResponse.model_validate(overview)


# =============================================================================
# SINGLE APPOINTMENT
# =============================================================================


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    summary="Get an appointment",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: AdminDep,
    coordinator: CoordinatorDep,
):
    try:
        appointment = await coordinator.get(appointment_id)
    except NotFoundError as e:
        raise http_error(status.HTTP_404_NOT_FOUND, e)

    return AppointmentResponse.model_validate(appointment)


@router.get(
    "/{appointment_id}/approval-history",
    response_model=ApprovalHistoryResponse,
    summary="Decision and resulting work order",
)
async def get_approval_history(
    appointment_id: UUID,
    current_user: AdminDep,
    coordinator: CoordinatorDep,
    synthesizer: SynthesizerDep,
):
    try:
        appointment = await coordinator.get(appointment_id)
    except NotFoundError as e:
        raise http_error(status.HTTP_404_NOT_FOUND, e)

    work_order = await synthesizer.get_for_appointment(appointment_id)

    return ApprovalHistoryResponse(
        appointment=AppointmentResponse.model_validate(appointment),
        work_order=WorkOrderResponse.model_validate(work_order) if work_order else None,
    )


@router.post(
    "/{appointment_id}/approve",
    response_model=ApprovalDecisionResponse,
    summary="Approve a pending appointment",
    description="""
    Moves the appointment from pending to approved. Notes are required.

    Two admins deciding the same appointment at once: exactly one succeeds,
    the other gets 409 Conflict and should reload before retrying.

    With `create_work_order` the work order is created right after the
    approval commits. If that step fails the approval stands and the
    failure is reported in `work_order_error`.
    """,
)
async def approve_appointment(
    appointment_id: UUID,
    request: ApproveRequest,
    current_user: AdminDep,
    session: SessionDep,
    coordinator: CoordinatorDep,
    synthesizer: SynthesizerDep,
    background_tasks: BackgroundTasks,
):
    try:
        appointment = await coordinator.approve(
            appointment_id,
            notes=request.notes,
            notify_customer=request.notify_customer,
            decided_by=current_user.id,
            expected_version=request.expected_version,
        )
    except ValidationError as e:
        raise http_error(status.HTTP_422_UNPROCESSABLE_CONTENT, e)
    except NotFoundError as e:
        raise http_error(status.HTTP_404_NOT_FOUND, e)
    except ConflictError as e:
        raise http_error(status.HTTP_409_CONFLICT, e)

    # The customer hears about the approval only once it is durable
    await session.commit()
    background_tasks.add_task(coordinator.send_notifications)

    response = ApprovalDecisionResponse.model_validate(appointment)
    if not request.create_work_order:
        return response

    try:
        result = await synthesizer.create_from_appointment(
            appointment_id, created_by=current_user.id
        )
    except WorkshopError as e:
        logger.warning(f"Appointment {appointment_id} approved, work order not created: {e}")
        appointment = await coordinator.get(appointment_id)
        return ApprovalDecisionResponse.model_validate(appointment).model_copy(
            update={"work_order_error": ErrorDetail(code=e.code, message=str(e))}
        )

    return ApprovalDecisionResponse.model_validate(result.appointment).model_copy(
        update={"work_order": build_created_response(result)}
    )


@router.post(
    "/{appointment_id}/decline",
    response_model=AppointmentResponse,
    summary="Decline a pending appointment",
    description="""
    Moves the appointment to declined, or to requires_followup when
    `assigned_to` names who should contact the customer. A reason is
    required; set `require_follow_up` to reject requests without an assignee.
    """,
)
async def decline_appointment(
    appointment_id: UUID,
    request: DeclineRequest,
    current_user: AdminDep,
    session: SessionDep,
    coordinator: CoordinatorDep,
    background_tasks: BackgroundTasks,
):
    try:
        appointment = await coordinator.decline(
            appointment_id,
            reason=request.reason,
            assigned_to=request.assigned_to,
            notify_customer=request.notify_customer,
            require_follow_up=request.require_follow_up,
            decided_by=current_user.id,
            expected_version=request.expected_version,
        )
    except ValidationError as e:
        raise http_error(status.HTTP_422_UNPROCESSABLE_CONTENT, e)
    except NotFoundError as e:
        raise http_error(status.HTTP_404_NOT_FOUND, e)
    except ConflictError as e:
        raise http_error(status.HTTP_409_CONFLICT, e)

    await session.commit()
    background_tasks.add_task(coordinator.send_notifications)

    return AppointmentResponse.model_validate(appointment)
