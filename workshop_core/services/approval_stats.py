"""Approval analytics for the admin overview."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import (
    Appointment,
    ApprovalStatus,
    Priority,
    WorkOrder,
    WorkOrderStatus,
    utcnow,
)
from .alerting_engine import DEFAULT_CONFIG, AlertConfig, is_urgent


@dataclass
class ApprovalOverview:
    """Aggregate counts over appointments created in a date range."""
    total_appointments: int
    by_approval_status: dict[str, int]
    by_priority: dict[str, int]
    by_service_type: dict[str, int]
    work_orders_by_status: dict[str, int]
    total_estimated_revenue: float
    approval_rate: float  # percent of decided appointments that were approved
    pending_approvals: int
    urgent_approvals: int


async def approval_overview(
    session: AsyncSession,
    now: datetime | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    config: AlertConfig = DEFAULT_CONFIG,
) -> ApprovalOverview:
    """
    Build the overview. ``urgent_approvals`` uses the same rule as the
    urgent alert so the two never disagree.
    """
    now = now or utcnow()

    conditions = []
    if start is not None:
        conditions.append(Appointment.created_at >= start)
    if end is not None:
        conditions.append(Appointment.created_at <= end)

    status_rows = await session.execute(
        select(
            Appointment.approval_status,
            func.count(),
            func.coalesce(func.sum(Appointment.estimated_total), 0),
        )
        .where(*conditions)
        .group_by(Appointment.approval_status)
    )
    by_status = {status.value: 0 for status in ApprovalStatus}
    revenue = 0.0
    for status, count, total in status_rows.all():
        by_status[ApprovalStatus(status).value] = count
        revenue += float(total or 0)

    priority_rows = await session.execute(
        select(Appointment.priority, func.count())
        .where(*conditions)
        .group_by(Appointment.priority)
    )
    by_priority = {priority.value: 0 for priority in Priority}
    for priority, count in priority_rows.all():
        by_priority[Priority(priority).value] = count

    service_rows = await session.execute(
        select(Appointment.service_type_ref, func.count())
        .where(*conditions)
        .group_by(Appointment.service_type_ref)
        .order_by(func.count().desc(), Appointment.service_type_ref)
    )
    by_service_type = {ref: count for ref, count in service_rows.all()}

    work_order_rows = await session.execute(
        select(WorkOrder.status, func.count()).group_by(WorkOrder.status)
    )
    work_orders = {status.value: 0 for status in WorkOrderStatus}
    for status, count in work_order_rows.all():
        work_orders[WorkOrderStatus(status).value] = count

    pending_result = await session.execute(
        select(Appointment).where(
            Appointment.approval_status == ApprovalStatus.PENDING,
            *conditions,
        )
    )
    pending = pending_result.scalars().all()

    approved = by_status[ApprovalStatus.APPROVED.value]
    decided = approved + (
        by_status[ApprovalStatus.DECLINED.value]
        + by_status[ApprovalStatus.REQUIRES_FOLLOWUP.value]
    )
    approval_rate = round(approved / decided * 100, 1) if decided else 0.0

    return ApprovalOverview(
        total_appointments=sum(by_status.values()),
        by_approval_status=by_status,
        by_priority=by_priority,
        by_service_type=by_service_type,
        work_orders_by_status=work_orders,
        total_estimated_revenue=round(revenue, 2),
        approval_rate=approval_rate,
        pending_approvals=len(pending),
        urgent_approvals=sum(1 for a in pending if is_urgent(a, now, config)),
    )
