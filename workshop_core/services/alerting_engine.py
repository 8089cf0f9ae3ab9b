"""
Alerting Engine: advisory signals derived from the approval backlog.

Alerts are a pure function of the appointments passed in. Nothing is
persisted and nothing is mutated; each poll recomputes the full list.
Alert ids are fixed per rule, so a client can hide one for its session
and see it again on the next load.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable

from ..core.config import Settings
from ..models import Appointment, ApprovalStatus, Priority, utcnow


APPROVALS_URL = "/admin/dashboard/approvals"


# =============================================================================
# CONFIGURATION
# =============================================================================


@dataclass(frozen=True)
class AlertConfig:
    """Thresholds for the alert rules."""

    # Pending appointments above this total are urgent
    urgent_cost_threshold: float = 1000.0

    # Pending appointments older than this are urgent and overdue
    approval_window: timedelta = timedelta(hours=24)

    # Backlog alert escalates to HIGH above this many pending
    backlog_high_threshold: int = 5

    # Approved appointments starting within this window trigger a reminder
    upcoming_window: timedelta = timedelta(hours=2)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AlertConfig":
        return cls(
            urgent_cost_threshold=settings.urgent_cost_threshold,
            approval_window=timedelta(hours=settings.approval_window_hours),
            backlog_high_threshold=settings.backlog_high_threshold,
            upcoming_window=timedelta(hours=settings.upcoming_window_hours),
        )


DEFAULT_CONFIG = AlertConfig()


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


class AlertType(str, Enum):
    URGENT = "urgent"
    DEADLINE = "deadline"
    REMINDER = "reminder"
    INFO = "info"


@dataclass
class Alert:
    """A derived, non-persistent signal for admins."""
    id: str
    type: AlertType
    title: str
    message: str
    priority: Priority
    timestamp: datetime
    action_url: str = APPROVALS_URL
    dismissed: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["type"] = self.type.value
        data["priority"] = self.priority.value
        return data


@dataclass
class _RuleMatches:
    urgent: list[Appointment] = field(default_factory=list)
    overdue: list[Appointment] = field(default_factory=list)


# =============================================================================
# RULES
# =============================================================================


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_overdue(
    appointment: Appointment,
    now: datetime,
    config: AlertConfig = DEFAULT_CONFIG,
) -> bool:
    """Waiting for a decision longer than the approval window."""
    return _as_utc(now) - _as_utc(appointment.created_at) > config.approval_window


def is_urgent(
    appointment: Appointment,
    now: datetime,
    config: AlertConfig = DEFAULT_CONFIG,
) -> bool:
    """High value or overdue. Shared by alerts and the stats overview."""
    total = appointment.estimated_total or 0
    return total > config.urgent_cost_threshold or is_overdue(appointment, now, config)


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}{'' if count == 1 else 's'}"


def compute_alerts(
    pending_appointments: Iterable[Appointment],
    now: datetime | None = None,
    upcoming: Iterable[Appointment] = (),
    config: AlertConfig = DEFAULT_CONFIG,
) -> list[Alert]:
    """
    Derive the current alert list.

    Rules:
    - urgent-approvals: any pending appointment over the cost threshold
      or older than the approval window
    - overdue-approvals: any pending appointment older than the window
    - pending-backlog: pending count > 0; HIGH above the backlog threshold
    - upcoming-appointments: approved appointments starting soon

    Returns alerts ordered by priority, most pressing first.
    """
    now = now or utcnow()
    pending = [
        a for a in pending_appointments
        if a.approval_status is ApprovalStatus.PENDING
    ]

    matches = _RuleMatches()
    for appointment in pending:
        if is_urgent(appointment, now, config):
            matches.urgent.append(appointment)
        if is_overdue(appointment, now, config):
            matches.overdue.append(appointment)

    alerts: list[Alert] = []

    if matches.urgent:
        alerts.append(Alert(
            id="urgent-approvals",
            type=AlertType.URGENT,
            title="Urgent Approvals Required",
            message=(
                f"{_plural(len(matches.urgent), 'high-priority appointment')} "
                "need immediate attention"
            ),
            priority=Priority.URGENT,
            timestamp=now,
        ))

    if matches.overdue:
        hours = int(config.approval_window.total_seconds() // 3600)
        alerts.append(Alert(
            id="overdue-approvals",
            type=AlertType.DEADLINE,
            title="Approval Deadline Exceeded",
            message=(
                f"{_plural(len(matches.overdue), 'appointment')} "
                f"waiting over {hours} hours for approval"
            ),
            priority=Priority.HIGH,
            timestamp=now,
        ))

    if pending:
        alerts.append(Alert(
            id="pending-backlog",
            type=AlertType.INFO,
            title="Pending Approvals",
            message=f"{_plural(len(pending), 'appointment')} waiting for approval",
            priority=(
                Priority.HIGH
                if len(pending) > config.backlog_high_threshold
                else Priority.MEDIUM
            ),
            timestamp=now,
        ))

    window_end = _as_utc(now) + config.upcoming_window
    starting_soon = [
        a for a in upcoming
        if a.approval_status is ApprovalStatus.APPROVED
        and _as_utc(now) <= _as_utc(a.scheduled_at) <= window_end
    ]
    if starting_soon:
        hours = int(config.upcoming_window.total_seconds() // 3600)
        alerts.append(Alert(
            id="upcoming-appointments",
            type=AlertType.REMINDER,
            title="Upcoming Appointments",
            message=(
                f"{_plural(len(starting_soon), 'appointment')} "
                f"scheduled in the next {hours} hours"
            ),
            priority=Priority.MEDIUM,
            timestamp=now,
        ))

    # sorted() is stable, so rule order breaks ties
    return sorted(alerts, key=lambda alert: alert.priority.rank)
