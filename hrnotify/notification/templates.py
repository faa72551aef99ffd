"""Email templates for leave workflow notifications."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

from hrnotify.models.notification import EventType


class Audience(str, Enum):
    """Who a template is written for."""

    EMPLOYEE = "employee"
    ADMIN = "admin"


@dataclass(frozen=True)
class EmailTemplate:
    """Subject and body with ``str.format`` placeholders."""

    name: str
    subject: str
    body: str


_SIGNATURE = """
Regards,
HR Management System
(no-reply: this mailbox is not monitored)"""

LEAVE_APPLIED_EMPLOYEE = EmailTemplate(
    name="leave_applied_employee",
    subject="Leave Request Submitted - Pending Approval",
    body="""Hello {employee_name},

Your leave request has been submitted and is waiting for approval.

Leave details:
- Leave type: {leave_type}
- Start date: {start_date}
- End date: {end_date}
- Total days: {total_days}
- Reason: {reason}

You will receive another email once a decision has been made.
""" + _SIGNATURE,
)

LEAVE_APPLIED_ADMIN = EmailTemplate(
    name="leave_applied_admin",
    subject="Action Required: New Leave Request from {employee_name}",
    body="""Hello {admin_name},

A new leave request needs your decision.

Employee: {employee_name} (ID {employee_id})
Leave type: {leave_type}
Duration: {start_date} to {end_date} ({total_days} days)
Reason: {reason}

Please sign in to the admin portal to approve or reject it.
""" + _SIGNATURE,
)

LEAVE_APPROVED_PAID = EmailTemplate(
    name="leave_approved_employee",
    subject="Leave Approved",
    body="""Hello {employee_name},

Your leave request has been APPROVED by {admin_name}.

Leave details:
- Leave type: {leave_type}
- Duration: {start_date} to {end_date}
- Total days: {total_days}

Salary deduction for this leave: {total_deduction}
""" + _SIGNATURE,
)

LEAVE_APPROVED_UNPAID = EmailTemplate(
    name="leave_approved_employee",
    subject="Leave Approved",
    body="""Hello {employee_name},

Your leave request has been APPROVED by {admin_name}.

Leave details:
- Leave type: {leave_type}
- Duration: {start_date} to {end_date}
- Total days: {total_days}

No salary deduction applies to this leave type.
""" + _SIGNATURE,
)

LEAVE_REJECTED = EmailTemplate(
    name="leave_rejected_employee",
    subject="Leave Request Rejected",
    body="""Hello {employee_name},

Your {leave_type} leave request for {total_days} days has been REJECTED.

Reason:
{rejection_reason}

Please contact HR if you need more information.
""" + _SIGNATURE,
)

LEAVE_CANCELLED = EmailTemplate(
    name="leave_cancelled_employee",
    subject="Leave Request Cancelled",
    body="""Hello {employee_name},

Your leave request has been CANCELLED.

Leave details:
- Leave type: {leave_type}
- Duration: {start_date} to {end_date}
- Total days: {total_days}

If this was unexpected, please contact HR.
""" + _SIGNATURE,
)

LOW_BALANCE = EmailTemplate(
    name="low_balance_warning",
    subject="Low Leave Balance Warning",
    body="""Hello {employee_name},

Your {leave_type} leave balance is running low.

Current balance: {current_balance} days

Please plan upcoming leave accordingly.
""" + _SIGNATURE,
)

APPROVAL_REMINDER = EmailTemplate(
    name="approval_reminder_admin",
    subject="Action Required: Pending Leave Approvals",
    body="""Hello {admin_name},

A leave request is still waiting for your decision:

Employee: {employee_name}
Leave type: {leave_type}
Duration: {start_date} to {end_date} ({total_days} days)

Please sign in to the admin portal to approve or reject it.
""" + _SIGNATURE,
)

DEFAULT = EmailTemplate(name="default", subject="Notification", body="{message}")


def get_template(
    event_type: str,
    audience: Audience = Audience.EMPLOYEE,
    is_paid_leave: bool = False,
) -> EmailTemplate:
    """Select the template for an event.

    Args:
        event_type: Event tag, usually an ``EventType`` value
        audience: Recipient role
        is_paid_leave: Whether an approval carries a salary deduction

    Returns:
        Matching template, or ``DEFAULT`` for unknown events
    """
    key = event_type.value if isinstance(event_type, EventType) else event_type
    if key == EventType.LEAVE_APPLIED.value:
        return LEAVE_APPLIED_ADMIN if audience == Audience.ADMIN else LEAVE_APPLIED_EMPLOYEE
    if key == EventType.LEAVE_APPROVED.value:
        return LEAVE_APPROVED_PAID if is_paid_leave else LEAVE_APPROVED_UNPAID
    templates = {
        EventType.LEAVE_REJECTED.value: LEAVE_REJECTED,
        EventType.LEAVE_CANCELLED.value: LEAVE_CANCELLED,
        EventType.LOW_BALANCE.value: LOW_BALANCE,
        EventType.APPROVAL_REMINDER.value: APPROVAL_REMINDER,
    }
    return templates.get(key, DEFAULT)


class _TemplateValues(dict):
    """Missing placeholders render as empty strings."""

    def __missing__(self, key: str) -> str:
        return ""


def render_template(template: EmailTemplate, data: Mapping[str, Any]) -> tuple[str, str]:
    """Fill a template's placeholders.

    Args:
        template: Template to render
        data: Placeholder values

    Returns:
        Tuple of (subject, body)
    """
    values = _TemplateValues(data)
    return template.subject.format_map(values), template.body.format_map(values)
