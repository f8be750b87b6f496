from __future__ import annotations
import enum


class SubmissionStatus(enum.StrEnum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    PAID = "paid"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({SubmissionStatus.COMPLETED, SubmissionStatus.REJECTED})

ACTIVE_STATUSES = (
    SubmissionStatus.PENDING_APPROVAL,
    SubmissionStatus.APPROVED,
    SubmissionStatus.PAID,
    SubmissionStatus.IN_PROGRESS,
)
FINISHED_STATUSES = (SubmissionStatus.COMPLETED, SubmissionStatus.REJECTED)

STATUS_LABELS: dict[SubmissionStatus, str] = {
    SubmissionStatus.PENDING_APPROVAL: "Pending Approval",
    SubmissionStatus.APPROVED: "Approved",
    SubmissionStatus.PAID: "Paid",
    SubmissionStatus.IN_PROGRESS: "In Progress",
    SubmissionStatus.COMPLETED: "Completed",
    SubmissionStatus.REJECTED: "Rejected",
}


def status_label(status: SubmissionStatus | str) -> str:
    """Human readable label for a submission status, shared by every view."""
    return STATUS_LABELS[SubmissionStatus(status)]


class PaymentStatus(enum.StrEnum):
    UNPAID = "unpaid"
    PAID = "paid"
