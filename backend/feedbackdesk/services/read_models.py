from __future__ import annotations
from datetime import datetime, timedelta, timezone

from feedbackdesk.enums import SubmissionStatus, ACTIVE_STATUSES, FINISHED_STATUSES
from feedbackdesk.schemas.service import ServiceRead
from feedbackdesk.schemas.submission import SubmissionRead
from feedbackdesk.services.repository import SubmissionRepository


def _chronological(rows: list[SubmissionRead]) -> list[SubmissionRead]:
    return sorted(rows, key=lambda s: (_aware(s.submitted_at), s.id))


def _aware(dt: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything we store is UTC
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


class SubmissionQueries:
    """
    Read-only projections for dashboards. Results are ordered by id unless
    ``chronological`` asks for submitted_at order.
    """

    def __init__(self, repo: SubmissionRepository):
        self.repo = repo

    async def list_by_status(self, status: SubmissionStatus, *, chronological: bool = False) -> list[SubmissionRead]:
        rows = await self.repo.list_submissions(statuses=[status])
        return _chronological(rows) if chronological else rows

    async def list_for_user(self, user_id: int, *, chronological: bool = False) -> list[SubmissionRead]:
        rows = await self.repo.list_submissions(user_id=user_id)
        return _chronological(rows) if chronological else rows

    async def list_active_for_user(self, user_id: int, *, chronological: bool = False) -> list[SubmissionRead]:
        rows = await self.repo.list_submissions(user_id=user_id, statuses=ACTIVE_STATUSES)
        return _chronological(rows) if chronological else rows

    async def list_completed_for_user(self, user_id: int, *, chronological: bool = False) -> list[SubmissionRead]:
        rows = await self.repo.list_submissions(user_id=user_id, statuses=FINISHED_STATUSES)
        return _chronological(rows) if chronological else rows

    async def count_pending(self, user_id: int) -> int:
        """Live count used by the quota check."""
        return await self.repo.count_submissions(user_id=user_id, status=SubmissionStatus.PENDING_APPROVAL)

    async def dashboard(self) -> dict[SubmissionStatus, list[SubmissionRead]]:
        board: dict[SubmissionStatus, list[SubmissionRead]] = {s: [] for s in SubmissionStatus}
        for sub in await self.repo.list_submissions():
            board[sub.status].append(sub)
        return board

    async def status_counts(self) -> dict[SubmissionStatus, int]:
        return {status: len(rows) for status, rows in (await self.dashboard()).items()}


def estimated_completion(sub: SubmissionRead, service: ServiceRead) -> datetime:
    return _aware(sub.submitted_at) + timedelta(hours=service.turnaround_hours)


def progress_percent(sub: SubmissionRead, service: ServiceRead, now: datetime | None = None) -> int:
    """
    Completed work is 100%. Work that has not been paid for (or was rejected)
    is 0%. Otherwise progress follows the elapsed share of the turnaround and
    stays below 100 until feedback is delivered.
    """
    if sub.status == SubmissionStatus.COMPLETED:
        return 100
    if sub.status in (SubmissionStatus.PENDING_APPROVAL, SubmissionStatus.APPROVED, SubmissionStatus.REJECTED):
        return 0
    now = _aware(now or datetime.now(timezone.utc))
    turnaround = timedelta(hours=service.turnaround_hours)
    elapsed = now - _aware(sub.submitted_at)
    return max(0, min(int(elapsed / turnaround * 100), 99))
