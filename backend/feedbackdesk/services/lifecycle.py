"""
Submission lifecycle: the only code allowed to change a submission's status.

    pending_approval --approve--> approved --record_payment--> paid
    paid --start_work--> in_progress
    paid | in_progress --deliver_feedback--> completed
    pending_approval --reject--> rejected

Each transition is one read-check-write inside ``repo.atomic()``. The status
check is repeated by the write itself (``update_submission`` only matches the
expected status), so two callers racing on the same submission cannot both
succeed. Repeating a transition is an error, never a silent no-op.
"""
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

import structlog

from feedbackdesk.enums import SubmissionStatus, PaymentStatus
from feedbackdesk.errors import (
    InvalidTransition,
    QuotaExceeded,
    ServiceNotFound,
    SubmissionNotFound,
    ValidationFailed,
)
from feedbackdesk.schemas.submission import SubmissionDraft, SubmissionRead
from feedbackdesk.services.pricing import count_words, price
from feedbackdesk.services.read_models import SubmissionQueries
from feedbackdesk.services.repository import SubmissionRepository

log = structlog.get_logger()

PENDING_SUBMISSION_LIMIT = 3
MIN_PROMPT_LENGTH = 10

S = SubmissionStatus


@dataclass(frozen=True)
class TransitionRule:
    sources: frozenset[SubmissionStatus]
    target: SubmissionStatus
    stamp: str | None = None  # timestamp column set when the transition happens


TRANSITIONS: dict[str, TransitionRule] = {
    "approve": TransitionRule(frozenset({S.PENDING_APPROVAL}), S.APPROVED, "approved_at"),
    "reject": TransitionRule(frozenset({S.PENDING_APPROVAL}), S.REJECTED),
    "record_payment": TransitionRule(frozenset({S.APPROVED}), S.PAID, "paid_at"),
    "start_work": TransitionRule(frozenset({S.PAID}), S.IN_PROGRESS),
    "deliver_feedback": TransitionRule(frozenset({S.PAID, S.IN_PROGRESS}), S.COMPLETED, "completed_at"),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionLifecycle:
    def __init__(
        self,
        repo: SubmissionRepository,
        *,
        pending_limit: int = PENDING_SUBMISSION_LIMIT,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.repo = repo
        self.queries = SubmissionQueries(repo)
        self.pending_limit = pending_limit
        self.now = now

    # ---------- creation ----------

    def _validate_draft(self, draft: SubmissionDraft) -> int:
        """Check the draft and return the word count to bill."""
        if not draft.title.strip():
            raise ValidationFailed("Title is required", field="title")
        if len((draft.prompt_instructions or "").strip()) < MIN_PROMPT_LENGTH:
            raise ValidationFailed(
                f"Paper prompt/instructions are required and must be at least {MIN_PROMPT_LENGTH} characters",
                field="prompt_instructions",
            )
        has_text = bool(draft.content and draft.content.strip())
        has_file = bool(draft.filename)
        if has_text == has_file:
            raise ValidationFailed("Provide either text content or an uploaded file, not both", field="content")
        word_count = count_words(draft.content) if has_text else (draft.word_count or 0)
        if word_count <= 0:
            raise ValidationFailed("Word count must be at least 1", field="word_count")
        return word_count

    async def create(self, draft: SubmissionDraft) -> SubmissionRead:
        word_count = self._validate_draft(draft)

        async with self.repo.atomic():
            if draft.user_id is not None:
                await self.repo.lock_user(draft.user_id)
                pending = await self.queries.count_pending(draft.user_id)
                if pending >= self.pending_limit:
                    log.info("submission.quota_exceeded", user_id=draft.user_id, pending=pending)
                    raise QuotaExceeded(self.pending_limit, pending=pending)

            service = await self.repo.get_service(draft.service_id)
            if service is None:
                raise ServiceNotFound(service_id=draft.service_id)

            sub = await self.repo.create_submission({
                "user_id": draft.user_id,
                "service_id": service.id,
                "title": draft.title.strip(),
                "content": draft.content if draft.content and draft.content.strip() else None,
                "filename": draft.filename or None,
                "word_count": word_count,
                "prompt_instructions": draft.prompt_instructions,
                "additional_instructions": draft.additional_instructions or None,
                "total_price": price(word_count, service.unit_price),
                "status": str(S.PENDING_APPROVAL),
                "submitted_at": self.now(),
                "approved_at": None,
                "paid_at": None,
                "completed_at": None,
                "feedback": None,
                "payment_reference": None,
                "payment_status": str(PaymentStatus.UNPAID),
            })
            if draft.user_id is not None:
                await self.repo.increment_user_submission_count(draft.user_id)

        log.info(
            "submission.created",
            submission_id=sub.id, user_id=sub.user_id, service_id=sub.service_id,
            word_count=sub.word_count, total_price=sub.total_price,
        )
        return sub

    # ---------- transitions ----------

    async def _transition(self, submission_id: int, action: str, **fields: Any) -> SubmissionRead:
        rule = TRANSITIONS[action]
        async with self.repo.atomic():
            current = await self.repo.get_submission(submission_id)
            if current is None:
                raise SubmissionNotFound(submission_id=submission_id)
            if current.status not in rule.sources:
                raise InvalidTransition(action=action, current_status=str(current.status))

            values: dict[str, Any] = {"status": str(rule.target), **fields}
            if rule.stamp:
                values[rule.stamp] = self.now()
            updated = await self.repo.update_submission(
                submission_id, expected_status=current.status, values=values
            )
            if updated is None:
                # another writer moved it between our read and our write
                latest = await self.repo.get_submission(submission_id)
                raise InvalidTransition(
                    action=action, current_status=str(latest.status) if latest else None
                )

        log.info(
            f"submission.{action}",
            submission_id=submission_id, from_status=str(current.status), to_status=str(updated.status),
        )
        return updated

    async def approve(self, submission_id: int) -> SubmissionRead:
        return await self._transition(submission_id, "approve")

    async def reject(self, submission_id: int) -> SubmissionRead:
        return await self._transition(submission_id, "reject")

    async def record_payment_success(self, submission_id: int, payment_reference: str) -> SubmissionRead:
        """Payment details and the move to ``paid`` land in the same write."""
        if not payment_reference or not payment_reference.strip():
            raise ValidationFailed("Payment reference is required", field="payment_reference")
        return await self._transition(
            submission_id,
            "record_payment",
            payment_reference=payment_reference.strip(),
            payment_status=str(PaymentStatus.PAID),
        )

    async def start_work(self, submission_id: int) -> SubmissionRead:
        return await self._transition(submission_id, "start_work")

    async def deliver_feedback(self, submission_id: int, feedback: str) -> SubmissionRead:
        if not feedback or not feedback.strip():
            raise ValidationFailed("Feedback is required", field="feedback")
        return await self._transition(submission_id, "deliver_feedback", feedback=feedback)
