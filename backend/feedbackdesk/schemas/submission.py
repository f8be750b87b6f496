from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, AnyHttpUrl
from feedbackdesk.enums import SubmissionStatus


class SubmissionRead(BaseModel):
    """Snapshot of a submission row as handed out by a repository."""
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    user_id: int | None = None
    service_id: int
    title: str
    content: str | None = None
    filename: str | None = None
    word_count: int
    prompt_instructions: str
    additional_instructions: str | None = None
    total_price: int
    status: SubmissionStatus
    submitted_at: datetime
    approved_at: datetime | None = None
    paid_at: datetime | None = None
    completed_at: datetime | None = None
    feedback: str | None = None
    payment_reference: str | None = None
    payment_status: str = "unpaid"


class SubmissionDraft(BaseModel):
    """Input of SubmissionLifecycle.create; rules are checked by the engine."""
    user_id: int | None = None
    service_id: int
    title: str
    content: str | None = None
    filename: str | None = None
    word_count: int | None = None   # declared count, used for uploaded files
    prompt_instructions: str
    additional_instructions: str | None = None


class SubmissionPublic(SubmissionRead):
    status_label: str
    progress: int = Field(ge=0, le=100)
    estimated_completion: datetime


class TextSubmissionCreate(BaseModel):
    service_id: int
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    prompt_instructions: str
    additional_instructions: str | None = None
    terms_accepted: bool = Field(description="Academic integrity terms must be accepted")


class FeedbackRequest(BaseModel):
    feedback: str


class PaymentSuccessRequest(BaseModel):
    payment_intent_id: str


class MySubmissions(BaseModel):
    active: list[SubmissionPublic]
    completed: list[SubmissionPublic]


class CheckoutRequest(BaseModel):
    success_url: AnyHttpUrl
    cancel_url: AnyHttpUrl


class CheckoutResponse(BaseModel):
    checkout_url: str
    session_id: str
