from __future__ import annotations
import stripe
import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, UploadFile, File, Form
from starlette.concurrency import run_in_threadpool

from feedbackdesk.auth_deps import get_current_user, get_optional_user, get_staff_user
from feedbackdesk.config import settings
from feedbackdesk.deps import get_lifecycle, get_queries, get_repository
from feedbackdesk.enums import SubmissionStatus, status_label
from feedbackdesk.errors import SubmissionNotFound
from feedbackdesk.schemas.submission import (
    CheckoutRequest,
    CheckoutResponse,
    FeedbackRequest,
    MySubmissions,
    PaymentSuccessRequest,
    SubmissionDraft,
    SubmissionPublic,
    SubmissionRead,
    TextSubmissionCreate,
)
from feedbackdesk.services import storage
from feedbackdesk.services.pricing import format_price
from feedbackdesk.services.lifecycle import SubmissionLifecycle
from feedbackdesk.services.read_models import SubmissionQueries, estimated_completion, progress_percent
from feedbackdesk.services.repository import SubmissionRepository

log = structlog.get_logger()

router = APIRouter(prefix="/submissions", tags=["submissions"])

TERMS_REQUIRED = "You must accept the academic integrity terms"


async def _present(repo: SubmissionRepository, rows: list[SubmissionRead]) -> list[SubmissionPublic]:
    services = {s.id: s for s in await repo.list_services()}
    return [
        SubmissionPublic(
            **s.model_dump(),
            status_label=status_label(s.status),
            progress=progress_percent(s, services[s.service_id]),
            estimated_completion=estimated_completion(s, services[s.service_id]),
        )
        for s in rows
    ]


async def _pub(repo: SubmissionRepository, s: SubmissionRead) -> SubmissionPublic:
    return (await _present(repo, [s]))[0]


async def _get_or_404(repo: SubmissionRepository, submission_id: int) -> SubmissionRead:
    sub = await repo.get_submission(submission_id)
    if sub is None:
        raise SubmissionNotFound(submission_id=submission_id)
    return sub


def _ensure_owner_or_staff(user, sub: SubmissionRead) -> None:
    if user.is_staff:
        return
    if sub.user_id is None or sub.user_id != user.id:
        raise HTTPException(status_code=403, detail="Not your submission")


def _verify_payment_intent(sub: SubmissionRead, payment_intent_id: str) -> None:
    """The intent must have succeeded for this submission and its full price."""
    if not settings.stripe_secret_key:
        raise HTTPException(status_code=500, detail="Stripe not configured")
    stripe.api_key = settings.stripe_secret_key
    try:
        intent = stripe.PaymentIntent.retrieve(payment_intent_id)
    except stripe.StripeError as e:
        log.warning("submission.payment_lookup_failed", submission_id=sub.id, error=str(e))
        raise HTTPException(status_code=402, detail="Payment could not be verified")
    metadata = intent.get("metadata") or {}
    if (
        intent.get("status") != "succeeded"
        or metadata.get("submission_id") != str(sub.id)
        or intent.get("amount_received") != sub.total_price
    ):
        log.warning(
            "submission.payment_not_verified",
            submission_id=sub.id, payment_intent=payment_intent_id, status=intent.get("status"),
        )
        raise HTTPException(status_code=402, detail="Payment could not be verified")


# ---------- create ----------

@router.post("/text", status_code=201, response_model=SubmissionPublic)
async def create_text_submission(
    payload: TextSubmissionCreate,
    user=Depends(get_optional_user),
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
):
    if not payload.terms_accepted:
        raise HTTPException(status_code=422, detail=TERMS_REQUIRED)
    sub = await lifecycle.create(SubmissionDraft(
        user_id=user.id if user else None,
        service_id=payload.service_id,
        title=payload.title,
        content=payload.content,
        prompt_instructions=payload.prompt_instructions,
        additional_instructions=payload.additional_instructions,
    ))
    return await _pub(lifecycle.repo, sub)


@router.post("/file", status_code=201, response_model=SubmissionPublic)
async def create_file_submission(
    file: UploadFile = File(..., description="PDF, DOCX or TXT, at most 5 MB"),
    service_id: int = Form(...),
    title: str = Form(...),
    word_count: int = Form(..., description="Declared word count of the uploaded paper"),
    prompt_instructions: str = Form(...),
    additional_instructions: str | None = Form(default=None),
    terms_accepted: bool = Form(...),
    user=Depends(get_optional_user),
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
):
    if not terms_accepted:
        raise HTTPException(status_code=422, detail=TERMS_REQUIRED)
    ext = storage.upload_extension(file.filename)
    if ext is None:
        raise HTTPException(status_code=400, detail="Invalid file type. Only PDF, DOCX, and TXT files are allowed.")
    data = await file.read(settings.max_upload_bytes + 1)
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="File too large")
    if not data:
        raise HTTPException(status_code=400, detail="No file uploaded")

    key = storage.new_upload_key(ext)
    await run_in_threadpool(storage.put_bytes, key, data, storage.CONTENT_TYPES[ext])
    try:
        sub = await lifecycle.create(SubmissionDraft(
            user_id=user.id if user else None,
            service_id=service_id,
            title=title,
            filename=key,
            word_count=word_count,
            prompt_instructions=prompt_instructions,
            additional_instructions=additional_instructions,
        ))
    except Exception:
        # the paper is only kept for submissions that were accepted
        await run_in_threadpool(storage.delete, key)
        raise
    return await _pub(lifecycle.repo, sub)


# ---------- read models ----------

@router.get("/mine", response_model=MySubmissions)
async def my_submissions(
    chronological: bool = Query(default=False),
    user=Depends(get_current_user),
    queries: SubmissionQueries = Depends(get_queries),
):
    active = await queries.list_active_for_user(user.id, chronological=chronological)
    completed = await queries.list_completed_for_user(user.id, chronological=chronological)
    return MySubmissions(
        active=await _present(queries.repo, active),
        completed=await _present(queries.repo, completed),
    )


@router.get("/dashboard")
async def dashboard(
    _staff=Depends(get_staff_user),
    queries: SubmissionQueries = Depends(get_queries),
):
    board = await queries.dashboard()
    return {
        "counts": {str(status): len(rows) for status, rows in board.items()},
        "submissions": {str(status): await _present(queries.repo, rows) for status, rows in board.items()},
    }


@router.get("/status/{status}", response_model=list[SubmissionPublic])
async def list_by_status(
    status: SubmissionStatus,
    chronological: bool = Query(default=False),
    _staff=Depends(get_staff_user),
    queries: SubmissionQueries = Depends(get_queries),
):
    return await _present(queries.repo, await queries.list_by_status(status, chronological=chronological))


@router.get("", response_model=list[SubmissionPublic])
async def list_submissions(
    user_id: int | None = Query(default=None),
    _staff=Depends(get_staff_user),
    repo: SubmissionRepository = Depends(get_repository),
    queries: SubmissionQueries = Depends(get_queries),
):
    rows = await queries.list_for_user(user_id) if user_id is not None else await repo.list_submissions()
    return await _present(repo, rows)


@router.get("/{submission_id}", response_model=SubmissionPublic)
async def get_submission(
    submission_id: int,
    user=Depends(get_current_user),
    repo: SubmissionRepository = Depends(get_repository),
):
    sub = await _get_or_404(repo, submission_id)
    _ensure_owner_or_staff(user, sub)
    return await _pub(repo, sub)


@router.get("/{submission_id}/file")
async def download_file(
    submission_id: int,
    user=Depends(get_current_user),
    repo: SubmissionRepository = Depends(get_repository),
):
    sub = await _get_or_404(repo, submission_id)
    _ensure_owner_or_staff(user, sub)
    if not sub.filename:
        raise HTTPException(status_code=404, detail="Submission has no uploaded file")
    try:
        data, content_type = await run_in_threadpool(storage.get_bytes, sub.filename)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="File not found")
    name = sub.filename.rsplit("/", 1)[-1]
    return Response(
        content=data,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{name}"'},
    )


# ---------- transitions ----------

@router.post("/{submission_id}/approve", response_model=SubmissionPublic)
async def approve(
    submission_id: int,
    _staff=Depends(get_staff_user),
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
):
    return await _pub(lifecycle.repo, await lifecycle.approve(submission_id))


@router.post("/{submission_id}/reject", response_model=SubmissionPublic)
async def reject(
    submission_id: int,
    _staff=Depends(get_staff_user),
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
):
    return await _pub(lifecycle.repo, await lifecycle.reject(submission_id))


@router.post("/{submission_id}/feedback", response_model=SubmissionPublic)
async def deliver_feedback(
    submission_id: int,
    payload: FeedbackRequest,
    _staff=Depends(get_staff_user),
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
):
    return await _pub(lifecycle.repo, await lifecycle.deliver_feedback(submission_id, payload.feedback))


@router.post("/{submission_id}/payment-success", response_model=SubmissionPublic)
async def payment_success(
    submission_id: int,
    payload: PaymentSuccessRequest,
    user=Depends(get_current_user),
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
):
    """
    Staff may record a payment settled outside Stripe. Owners returning from
    Checkout must present a payment intent that Stripe reports as succeeded.
    """
    sub = await _get_or_404(lifecycle.repo, submission_id)
    _ensure_owner_or_staff(user, sub)
    if not user.is_staff:
        _verify_payment_intent(sub, payload.payment_intent_id)
    paid = await lifecycle.record_payment_success(submission_id, payload.payment_intent_id)
    return await _pub(lifecycle.repo, paid)


@router.post("/{submission_id}/checkout", response_model=CheckoutResponse)
async def create_checkout(
    submission_id: int,
    payload: CheckoutRequest,
    user=Depends(get_current_user),
    repo: SubmissionRepository = Depends(get_repository),
):
    if not settings.stripe_secret_key:
        raise HTTPException(status_code=500, detail="Stripe not configured")
    sub = await _get_or_404(repo, submission_id)
    _ensure_owner_or_staff(user, sub)
    if sub.status != SubmissionStatus.APPROVED:
        raise HTTPException(status_code=409, detail="Only approved submissions can be paid")

    stripe.api_key = settings.stripe_secret_key
    checkout = stripe.checkout.Session.create(
        mode="payment",
        client_reference_id=str(sub.id),
        line_items=[{
            "price_data": {
                "currency": settings.stripe_currency,
                "product_data": {
                    "name": f"Feedback: {sub.title}"[:250],
                    "description": f"{sub.word_count} words, {format_price(sub.total_price)}",
                },
                "unit_amount": int(sub.total_price),
            },
            "quantity": 1,
        }],
        metadata={"submission_id": str(sub.id)},
        payment_intent_data={"metadata": {"submission_id": str(sub.id), "user_id": str(user.id)}},
        success_url=str(payload.success_url) + "?session_id={CHECKOUT_SESSION_ID}",
        cancel_url=str(payload.cancel_url),
    )
    log.info("submission.checkout_created", submission_id=sub.id, session_id=checkout["id"])
    return CheckoutResponse(checkout_url=checkout["url"], session_id=checkout["id"])
