from __future__ import annotations
import stripe
import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from feedbackdesk.config import settings
from feedbackdesk.deps import get_lifecycle
from feedbackdesk.enums import SubmissionStatus
from feedbackdesk.errors import InvalidTransition, SubmissionNotFound
from feedbackdesk.services.lifecycle import SubmissionLifecycle

log = structlog.get_logger()

router = APIRouter(tags=["stripe"])

PAID_STATES = {SubmissionStatus.PAID, SubmissionStatus.IN_PROGRESS, SubmissionStatus.COMPLETED}


def _submission_id(obj: dict) -> int | None:
    raw = (obj.get("metadata") or {}).get("submission_id") or obj.get("client_reference_id")
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


async def _settle(lifecycle: SubmissionLifecycle, submission_id: int, payment_reference: str) -> dict:
    try:
        sub = await lifecycle.record_payment_success(submission_id, payment_reference)
    except InvalidTransition:
        # Stripe redelivers events; a submission already settled by this payment is fine
        current = await lifecycle.repo.get_submission(submission_id)
        if current and current.status in PAID_STATES and current.payment_reference == payment_reference:
            log.info("stripe.duplicate_event", submission_id=submission_id, payment_reference=payment_reference)
            return {"ok": True, "duplicate": True}
        log.warning(
            "stripe.payment_for_unpayable_submission",
            submission_id=submission_id,
            status=str(current.status) if current else None,
            payment_reference=payment_reference,
        )
        return {"ok": False, "reason": "invalid_transition"}
    except SubmissionNotFound:
        log.warning("stripe.unknown_submission", submission_id=submission_id, payment_reference=payment_reference)
        return {"ok": False, "reason": "not_found"}
    return {"ok": True, "status": str(sub.status)}


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    lifecycle: SubmissionLifecycle = Depends(get_lifecycle),
):
    if not settings.stripe_webhook_secret or not settings.stripe_secret_key:
        raise HTTPException(status_code=500, detail="Stripe not configured")

    payload = await request.body()
    try:
        event = stripe.Webhook.construct_event(
            payload=payload.decode("utf-8"),
            sig_header=stripe_signature or "",
            secret=settings.stripe_webhook_secret,
        )
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid webhook: {e}")

    # payment_intent id is the payment reference on both paths
    if event["type"] == "checkout.session.completed":
        sess = event["data"]["object"]
        if sess.get("payment_status") != "paid":
            return {"ignored": "unpaid_session"}
        pi_id = sess.get("payment_intent")
        submission_id = _submission_id(sess)
        if not pi_id or submission_id is None:
            return {"ignored": "missing_reference"}
        return await _settle(lifecycle, submission_id, pi_id)

    if event["type"] == "payment_intent.succeeded":
        pi = event["data"]["object"]
        submission_id = _submission_id(pi)
        if pi.get("status") != "succeeded" or submission_id is None:
            return {"ignored": "missing_reference"}
        return await _settle(lifecycle, submission_id, pi["id"])

    # Ignore other events
    return {"ignored": event["type"]}
