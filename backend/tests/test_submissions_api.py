import uuid

import pytest

from conftest import EXPRESS, STANDARD
from feedbackdesk.services import storage

PROMPT = "Argue for or against remote learning in 1500 words."


async def _signup(client, username: str | None = None) -> dict:
    username = username or f"user_{uuid.uuid4().hex[:8]}"
    r = await client.post("/auth/register", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": "supersecret",
    })
    assert r.status_code == 201
    tokens = (await client.post("/auth/login", json={"username": username, "password": "supersecret"})).json()
    return {"Authorization": f"Bearer {tokens['access']}"}


async def _staff(client, make_staff) -> dict:
    headers = await _signup(client, "staff")
    await make_staff("staff")
    return headers


def _text_payload(**overrides) -> dict:
    payload = {
        "service_id": STANDARD,
        "title": "Remote learning essay",
        "content": " ".join(["word"] * 600),
        "prompt_instructions": PROMPT,
        "terms_accepted": True,
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_list_services(client):
    r = await client.get("/services")
    assert r.status_code == 200
    names = [s["name"] for s in r.json()]
    assert names[:2] == ["Standard Review", "Express Review"]
    assert (await client.get("/services/99")).status_code == 404


@pytest.mark.asyncio
async def test_create_text_submission(client):
    headers = await _signup(client)
    r = await client.post("/submissions/text", json=_text_payload(), headers=headers)
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "pending_approval"
    assert body["status_label"] == "Pending Approval"
    assert body["word_count"] == 600
    assert body["total_price"] == 3000
    assert body["progress"] == 0
    assert body["estimated_completion"] is not None

    me = (await client.get("/auth/me", headers=headers)).json()
    assert me["submission_count"] == 1


@pytest.mark.asyncio
async def test_guest_can_submit(client):
    r = await client.post("/submissions/text", json=_text_payload(service_id=EXPRESS))
    assert r.status_code == 201
    assert r.json()["user_id"] is None


@pytest.mark.asyncio
async def test_terms_must_be_accepted(client):
    r = await client.post("/submissions/text", json=_text_payload(terms_accepted=False))
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_engine_validation_errors_are_reported_with_code(client):
    r = await client.post("/submissions/text", json=_text_payload(prompt_instructions="short"))
    assert r.status_code == 422
    assert r.json()["code"] == "validation_failed"
    assert r.json()["field"] == "prompt_instructions"

    r = await client.post("/submissions/text", json=_text_payload(service_id=42))
    assert r.status_code == 404
    assert r.json()["code"] == "service_not_found"


@pytest.mark.asyncio
async def test_pending_quota_returns_429(client, make_staff):
    headers = await _signup(client)
    ids = []
    for _ in range(3):
        r = await client.post("/submissions/text", json=_text_payload(), headers=headers)
        assert r.status_code == 201
        ids.append(r.json()["id"])

    r = await client.post("/submissions/text", json=_text_payload(), headers=headers)
    assert r.status_code == 429
    body = r.json()
    assert body["code"] == "quota_exceeded"
    assert body["limit"] == 3
    assert "pending submissions" in body["detail"]

    staff = await _staff(client, make_staff)
    assert (await client.post(f"/submissions/{ids[0]}/reject", headers=staff)).status_code == 200
    r = await client.post("/submissions/text", json=_text_payload(), headers=headers)
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_staff_workflow(client, make_staff):
    student = await _signup(client)
    staff = await _staff(client, make_staff)
    sub_id = (await client.post("/submissions/text", json=_text_payload(), headers=student)).json()["id"]

    # students cannot review
    assert (await client.post(f"/submissions/{sub_id}/approve", headers=student)).status_code == 403
    assert (await client.get("/submissions/dashboard", headers=student)).status_code == 403

    r = await client.post(f"/submissions/{sub_id}/approve", headers=staff)
    assert r.status_code == 200
    assert r.json()["status"] == "approved"
    assert r.json()["approved_at"] is not None

    r = await client.post(f"/submissions/{sub_id}/approve", headers=staff)
    assert r.status_code == 409
    assert r.json()["code"] == "invalid_transition"
    assert r.json()["current_status"] == "approved"

    r = await client.post(f"/submissions/{sub_id}/feedback", json={"feedback": "Early"}, headers=staff)
    assert r.status_code == 409

    # staff record a payment settled outside Checkout
    r = await client.post(f"/submissions/{sub_id}/payment-success", json={"payment_intent_id": "pi_42"}, headers=staff)
    assert r.status_code == 200
    assert r.json()["status"] == "paid"
    assert r.json()["payment_status"] == "paid"

    r = await client.post(f"/submissions/{sub_id}/feedback", json={"feedback": "  "}, headers=staff)
    assert r.status_code == 422

    r = await client.post(f"/submissions/{sub_id}/feedback", json={"feedback": "Clear thesis."}, headers=staff)
    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    assert r.json()["feedback"] == "Clear thesis."
    assert r.json()["progress"] == 100

    mine = (await client.get("/submissions/mine", headers=student)).json()
    assert mine["active"] == []
    assert [s["id"] for s in mine["completed"]] == [sub_id]


@pytest.fixture
def payment_intents(monkeypatch):
    """Stand-in for Stripe's PaymentIntent lookup, keyed by intent id."""
    import stripe
    from feedbackdesk.config import settings

    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_dummy")
    intents: dict[str, dict] = {}

    def retrieve(intent_id):
        if intent_id not in intents:
            raise stripe.InvalidRequestError(f"No such payment_intent: '{intent_id}'", "id")
        return intents[intent_id]

    monkeypatch.setattr(stripe.PaymentIntent, "retrieve", retrieve)
    return intents


@pytest.mark.asyncio
async def test_owner_payment_must_be_confirmed_by_stripe(client, make_staff, payment_intents):
    owner = await _signup(client)
    stranger = await _signup(client)
    staff = await _staff(client, make_staff)
    sub_id = (await client.post("/submissions/text", json=_text_payload(), headers=owner)).json()["id"]
    url = f"/submissions/{sub_id}/payment-success"

    r = await client.post(url, json={"payment_intent_id": "pi_1"}, headers=stranger)
    assert r.status_code == 403

    await client.post(f"/submissions/{sub_id}/approve", headers=staff)

    # unknown to Stripe
    r = await client.post(url, json={"payment_intent_id": "made_up"}, headers=owner)
    assert r.status_code == 402

    # real intent, but not paid, or paid for another submission
    payment_intents["pi_pending"] = {
        "id": "pi_pending", "status": "requires_payment_method",
        "amount_received": 0, "metadata": {"submission_id": str(sub_id)},
    }
    payment_intents["pi_elsewhere"] = {
        "id": "pi_elsewhere", "status": "succeeded",
        "amount_received": 3000, "metadata": {"submission_id": str(sub_id + 100)},
    }
    for ref in ("pi_pending", "pi_elsewhere"):
        r = await client.post(url, json={"payment_intent_id": ref}, headers=owner)
        assert r.status_code == 402
    assert (await client.get(f"/submissions/{sub_id}", headers=owner)).json()["status"] == "approved"

    payment_intents["pi_ok"] = {
        "id": "pi_ok", "status": "succeeded",
        "amount_received": 3000, "metadata": {"submission_id": str(sub_id)},
    }
    r = await client.post(url, json={"payment_intent_id": "pi_ok"}, headers=owner)
    assert r.status_code == 200
    assert r.json()["status"] == "paid"
    assert r.json()["payment_reference"] == "pi_ok"


@pytest.mark.asyncio
async def test_submission_detail_is_private(client, make_staff):
    owner = await _signup(client)
    stranger = await _signup(client)
    staff = await _staff(client, make_staff)
    sub_id = (await client.post(
        "/submissions/text", json=_text_payload(content="secret thesis text"), headers=owner,
    )).json()["id"]

    assert (await client.get(f"/submissions/{sub_id}")).status_code == 401
    assert (await client.get(f"/submissions/{sub_id}", headers=stranger)).status_code == 403
    for headers in (owner, staff):
        r = await client.get(f"/submissions/{sub_id}", headers=headers)
        assert r.status_code == 200
        assert r.json()["content"] == "secret thesis text"

    guest_id = (await client.post("/submissions/text", json=_text_payload())).json()["id"]
    assert (await client.get(f"/submissions/{guest_id}", headers=owner)).status_code == 403
    assert (await client.get(f"/submissions/{guest_id}", headers=staff)).status_code == 200


@pytest.mark.asyncio
async def test_progress_and_eta_follow_service_turnaround(client, make_staff):
    from datetime import datetime, timedelta, timezone

    student = await _signup(client)
    staff = await _staff(client, make_staff)
    sub = (await client.post("/submissions/text", json=_text_payload(service_id=EXPRESS), headers=student)).json()
    submitted = datetime.fromisoformat(sub["submitted_at"])
    if submitted.tzinfo is None:
        submitted = submitted.replace(tzinfo=timezone.utc)
    assert datetime.fromisoformat(sub["estimated_completion"]) - submitted == timedelta(hours=24)

    await client.post(f"/submissions/{sub['id']}/approve", headers=staff)
    await client.post(f"/submissions/{sub['id']}/payment-success", json={"payment_intent_id": "pi_x"}, headers=staff)
    mine = (await client.get("/submissions/mine", headers=student)).json()
    paid = mine["active"][0]
    assert paid["status"] == "paid"
    assert 0 <= paid["progress"] < 100
    assert paid["estimated_completion"] == sub["estimated_completion"]


@pytest.mark.asyncio
async def test_dashboard_and_status_listing(client, make_staff):
    student = await _signup(client)
    staff = await _staff(client, make_staff)
    first = (await client.post("/submissions/text", json=_text_payload(), headers=student)).json()["id"]
    await client.post("/submissions/text", json=_text_payload(), headers=student)
    await client.post(f"/submissions/{first}/reject", headers=staff)

    board = (await client.get("/submissions/dashboard", headers=staff)).json()
    assert board["counts"]["pending_approval"] == 1
    assert board["counts"]["rejected"] == 1
    assert board["counts"]["in_progress"] == 0

    r = await client.get("/submissions/status/rejected", headers=staff)
    assert [s["id"] for s in r.json()] == [first]
    assert (await client.get("/submissions/status/bogus", headers=staff)).status_code == 422

    mine = (await client.get("/submissions/mine", headers=student)).json()
    assert len(mine["active"]) == 1
    assert [s["status_label"] for s in mine["completed"]] == ["Rejected"]


@pytest.mark.asyncio
async def test_unknown_submission_is_404(client, make_staff):
    staff = await _staff(client, make_staff)
    r = await client.get("/submissions/12345", headers=staff)
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"
    assert (await client.post("/submissions/12345/approve", headers=staff)).status_code == 404


@pytest.mark.asyncio
async def test_file_submission_stores_upload(client, monkeypatch):
    stored = {}
    monkeypatch.setattr(storage, "put_bytes", lambda key, data, ct: stored.update({key: (data, ct)}))
    headers = await _signup(client)

    r = await client.post(
        "/submissions/file",
        data={
            "service_id": str(EXPRESS),
            "title": "Lab report",
            "word_count": "750",
            "prompt_instructions": PROMPT,
            "terms_accepted": "true",
        },
        files={"file": ("report.PDF", b"%PDF-1.4 body", "application/pdf")},
        headers=headers,
    )
    assert r.status_code == 201
    body = r.json()
    assert body["total_price"] == 6000
    assert body["content"] is None
    assert body["filename"] in stored
    assert body["filename"].endswith(".pdf")
    assert stored[body["filename"]] == (b"%PDF-1.4 body", "application/pdf")


@pytest.mark.asyncio
async def test_file_submission_rejects_bad_type(client, monkeypatch):
    monkeypatch.setattr(storage, "put_bytes", lambda *a: pytest.fail("should not store"))
    r = await client.post(
        "/submissions/file",
        data={
            "service_id": str(STANDARD),
            "title": "Slides",
            "word_count": "100",
            "prompt_instructions": PROMPT,
            "terms_accepted": "true",
        },
        files={"file": ("slides.pptx", b"data", "application/octet-stream")},
    )
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_rejected_file_submission_removes_upload(client, monkeypatch):
    stored, deleted = [], []
    monkeypatch.setattr(storage, "put_bytes", lambda key, data, ct: stored.append(key))
    monkeypatch.setattr(storage, "delete", lambda key: deleted.append(key))
    r = await client.post(
        "/submissions/file",
        data={
            "service_id": str(STANDARD),
            "title": "Essay",
            "word_count": "0",
            "prompt_instructions": PROMPT,
            "terms_accepted": "true",
        },
        files={"file": ("essay.txt", b"hello", "text/plain")},
    )
    assert r.status_code == 422
    assert r.json()["field"] == "word_count"
    assert deleted == stored and len(stored) == 1


@pytest.mark.asyncio
async def test_owner_downloads_uploaded_file(client, monkeypatch):
    blobs = {}
    monkeypatch.setattr(storage, "put_bytes", lambda key, data, ct: blobs.update({key: (data, ct)}))
    monkeypatch.setattr(storage, "get_bytes", lambda key: blobs[key])
    owner = await _signup(client)
    stranger = await _signup(client)
    sub = (await client.post(
        "/submissions/file",
        data={
            "service_id": str(STANDARD),
            "title": "Notes",
            "word_count": "200",
            "prompt_instructions": PROMPT,
            "terms_accepted": "true",
        },
        files={"file": ("notes.txt", b"plain notes", "text/plain")},
        headers=owner,
    )).json()

    assert (await client.get(f"/submissions/{sub['id']}/file", headers=stranger)).status_code == 403
    r = await client.get(f"/submissions/{sub['id']}/file", headers=owner)
    assert r.status_code == 200
    assert r.content == b"plain notes"
    assert r.headers["content-type"].startswith("text/plain")
    assert "attachment" in r.headers["content-disposition"]


@pytest.mark.asyncio
async def test_checkout_for_approved_submission(client, make_staff, monkeypatch):
    import stripe
    from feedbackdesk.config import settings

    monkeypatch.setattr(settings, "stripe_secret_key", "sk_test_dummy")
    sessions = []

    def fake_create(**kwargs):
        sessions.append(kwargs)
        return {"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    student = await _signup(client)
    staff = await _staff(client, make_staff)
    sub_id = (await client.post("/submissions/text", json=_text_payload(), headers=student)).json()["id"]
    urls = {"success_url": "https://app.test/paid", "cancel_url": "https://app.test/cancel"}

    r = await client.post(f"/submissions/{sub_id}/checkout", json=urls, headers=student)
    assert r.status_code == 409

    await client.post(f"/submissions/{sub_id}/approve", headers=staff)
    r = await client.post(f"/submissions/{sub_id}/checkout", json=urls, headers=student)
    assert r.status_code == 200
    assert r.json() == {"checkout_url": "https://checkout.stripe.test/cs_test_1", "session_id": "cs_test_1"}
    assert sessions[0]["line_items"][0]["price_data"]["unit_amount"] == 3000
    assert sessions[0]["metadata"] == {"submission_id": str(sub_id)}
    assert sessions[0]["line_items"][0]["price_data"]["product_data"]["description"] == "600 words, $30.00"


@pytest.mark.asyncio
async def test_upload_is_removed_when_create_fails_unexpectedly(client, monkeypatch):
    from feedbackdesk.services.lifecycle import SubmissionLifecycle

    stored, deleted = [], []
    monkeypatch.setattr(storage, "put_bytes", lambda key, data, ct: stored.append(key))
    monkeypatch.setattr(storage, "delete", lambda key: deleted.append(key))

    async def broken_create(self, draft):
        raise RuntimeError("database exploded")

    monkeypatch.setattr(SubmissionLifecycle, "create", broken_create)
    with pytest.raises(RuntimeError):
        await client.post(
            "/submissions/file",
            data={
                "service_id": str(STANDARD),
                "title": "Essay",
                "word_count": "300",
                "prompt_instructions": PROMPT,
                "terms_accepted": "true",
            },
            files={"file": ("essay.docx", b"PK docx bytes", "application/octet-stream")},
        )
    assert len(stored) == 1
    assert deleted == stored
