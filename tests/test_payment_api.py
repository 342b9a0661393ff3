import json
import smtplib
import uuid

import pytest
from sqlmodel import select

from app.db.models import PaymentTransaction
from helpers import auth_headers, sign_payment, sign_webhook

CREATE_ORDER = "/api/v1/payment/create-order"
VERIFY = "/api/v1/payment/verify"
WEBHOOK = "/api/v1/payment/webhook"


async def create_order(client, token):
    res = await client.post(CREATE_ORDER, json={}, headers=auth_headers(token))
    assert res.status_code == 200, res.text
    return res.json()["data"]


async def transactions(session):
    result = await session.execute(select(PaymentTransaction).execution_options(populate_existing=True))
    return result.scalars().all()


@pytest.mark.asyncio
async def test_create_order_persists_transaction(client, session, user_with_details, user_token, razorpay_client):
    data = await create_order(client, user_token)

    assert data["order"]["amount"] == 350000
    assert data["order"]["currency"] == "INR"
    assert len(data["order"]["receipt"]) <= 40
    assert data["gateway_key_id"] == "rzp_test_key"
    assert data["appointment"]["type"] == "employment_visa"
    assert data["user"]["id"] == str(user_with_details.id)

    sent = razorpay_client.order.created[0]
    assert sent["notes"]["user_id"] == str(user_with_details.id)

    rows = await transactions(session)
    assert len(rows) == 1
    assert rows[0].razorpay_order_id == data["order"]["id"]
    assert rows[0].status == "created"

    await session.refresh(user_with_details)
    assert user_with_details.payment_status == "pending"


@pytest.mark.asyncio
async def test_create_order_requires_appointment_details(client, user, user_token, razorpay_client):
    res = await client.post(CREATE_ORDER, json={}, headers=auth_headers(user_token))
    assert res.status_code == 400
    assert res.json() == {"success": False, "error": "Please complete appointment details first"}
    assert razorpay_client.order.created == []


@pytest.mark.asyncio
async def test_create_order_refuses_completed_payment(client, session, user, user_token, razorpay_client):
    user.payment_status = "completed"
    session.add(user)
    await session.commit()

    res = await client.post(CREATE_ORDER, json={}, headers=auth_headers(user_token))
    assert res.status_code == 400
    assert res.json()["error"] == "Payment already completed for this appointment"
    assert razorpay_client.order.created == []


@pytest.mark.asyncio
async def test_create_order_rejects_foreign_appointment(client, user_with_details, user_token, razorpay_client):
    res = await client.post(
        CREATE_ORDER,
        json={"appointmentId": str(uuid.uuid4())},
        headers=auth_headers(user_token),
    )
    assert res.status_code == 403
    assert res.json()["error"] == "Unauthorized access to appointment"
    assert razorpay_client.order.created == []


@pytest.mark.asyncio
async def test_gateway_failure_is_reported_cleanly(client, session, user_with_details, user_token, razorpay_client):
    razorpay_client.order.fail = True
    res = await client.post(CREATE_ORDER, json={}, headers=auth_headers(user_token))
    assert res.status_code == 500
    assert res.json() == {"success": False, "error": "Failed to create payment order"}
    assert await transactions(session) == []


@pytest.mark.asyncio
async def test_create_order_rejects_admin_token(client, admin_token):
    res = await client.post(CREATE_ORDER, json={}, headers=auth_headers(admin_token))
    assert res.status_code == 401
    assert res.json()["error"] == "User access required"


@pytest.mark.asyncio
async def test_verify_marks_payment_completed_and_sends_email(
    client, session, user_with_details, user_token, razorpay_client, email
):
    order_id = (await create_order(client, user_token))["order"]["id"]
    razorpay_client.add_payment("pay_0001", order_id, 350000)

    res = await client.post(
        VERIFY,
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_0001",
            "razorpay_signature": sign_payment(order_id, "pay_0001"),
        },
        headers=auth_headers(user_token),
    )

    assert res.status_code == 200
    assert res.json()["data"] == {
        "payment_id": "pay_0001",
        "order_id": order_id,
        "status": "completed",
        "amount": 350000,
        "currency": "INR",
    }

    [row] = await transactions(session)
    assert row.status == "paid"
    assert row.razorpay_payment_id == "pay_0001"

    await session.refresh(user_with_details)
    assert user_with_details.payment_status == "completed"
    assert user_with_details.payment_id == "pay_0001"

    recipients = [r for _, rs in email.sent for r in rs]
    assert recipients == ["ravi.kumar@example.com", "admin@test.local"]


@pytest.mark.asyncio
async def test_tampered_signature_changes_nothing(
    client, session, user_with_details, user_token, razorpay_client, email
):
    order_id = (await create_order(client, user_token))["order"]["id"]
    razorpay_client.add_payment("pay_0001", order_id, 350000)
    signature = sign_payment(order_id, "pay_0001")
    tampered = signature[:-1] + ("0" if signature[-1] != "0" else "1")

    res = await client.post(
        VERIFY,
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_0001",
            "razorpay_signature": tampered,
        },
        headers=auth_headers(user_token),
    )

    assert res.status_code == 400
    assert res.json() == {"success": False, "error": "Invalid payment signature"}

    [row] = await transactions(session)
    assert row.status == "created"
    assert row.razorpay_payment_id is None

    await session.refresh(user_with_details)
    assert user_with_details.payment_status == "pending"
    assert email.sent == []


@pytest.mark.parametrize("position", [0, 10, 63])
def test_any_single_character_mutation_fails(gateway, position):
    signature = sign_payment("order_abc", "pay_xyz")
    assert gateway.verify_signature("order_abc", "pay_xyz", signature)

    replacement = "a" if signature[position] != "a" else "b"
    mutated = signature[:position] + replacement + signature[position + 1:]
    assert not gateway.verify_signature("order_abc", "pay_xyz", mutated)


@pytest.mark.asyncio
async def test_verify_requires_all_fields(client, user_with_details, user_token):
    res = await client.post(
        VERIFY,
        json={"razorpay_order_id": "order_x", "razorpay_payment_id": "pay_x"},
        headers=auth_headers(user_token),
    )
    assert res.status_code == 400
    assert res.json()["error"] == "Missing required payment verification data"


@pytest.mark.asyncio
async def test_reverifying_paid_order_is_idempotent(
    client, user_with_details, user_token, razorpay_client, email
):
    order_id = (await create_order(client, user_token))["order"]["id"]
    razorpay_client.add_payment("pay_0001", order_id, 350000)
    payload = {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": "pay_0001",
        "razorpay_signature": sign_payment(order_id, "pay_0001"),
    }

    first = await client.post(VERIFY, json=payload, headers=auth_headers(user_token))
    second = await client.post(VERIFY, json=payload, headers=auth_headers(user_token))

    assert first.status_code == second.status_code == 200
    assert second.json()["data"]["status"] == "completed"
    assert len(email.sent) == 2


@pytest.mark.asyncio
async def test_unknown_order_is_not_found(client, user_with_details, user_token, razorpay_client):
    razorpay_client.add_payment("pay_0001", "order_missing", 350000)
    res = await client.post(
        VERIFY,
        json={
            "razorpay_order_id": "order_missing",
            "razorpay_payment_id": "pay_0001",
            "razorpay_signature": sign_payment("order_missing", "pay_0001"),
        },
        headers=auth_headers(user_token),
    )
    assert res.status_code == 404
    assert res.json()["error"] == "Payment transaction not found"


@pytest.mark.asyncio
async def test_uncaptured_payment_is_rejected(client, session, user_with_details, user_token, razorpay_client):
    order_id = (await create_order(client, user_token))["order"]["id"]
    razorpay_client.add_payment("pay_0001", order_id, 350000, status="failed")

    res = await client.post(
        VERIFY,
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_0001",
            "razorpay_signature": sign_payment(order_id, "pay_0001"),
        },
        headers=auth_headers(user_token),
    )
    assert res.status_code == 400
    assert res.json()["error"] == "Payment not completed successfully"

    [row] = await transactions(session)
    assert row.status == "created"


@pytest.mark.asyncio
async def test_email_failure_does_not_undo_payment(
    client, session, user_with_details, user_token, razorpay_client, email
):
    order_id = (await create_order(client, user_token))["order"]["id"]
    razorpay_client.add_payment("pay_0001", order_id, 350000)
    email.error = smtplib.SMTPException("SMTP server unavailable")

    res = await client.post(
        VERIFY,
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_0001",
            "razorpay_signature": sign_payment(order_id, "pay_0001"),
        },
        headers=auth_headers(user_token),
    )

    assert res.status_code == 200
    await session.refresh(user_with_details)
    assert user_with_details.payment_status == "completed"


def webhook_body(order_id, payment_id, event="payment.captured", amount=350000) -> bytes:
    return json.dumps(
        {
            "event": event,
            "payload": {"payment": {"entity": {"id": payment_id, "order_id": order_id, "amount": amount}}},
        }
    ).encode()


@pytest.mark.asyncio
async def test_webhook_captures_payment_once(client, session, user_with_details, user_token, email):
    order_id = (await create_order(client, user_token))["order"]["id"]
    body = webhook_body(order_id, "pay_0001")
    headers = {"X-Razorpay-Signature": sign_webhook(body), "Content-Type": "application/json"}

    res = await client.post(WEBHOOK, content=body, headers=headers)
    assert res.status_code == 200
    assert res.json()["data"] == {"event": "payment.captured", "handled": True}

    res = await client.post(WEBHOOK, content=body, headers=headers)
    assert res.status_code == 200

    await session.refresh(user_with_details)
    assert user_with_details.payment_status == "completed"
    assert len(email.sent) == 2


@pytest.mark.asyncio
async def test_webhook_rejects_bad_signature(client, session, user_with_details, user_token):
    order_id = (await create_order(client, user_token))["order"]["id"]
    body = webhook_body(order_id, "pay_0001")

    res = await client.post(WEBHOOK, content=body, headers={"X-Razorpay-Signature": "bad"})
    assert res.status_code == 400
    assert res.json()["error"] == "Invalid webhook signature"

    [row] = await transactions(session)
    assert row.status == "created"


@pytest.mark.asyncio
async def test_webhook_ignores_other_events(client):
    body = webhook_body("order_x", "pay_x", event="order.paid")
    res = await client.post(WEBHOOK, content=body, headers={"X-Razorpay-Signature": sign_webhook(body)})
    assert res.status_code == 200
    assert res.json()["data"]["handled"] is False


@pytest.mark.asyncio
async def test_non_smtp_email_error_does_not_fail_verify(
    client, session, user_with_details, user_token, razorpay_client, email
):
    order_id = (await create_order(client, user_token))["order"]["id"]
    razorpay_client.add_payment("pay_0001", order_id, 350000)
    email.error = UnicodeEncodeError("ascii", "pässword", 1, 2, "ordinal not in range(128)")

    res = await client.post(
        VERIFY,
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_0001",
            "razorpay_signature": sign_payment(order_id, "pay_0001"),
        },
        headers=auth_headers(user_token),
    )

    assert res.status_code == 200
    assert res.json()["data"]["status"] == "completed"
    [row] = await transactions(session)
    assert row.status == "paid"


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"[]", b'"payment.captured"', b'{"event": "payment.captured", "payload": []}'])
async def test_webhook_rejects_malformed_payload(client, body):
    res = await client.post(WEBHOOK, content=body, headers={"X-Razorpay-Signature": sign_webhook(body)})
    assert res.status_code == 400
    assert res.json() == {"success": False, "error": "Invalid webhook payload"}


@pytest.mark.asyncio
async def test_webhook_rejects_short_capture(client, session, user_with_details, user_token, email):
    order_id = (await create_order(client, user_token))["order"]["id"]
    body = webhook_body(order_id, "pay_0001", amount=100)

    res = await client.post(WEBHOOK, content=body, headers={"X-Razorpay-Signature": sign_webhook(body)})
    assert res.status_code == 400
    assert res.json()["error"] == "Payment amount mismatch"

    [row] = await transactions(session)
    assert row.status == "created"
    await session.refresh(user_with_details)
    assert user_with_details.payment_status == "pending"
    assert email.sent == []
