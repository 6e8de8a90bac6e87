"""
Integration tests for the PayHere checkout and notification endpoints.

Covers:
- Checkout hash generation creates a pending payment row
- Signed notifications complete the payment and write the ledger row
- Replayed notifications do not double count
- Tampered notifications are rejected and alerted
- Upgrade payments move the enrollment and approve the pending request
"""

import os
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.future import select

from api.models import (
    CreatorProfile,
    Enrollment,
    Payment,
    PaymentAttribution,
    PaymentStatus,
    RequestStatus,
    SiteSetting,
    UpgradeRequest,
)
from utils.payhere import build_notification_signature, generate_checkout_hash
from conftest import auth_header, make_creator, make_user

MERCHANT_ID = os.environ["PAYHERE_SANDBOX_MERCHANT_ID"]
SECRET = os.environ["PAYHERE_SANDBOX_SECRET_WEB"]


def checkout_payload(order_id="ORD-1", amount="1000.00", **extra):
    payload = {
        "order_id": order_id,
        "items": "A/L Maths - Standard",
        "amount": amount,
        "currency": "LKR",
        "first_name": "Nimal",
        "last_name": "Perera",
        "email": "nimal@example.com",
        "phone": "0771234567",
        "address": "12 Galle Road",
        "city": "Colombo",
        "country": "Sri Lanka",
        "custom_1": "standard",
        "custom_2": "new",
    }
    payload.update(extra)
    return payload


def notification(order_id="ORD-1", amount="1000.00", status_code="2", custom_2="new", **extra):
    form = {
        "merchant_id": MERCHANT_ID,
        "order_id": order_id,
        "payment_id": "320025071234",
        "payhere_amount": amount,
        "payhere_currency": "LKR",
        "status_code": status_code,
        "md5sig": build_notification_signature(MERCHANT_ID, order_id, amount, "LKR", status_code, SECRET),
        "custom_1": "standard",
        "custom_2": custom_2,
        "method": "VISA",
        "status_message": "Successfully completed the payment.",
    }
    form.update(extra)
    return form


async def _checkout_for_user(client, session, order_id="ORD-1", **extra):
    user = await make_user(session)
    response = await client.post("/payhere/generate-hash", json=checkout_payload(order_id, **extra))
    assert response.status_code == 200
    response = await client.post("/payhere/update-payment", json={"order_id": order_id}, headers=auth_header(user.id))
    assert response.status_code == 200
    return user


async def _payment(session, order_id) -> Payment:
    result = await session.execute(
        select(Payment).where(Payment.order_id == order_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


class TestGenerateHash:
    async def test_returns_sandbox_hash(self, client, session):
        response = await client.post("/payhere/generate-hash", json=checkout_payload())

        assert response.status_code == 200
        body = response.json()
        assert body["merchant_id"] == MERCHANT_ID
        assert body["sandbox"] is True
        assert body["hash"] == generate_checkout_hash(MERCHANT_ID, "ORD-1", Decimal("1000.00"), "LKR", SECRET)

        payment = await _payment(session, "ORD-1")
        assert payment.status == PaymentStatus.PENDING
        assert payment.tier == "standard"

    async def test_rejects_invalid_email(self, client):
        response = await client.post("/payhere/generate-hash", json=checkout_payload(email="not-an-email"))

        assert response.status_code == 422

    async def test_rejects_negative_amount(self, client):
        response = await client.post("/payhere/generate-hash", json=checkout_payload(amount="-1"))

        assert response.status_code == 422

    async def test_second_hash_for_same_order_still_signs(self, client):
        first = await client.post("/payhere/generate-hash", json=checkout_payload())
        second = await client.post("/payhere/generate-hash", json=checkout_payload())

        assert second.status_code == 200
        assert second.json()["hash"] == first.json()["hash"]


class TestNotify:
    async def test_completed_payment_is_attributed(self, client, session, mock_notifier):
        creator = await make_creator(session, "ALICE10")
        user = await _checkout_for_user(client, session, ref_creator="ALICE10")

        response = await client.post("/payhere/notify", data=notification())

        assert response.status_code == 200
        assert response.text == "OK"
        payment = await _payment(session, "ORD-1")
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.payment_id == "320025071234"
        assert payment.processed_at is not None

        row = (await session.execute(select(PaymentAttribution).where(PaymentAttribution.order_id == "ORD-1"))).scalar_one()
        assert row.user_id == user.id
        assert row.creator_id == creator.id
        assert row.creator_commission_amount == Decimal("80.00")
        mock_notifier.payment_success.assert_awaited_once()

    async def test_replayed_notification_counts_once(self, client, session):
        creator = await make_creator(session, "ALICE10")
        await _checkout_for_user(client, session, ref_creator="ALICE10")

        for _ in range(3):
            response = await client.post("/payhere/notify", data=notification())
            assert response.text == "OK"

        count = (await session.execute(
            select(func.count(PaymentAttribution.id)).where(PaymentAttribution.order_id == "ORD-1")
        )).scalar_one()
        assert count == 1
        lifetime = (await session.execute(
            select(CreatorProfile.lifetime_paid_users).where(CreatorProfile.id == creator.id)
        )).scalar_one()
        assert lifetime == 1

    async def test_invalid_signature_is_rejected(self, client, session, mock_notifier):
        await _checkout_for_user(client, session)

        response = await client.post("/payhere/notify", data=notification(md5sig="0" * 32))

        assert response.status_code == 400
        assert response.text == "Invalid signature"
        payment = await _payment(session, "ORD-1")
        assert payment.status == PaymentStatus.FAILED
        assert "tampering" in payment.failure_reason
        mock_notifier.security_alert.assert_awaited_once()
        count = (await session.execute(select(func.count(PaymentAttribution.id)))).scalar_one()
        assert count == 0

    async def test_tampered_amount_is_rejected(self, client, session):
        await _checkout_for_user(client, session)
        form = notification()
        form["payhere_amount"] = "1.00"

        response = await client.post("/payhere/notify", data=form)

        assert response.status_code == 400

    async def test_declined_payment_records_reason(self, client, session, mock_notifier):
        await _checkout_for_user(client, session)

        response = await client.post(
            "/payhere/notify",
            data=notification(status_code="-2", status_message="Insufficient Funds"),
        )

        assert response.text == "OK"
        payment = await _payment(session, "ORD-1")
        assert payment.status == PaymentStatus.FAILED
        assert "insufficient funds" in payment.failure_reason
        mock_notifier.payment_failure.assert_awaited_once()
        count = (await session.execute(select(func.count(PaymentAttribution.id)))).scalar_one()
        assert count == 0

    async def test_payment_without_user_is_not_attributed(self, client, session):
        await client.post("/payhere/generate-hash", json=checkout_payload())

        response = await client.post("/payhere/notify", data=notification())

        assert response.text == "OK"
        payment = await _payment(session, "ORD-1")
        assert payment.status == PaymentStatus.COMPLETED
        count = (await session.execute(select(func.count(PaymentAttribution.id)))).scalar_one()
        assert count == 0

    async def test_upgrade_payment_moves_enrollment(self, client, session):
        user = await make_user(session)
        enrollment = Enrollment(user_id=user.id, tier="starter", is_active=True)
        session.add(enrollment)
        await session.flush()
        upgrade = UpgradeRequest(user_id=user.id, enrollment_id=enrollment.id, current_tier="starter", requested_tier="standard")
        session.add(upgrade)
        await session.commit()

        await client.post("/payhere/generate-hash", json=checkout_payload("UPG-1", custom_2=str(enrollment.id)))
        await client.post("/payhere/update-payment", json={"order_id": "UPG-1"}, headers=auth_header(user.id))
        response = await client.post("/payhere/notify", data=notification("UPG-1", custom_2=str(enrollment.id)))

        assert response.text == "OK"
        await session.refresh(enrollment)
        await session.refresh(upgrade)
        assert enrollment.tier == "standard"
        assert upgrade.status == RequestStatus.APPROVED
        row = (await session.execute(select(PaymentAttribution).where(PaymentAttribution.order_id == "UPG-1"))).scalar_one()
        assert row.payment_type == "upgrade"
        assert row.enrollment_id == enrollment.id


class TestVerifyAndUpdate:
    async def test_verify_unknown_order(self, client):
        response = await client.post("/payhere/verify-payment", json={"order_id": "NOPE"})

        assert response.status_code == 200
        assert response.json() == {"verified": False, "error": "Payment not found"}

    async def test_verify_completed_order(self, client, session):
        await _checkout_for_user(client, session)
        await client.post("/payhere/notify", data=notification())

        response = await client.post("/payhere/verify-payment", json={"order_id": "ORD-1"})

        body = response.json()
        assert body["verified"] is True
        assert body["status"] == "completed"
        assert body["payment_id"] == "320025071234"
        assert Decimal(str(body["amount"])) == Decimal("1000")

    async def test_update_unknown_payment(self, client, session):
        user = await make_user(session)

        response = await client.post("/payhere/update-payment", json={"order_id": "NOPE"}, headers=auth_header(user.id))

        assert response.status_code == 404

    async def test_update_requires_token(self, client):
        await client.post("/payhere/generate-hash", json=checkout_payload())

        response = await client.post("/payhere/update-payment", json={"order_id": "ORD-1"})

        assert response.status_code == 401

    async def test_update_takes_user_from_token(self, client, session):
        user = await make_user(session)
        other = await make_user(session)
        await client.post("/payhere/generate-hash", json=checkout_payload())

        response = await client.post(
            "/payhere/update-payment",
            json={"order_id": "ORD-1", "user_id": str(other.id)},
            headers=auth_header(user.id),
        )

        assert response.status_code == 200
        assert (await _payment(session, "ORD-1")).user_id == user.id

    async def test_cannot_relink_another_users_payment(self, client, session):
        owner = await _checkout_for_user(client, session)
        intruder = await make_user(session)

        response = await client.post("/payhere/update-payment", json={"order_id": "ORD-1"}, headers=auth_header(intruder.id))

        assert response.status_code == 404
        assert (await _payment(session, "ORD-1")).user_id == owner.id


class TestPaymentMode:
    async def test_live_mode_uses_live_credentials(self, client, session):
        session.add(SiteSetting(key="payment_mode", value={"mode": "live"}))
        await session.commit()

        response = await client.post("/payhere/generate-hash", json=checkout_payload())

        assert response.status_code == 200
        assert response.json()["sandbox"] is False

    async def test_malformed_setting_falls_back_to_sandbox(self, client, session):
        session.add(SiteSetting(key="payment_mode", value="live"))
        await session.commit()

        response = await client.post("/payhere/generate-hash", json=checkout_payload())

        assert response.json()["sandbox"] is True
