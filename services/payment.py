import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from api.models import Enrollment, Payment, PaymentStatus, RequestStatus, UpgradeRequest
from services.commission.attribution import AttributionService, FinalizeCommand
from services.notifier import TelegramNotifier
from services.payhere import MerchantCredentials
from utils.dates import utcnow
from utils.payhere import generate_checkout_hash, verify_signature

INVALID_SIGNATURE_REASON = "Invalid payment signature - possible tampering detected"

FAILURE_REASONS = {
    "-1": "Payment was cancelled",
    "-2": "Payment failed - Your card was declined",
    "-3": "Payment was charged back",
}

DECLINE_REASONS = {
    "insufficient_funds": "Your card has insufficient funds. Please try a different payment method.",
    "card_declined": "Your bank declined this transaction. Please try a different card.",
    "do_not_honor": "Your bank declined this transaction. Please contact your bank.",
    "limit_exceeded": "Your card limit has been exceeded. Please contact your bank.",
    "expired_card": "Your card has expired. Please use a different card.",
    "invalid_card": "Invalid card details. Please check and try again.",
    "network_error": "A network error occurred. Please try again.",
}


@dataclass
class PaymentNotification:
    merchant_id: str
    order_id: str
    payment_id: str
    payhere_amount: str
    payhere_currency: str
    status_code: str
    md5sig: str
    custom_1: str = ""
    custom_2: str = ""
    method: str = ""
    status_message: str = ""


def decline_reason(status_message: str) -> str:
    message = (status_message or "").lower()
    if "insufficient" in message:
        return DECLINE_REASONS["insufficient_funds"]
    if "limit" in message or "exceeded" in message:
        return DECLINE_REASONS["limit_exceeded"]
    if "honor" in message or "declined" in message:
        return DECLINE_REASONS["do_not_honor"]
    if "expired" in message:
        return DECLINE_REASONS["expired_card"]
    if "network" in message or "timeout" in message:
        return DECLINE_REASONS["network_error"]
    return status_message or FAILURE_REASONS["-2"]


def map_status(status_code: str, status_message: str = "") -> tuple[PaymentStatus, Optional[str]]:
    """Gateway status_code -> (payment status, failure reason)."""
    if status_code == "2":
        return PaymentStatus.COMPLETED, None
    if status_code == "-1":
        return PaymentStatus.CANCELLED, status_message or FAILURE_REASONS["-1"]
    if status_code == "-2":
        return PaymentStatus.FAILED, decline_reason(status_message)
    if status_code == "-3":
        return PaymentStatus.CHARGEDBACK, status_message or FAILURE_REASONS["-3"]
    return PaymentStatus.PENDING, None


def _parse_uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(value)
    except (TypeError, ValueError):
        return None


def _parse_amount(value: str, fallback: Optional[Decimal]) -> Optional[Decimal]:
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError):
        return fallback


class PaymentService:
    def __init__(self, session: AsyncSession, notifier: TelegramNotifier):
        self.session = session
        self.notifier = notifier
        self.attribution = AttributionService(session)

    async def get_by_order_id(self, order_id: str) -> Optional[Payment]:
        result = await self.session.execute(select(Payment).where(Payment.order_id == order_id))
        return result.scalar_one_or_none()

    async def create_checkout(
        self,
        credentials: MerchantCredentials,
        order_id: str,
        amount: Decimal,
        currency: str,
        tier: Optional[str] = None,
        ref_creator: Optional[str] = None,
        discount_code: Optional[str] = None,
    ) -> dict:
        checkout_hash = generate_checkout_hash(
            credentials.merchant_id, order_id, amount, currency, credentials.merchant_secret
        )

        # the checkout still works without the pending row, it only loses tracking
        try:
            async with self.session.begin_nested():
                self.session.add(
                    Payment(
                        order_id=order_id,
                        amount=amount,
                        original_amount=amount,
                        currency=currency,
                        tier=tier,
                        status=PaymentStatus.PENDING,
                        payment_method="card",
                        ref_creator=ref_creator or None,
                        discount_code=discount_code or None,
                    )
                )
            await self.session.commit()
            logging.info(f"Payment record created for order {order_id}")
        except SQLAlchemyError as e:
            logging.error(f"Failed to create payment record for order {order_id}: {e}")

        return {"merchant_id": credentials.merchant_id, "hash": checkout_hash, "sandbox": credentials.sandbox}

    async def link_payment(
        self,
        order_id: str,
        user_id: uuid.UUID,
        enrollment_id: Optional[uuid.UUID],
    ) -> bool:
        payment = await self.get_by_order_id(order_id)
        if payment is None:
            return False
        # a payment already claimed by someone else looks missing to the caller
        if payment.user_id is not None and payment.user_id != user_id:
            logging.warning(f"User {user_id} tried to link payment {order_id} owned by {payment.user_id}")
            return False
        payment.user_id = user_id
        payment.enrollment_id = enrollment_id
        await self.session.commit()
        return True

    async def handle_notification(
        self,
        note: PaymentNotification,
        credentials: MerchantCredentials,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Process a gateway notification. Returns False when the signature does
        not verify; the payment is then marked failed and ops are alerted.
        """
        now = now or utcnow()
        logging.info(
            f"Payment notification received: order {note.order_id}, payment {note.payment_id}, "
            f"status {note.status_code} {note.status_message!r}, custom {note.custom_1}/{note.custom_2}, method {note.method}"
        )
        payment = await self.get_by_order_id(note.order_id)

        valid = verify_signature(
            note.merchant_id,
            note.order_id,
            note.payhere_amount,
            note.payhere_currency,
            note.status_code,
            credentials.merchant_secret,
            note.md5sig,
        )
        if not valid:
            logging.error(f"Invalid payment signature for order {note.order_id}")
            user_id = payment.user_id if payment else None
            if payment is not None:
                payment.status = PaymentStatus.FAILED
                payment.failure_reason = INVALID_SIGNATURE_REASON
                await self.session.commit()
            await self.notifier.security_alert(
                alert_type="Invalid Payment Signature",
                details=f"Order {note.order_id} had an invalid MD5 signature - possible tampering",
                user_id=str(user_id) if user_id else None,
            )
            return False

        status, failure_reason = map_status(note.status_code, note.status_message)
        logging.info(f"Payment {note.order_id} mapped to {status.value}, reason: {failure_reason}")

        if payment is None:
            logging.warning(f"No payment record for order {note.order_id}")
        else:
            payment.status = status
            payment.payment_id = note.payment_id
            payment.failure_reason = failure_reason
            payment.processed_at = now if status == PaymentStatus.COMPLETED else None

        enrollment_id = None
        if status == PaymentStatus.COMPLETED and note.custom_2 and note.custom_2 != "new":
            enrollment_id = await self._apply_upgrade(note, payment, now)

        await self.session.commit()

        if status != PaymentStatus.COMPLETED:
            await self.notifier.payment_failure(
                order_id=note.order_id,
                reason=failure_reason or f"Status code: {note.status_code}",
                amount=note.payhere_amount,
            )
            return True

        await self.notifier.payment_success(
            order_id=note.order_id,
            amount=note.payhere_amount,
            tier=note.custom_1 or (payment.tier if payment else None),
            ref_creator=payment.ref_creator if payment else None,
        )

        if payment is not None and payment.user_id is not None:
            final_amount = _parse_amount(note.payhere_amount, payment.amount)
            await self.attribution.finalize(
                FinalizeCommand(
                    order_id=note.order_id,
                    user_id=payment.user_id,
                    final_amount=final_amount,
                    original_amount=payment.original_amount or final_amount,
                    ref_creator=payment.ref_creator,
                    discount_code=payment.discount_code,
                    enrollment_id=enrollment_id or payment.enrollment_id,
                    payment_type="upgrade" if enrollment_id else "card",
                    tier=note.custom_1 or payment.tier,
                ),
                now=now,
            )
        else:
            logging.info(f"Payment {note.order_id} has no user yet, attribution left to the client finalize call")

        logging.info(f"Payment processed successfully: order {note.order_id}, amount {note.payhere_amount}")
        return True

    async def _apply_upgrade(self, note: PaymentNotification, payment: Optional[Payment], now: datetime) -> Optional[uuid.UUID]:
        enrollment_id = _parse_uuid(note.custom_2)
        if enrollment_id is None:
            logging.warning(f"custom_2 {note.custom_2!r} on order {note.order_id} is not an enrollment id")
            return None

        enrollment = await self.session.get(Enrollment, enrollment_id)
        if enrollment is None:
            logging.error(f"Enrollment {enrollment_id} for order {note.order_id} not found")
            return None

        if note.custom_1:
            enrollment.tier = note.custom_1
            logging.info(f"Enrollment {enrollment_id} upgraded to {note.custom_1}")
        if payment is not None:
            payment.enrollment_id = enrollment_id

        result = await self.session.execute(
            select(UpgradeRequest)
            .where(UpgradeRequest.enrollment_id == enrollment_id, UpgradeRequest.status == RequestStatus.PENDING)
            .order_by(UpgradeRequest.created_at.desc())
            .limit(1)
        )
        upgrade_request = result.scalar_one_or_none()
        if upgrade_request is not None:
            upgrade_request.status = RequestStatus.APPROVED
            upgrade_request.reviewed_at = now
            upgrade_request.admin_notes = f"Auto-approved via PayHere payment. Payment ID: {note.payment_id}"
            logging.info(f"Upgrade request {upgrade_request.id} auto-approved")

        return enrollment_id

    async def verify_payment(self, order_id: str) -> dict:
        payment = await self.get_by_order_id(order_id)
        if payment is None:
            return {"verified": False, "error": "Payment not found"}
        return {
            "verified": payment.status == PaymentStatus.COMPLETED,
            "status": payment.status.value,
            "payment_id": payment.payment_id,
            "amount": payment.amount,
            "tier": payment.tier,
            "ref_creator": payment.ref_creator,
            "discount_code": payment.discount_code,
            "failure_reason": payment.failure_reason,
        }
