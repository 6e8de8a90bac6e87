import hmac
import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from api.models import Enrollment, Payment, PaymentStatus
from services.errors import GatewayAuthError, RefundError
from services.notifier import TelegramNotifier
from services.payhere import PayHereAPI
from utils.dates import utcnow

REFUNDED = "refunded"


class RefundService:
    """
    Refunds a completed card payment through the PayHere merchant API.

    Local state changes only after the gateway confirms the refund.
    """

    def __init__(self, session: AsyncSession, api: PayHereAPI, notifier: TelegramNotifier, otp_code: str):
        self.session = session
        self.api = api
        self.notifier = notifier
        self.otp_code = otp_code

    def check_otp(self, otp_code: str) -> None:
        if not self.otp_code or not hmac.compare_digest(otp_code.encode("utf-8"), self.otp_code.encode("utf-8")):
            logging.info("Invalid refund OTP code provided")
            raise RefundError("Invalid OTP code", status_code=403)

    async def refund(
        self,
        payment_id: str,
        otp_code: str,
        admin_id: uuid.UUID,
        description: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> dict:
        self.check_otp(otp_code)

        result = await self.session.execute(select(Payment).where(Payment.payment_id == payment_id))
        payment = result.scalar_one_or_none()
        if payment is None:
            raise RefundError("Payment not found", status_code=404)
        if payment.refund_status == REFUNDED:
            raise RefundError("Payment has already been refunded")
        if payment.status != PaymentStatus.COMPLETED:
            raise RefundError("Only completed payments can be refunded")
        if not self.api.credentials.configured:
            logging.error("PayHere API credentials not configured")
            raise RefundError("PayHere API credentials not configured", status_code=500)

        try:
            outcome = await self.api.refund(payment_id, description or f"Refund for order {payment.order_id}")
        except GatewayAuthError as e:
            logging.error(f"Failed to get PayHere access token: {e}")
            raise RefundError("Failed to authenticate with PayHere", status_code=500) from e

        if not outcome.success:
            logging.error(f"Refund failed for payment {payment_id}: {outcome.message}")
            raise RefundError(outcome.message, status_code=400, details=outcome.data)

        now = now or utcnow()
        payment.refund_status = REFUNDED
        payment.refunded_at = now
        payment.refunded_by = admin_id
        payment.refund_amount = payment.amount

        if payment.enrollment_id is not None:
            enrollment = await self.session.get(Enrollment, payment.enrollment_id)
            if enrollment is not None:
                enrollment.is_active = False
            else:
                logging.error(f"Enrollment {payment.enrollment_id} for refunded payment {payment_id} not found")

        await self.session.commit()
        logging.info(f"Refund processed successfully for payment {payment_id}")

        await self.notifier.refund_processed(order_id=payment.order_id, amount=payment.amount, payment_id=payment_id)
        return {
            "success": True,
            "message": "Refund processed successfully",
            "payment_id": payment_id,
            "refund_amount": payment.amount,
        }
