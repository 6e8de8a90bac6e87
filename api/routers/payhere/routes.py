import logging
import uuid

from fastapi import APIRouter, Depends, Form, HTTPException, status
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_async_session
from api.security import get_current_user_id
from config import ENV
from services.notifier import TelegramNotifier, get_notifier
from services.payhere import MerchantCredentials, load_payment_mode, merchant_credentials
from services.payment import PaymentNotification, PaymentService
from .schemas import (
    CheckoutRequest,
    CheckoutResponse,
    UpdatePaymentRequest,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)

router = APIRouter()


def get_payment_service(
    session: AsyncSession = Depends(get_async_session),
    notifier: TelegramNotifier = Depends(get_notifier),
) -> PaymentService:
    return PaymentService(session, notifier)


async def get_merchant_credentials(session: AsyncSession = Depends(get_async_session)) -> MerchantCredentials:
    mode = await load_payment_mode(session)
    return merchant_credentials(mode, ENV())


@router.post("/generate-hash", response_model=CheckoutResponse, summary="Sign a checkout for the PayHere form")
async def generate_hash(
    dto: CheckoutRequest,
    credentials: MerchantCredentials = Depends(get_merchant_credentials),
    service: PaymentService = Depends(get_payment_service),
):
    logging.info(f"Generating hash for checkout {dto.order_id} (sandbox={credentials.sandbox})")
    return await service.create_checkout(
        credentials,
        order_id=dto.order_id,
        amount=dto.amount,
        currency=dto.currency,
        tier=dto.custom_1,
        ref_creator=dto.ref_creator,
        discount_code=dto.discount_code,
    )


@router.post("/notify", response_class=PlainTextResponse, summary="PayHere payment notification")
async def notify(
    merchant_id: str = Form(""),
    order_id: str = Form(""),
    payment_id: str = Form(""),
    payhere_amount: str = Form(""),
    payhere_currency: str = Form(""),
    status_code: str = Form(""),
    md5sig: str = Form(""),
    custom_1: str = Form(""),
    custom_2: str = Form(""),
    method: str = Form(""),
    status_message: str = Form(""),
    credentials: MerchantCredentials = Depends(get_merchant_credentials),
    service: PaymentService = Depends(get_payment_service),
):
    note = PaymentNotification(
        merchant_id=merchant_id,
        order_id=order_id,
        payment_id=payment_id,
        payhere_amount=payhere_amount,
        payhere_currency=payhere_currency,
        status_code=status_code,
        md5sig=md5sig,
        custom_1=custom_1,
        custom_2=custom_2,
        method=method,
        status_message=status_message,
    )
    # the gateway expects these exact plain-text bodies
    if not await service.handle_notification(note, credentials):
        return PlainTextResponse("Invalid signature", status_code=status.HTTP_400_BAD_REQUEST)
    return PlainTextResponse("OK")


@router.post("/verify-payment", response_model=VerifyPaymentResponse, response_model_exclude_none=True)
async def verify_payment(
    dto: VerifyPaymentRequest,
    service: PaymentService = Depends(get_payment_service),
):
    return await service.verify_payment(dto.order_id)


@router.post("/update-payment")
async def update_payment(
    dto: UpdatePaymentRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: PaymentService = Depends(get_payment_service),
):
    if not await service.link_payment(dto.order_id, user_id, dto.enrollment_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return {"success": True}
