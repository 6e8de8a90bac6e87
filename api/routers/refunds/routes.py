import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_async_session
from api.security import require_admin
from config import ENV
from services.errors import RefundError
from services.notifier import TelegramNotifier, get_notifier
from services.payhere import PayHereAPI, api_credentials, load_payment_mode
from services.redis import RedisClient
from services.refund import RefundService
from .schemas import RefundRequest, RefundResponse

router = APIRouter()


async def get_refund_service(
    session: AsyncSession = Depends(get_async_session),
    notifier: TelegramNotifier = Depends(get_notifier),
) -> RefundService:
    env = ENV()
    mode = await load_payment_mode(session)
    api = PayHereAPI(api_credentials(mode, env), cache=RedisClient())
    return RefundService(session, api, notifier, env.REFUND_OTP_CODE)


@router.post("", response_model=RefundResponse, summary="Refund a completed card payment")
async def refund_payment(
    dto: RefundRequest,
    admin_id: uuid.UUID = Depends(require_admin),
    service: RefundService = Depends(get_refund_service),
):
    try:
        return await service.refund(dto.payment_id, dto.otp_code, admin_id, dto.description)
    except RefundError as e:
        detail = {"error": str(e), "details": e.details} if e.details else str(e)
        raise HTTPException(status_code=e.status_code, detail=detail)
