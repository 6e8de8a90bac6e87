import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_async_session
from api.models import CreatorProfile
from api.models.payments import WithdrawalStatus
from api.security import require_admin, require_creator
from services.errors import BusinessRuleError, NotFound
from services.notifier import TelegramNotifier, get_notifier
from .schemas import WithdrawalRejection, WithdrawalRequestCreate, WithdrawalRequestRead, WithdrawalReview
from .service import WithdrawalService

router = APIRouter()


def get_withdrawal_service(session: AsyncSession = Depends(get_async_session)) -> WithdrawalService:
    return WithdrawalService(session)


@router.post("", response_model=WithdrawalRequestRead, status_code=201, summary="Request a withdrawal")
async def create_withdrawal_request(
    dto: WithdrawalRequestCreate,
    creator: CreatorProfile = Depends(require_creator),
    service: WithdrawalService = Depends(get_withdrawal_service),
    notifier: TelegramNotifier = Depends(get_notifier),
):
    try:
        request = await service.create_request(creator, dto)
    except BusinessRuleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    await notifier.withdrawal_request(
        creator_name=creator.display_name or creator.referral_code,
        amount=request.amount,
        net_amount=request.net_amount,
    )
    return request


@router.get(
    "",
    response_model=list[WithdrawalRequestRead],
    summary="List withdrawal requests by status",
    dependencies=[Depends(require_admin)],
)
async def get_withdrawal_requests(
    status: Optional[WithdrawalStatus] = Query(None, description="Filter by status"),
    service: WithdrawalService = Depends(get_withdrawal_service),
):
    return await service.get_requests_by_status(status)


@router.get("/mine", response_model=list[WithdrawalRequestRead], summary="The caller's withdrawal history")
async def get_my_withdrawals(
    creator: CreatorProfile = Depends(require_creator),
    service: WithdrawalService = Depends(get_withdrawal_service),
):
    return await service.get_history_for_creator(creator.id)


@router.patch("/{request_id}/approve", response_model=WithdrawalRequestRead, summary="Approve a withdrawal request")
async def approve_withdrawal_request(
    request_id: uuid.UUID,
    dto: Optional[WithdrawalReview] = None,
    admin_id: uuid.UUID = Depends(require_admin),
    service: WithdrawalService = Depends(get_withdrawal_service),
):
    try:
        return await service.approve_request(request_id, admin_id, dto.admin_notes if dto else None)
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except BusinessRuleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.patch("/{request_id}/reject", response_model=WithdrawalRequestRead, summary="Reject a withdrawal request")
async def reject_withdrawal_request(
    request_id: uuid.UUID,
    dto: Optional[WithdrawalRejection] = None,
    admin_id: uuid.UUID = Depends(require_admin),
    service: WithdrawalService = Depends(get_withdrawal_service),
):
    try:
        return await service.reject_request(
            request_id,
            admin_id,
            rejection_reason=dto.rejection_reason if dto else None,
            admin_notes=dto.admin_notes if dto else None,
        )
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except BusinessRuleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
