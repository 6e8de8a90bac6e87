import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.database import get_async_session
from api.security import get_current_user_id, require_admin
from api.models import User
from services.commission import (
    AttributionService,
    FinalizeCommand,
    StatsRecalculator,
    TierEvaluator,
    get_attribution_service,
    get_stats_recalculator,
    get_tier_evaluator,
)
from services.commission.stats import revenue_stats
from services.enrollment import EnrollmentService
from services.errors import AttributionError, BusinessRuleError, NotFound
from services.notifier import TelegramNotifier, get_notifier
from .schemas import (
    ApprovalResponse,
    ApproveJoinRequest,
    ApproveUpgradeRequest,
    FinalizePaymentRequest,
    FinalizePaymentResponse,
    FinalizePaymentUserRequest,
    RecalculationResponse,
    RevenueStatsResponse,
    TierEvaluationResponse,
)

router = APIRouter()


def get_enrollment_service(session: AsyncSession = Depends(get_async_session)) -> EnrollmentService:
    return EnrollmentService(session)


def _command(dto: FinalizePaymentUserRequest, user_id: uuid.UUID) -> FinalizeCommand:
    return FinalizeCommand(
        order_id=dto.order_id,
        user_id=user_id,
        final_amount=dto.final_amount,
        original_amount=dto.original_amount,
        ref_creator=dto.ref_creator,
        discount_code=dto.discount_code,
        enrollment_id=dto.enrollment_id,
        payment_type=dto.payment_type,
        tier=dto.tier,
    )


async def _finalize(service: AttributionService, command: FinalizeCommand) -> FinalizePaymentResponse:
    try:
        result = await service.finalize(command)
    except AttributionError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
    return FinalizePaymentResponse(
        creator_id=result.creator_id,
        commission=result.commission,
        duplicate=result.duplicate,
        message="Attribution already exists" if result.duplicate else None,
    )


@router.post(
    "/finalize-payment-user",
    response_model=FinalizePaymentResponse,
    response_model_exclude_none=True,
    summary="Finalize the caller's own card payment",
)
async def finalize_payment_user(
    dto: FinalizePaymentUserRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    service: AttributionService = Depends(get_attribution_service),
):
    # identity comes from the token only
    return await _finalize(service, _command(dto, user_id))


@router.post(
    "/finalize-payment",
    response_model=FinalizePaymentResponse,
    response_model_exclude_none=True,
    summary="Finalize a payment on behalf of a user",
    dependencies=[Depends(require_admin)],
)
async def finalize_payment(
    dto: FinalizePaymentRequest,
    service: AttributionService = Depends(get_attribution_service),
    notifier: TelegramNotifier = Depends(get_notifier),
):
    response = await _finalize(service, _command(dto, dto.user_id))
    if response.duplicate:
        return response
    user = await service.session.get(User, dto.user_id)
    await notifier.payment_success(
        order_id=dto.order_id,
        amount=dto.final_amount,
        tier=dto.tier,
        user_email=user.email if user else None,
        ref_creator=dto.ref_creator,
    )
    return response


@router.post("/approve-join-request", response_model=ApprovalResponse, summary="Approve a bank-transfer join request")
async def approve_join_request(
    dto: ApproveJoinRequest,
    admin_id: uuid.UUID = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
    notifier: TelegramNotifier = Depends(get_notifier),
):
    try:
        result = await service.approve_join_request(dto.join_request_id, admin_id, dto.admin_notes)
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except BusinessRuleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AttributionError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if not result.already_processed:
        await notifier.payment_success(
            order_id=result.order_id,
            amount=result.amount,
            tier=result.tier,
            user_email=result.user_email,
            ref_creator=result.ref_creator,
        )
    return result


@router.post("/approve-upgrade-request", response_model=ApprovalResponse, summary="Approve a bank-transfer upgrade")
async def approve_upgrade_request(
    dto: ApproveUpgradeRequest,
    admin_id: uuid.UUID = Depends(require_admin),
    service: EnrollmentService = Depends(get_enrollment_service),
    notifier: TelegramNotifier = Depends(get_notifier),
):
    try:
        result = await service.approve_upgrade_request(dto.upgrade_request_id, admin_id, dto.admin_notes)
    except NotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except BusinessRuleError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except AttributionError as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    if not result.already_processed:
        await notifier.payment_success(
            order_id=result.order_id,
            amount=result.amount,
            tier=result.tier,
            user_email=result.user_email,
        )
    return result


@router.post(
    "/recalculate-stats",
    response_model=RecalculationResponse,
    summary="Rebuild creator balances and CMO payouts from the ledger",
    dependencies=[Depends(require_admin)],
)
async def recalculate_stats(service: StatsRecalculator = Depends(get_stats_recalculator)):
    report = await service.recalculate_stats()
    return RecalculationResponse(
        creators_updated=report.creators_updated,
        cmo_payouts_updated=report.cmo_payouts_updated,
    )


@router.post(
    "/evaluate-creator-tiers",
    response_model=TierEvaluationResponse,
    summary="Re-evaluate creator tiers now",
    dependencies=[Depends(require_admin)],
)
async def evaluate_creator_tiers(service: TierEvaluator = Depends(get_tier_evaluator)):
    report = await service.evaluate_all()
    return {"results": report}


@router.get(
    "/revenue-stats",
    response_model=RevenueStatsResponse,
    summary="Total, this month and six-month revenue breakdown",
    dependencies=[Depends(require_admin)],
)
async def get_revenue_stats(session: AsyncSession = Depends(get_async_session)):
    return await revenue_stats(session)
