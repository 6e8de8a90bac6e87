from fastapi import APIRouter, Depends, Request
from scalar_fastapi import get_scalar_api_reference

from api.routers.system.schemas import OpsNotification
from api.security import require_admin
from services.notifier import TelegramNotifier, get_notifier

router = APIRouter()


@router.get("/check-health", include_in_schema=False)
def check_health():
    return {"ok": True}


@router.get("/scalar", include_in_schema=False)
def get_scalar(request: Request):
    app = request.app
    return get_scalar_api_reference(
        title=app.title,
        openapi_url=app.openapi_url,
    )


@router.post(
    "/notifications",
    summary="Send an operational notification to the ops chat",
    dependencies=[Depends(require_admin)],
)
async def post_notification(
    dto: OpsNotification,
    notifier: TelegramNotifier = Depends(get_notifier),
):
    if not notifier.configured:
        return {"success": False, "message": "Telegram not configured"}
    sent = await notifier.send(dto.type, dto.message, dto.data, dto.priority)
    return {"success": sent}
