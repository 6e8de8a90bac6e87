import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn
from api.routers.system import routes as SystemRoutes
from api.routers.payhere import routes as PayHereRoutes
from api.routers.finance import routes as FinanceRoutes
from api.routers.refunds import routes as RefundRoutes
from api.routers.withdrawals import routes as WithdrawalRoutes
from services.notifier import TelegramNotifier

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


class FastAPIManager:
    def __init__(self):
        # version format: version.subversion:month.year.day:stage (beta, stable)
        self.api = FastAPI(
            version="1.0:10.26.19:beta",
            title="StudyHub payments API",
            description=(
                "PayHere checkout signing and webhook handling, creator commission attribution, "
                "tiered commission rates with protection windows, CMO rollups, refunds and creator withdrawals. "
                "Finance endpoints require an admin bearer token; creator endpoints require a creator profile."
            ),
        )
        self.add_middleware()
        self.add_routers()

    def add_middleware(self):
        @self.api.middleware("http")
        async def catch_unhandled_errors(request: Request, call_next):
            try:
                return await call_next(request)
            except Exception as e:
                logging.error(f"Unhandled error on {request.method} {request.url.path}: {e}", exc_info=True)
                await TelegramNotifier().handler_error(
                    function_name=request.url.path,
                    error=str(e),
                    context={"method": request.method},
                )
                return JSONResponse(status_code=500, content={"error": "Internal server error"})

    def add_routers(self):
        self.api.include_router(
            SystemRoutes.router,
            tags=["System"]
        )
        self.api.include_router(
            PayHereRoutes.router,
            prefix="/payhere",
            tags=["PayHere"]
        )
        self.api.include_router(
            FinanceRoutes.router,
            prefix="/finance",
            tags=["Attribution and commissions"]
        )
        self.api.include_router(
            RefundRoutes.router,
            prefix="/refunds",
            tags=["Refunds"]
        )
        self.api.include_router(
            WithdrawalRoutes.router,
            prefix="/withdrawals",
            tags=["Withdrawals"]
        )

    def start_server(self):
        uvicorn.run(self.api, host="0.0.0.0", port=8000)

    def get_app(self) -> FastAPI:
        return self.api
