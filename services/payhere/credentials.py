import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.models import SiteSetting
from config import ENV

PAYMENT_MODE_KEY = "payment_mode"

LIVE_BASE_URL = "https://www.payhere.lk"
SANDBOX_BASE_URL = "https://sandbox.payhere.lk"


@dataclass(frozen=True)
class PaymentMode:
    mode: str = "test"
    test_environment: str = "web"

    @property
    def is_live(self) -> bool:
        return self.mode == "live"


@dataclass(frozen=True)
class MerchantCredentials:
    merchant_id: str
    merchant_secret: str
    sandbox: bool


@dataclass(frozen=True)
class ApiCredentials:
    app_id: str
    app_secret: str
    base_url: str

    @property
    def token_url(self) -> str:
        return f"{self.base_url}/merchant/v1/oauth/token"

    @property
    def refund_url(self) -> str:
        return f"{self.base_url}/merchant/v1/payment/refund"

    @property
    def configured(self) -> bool:
        return bool(self.app_id and self.app_secret)


async def load_payment_mode(session: AsyncSession) -> PaymentMode:
    """Read site_settings.payment_mode, falling back to test/web."""
    try:
        setting = await session.get(SiteSetting, PAYMENT_MODE_KEY)
    except SQLAlchemyError as e:
        logging.error(f"Failed to fetch payment mode, using default (test/web): {e}")
        await session.rollback()
        return PaymentMode()

    value = setting.value if setting else None
    if not isinstance(value, dict):
        return PaymentMode()
    return PaymentMode(
        mode=str(value.get("mode") or "test"),
        test_environment=str(value.get("test_environment") or "web"),
    )


def merchant_credentials(mode: PaymentMode, env: ENV) -> MerchantCredentials:
    if mode.is_live:
        logging.info("Using LIVE merchant credentials")
        return MerchantCredentials(env.PAYHERE_MERCHANT_ID, env.PAYHERE_MERCHANT_SECRET, sandbox=False)
    if mode.test_environment == "localhost":
        logging.info("Using TEST merchant credentials (localhost)")
        return MerchantCredentials(env.PAYHERE_SANDBOX_MERCHANT_ID, env.PAYHERE_SANDBOX_SECRET_LOCALHOST, sandbox=True)
    logging.info("Using TEST merchant credentials (web)")
    return MerchantCredentials(env.PAYHERE_SANDBOX_MERCHANT_ID, env.PAYHERE_SANDBOX_SECRET_WEB, sandbox=True)


def api_credentials(mode: PaymentMode, env: ENV) -> ApiCredentials:
    if mode.is_live:
        return ApiCredentials(env.PAYHERE_APP_ID, env.PAYHERE_APP_SECRET, LIVE_BASE_URL)
    return ApiCredentials(env.PAYHERE_SANDBOX_APP_ID, env.PAYHERE_SANDBOX_APP_SECRET, SANDBOX_BASE_URL)
