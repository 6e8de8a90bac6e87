from .client import PayHereAPI, RefundOutcome
from .credentials import (
    ApiCredentials,
    MerchantCredentials,
    PaymentMode,
    api_credentials,
    load_payment_mode,
    merchant_credentials,
)
