"""
PayHere request signing.

PayHere signs with upper-cased hex MD5 over plain concatenated fields, the
merchant secret itself being MD5-hashed first. Field order and the exact
textual form of the amount are part of the contract with the gateway.
"""
import hashlib
import hmac
import logging
from decimal import ROUND_HALF_UP, Decimal


def md5_upper(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest().upper()


def format_amount(amount) -> str:
    """Two decimals, no thousands separator: 1000 -> '1000.00'."""
    return str(Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def generate_checkout_hash(merchant_id: str, order_id: str, amount, currency: str, merchant_secret: str) -> str:
    """Hash the client echoes back to PayHere when opening the checkout."""
    hashed_secret = md5_upper(merchant_secret)
    amount_formatted = format_amount(amount)
    logging.info(f"Generated checkout hash for order {order_id}, amount {amount_formatted}")
    return md5_upper(f"{merchant_id}{order_id}{amount_formatted}{currency}{hashed_secret}")


def build_notification_signature(
    merchant_id: str,
    order_id: str,
    amount: str,
    currency: str,
    status_code: str,
    merchant_secret: str,
) -> str:
    hashed_secret = md5_upper(merchant_secret)
    return md5_upper(f"{merchant_id}{order_id}{amount}{currency}{status_code}{hashed_secret}")


def verify_signature(
    merchant_id: str,
    order_id: str,
    amount: str,
    currency: str,
    status_code: str,
    merchant_secret: str,
    received_signature: str,
) -> bool:
    """
    Check the md5sig of a payment notification.

    `amount` is used exactly as the gateway sent it (payhere_amount), so
    '100' and '100.00' produce different signatures.
    """
    if not received_signature or not merchant_secret:
        return False
    expected = build_notification_signature(merchant_id, order_id, amount, currency, status_code, merchant_secret)
    return hmac.compare_digest(expected.encode("utf-8"), received_signature.strip().upper().encode("utf-8"))
