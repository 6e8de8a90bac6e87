from __future__ import annotations
import asyncio
import html
import logging
from datetime import datetime
from typing import Any, Literal, Optional
from zoneinfo import ZoneInfo

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError, TelegramRetryAfter

from config import ENV

Priority = Literal["low", "medium", "high", "critical"]

NOTIFICATION_TYPES: dict[str, tuple[str, str, Priority]] = {
    "payment_success": ("✅", "Payment Received", "medium"),
    "payment_failure": ("❌", "Payment Failed", "high"),
    "join_request": ("📥", "New Join Request", "medium"),
    "upgrade_request": ("⬆️", "Upgrade Request", "medium"),
    "withdrawal_request": ("🏦", "Withdrawal Request", "high"),
    "refund_processed": ("💰", "Refund Processed", "medium"),
    "refund_failed": ("⚠️", "Refund Failed", "critical"),
    "creator_tier_change": ("📈", "Creator Tier Change", "low"),
    "commission_issue": ("💰", "Commission Alert", "high"),
    "security_alert": ("🚨", "Security Alert", "critical"),
    "handler_error": ("🔴", "Handler Error", "critical"),
    "notification": ("📢", "Notification", "low"),
}

PRIORITY_INDICATORS: dict[str, str] = {
    "low": "",
    "medium": "⚡",
    "high": "🔔",
    "critical": "🚨🚨🚨",
}

MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 1.0


def format_message(
    type_: str,
    message: str,
    data: Optional[dict[str, Any]] = None,
    priority: Optional[Priority] = None,
    now: Optional[datetime] = None,
) -> str:
    emoji, title, default_priority = NOTIFICATION_TYPES.get(type_, NOTIFICATION_TYPES["notification"])
    indicator = PRIORITY_INDICATORS[priority or default_priority]

    text = f"{indicator} " if indicator else ""
    text += f"<b>{emoji} {title}</b>\n\n{html.escape(message)}"

    if data:
        text += "\n\n<b>📋 Details:</b>"
        for key, value in data.items():
            label = key.replace("_", " ").title()
            text += f"\n• <b>{label}:</b> {html.escape(str(value))}"

    moment = now or datetime.now(ZoneInfo("Asia/Colombo"))
    text += f"\n\n<i>🕐 {moment.strftime('%d %b %Y, %H:%M:%S')}</i>"
    return text


class TelegramNotifier:
    """
    Operational alerts to the ops chat.
    Fire-and-forget: never raises, a failed delivery is only logged.
    If the bot token or chat id is missing, sending is skipped.
    """
    def __init__(self, token: Optional[str] = None, chat_id: Optional[str] = None):
        env = ENV()
        self.token = token if token is not None else env.TELEGRAM_BOT_TOKEN
        self.chat_id = chat_id if chat_id is not None else env.TELEGRAM_CHAT_ID

    @property
    def configured(self) -> bool:
        return bool(self.token and self.chat_id)

    def _make_bot(self) -> Bot:
        return Bot(token=self.token)

    async def send(
        self,
        type_: str,
        message: str,
        data: Optional[dict[str, Any]] = None,
        priority: Optional[Priority] = None,
    ) -> bool:
        if not self.configured:
            logging.info(f"Telegram not configured, skipping {type_} notification")
            return False

        text = format_message(type_, message, data, priority)
        try:
            bot = self._make_bot()
        except ValueError as e:
            logging.error(f"Failed to create Telegram bot: {e}")
            return False

        try:
            for attempt in range(1, MAX_RETRIES + 1):
                try:
                    await bot.send_message(chat_id=self.chat_id, text=text, parse_mode="HTML")
                    logging.info(f"Telegram notification sent: {type_}")
                    return True
                except TelegramRetryAfter as e:
                    logging.warning(f"Telegram rate limit (attempt {attempt}/{MAX_RETRIES}), retry after {e.retry_after}s")
                    if attempt < MAX_RETRIES:
                        await asyncio.sleep(e.retry_after)
                except (TelegramAPIError, OSError, asyncio.TimeoutError) as e:
                    logging.error(f"Telegram send failed (attempt {attempt}/{MAX_RETRIES}): {e}")
                    if attempt < MAX_RETRIES:
                        await asyncio.sleep(RETRY_DELAY_SECONDS * attempt)
            return False
        finally:
            await bot.session.close()

    # --- convenience helpers ---

    async def payment_success(self, *, order_id: str, amount, tier: Optional[str], user_email: Optional[str] = None, ref_creator: Optional[str] = None) -> bool:
        return await self.send(
            "payment_success",
            f"Payment of Rs.{amount} received for {tier} tier",
            {
                "order_id": order_id,
                "amount": f"Rs.{amount}",
                "tier": tier,
                "user": user_email or "Unknown",
                "referral": ref_creator or "Direct",
            },
            "medium",
        )

    async def payment_failure(self, *, order_id: str, reason: str, amount=None) -> bool:
        return await self.send(
            "payment_failure",
            f"Payment failed: {reason}",
            {
                "order_id": order_id,
                "amount": f"Rs.{amount}" if amount is not None else "Unknown",
                "reason": reason,
            },
            "high",
        )

    async def security_alert(self, *, alert_type: str, details: str, user_id=None) -> bool:
        return await self.send(
            "security_alert",
            f"Security alert: {alert_type}",
            {"type": alert_type, "details": details, "user_id": user_id or "Unknown"},
            "critical",
        )

    async def refund_processed(self, *, order_id: str, amount, payment_id: str) -> bool:
        return await self.send(
            "refund_processed",
            f"Refund of Rs.{amount} processed successfully",
            {"order_id": order_id, "payment_id": payment_id, "amount": f"Rs.{amount}"},
            "medium",
        )

    async def withdrawal_request(self, *, creator_name: str, amount, net_amount) -> bool:
        return await self.send(
            "withdrawal_request",
            f"Withdrawal request from {creator_name}",
            {"creator": creator_name, "gross_amount": f"Rs.{amount}", "net_amount": f"Rs.{net_amount}"},
            "high",
        )

    async def tier_change(self, *, creator_id: str, creator_name: str, old_tier: int, new_tier: int, monthly_users: int) -> bool:
        promoted = new_tier > old_tier
        return await self.send(
            "creator_tier_change",
            f"Creator {creator_name} {'promoted' if promoted else 'demoted'} to Tier {new_tier}",
            {
                "creator_id": creator_id,
                "creator_name": creator_name,
                "old_tier": old_tier,
                "new_tier": new_tier,
                "monthly_users": monthly_users,
                "change_type": "promotion" if promoted else "demotion",
            },
            "medium" if promoted else "high",
        )

    async def handler_error(self, *, function_name: str, error: str, context: Optional[dict[str, Any]] = None) -> bool:
        return await self.send(
            "handler_error",
            f"Error in {function_name}: {error}",
            {"function": function_name, "error": error, **(context or {})},
            "critical",
        )


def get_notifier() -> TelegramNotifier:
    return TelegramNotifier()
