"""Tests for mapping gateway status codes to payment states."""

from api.models import PaymentStatus
from services.payment import DECLINE_REASONS, FAILURE_REASONS, decline_reason, map_status


class TestMapStatus:
    def test_success(self):
        assert map_status("2") == (PaymentStatus.COMPLETED, None)

    def test_pending(self):
        assert map_status("0") == (PaymentStatus.PENDING, None)

    def test_unknown_code_stays_pending(self):
        assert map_status("7") == (PaymentStatus.PENDING, None)

    def test_cancelled_uses_gateway_message(self):
        assert map_status("-1", "User closed the window") == (PaymentStatus.CANCELLED, "User closed the window")

    def test_cancelled_default_reason(self):
        assert map_status("-1") == (PaymentStatus.CANCELLED, FAILURE_REASONS["-1"])

    def test_failed_gets_friendly_reason(self):
        status, reason = map_status("-2", "Insufficient Funds")

        assert status == PaymentStatus.FAILED
        assert reason == DECLINE_REASONS["insufficient_funds"]

    def test_chargeback(self):
        assert map_status("-3") == (PaymentStatus.CHARGEDBACK, FAILURE_REASONS["-3"])


class TestDeclineReason:
    def test_limit(self):
        assert decline_reason("Daily limit exceeded") == DECLINE_REASONS["limit_exceeded"]

    def test_do_not_honor(self):
        assert decline_reason("Do not honor") == DECLINE_REASONS["do_not_honor"]

    def test_expired(self):
        assert decline_reason("Card expired") == DECLINE_REASONS["expired_card"]

    def test_network(self):
        assert decline_reason("Gateway timeout") == DECLINE_REASONS["network_error"]

    def test_unrecognised_message_passes_through(self):
        assert decline_reason("Risk check failed") == "Risk check failed"

    def test_empty_message(self):
        assert decline_reason("") == FAILURE_REASONS["-2"]
