"""Integration tests for health, ops notifications and the error middleware."""

from conftest import auth_header, make_user
from api.models import UserRole


async def test_health(client):
    response = await client.get("/check-health")

    assert response.status_code == 200
    assert response.json() == {"ok": True}


async def test_ops_notification_requires_admin(client, session):
    user = await make_user(session)

    response = await client.post(
        "/notifications", json={"type": "notification", "message": "hello"}, headers=auth_header(user.id)
    )

    assert response.status_code == 403


async def test_ops_notification_is_sent(client, session, mock_notifier):
    admin = await make_user(session, roles=(UserRole.ADMIN,))

    response = await client.post(
        "/notifications",
        json={"type": "commission_issue", "message": "Balance drift", "data": {"creator": "ALICE10"}, "priority": "high"},
        headers=auth_header(admin.id),
    )

    assert response.status_code == 200
    assert response.json() == {"success": True}
    mock_notifier.send.assert_awaited_once_with("commission_issue", "Balance drift", {"creator": "ALICE10"}, "high")


async def test_ops_notification_without_telegram(client, session, mock_notifier):
    admin = await make_user(session, roles=(UserRole.ADMIN,))
    mock_notifier.configured = False

    response = await client.post(
        "/notifications", json={"type": "notification", "message": "hello"}, headers=auth_header(admin.id)
    )

    assert response.json() == {"success": False, "message": "Telegram not configured"}


async def test_unhandled_error_returns_generic_500(client):
    async def explode():
        raise RuntimeError("boom")

    client.app.add_api_route("/explode", explode)

    response = await client.get("/explode")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
