"""Tests for low-balance alert tracking."""
from __future__ import annotations

from decimal import Decimal

import pytest

from callboard.models.notifications import NotificationConfigUpdate
from callboard.services.notification_service import (
    NotificationService,
    alert_priority,
)
from fakes import FakeSupabase


def _user(user_id: str, level: str, balance: str = "1.00") -> dict:
    return {
        "user_id": user_id,
        "user_email": f"{user_id}@example.com",
        "user_name": user_id.title(),
        "current_balance": balance,
        "alert_level": level,
        "hours_since_last_notification": 30,
    }


@pytest.fixture
def low_balance_db() -> FakeSupabase:
    db = FakeSupabase()
    db.rpc_handlers["get_users_needing_notification"] = lambda params: [
        _user("warned", "warning", "8.00"),
        _user("empty", "zero", "0"),
        _user("critical", "critical", "3.00"),
    ]
    return db


def test_alert_priority_ordering():
    assert alert_priority("zero") == 4
    assert alert_priority("almost_zero") == 3
    assert alert_priority("critical") == 2
    assert alert_priority("warning") == 1
    assert alert_priority("normal") == 0
    assert alert_priority("something-new") == 0


@pytest.mark.asyncio
async def test_check_sorts_most_urgent_first(low_balance_db):
    service = NotificationService(supabase=low_balance_db)

    users = await service.check_low_balance_users()

    assert [u.user_id for u in users] == ["warned", "empty", "critical"]
    assert [u.user_id for u in service.sorted_users()] == ["empty", "critical", "warned"]
    assert service.last_check is not None


@pytest.mark.asyncio
async def test_stats_group_zero_and_almost_zero(low_balance_db):
    low_balance_db.rpc_handlers["get_users_needing_notification"] = lambda params: [
        _user("a", "zero"),
        _user("b", "almost_zero"),
        _user("c", "critical"),
        _user("d", "warning"),
        _user("e", "warning"),
    ]
    service = NotificationService(supabase=low_balance_db)
    await service.check_low_balance_users()

    stats = service.get_stats()

    assert stats.total_alerted == 5
    assert stats.zero_balance == 2
    assert stats.critical_balance == 1
    assert stats.warning_balance == 2


@pytest.mark.asyncio
async def test_send_refreshes_list_when_something_was_sent(low_balance_db):
    low_balance_db.rpc_handlers["send_low_balance_notifications"] = lambda params: {
        "success": True,
        "sent_count": 2,
        "notification_email": "ops@example.com",
    }
    service = NotificationService(supabase=low_balance_db)

    result = await service.send_notifications()

    assert result.success is True
    assert result.sent_count == 2
    assert result.notification_email == "ops@example.com"
    assert len(service.low_balance_users) == 3


@pytest.mark.asyncio
async def test_send_without_alerts_does_not_refresh(low_balance_db):
    low_balance_db.rpc_handlers["send_low_balance_notifications"] = lambda params: [
        {"success": True, "sent_count": 0}
    ]
    service = NotificationService(supabase=low_balance_db)

    result = await service.send_notifications()

    assert result.success is True
    assert service.low_balance_users == []


@pytest.mark.asyncio
async def test_send_failure_is_reported_not_raised():
    db = FakeSupabase()  # no RPC registered
    service = NotificationService(supabase=db)

    result = await service.send_notifications()

    assert result.success is False
    assert "send_low_balance_notifications" in result.error


@pytest.mark.asyncio
async def test_save_config_merges_partial_update():
    db = FakeSupabase({
        "admin_notifications_config": [
            {"id": "cfg-1", "notification_email": "old@example.com", "warning_threshold": "15"}
        ]
    })
    service = NotificationService(supabase=db)

    config = await service.save_config(NotificationConfigUpdate(notification_email="ops@example.com"))

    assert config.id == "cfg-1"
    assert config.notification_email == "ops@example.com"
    assert config.warning_threshold == Decimal("15")
    [row] = db.rows("admin_notifications_config")
    assert row["notification_email"] == "ops@example.com"


@pytest.mark.asyncio
async def test_refresh_decision_uses_configured_warning_threshold():
    db = FakeSupabase({"admin_notifications_config": [{"id": "cfg-1", "warning_threshold": "20"}]})
    service = NotificationService(supabase=db)

    assert service.should_refresh_for_change("12.00") is False  # default threshold 10

    await service.load_config()
    assert service.should_refresh_for_change("12.00") is True
    assert service.should_refresh_for_change("20.01") is False


@pytest.mark.asyncio
async def test_balance_change_reads_stored_threshold_without_prior_load():
    db = FakeSupabase({"admin_notifications_config": [{"id": "cfg-1", "warning_threshold": "20"}]})
    service = NotificationService(supabase=db)

    assert await service.refresh_needed_for_change("15.00") is True
    assert await service.refresh_needed_for_change("25.00") is False


@pytest.mark.asyncio
async def test_balance_change_keeps_last_config_when_read_fails():
    db = FakeSupabase({"admin_notifications_config": [{"id": "cfg-1", "warning_threshold": "20"}]})
    service = NotificationService(supabase=db)
    await service.load_config()
    db.fail("admin_notifications_config", "select")

    assert await service.refresh_needed_for_change("15.00") is True


@pytest.mark.asyncio
async def test_unknown_alert_level_does_not_drop_the_poll():
    db = FakeSupabase()
    db.rpc_handlers["get_users_needing_notification"] = lambda params: [
        _user("odd", "low", "6.00"),
        _user("empty", "zero", "0"),
    ]
    service = NotificationService(supabase=db)

    users = await service.check_low_balance_users()

    assert [u.user_id for u in users] == ["odd", "empty"]
    assert [u.user_id for u in service.sorted_users()] == ["empty", "odd"]
    stats = service.get_stats()
    assert (stats.total_alerted, stats.zero_balance, stats.warning_balance) == (2, 1, 0)
