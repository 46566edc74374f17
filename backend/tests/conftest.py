from __future__ import annotations

import pytest

from callboard.models.context import UserContext
from fakes import FakeSupabase


@pytest.fixture
def db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def member() -> UserContext:
    return UserContext(user_id="user-1", company_id="company-1", role="member")


@pytest.fixture
def admin() -> UserContext:
    return UserContext(user_id="admin-1", company_id="company-1", role="admin")


@pytest.fixture
def owner() -> UserContext:
    return UserContext(user_id="owner-1", company_id="company-1", role="owner")


@pytest.fixture
def super_admin() -> UserContext:
    """Platform operator; not tied to the company under test."""
    return UserContext(user_id="root-1", company_id="platform", role="member", super_admin=True)


@pytest.fixture
def published_events(monkeypatch):
    """Capture events instead of sending them to Inngest."""
    sent: list[tuple[str, dict]] = []

    async def fake_send_event(name, data):
        sent.append((name, data))

    from callboard.routers.admin import agents as admin_agents
    from callboard.services import credit_service, invite_service

    for module in (credit_service, invite_service, admin_agents):
        monkeypatch.setattr(module, "send_event", fake_send_event)
    return sent

