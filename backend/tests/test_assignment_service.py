"""Tests for user/agent assignments."""
from __future__ import annotations

import pytest

from callboard.services.assignment_service import AssignmentService
from callboard.utils.errors import AuthorizationError, NotFoundError
from fakes import FakeSupabase


@pytest.fixture
def db() -> FakeSupabase:
    return FakeSupabase({
        "agents": [
            {"id": "agent-a", "name": "A", "status": "active"},
            {"id": "agent-b", "name": "B", "status": "active"},
        ],
        "user_agent_assignments": [
            {"id": "as-1", "user_id": "user-1", "agent_id": "agent-a", "company_id": "company-1",
             "is_primary": True, "assigned_at": "2026-10-01T00:00:00+00:00"},
            {"id": "as-2", "user_id": "user-2", "agent_id": "agent-a", "company_id": "company-2",
             "is_primary": False, "assigned_at": "2026-10-02T00:00:00+00:00"},
        ],
    })


def _primaries(db: FakeSupabase, user_id: str) -> list[str]:
    return [r["id"] for r in db.rows("user_agent_assignments") if r["user_id"] == user_id and r["is_primary"]]


@pytest.mark.asyncio
async def test_new_primary_unsets_previous(db, admin):
    service = AssignmentService(supabase=db)

    created = await service.create_assignment(admin, "user-1", "agent-b", is_primary=True)

    assert created.is_primary is True
    assert created.company_id == "company-1"
    assert _primaries(db, "user-1") == [created.id]


@pytest.mark.asyncio
async def test_set_primary_keeps_single_primary(db, admin):
    service = AssignmentService(supabase=db)
    other = await service.create_assignment(admin, "user-1", "agent-b")

    updated = await service.set_primary(admin, other.id, "user-1")

    assert updated.is_primary is True
    assert _primaries(db, "user-1") == [other.id]


@pytest.mark.asyncio
async def test_set_primary_checks_assignment_owner(db, admin):
    service = AssignmentService(supabase=db)

    with pytest.raises(NotFoundError):
        await service.set_primary(admin, "as-2", "user-1")


@pytest.mark.asyncio
async def test_unknown_agent_is_rejected(db, admin):
    service = AssignmentService(supabase=db)

    with pytest.raises(NotFoundError):
        await service.create_assignment(admin, "user-1", "agent-missing")


@pytest.mark.asyncio
async def test_members_cannot_manage_assignments(db, member):
    service = AssignmentService(supabase=db)

    with pytest.raises(AuthorizationError):
        await service.create_assignment(member, "user-1", "agent-b")
    with pytest.raises(AuthorizationError):
        await service.remove_assignment(member, "as-1")


@pytest.mark.asyncio
async def test_members_list_only_their_own(db, member):
    service = AssignmentService(supabase=db)

    own = await service.list_assignments(member)
    assert [a.id for a in own] == ["as-1"]

    with pytest.raises(AuthorizationError):
        await service.list_assignments(member, user_id="user-2")


@pytest.mark.asyncio
async def test_admin_list_is_scoped_to_company(db, admin):
    service = AssignmentService(supabase=db)

    assert [a.id for a in await service.list_assignments(admin)] == ["as-1"]


@pytest.mark.asyncio
async def test_remove_assignment(db, admin):
    service = AssignmentService(supabase=db)

    await service.remove_assignment(admin, "as-1")

    assert [r["id"] for r in db.rows("user_agent_assignments")] == ["as-2"]
    with pytest.raises(NotFoundError):
        await service.remove_assignment(admin, "as-1")
