"""Tests for team invitations and invite email delivery."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from callboard.config import PUBLIC_APP_URL
from callboard.inngest.events import Events
from callboard.models.team import InviteRequest
from callboard.services import invite_service as invite_module
from callboard.services.email_service import EmailService
from callboard.services.invite_service import InviteError, InviteService
from fakes import FakeSupabase


def _iso(delta: timedelta) -> str:
    return (datetime.now(timezone.utc) + delta).isoformat()


def _db(seats_used: int = 1, seat_limit: int = 5, invites=None, members=None) -> FakeSupabase:
    return FakeSupabase({
        "teams": [{"id": "team-1", "name": "Night Shift", "seat_limit": seat_limit}],
        "team_seat_usage": [{"team_id": "team-1", "seats_used": seats_used, "seat_limit": seat_limit}],
        "team_invites": invites or [],
        "team_members": members or [],
    })


def _email_service(status_code: int = 200, sent: list | None = None) -> EmailService:
    def handler(request: httpx.Request) -> httpx.Response:
        if sent is not None:
            sent.append(request)
        if status_code >= 400:
            return httpx.Response(status_code, json={"message": "domain not verified"})
        return httpx.Response(200, json={"id": "msg-1"})

    return EmailService(api_key="re_test", from_email="team@example.com", transport=httpx.MockTransport(handler))


def _pending_invite(**overrides) -> dict:
    invite = {
        "id": "inv-1",
        "team_id": "team-1",
        "email": "new.agent@example.com",
        "role": "member",
        "token": "tok-1",
        "status": "pending",
        "expires_at": _iso(timedelta(days=3)),
        "email_status": "queued",
    }
    invite.update(overrides)
    return invite


@pytest.mark.asyncio
async def test_create_invite_stores_row_and_queues_email(published_events):
    db = _db()
    service = InviteService(supabase=db, email_service=_email_service())

    created = await service.create_invite(
        InviteRequest(team_id="team-1", email="New.Agent@Example.com", role="member"), invited_by="admin-1"
    )

    [row] = db.rows("team_invites")
    assert row["email"] == "new.agent@example.com"
    assert row["status"] == "pending"
    assert row["email_status"] == "queued"
    assert row["token"] == created.token
    assert created.link == f"{PUBLIC_APP_URL}/accept?token={created.token}"
    assert created.warn is None
    assert timedelta(days=6, hours=23) < created.expires_at - datetime.now(timezone.utc) <= timedelta(days=7)
    assert published_events == [(Events.TEAM_INVITE_CREATED, {"invite_id": row["id"]})]


@pytest.mark.asyncio
async def test_create_invite_warns_when_email_cannot_be_queued(monkeypatch):
    async def broken_send_event(name, data):
        raise ConnectionError("inngest unreachable")

    monkeypatch.setattr(invite_module, "send_event", broken_send_event)
    db = _db()
    service = InviteService(supabase=db, email_service=_email_service())

    created = await service.create_invite(InviteRequest(team_id="team-1", email="a@b.io", role="viewer"))

    assert created.link.endswith(created.token)
    assert "inngest unreachable" in created.warn
    [row] = db.rows("team_invites")
    assert row["email_status"] == "failed"
    assert row["email_error"] == "inngest unreachable"


@pytest.mark.parametrize(
    ("request_body", "message"),
    [
        ({"email": "a@b.io", "role": "member"}, "missing fields: teamId"),
        ({"team_id": "team-1"}, "missing fields: email, role"),
        ({"team_id": "team-1", "email": "not-an-email", "role": "member"}, "invalid email"),
        ({"team_id": "team-1", "email": "a@b.io", "role": "supervisor"}, "invalid role"),
        ({"team_id": "team-404", "email": "a@b.io", "role": "member"}, "Team not found"),
    ],
)
@pytest.mark.asyncio
async def test_create_invite_validation(request_body, message, published_events):
    service = InviteService(supabase=_db(), email_service=_email_service())

    with pytest.raises(InviteError) as exc:
        await service.create_invite(InviteRequest(**request_body))

    assert exc.value.status_code == 400
    assert exc.value.message == message


@pytest.mark.asyncio
async def test_create_invite_rejects_full_team(published_events):
    db = _db(seats_used=5, seat_limit=5)
    service = InviteService(supabase=db, email_service=_email_service())

    with pytest.raises(InviteError) as exc:
        await service.create_invite(InviteRequest(team_id="team-1", email="a@b.io", role="member"))

    assert exc.value.status_code == 402
    assert exc.value.message == "Seat limit reached"
    assert db.rows("team_invites") == []


@pytest.mark.asyncio
async def test_deliver_invite_email_records_success():
    sent: list[httpx.Request] = []
    db = _db(invites=[_pending_invite()])
    service = InviteService(supabase=db, email_service=_email_service(sent=sent))

    result = await service.deliver_invite_email("inv-1")

    assert result == {"status": "sent", "message_id": "msg-1"}
    row = db.rows("team_invites")[0]
    assert row["email_status"] == "sent"
    assert row["email_message_id"] == "msg-1"
    assert row["email_sent_at"] is not None
    [request] = sent
    assert request.headers["Authorization"] == "Bearer re_test"
    assert b"tok-1" in request.content
    assert b"Night Shift" in request.content


@pytest.mark.asyncio
async def test_deliver_invite_email_records_failure():
    db = _db(invites=[_pending_invite()])
    service = InviteService(supabase=db, email_service=_email_service(status_code=403))

    result = await service.deliver_invite_email("inv-1")

    assert result["status"] == "failed"
    row = db.rows("team_invites")[0]
    assert row["email_status"] == "failed"
    assert "403" in row["email_error"]


@pytest.mark.asyncio
async def test_deliver_skips_already_sent_invite():
    sent: list[httpx.Request] = []
    db = _db(invites=[_pending_invite(email_status="sent")])
    service = InviteService(supabase=db, email_service=_email_service(sent=sent))

    result = await service.deliver_invite_email("inv-1")

    assert result["status"] == "skipped"
    assert sent == []


@pytest.mark.asyncio
async def test_check_invite_states():
    db = _db(invites=[
        _pending_invite(),
        _pending_invite(id="inv-2", token="tok-2", status="accepted"),
        _pending_invite(id="inv-3", token="tok-3", expires_at=_iso(-timedelta(minutes=1))),
    ])
    service = InviteService(supabase=db, email_service=_email_service())

    valid = await service.check_invite("tok-1")
    assert valid["valid"] is True
    assert valid["invitation"]["team_name"] == "Night Shift"
    assert valid["invitation"]["email"] == "new.agent@example.com"

    assert await service.check_invite("tok-2") == {"valid": False, "error": "This invitation is not pending"}
    assert await service.check_invite("tok-3") == {"valid": False, "error": "This invitation has expired"}
    assert await service.check_invite("nope") == {"valid": False, "error": "Invitation not found"}


@pytest.mark.asyncio
async def test_accept_invite_joins_team():
    db = _db(invites=[_pending_invite(role="admin")])
    service = InviteService(supabase=db, email_service=_email_service())

    await service.accept_invite("tok-1", "user-9")

    [member] = db.rows("team_members")
    assert (member["team_id"], member["user_id"], member["role"]) == ("team-1", "user-9", "admin")
    [profile] = db.rows("profiles")
    assert profile["name"] == "new.agent"
    invite = db.rows("team_invites")[0]
    assert invite["status"] == "accepted"
    assert invite["accepted_by"] == "user-9"


@pytest.mark.asyncio
async def test_accept_invite_respects_seat_limit():
    members = [{"team_id": "team-1", "user_id": f"u{i}", "role": "member"} for i in range(2)]
    db = _db(seat_limit=2, invites=[_pending_invite()], members=members)
    service = InviteService(supabase=db, email_service=_email_service())

    with pytest.raises(InviteError) as exc:
        await service.accept_invite("tok-1", "user-9")

    assert exc.value.status_code == 402
    assert db.rows("team_invites")[0]["status"] == "pending"


@pytest.mark.asyncio
async def test_accept_expired_invite_is_rejected():
    db = _db(invites=[_pending_invite(expires_at=_iso(-timedelta(days=1)))])
    service = InviteService(supabase=db, email_service=_email_service())

    with pytest.raises(InviteError) as exc:
        await service.accept_invite("tok-1", "user-9")

    assert exc.value.message == "Invalid or expired invite"
