"""
Invite Service

Team invitations: create (with seat check), check, accept.

Email delivery is an outbox step. Creating an invite stores the row with
email_status=queued and publishes TEAM_INVITE_CREATED; the team-invite-email
Inngest function performs the send and records the outcome on the row. The
shareable link is always returned to the caller, so a failed delivery never
loses the invite.
"""

import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from fastapi import status

from callboard.config import INVITE_EXPIRY_DAYS, PUBLIC_APP_URL
from callboard.database import get_supabase_service
from callboard.inngest.events import Events, send_event
from callboard.models.team import (
    AcceptRequest,
    EmailStatus,
    InvitationInfo,
    InviteCreated,
    InviteRequest,
    InviteStatus,
    TeamRole,
)
from callboard.services.email_service import EmailService, get_email_service
from callboard.utils.errors import AppError, ErrorCodes

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
VALID_ROLES = {r.value for r in TeamRole}


class InviteError(AppError):
    """Invite flow failure carrying the HTTP status the endpoint answers with."""

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, code: str = ErrorCodes.VALIDATION_ERROR):
        super().__init__(message, code=code, status_code=status_code)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_invite_link(token: str, base_url: Optional[str] = None) -> str:
    return f"{(base_url or PUBLIC_APP_URL).rstrip('/')}/accept?token={token}"


def _text_fields(payload: Any, fields: List[str]) -> Dict[str, Optional[str]]:
    """Pick string fields out of a raw JSON body; other shapes are 400s."""
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise InviteError("invalid body")

    wrong = [f for f in fields if payload.get(f) is not None and not isinstance(payload[f], str)]
    if wrong:
        raise InviteError(f"invalid fields: {', '.join(wrong)}")
    return {f: payload.get(f) for f in fields}


def parse_invite_payload(payload: Any) -> InviteRequest:
    return InviteRequest(**_text_fields(payload, ["teamId", "email", "role"]))


def parse_accept_payload(payload: Any) -> AcceptRequest:
    return AcceptRequest(**_text_fields(payload, ["token", "userId"]))


def validate_invite_request(req: InviteRequest) -> None:
    """Field presence, email format and role, in that order."""
    missing: List[str] = []
    if not req.team_id:
        missing.append("teamId")
    if not req.email:
        missing.append("email")
    if not req.role:
        missing.append("role")
    if missing:
        raise InviteError(f"missing fields: {', '.join(missing)}")

    if not EMAIL_PATTERN.match(req.email.strip()):
        raise InviteError("invalid email")
    if req.role not in VALID_ROLES:
        raise InviteError("invalid role")


class InviteService:
    """Team invitations backed by team_invites / team_seat_usage."""

    def __init__(self, supabase=None, email_service: Optional[EmailService] = None):
        self.supabase = supabase if supabase is not None else get_supabase_service()
        self.email_service = email_service if email_service is not None else get_email_service()

    # ==========================================
    # CREATE
    # ==========================================

    async def create_invite(self, req: InviteRequest, invited_by: Optional[str] = None) -> InviteCreated:
        """
        Create an invite and queue its email.

        Raises:
            InviteError: 400 on validation / unknown team, 402 when seats are full
        """
        validate_invite_request(req)

        team = self._get_team(req.team_id)
        self._check_seats(req.team_id)

        token = secrets.token_urlsafe(32)
        expires_at = _now() + timedelta(days=INVITE_EXPIRY_DAYS)
        response = self.supabase.table("team_invites").insert({
            "team_id": req.team_id,
            "email": req.email.strip().lower(),
            "role": req.role,
            "token": token,
            "status": InviteStatus.PENDING.value,
            "expires_at": expires_at.isoformat(),
            "invited_by": invited_by,
            "email_status": EmailStatus.QUEUED.value,
        }).execute()
        if not response.data:
            raise InviteError("Failed to create invite", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

        invite_id = str(response.data[0]["id"])
        link = build_invite_link(token)
        logger.info(f"[TEAM] Invite {invite_id} created for team {team.get('name', req.team_id)}")

        warn = None
        try:
            await send_event(Events.TEAM_INVITE_CREATED, {"invite_id": invite_id})
        except Exception as e:
            logger.warning(f"[TEAM] Could not queue invite email for {invite_id}: {e}")
            warn = f"Invite email could not be queued: {e}"
            self._record_email_result(invite_id, EmailStatus.FAILED, error=str(e))

        return InviteCreated(
            invite_id=invite_id,
            token=token,
            link=link,
            expires_at=expires_at,
            warn=warn,
        )

    def _get_team(self, team_id: str) -> Dict[str, Any]:
        response = self.supabase.table("teams").select("id, name, seat_limit").eq(
            "id", team_id
        ).maybe_single().execute()
        if not response or not response.data:
            raise InviteError("Team not found")
        return response.data

    def _check_seats(self, team_id: str) -> None:
        response = self.supabase.table("team_seat_usage").select("*").eq(
            "team_id", team_id
        ).maybe_single().execute()
        usage = response.data if response else None
        if usage and usage.get("seat_limit") is not None:
            if int(usage.get("seats_used") or 0) >= int(usage["seat_limit"]):
                raise InviteError(
                    "Seat limit reached",
                    status_code=status.HTTP_402_PAYMENT_REQUIRED,
                    code=ErrorCodes.SEAT_LIMIT_REACHED,
                )

    # ==========================================
    # DELIVERY (outbox consumer)
    # ==========================================

    async def deliver_invite_email(self, invite_id: str) -> Dict[str, Any]:
        """Send the invite email and record the outcome on the invite row."""
        response = self.supabase.table("team_invites").select("*").eq(
            "id", invite_id
        ).maybe_single().execute()
        invite = response.data if response else None
        if not invite:
            logger.warning(f"[TEAM] Invite {invite_id} disappeared before delivery")
            return {"status": "skipped", "reason": "invite not found"}
        if invite.get("email_status") == EmailStatus.SENT.value:
            return {"status": "skipped", "reason": "already sent"}

        team = self.supabase.table("teams").select("name").eq(
            "id", invite["team_id"]
        ).maybe_single().execute()
        team_name = team.data.get("name") if team and team.data else None
        link = build_invite_link(invite["token"])

        try:
            message_id = await self.email_service.send_team_invite(invite["email"], team_name, link)
        except Exception as e:
            logger.error(f"[TEAM] Invite email for {invite_id} failed: {e}")
            self._record_email_result(invite_id, EmailStatus.FAILED, error=str(e))
            return {"status": EmailStatus.FAILED.value, "error": str(e)}

        self._record_email_result(invite_id, EmailStatus.SENT, message_id=message_id)
        return {"status": EmailStatus.SENT.value, "message_id": message_id}

    def _record_email_result(
        self,
        invite_id: str,
        email_status: EmailStatus,
        message_id: Optional[str] = None,
        error: Optional[str] = None
    ) -> None:
        updates: Dict[str, Any] = {"email_status": email_status.value}
        if email_status == EmailStatus.SENT:
            updates["email_message_id"] = message_id
            updates["email_sent_at"] = _now().isoformat()
            updates["email_error"] = None
        else:
            updates["email_error"] = error
        try:
            self.supabase.table("team_invites").update(updates).eq("id", invite_id).execute()
        except Exception as e:
            logger.error(f"[TEAM] Could not record email status for {invite_id}: {e}")

    # ==========================================
    # CHECK / ACCEPT
    # ==========================================

    async def check_invite(self, token: str) -> Dict[str, Any]:
        """Public lookup used by the accept page: {valid, invitation} or {valid, error}."""
        response = self.supabase.table("team_invites").select(
            "team_id, email, role, status, expires_at"
        ).eq("token", token).maybe_single().execute()
        invite = response.data if response else None

        if not invite:
            return {"valid": False, "error": "Invitation not found"}
        if invite.get("status") != InviteStatus.PENDING.value:
            return {"valid": False, "error": "This invitation is not pending"}
        if _parse_timestamp(invite["expires_at"]) <= _now():
            return {"valid": False, "error": "This invitation has expired"}

        team = self.supabase.table("teams").select("id, name").eq(
            "id", invite["team_id"]
        ).maybe_single().execute()
        team_name = (team.data or {}).get("name") if team else None
        info = InvitationInfo(
            email=invite["email"],
            role=invite["role"],
            team_id=invite["team_id"],
            team_name=team_name or "—",
            token=token,
            expires_at=_parse_timestamp(invite["expires_at"]),
        )
        return {"valid": True, "invitation": info.model_dump(mode="json")}

    async def accept_invite(self, token: str, user_id: str) -> None:
        """
        Join the invite's team.

        Idempotent for a user who is already a member.

        Raises:
            InviteError: 400 invalid/expired or team missing, 402 seats full
        """
        if not token or not user_id:
            raise InviteError("missing token or userId")

        response = self.supabase.table("team_invites").select(
            "id, team_id, email, role, status, expires_at"
        ).eq("token", token).eq("status", InviteStatus.PENDING.value).maybe_single().execute()
        invite = response.data if response else None
        if not invite or _parse_timestamp(invite["expires_at"]) <= _now():
            raise InviteError("Invalid or expired invite")

        team = self._get_team(invite["team_id"])

        seat_limit = team.get("seat_limit")
        if seat_limit is not None and int(seat_limit) >= 0:
            members = self.supabase.table("team_members").select("user_id").eq(
                "team_id", invite["team_id"]
            ).execute()
            member_ids = {m["user_id"] for m in (members.data or [])}
            if user_id not in member_ids and len(member_ids) >= int(seat_limit):
                raise InviteError(
                    "Seat limit reached",
                    status_code=status.HTTP_402_PAYMENT_REQUIRED,
                    code=ErrorCodes.SEAT_LIMIT_REACHED,
                )

        now = _now().isoformat()
        self.supabase.table("profiles").upsert({
            "id": user_id,
            "email": invite["email"],
            "name": invite["email"].split("@")[0],
            "created_at": now,
        }, on_conflict="id", ignore_duplicates=True).execute()

        self.supabase.table("team_members").upsert({
            "team_id": invite["team_id"],
            "user_id": user_id,
            "role": invite["role"],
            "joined_at": now,
        }, on_conflict="team_id,user_id").execute()

        self.supabase.table("team_invites").update({
            "status": InviteStatus.ACCEPTED.value,
            "accepted_at": now,
            "accepted_by": user_id,
        }).eq("id", invite["id"]).execute()

        logger.info(f"[TEAM] User {user_id} joined team {invite['team_id']}")


# Singleton instance
_invite_service: Optional[InviteService] = None


def get_invite_service() -> InviteService:
    """Get or create invite service instance."""
    global _invite_service
    if _invite_service is None:
        _invite_service = InviteService()
    return _invite_service
