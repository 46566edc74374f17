"""
Team Router - invitations

Responses use a flat `{error: ...}` body so the accept page and the invite
modal can show the message as-is:
- 400 validation (including malformed bodies), unknown team, invalid/expired invite
- 402 seat limit reached
- 500 anything unexpected
"""

import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from callboard.deps import get_user_context
from callboard.models.context import UserContext
from callboard.services.invite_service import (
    InviteError,
    get_invite_service,
    parse_accept_payload,
    parse_invite_payload,
)
from callboard.utils.errors import raise_forbidden

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/team", tags=["team"])


def _error(message: str, status_code: int, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={**extra, "error": message})


async def _read_json(request: Request) -> Any:
    """Raw body as JSON; an empty body reads as None."""
    body = await request.body()
    if not body.strip():
        return None
    try:
        return json.loads(body)
    except ValueError:
        raise InviteError("invalid JSON body")


@router.post("/invite")
async def create_invite(
    request: Request,
    ctx: UserContext = Depends(get_user_context)
):
    """Create an invite; the email goes out in the background."""
    try:
        data = parse_invite_payload(await _read_json(request))
        invite = await get_invite_service().create_invite(data, invited_by=ctx.user_id)
    except InviteError as e:
        return _error(e.message, e.status_code)
    except Exception as e:
        logger.error(f"[TEAM] Invite failed: {e}", exc_info=True)
        return _error(str(e) or "internal", 500)

    body = {"ok": True, "link": invite.link}
    if invite.warn:
        body["warn"] = invite.warn
    return body


@router.get("/check")
async def check_invite(token: str = ""):
    """Public: is this invite token usable?"""
    if not token:
        return _error("missing token", 400, valid=False)
    try:
        return await get_invite_service().check_invite(token)
    except Exception as e:
        logger.error(f"[TEAM] Invite check failed: {e}", exc_info=True)
        return _error(str(e) or "internal", 500, valid=False)


@router.post("/accept")
async def accept_invite(
    request: Request,
    ctx: UserContext = Depends(get_user_context)
):
    try:
        data = parse_accept_payload(await _read_json(request))
    except InviteError as e:
        return _error(e.message, e.status_code)

    if data.user_id and data.user_id != ctx.user_id:
        raise_forbidden("Invites can only be accepted for your own account")

    try:
        await get_invite_service().accept_invite(data.token, data.user_id)
    except InviteError as e:
        return _error(e.message, e.status_code)
    except Exception as e:
        logger.error(f"[TEAM] Invite accept failed: {e}", exc_info=True)
        return _error(str(e) or "internal", 500)

    return {"ok": True}
