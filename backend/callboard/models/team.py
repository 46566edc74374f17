"""
Team invitation models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TeamRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"
    VIEWER = "viewer"


class InviteStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REVOKED = "revoked"


class EmailStatus(str, Enum):
    """Delivery state of the invite email (outbox)."""
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"


class InviteRequest(BaseModel):
    """Body of POST /api/team/invite. Fields are checked by the handler so a
    missing one yields the documented `missing fields` error."""
    team_id: Optional[str] = Field(None, alias="teamId")
    email: Optional[str] = None
    role: Optional[str] = None

    model_config = {"populate_by_name": True}


class AcceptRequest(BaseModel):
    token: Optional[str] = None
    user_id: Optional[str] = Field(None, alias="userId")

    model_config = {"populate_by_name": True}


class InviteCreated(BaseModel):
    invite_id: str
    token: str
    link: str
    expires_at: datetime
    warn: Optional[str] = None


class InvitationInfo(BaseModel):
    email: str
    role: str
    team_id: str
    team_name: str
    token: str
    expires_at: datetime
