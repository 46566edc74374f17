"""
Agent, assignment and sync-run models.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class AgentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class SyncStatus(str, Enum):
    """Lifecycle of a sync run: running -> completed | failed (both terminal)."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Agent(BaseModel):
    id: str
    name: str
    status: AgentStatus = AgentStatus.ACTIVE
    rate_per_minute: Optional[Decimal] = None
    retell_agent_id: Optional[str] = None
    company_id: Optional[str] = None
    last_synced_at: Optional[datetime] = None


class RetellAgent(BaseModel):
    """Agent definition as reported by the provider's list-agents API."""
    agent_id: str
    agent_name: Optional[str] = None
    voice_id: Optional[str] = None
    language: Optional[str] = None
    response_engine: Optional[Any] = None

    model_config = {"extra": "ignore"}


class SyncStats(BaseModel):
    id: str
    sync_status: SyncStatus
    total_agents_fetched: int = 0
    agents_created: int = 0
    agents_updated: int = 0
    agents_deactivated: int = 0
    sync_started_at: Optional[datetime] = None
    sync_completed_at: Optional[datetime] = None
    error_message: Optional[str] = None


class UserAgentAssignment(BaseModel):
    id: str
    user_id: str
    agent_id: str
    company_id: Optional[str] = None
    is_primary: bool = False
    assigned_at: Optional[datetime] = None


class AssignmentCreateRequest(BaseModel):
    user_id: str
    agent_id: str
    is_primary: bool = False


class PrimaryUpdateRequest(BaseModel):
    user_id: str
    is_primary: bool = True
