"""
Event names and publishing.

Mutations publish events here; Inngest functions subscribe to them. This is
the single invalidation path for balance and agent changes.
"""

import logging
from typing import Any, Dict

import inngest

from callboard.inngest.client import inngest_client

logger = logging.getLogger(__name__)


class Events:
    """Event names (namespaced by app)."""
    BALANCE_CHANGED = "callboard/credits.balance.changed"
    AGENT_SYNC_REQUESTED = "callboard/agents.sync.requested"
    TEAM_INVITE_CREATED = "callboard/team.invite.created"


async def send_event(name: str, data: Dict[str, Any]) -> None:
    """Publish one event. Raises if Inngest rejects or is unreachable."""
    await inngest_client.send(inngest.Event(name=name, data=data))
    logger.debug(f"Sent event {name}")
