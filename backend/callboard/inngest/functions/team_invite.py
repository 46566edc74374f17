"""
Team Invite Email Function

Outbox consumer for callboard/team.invite.created: sends the invitation
through Resend and records email_status on the invite row. Delivery errors are
recorded, not raised, so the invite itself is never affected.
"""

import logging

from inngest import TriggerEvent

from callboard.inngest.client import inngest_client
from callboard.inngest.events import Events
from callboard.services.invite_service import get_invite_service

logger = logging.getLogger(__name__)


@inngest_client.create_function(
    fn_id="team-invite-email",
    trigger=TriggerEvent(event=Events.TEAM_INVITE_CREATED),
    retries=3,
)
async def team_invite_email_fn(ctx, step):
    invite_id = ctx.event.data["invite_id"]

    async def deliver():
        return await get_invite_service().deliver_invite_email(invite_id)

    result = await step.run("send-invite-email", deliver)
    logger.info(f"[TEAM] Invite {invite_id} email: {result.get('status')}")
    return result
