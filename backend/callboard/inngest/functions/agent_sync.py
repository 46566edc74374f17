"""
Agent Sync Functions

Periodic and on-demand reconciliation of Retell agents. A failed run is
recorded on its retell_sync_stats row and not retried; the next tick (or the
next request) runs the whole sync again.
"""

import logging

from inngest import TriggerCron, TriggerEvent

from callboard.inngest.client import inngest_client
from callboard.inngest.events import Events
from callboard.services.agent_sync_service import get_agent_sync_service

logger = logging.getLogger(__name__)


async def _run_sync() -> dict:
    stats = await get_agent_sync_service().sync_now()
    return stats.model_dump(mode="json")


@inngest_client.create_function(
    fn_id="agent-sync-periodic",
    trigger=TriggerCron(cron="*/5 * * * *"),  # Every 5 minutes
    retries=0,
)
async def agent_sync_periodic_fn(ctx, step):
    service = get_agent_sync_service()
    if not service.retell.is_configured():
        logger.info("[AGENT_SYNC] Retell not configured, skipping periodic sync")
        return {"status": "skipped"}

    stats = await step.run("sync-agents", _run_sync)
    return {"status": "ok", "stats": stats}


@inngest_client.create_function(
    fn_id="agent-sync-requested",
    trigger=TriggerEvent(event=Events.AGENT_SYNC_REQUESTED),
    retries=0,
)
async def agent_sync_requested_fn(ctx, step):
    """Background sync requested from the admin panel."""
    logger.info(f"[AGENT_SYNC] Sync requested by {ctx.event.data.get('requested_by', 'unknown')}")
    stats = await step.run("sync-agents", _run_sync)
    return {"status": "ok", "stats": stats}
