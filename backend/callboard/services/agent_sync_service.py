"""
Agent Sync Service

Mirrors the voice-AI provider's agent definitions into the local agents table.

Reconciliation policy:
- agents reported by the provider are created or updated locally, matched on
  retell_agent_id
- local agents the provider no longer reports are marked inactive, never
  deleted, so historical calls keep their agent reference

Every run writes one retell_sync_stats row: running -> completed | failed.
Both end states are terminal; a failed run is re-run in full, not resumed.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from callboard.config import CACHE_TTL_SECONDS
from callboard.database import get_supabase_service
from callboard.models.agents import Agent, AgentStatus, RetellAgent, SyncStats, SyncStatus
from callboard.services.retell_service import RetellService, get_retell_service
from callboard.utils.cache import TTLCache
from callboard.utils.errors import SyncError
from callboard.utils.retry import read_retry

logger = logging.getLogger(__name__)

SYNC_STATS_KEY = "agent-sync-stats"
UNASSIGNED_KEY = "unassigned-agents"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AgentSyncService:
    """Pulls agents from Retell and reconciles the local mirror."""

    def __init__(
        self,
        supabase=None,
        retell: Optional[RetellService] = None,
        cache: Optional[TTLCache] = None
    ):
        self.supabase = supabase if supabase is not None else get_supabase_service()
        self.retell = retell if retell is not None else get_retell_service()
        self.cache = cache if cache is not None else TTLCache(CACHE_TTL_SECONDS)

    # ==========================================
    # SYNC
    # ==========================================

    async def sync_now(self) -> SyncStats:
        """Run a sync and drop the cached stats / unassigned views."""
        logger.info("[AGENT_SYNC] Manual sync initiated...")
        try:
            return await self.sync_agents()
        finally:
            self.invalidate()

    async def sync_agents(self) -> SyncStats:
        """
        Run one full reconciliation.

        Raises:
            SyncError: the run was recorded as failed
        """
        started_at = _now()
        sync_id = self._create_sync_run(started_at)
        stats = {
            "total_agents_fetched": 0,
            "agents_created": 0,
            "agents_updated": 0,
            "agents_deactivated": 0,
        }

        try:
            remote_agents = await self.retell.list_agents()
            stats["total_agents_fetched"] = len(remote_agents)
            self._update_sync_run(sync_id, {"total_agents_fetched": len(remote_agents)})

            existing = self._load_mirrored_agents()
            fetched_ids = {a.agent_id for a in remote_agents}

            for remote in remote_agents:
                try:
                    local = existing.get(remote.agent_id)
                    if local:
                        self._update_agent(local, remote)
                        stats["agents_updated"] += 1
                    else:
                        self._create_agent(remote)
                        stats["agents_created"] += 1
                except Exception as e:
                    logger.error(f"[AGENT_SYNC] Error processing agent {remote.agent_id}: {e}")

            for retell_id, local in existing.items():
                if retell_id in fetched_ids or local.get("status") == AgentStatus.INACTIVE.value:
                    continue
                try:
                    self.supabase.table("agents").update({
                        "status": AgentStatus.INACTIVE.value,
                        "updated_at": _now(),
                    }).eq("id", local["id"]).execute()
                    stats["agents_deactivated"] += 1
                    logger.info(f"[AGENT_SYNC] Deactivated agent: {local.get('name')}")
                except Exception as e:
                    logger.error(f"[AGENT_SYNC] Error deactivating agent {retell_id}: {e}")

            completed_at = _now()
            self._update_sync_run(sync_id, {
                **stats,
                "sync_status": SyncStatus.COMPLETED.value,
                "sync_completed_at": completed_at,
            })

        except Exception as e:
            logger.error(f"[AGENT_SYNC] Synchronization failed: {e}")
            self._update_sync_run(sync_id, {
                "sync_status": SyncStatus.FAILED.value,
                "error_message": str(e),
                "sync_completed_at": _now(),
            })
            raise SyncError(f"Sync failed: {e}", sync_id=sync_id) from e

        logger.info(f"[AGENT_SYNC] Synchronization completed successfully: {stats}")
        return SyncStats(
            id=sync_id,
            sync_status=SyncStatus.COMPLETED,
            sync_started_at=started_at,
            sync_completed_at=completed_at,
            **stats,
        )

    def _create_sync_run(self, started_at: str) -> str:
        response = self.supabase.table("retell_sync_stats").insert({
            "sync_status": SyncStatus.RUNNING.value,
            "sync_started_at": started_at,
        }).execute()
        if not response.data:
            raise SyncError("Failed to create sync stats record")
        return str(response.data[0]["id"])

    def _update_sync_run(self, sync_id: str, updates: Dict[str, Any]) -> None:
        try:
            self.supabase.table("retell_sync_stats").update(updates).eq("id", sync_id).execute()
        except Exception as e:
            logger.error(f"[AGENT_SYNC] Error updating sync stats {sync_id}: {e}")

    def _load_mirrored_agents(self) -> Dict[str, Dict[str, Any]]:
        """Local agents that came from the provider, keyed by provider id."""
        response = self.supabase.table("agents").select(
            "id, name, status, retell_agent_id"
        ).execute()
        return {
            row["retell_agent_id"]: row
            for row in (response.data or [])
            if row.get("retell_agent_id")
        }

    def _agent_fields(self, remote: RetellAgent) -> Dict[str, Any]:
        now = _now()
        return {
            "retell_agent_id": remote.agent_id,
            "name": remote.agent_name or remote.agent_id,
            "voice_id": remote.voice_id,
            "language": remote.language or "en-US",
            "last_synced_at": now,
            "updated_at": now,
        }

    def _update_agent(self, local: Dict[str, Any], remote: RetellAgent) -> None:
        data = self._agent_fields(remote)
        # Reactivate agents the provider reports again; keep maintenance as set by admins
        if local.get("status") == AgentStatus.INACTIVE.value:
            data["status"] = AgentStatus.ACTIVE.value
        self.supabase.table("agents").update(data).eq("id", local["id"]).execute()
        logger.debug(f"[AGENT_SYNC] Updated agent: {data['name']}")

    def _create_agent(self, remote: RetellAgent) -> None:
        data = self._agent_fields(remote)
        data["status"] = AgentStatus.ACTIVE.value
        self.supabase.table("agents").insert(data).execute()
        logger.debug(f"[AGENT_SYNC] Created agent: {data['name']}")

    # ==========================================
    # VIEWS
    # ==========================================

    async def get_sync_stats(self, limit: int = 10) -> List[SyncStats]:
        key = (SYNC_STATS_KEY, limit)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        rows = await self._fetch_sync_stats(limit)
        stats = [SyncStats(**row) for row in rows]
        self.cache.set(key, stats)
        return stats

    @read_retry
    async def _fetch_sync_stats(self, limit: int) -> List[Dict[str, Any]]:
        response = self.supabase.table("retell_sync_stats").select("*").order(
            "sync_started_at", desc=True
        ).limit(limit).execute()
        return response.data or []

    async def get_unassigned_agents(self) -> List[Agent]:
        """Active agents not linked to any user."""
        cached = self.cache.get(UNASSIGNED_KEY)
        if cached is not None:
            return cached

        agents, assigned_ids = await self._fetch_agents_and_assignments()
        unassigned = [Agent(**a) for a in agents if a["id"] not in assigned_ids]

        logger.info(f"[AGENT_SYNC] Found {len(unassigned)} unassigned agents")
        self.cache.set(UNASSIGNED_KEY, unassigned)
        return unassigned

    @read_retry
    async def _fetch_agents_and_assignments(self):
        agents = self.supabase.table("agents").select("*").eq(
            "status", AgentStatus.ACTIVE.value
        ).execute()
        assignments = self.supabase.table("user_agent_assignments").select("agent_id").execute()
        assigned_ids = {row["agent_id"] for row in (assignments.data or [])}
        return agents.data or [], assigned_ids

    def invalidate(self) -> None:
        """Drop cached sync views (after a sync or an agent/assignment change)."""
        self.cache.invalidate()


# Singleton instance
_agent_sync_service: Optional[AgentSyncService] = None


def get_agent_sync_service() -> AgentSyncService:
    """Get or create agent sync service instance."""
    global _agent_sync_service
    if _agent_sync_service is None:
        _agent_sync_service = AgentSyncService()
    return _agent_sync_service
