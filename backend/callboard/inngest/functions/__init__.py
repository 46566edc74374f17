"""
Inngest Functions Registry.

This module exports all Inngest functions for registration with the serve endpoint.
"""

from .notifications import low_balance_check_fn, balance_changed_fn
from .agent_sync import agent_sync_periodic_fn, agent_sync_requested_fn
from .team_invite import team_invite_email_fn

# All functions to register with Inngest
all_functions = [
    low_balance_check_fn,
    balance_changed_fn,
    agent_sync_periodic_fn,
    agent_sync_requested_fn,
    team_invite_email_fn,
]

__all__ = [
    "all_functions",
    "low_balance_check_fn",
    "balance_changed_fn",
    "agent_sync_periodic_fn",
    "agent_sync_requested_fn",
    "team_invite_email_fn",
]
