"""
Callboard backend.

Credit pipeline, balance alerts, agent sync and team invitations for the
call-center analytics dashboard.
"""
