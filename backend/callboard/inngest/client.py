"""
Inngest client.

Production mode requires INNGEST_SIGNING_KEY / INNGEST_EVENT_KEY in the
environment; anything else talks to the local dev server.
"""

import logging

import inngest

from callboard.config import ENVIRONMENT, INNGEST_APP_ID

inngest_client = inngest.Inngest(
    app_id=INNGEST_APP_ID,
    logger=logging.getLogger("inngest"),
    is_production=ENVIRONMENT == "production",
)
