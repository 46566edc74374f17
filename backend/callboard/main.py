"""
Callboard - FastAPI Application

Main entry point for the Callboard backend.

Surfaces:
- /api/credits: balance view, balance check, call charging, cost estimate
- /api/admin: balance adjustments, low-balance alerts, agent sync
- /api/agents: user/agent assignments
- /api/team: invitations
- /api/inngest: background functions (cron + events)
"""

import logging

import inngest.fast_api
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from callboard.config import CORS_ORIGINS, ENVIRONMENT, LOG_LEVEL
from callboard.inngest.client import inngest_client
from callboard.inngest.functions import all_functions
from callboard.routers import admin, agents, credits, team

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Callboard API",
    description="Credit pipeline, balance alerts, agent sync and team invitations",
    version="1.0.0",
    docs_url="/docs" if ENVIRONMENT != "production" else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(credits.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
app.include_router(agents.router, prefix="/api")
app.include_router(team.router, prefix="/api")

# Inngest serve endpoint (/api/inngest)
inngest.fast_api.serve(app, inngest_client, all_functions)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": ENVIRONMENT}


# For running with: python -m callboard.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
