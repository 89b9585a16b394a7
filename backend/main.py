"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import billing, plaid, webhooks
from config import settings
from logging_config import setup_logging
from mcp_tools import mcp

setup_logging()
logger = logging.getLogger(__name__)

mcp_app = mcp.streamable_http_app()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the MCP session manager for the lifetime of the app."""
    if not settings.PLAID_VERIFY_WEBHOOKS:
        logger.warning("PLAID_VERIFY_WEBHOOKS is off; unsigned webhooks will be accepted")
    async with mcp.session_manager.run():
        yield


app = FastAPI(
    title="AskMyMoney",
    description="Bank account linking and plan management for the AskMyMoney MCP tools",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.BASE_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(plaid.router)
app.include_router(webhooks.router)
app.include_router(billing.router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


# Mounted last so the API routes above take precedence; serves /mcp and
# the OAuth protected-resource metadata.
app.mount("/", mcp_app)
