"""Logging setup for the AskMyMoney API and its scripts.

Application modules log through ``logging.getLogger(__name__)``.  This
module owns the root handler and caps the SDK loggers (Plaid transport,
Stripe, MCP, SQLAlchemy) that would otherwise flood DEBUG output with
request bodies and per-statement SQL.
"""

import logging

from config import settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Lowest level each third-party logger may emit at.
QUIET_LOGGERS: dict[str, int] = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "urllib3": logging.WARNING,
    "stripe": logging.WARNING,
    "mcp.server.lowlevel.server": logging.WARNING,
    "mcp.server.streamable_http_manager": logging.WARNING,
}


def setup_logging(level: str | None = None) -> None:
    """Install the root handler and cap the SDK loggers.

    Args:
        level: Level name overriding ``settings.LOG_LEVEL``; the CLI
            scripts pass ``"WARNING"`` to keep prompts readable.
    """
    root_level = getattr(logging, (level or settings.LOG_LEVEL).upper())
    logging.basicConfig(format=LOG_FORMAT, datefmt=DATE_FORMAT, level=root_level, force=True)

    for name, floor in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(floor, root_level))
