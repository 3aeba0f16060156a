"""Dashboard service entry point.

Usage:
    python -m daily_intelligence.main             # serve the HTTP API
    python -m daily_intelligence.main --export DIR  # write today's active view to DIR
"""

import asyncio
import logging
import sys
from datetime import datetime
from zoneinfo import ZoneInfo

import uvicorn

from .aggregation.labels import load_group_mapping
from .api import create_app
from .config import load_config
from .database import SupabaseClient
from .export import save_export
from .ui_state import DashboardController, InMemoryPreferencesStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger(__name__)


async def export_once(directory: str) -> None:
    """Load every processed article and export the active view under default filters."""
    config = load_config()
    logging.getLogger().setLevel(config.log_level.upper())
    tz = ZoneInfo(config.timezone)

    store = SupabaseClient(config.supabase_url, config.supabase_key)
    controller = DashboardController(
        store,
        InMemoryPreferencesStore(),
        page_size=config.page_size,
        clock=lambda: datetime.now(tz),
    )
    await controller.load()
    articles = controller.filtered()

    path = save_export(
        articles,
        directory,
        today=datetime.now(tz).date(),
        group_mapping=load_group_mapping(config.groups_file),
    )
    logger.info("Export written: %s (%d articles)", path, len(articles))


def serve() -> None:
    """Run the API with uvicorn."""
    config = load_config()
    logging.getLogger().setLevel(config.log_level.upper())
    logger.info("Starting dashboard on %s:%d (timezone %s)", config.host, config.port, config.timezone)
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_level=config.log_level.lower())


if __name__ == "__main__":
    if len(sys.argv) > 2 and sys.argv[1] == "--export":
        asyncio.run(export_once(sys.argv[2]))
    else:
        serve()
