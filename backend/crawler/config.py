"""
Engine configuration.

Every setting can be overridden with a CRAWLER_* environment variable.
"""

import os
from pathlib import Path

# Database settings
DATABASE_URL = os.getenv("CRAWLER_DATABASE_URL", "sqlite+aiosqlite:///./crawler.db")
DATABASE_ECHO = os.getenv("CRAWLER_DATABASE_ECHO", "0") == "1"

# Content directories
WORLD_DATA_DIR = os.getenv(
    "CRAWLER_WORLD_DATA_DIR",
    str(Path(__file__).parent / "world_data"),
)

# Game settings
STARTING_ROOM = os.getenv("CRAWLER_STARTING_ROOM", "entrance_plaza")
DEFAULT_PLAYER_NAME = "Unnamed Crawler"
EVENT_LOG_LIMIT = int(os.getenv("CRAWLER_EVENT_LOG_LIMIT", "20"))

# Logging
LOG_LEVEL = os.getenv("CRAWLER_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
