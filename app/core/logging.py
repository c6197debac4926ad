import logging

from app.core.config import settings

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(level: str = None):
    """Configure root logging once for the API process."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()],
    )
    # SQL echo is controlled by the engine, keep the driver quiet
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
