"""Root logger setup from LOG_LEVEL / LOG_FILE. Called once from the app lifespan."""
from __future__ import annotations

import logging
import os

from tandem.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings | None = None) -> None:
    """Set root level and handlers. Console always; file only when LOG_FILE is set."""
    settings = settings or get_settings()
    level = getattr(logging, (settings.LOG_LEVEL or "INFO").upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.LOG_FILE:
        try:
            os.makedirs(os.path.dirname(settings.LOG_FILE) or ".", exist_ok=True)
            handlers.append(logging.FileHandler(settings.LOG_FILE, encoding="utf-8"))
        except OSError as e:
            logging.getLogger(__name__).warning("Log file %s unavailable: %s", settings.LOG_FILE, e)
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
