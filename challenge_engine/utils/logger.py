# challenge_engine/utils/logger.py
import logging
import sys
from challenge_engine.utils.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logger(name: str = "challenge_engine", level: str = settings.log_level) -> logging.Logger:
    """
    Stdout logger shared by the API, the nightly job and the services.
    Reconfiguring replaces the handler, so reloads never double-log.
    """
    configured = logging.getLogger(name)
    configured.setLevel(getattr(logging, level.upper(), logging.INFO))
    configured.handlers.clear()

    stream = logging.StreamHandler(sys.stdout)
    stream.setFormatter(logging.Formatter(LOG_FORMAT))
    configured.addHandler(stream)

    # Records stop here; uvicorn and pytest install their own root handlers
    configured.propagate = False
    return configured


logger = configure_logger()
