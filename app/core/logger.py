import logging
import sys
from app.core.config import settings

# httpx logs full request URLs at INFO; 2factor.in URLs carry the API key and the OTP
QUIET_LOGGERS = ("httpx", "httpcore", "razorpay", "urllib3")

def setup_logging():
    """
    Configure the application logger from LOG_LEVEL.
    """
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logger = logging.getLogger("gamca")
    logger.setLevel(level)
    logger.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))

    if not logger.handlers:
        logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger

logger = setup_logging()
