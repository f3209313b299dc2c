"""Package configuration and constants."""
import logging
import os

# Secrets
SECRET_CACHE_TTL = 3600  # 1 hour
DEFAULT_DRIVE_CREDENTIALS_SECRET = "GDRIVE_CREDENTIALS"

# Logging (CLI only; the library itself never configures handlers)
LOG_LEVEL = os.environ.get("STORAGE_LOG_LEVEL", "WARNING").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = LOG_LEVEL):
    """Set up root logging for command-line use."""
    logging.basicConfig(level=getattr(logging, level, logging.WARNING), format=LOG_FORMAT)
