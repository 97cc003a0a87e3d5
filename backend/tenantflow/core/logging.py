import logging
import sys

from tenantflow.core.settings import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> None:
    """Configure the root logger once per process."""
    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL)
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    if settings.is_production:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
