import logging
import sys

from outlet_erp.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the API process and scripts."""
    root = logging.getLogger()
    if getattr(root, "_outlet_erp_configured", False):
        return
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    if not settings.debug:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    root._outlet_erp_configured = True
