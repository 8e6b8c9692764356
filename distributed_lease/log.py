# log.py

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def configure_logging(level: str = "INFO", log_file: Optional[str] = None):
    """
    Send lease logs to ``log_file`` if given, else to the console.

    Meant for entry points only; the library itself never configures logging.
    """
    if log_file:
        handler = logging.FileHandler(log_file)
    else:
        handler = logging.StreamHandler()
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[handler])
