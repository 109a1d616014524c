# orderdesk/logging_config.py
"""Process-wide logging setup, called once when the app module is imported."""
import logging
import os
import sys


def setup_logging(level=None):
    """
    Configures the root logger for the service.

    Level comes from ``LOG_LEVEL`` (default INFO) unless given. Output goes to
    stdout so container runtimes pick it up. The psycopg pool is kept at
    WARNING because it logs every connection checkout at INFO.
    """
    level = level or os.getenv("LOG_LEVEL", "INFO").upper()
    log_format = "%(asctime)s - %(levelname)s - [PID:%(process)d] - %(name)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)
