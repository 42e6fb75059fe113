"""Omnipedia - AI-generated multimedia encyclopedia entries.

A topic goes through planning, two image stages, grounded component
enrichment, and concurrent video + narration generation. Entry points call
configure_logging() once at startup; library modules only create loggers.
"""

import logging
import os

__version__ = "0.1.0"

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for CLI and server entry points.

    Args:
        level: Logging level name. Defaults to OMNIPEDIA_LOG_LEVEL or INFO.
    """
    level_name = (level or os.environ.get("OMNIPEDIA_LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
    # google-genai and httpx are chatty at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("google_genai").setLevel(logging.WARNING)
    logger.debug("Logging configured at %s", level_name)
