from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level for the `tenantauth` logger tree.

    Notes:
    - Uvicorn already configures handlers; this only sets levels for our package.
    - `APP_LOG_LEVEL=DEBUG` shows cache hits/misses and every permission decision.
    """

    normalized = level.upper()
    logger = logging.getLogger("tenantauth")
    logger.setLevel(normalized)
    logger.propagate = True

    # The context cache already logs one warning per degraded call.
    logging.getLogger("redis").setLevel(logging.WARNING)
