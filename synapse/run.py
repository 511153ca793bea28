"""
Serve the Synapse HTTP API with uvicorn.

Usage:
    python -m synapse.run
"""

from __future__ import annotations

import os
import sys

import uvicorn
from loguru import logger

from .config import config
from .utils.log import configure_logging


def main() -> None:
    configure_logging()

    problems = config.validate()
    if problems:
        for problem in problems:
            logger.error(problem)
        logger.error("Please create a .env file with your AI gateway settings")
        sys.exit(1)

    uvicorn.run(
        "synapse.api.app:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=config.logging.log_level.lower(),
    )


if __name__ == "__main__":
    main()
