#!/usr/bin/env python3
"""
Backend server runner script.

Starts the FastAPI server with configuration taken from the environment.
"""

import logging
import os
import sys

import uvicorn

from assessflow.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def main():
    """Run the backend server."""
    try:
        host = os.getenv("HOST", "0.0.0.0")
        port = int(os.getenv("PORT", 8000))
        reload_enabled = os.getenv("RELOAD", "false").lower() == "true"

        logger.info(f"Starting server on {host}:{port} (reload: {reload_enabled})")

        uvicorn.run(
            "assessflow.main:app",
            host=host,
            port=port,
            reload=reload_enabled,
            log_level=settings.LOG_LEVEL.lower()
        )

    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
