#!/usr/bin/env python3
"""
Selection server runner script.

This script starts the FastAPI server with the configured host and port.
"""

import sys

import uvicorn

from examselect.common.config import get_config
from examselect.common.logger import app_logger

logger = app_logger.getChild("scripts.run_server")


def main():
    """Run the selection server."""
    try:
        api = get_config().api
        logger.info(f"Starting server on {api.host}:{api.port} (reload: {api.reload})")

        uvicorn.run(
            "examselect.main:app",
            host=api.host,
            port=api.port,
            reload=api.reload,
            log_level="info"
        )

    except Exception as e:
        logger.error(f"Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
