"""
Entry point for running the gateway as a module.

Usage:
    python -m talking_character.server
"""

import uvicorn

from ..config import load_config
from ..utils.logger import setup_logging


def main():
    """Start the server."""
    settings = load_config()
    setup_logging(settings.logging.level)

    uvicorn.run(
        "talking_character.server.app:app",
        host=settings.server.host,
        port=settings.server.port,
    )


if __name__ == "__main__":
    main()
