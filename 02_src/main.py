"""Main entry point for the dmchat reference game server."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from dmchat.api import create_fastapi_app
from dmchat.logging_config import setup_logging


def main():
    """Run the game server."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")

    setup_logging()

    # Get configuration from environment
    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))

    app = create_fastapi_app()

    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
