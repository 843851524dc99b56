"""
Entry point for running the translation orchestrator.

Usage:
    python -m orchestrator

Starts the FastAPI server on HOST:PORT (default http://0.0.0.0:8000).
"""
import uvicorn

from logging_setup import setup_logging

from .config import get_config
from .server import create_app

if __name__ == "__main__":
    config = get_config()
    setup_logging(level=config.log_level, use_json=True)

    uvicorn.run(
        create_app(config=config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
