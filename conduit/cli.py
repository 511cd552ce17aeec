"""
CLI for launching the Conduit server.

Usage:
    conduit-serve
    conduit-serve --port 8080 --memory-dir ./memories --backend ollama
    python -m conduit --reload
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

import uvicorn

from conduit.config.settings import Settings
from conduit.logging_config import setup_logging


logger = logging.getLogger(__name__)

# CLI flag -> settings field; applied through the environment so that
# uvicorn's reload worker sees the same configuration
_OVERRIDES = {
    "host": "CONDUIT_HOST",
    "port": "CONDUIT_PORT",
    "memory_dir": "CONDUIT_MEMORY_DIR",
    "backend": "CONDUIT_INFERENCE_BACKEND",
    "log_level": "CONDUIT_LOG_LEVEL",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="conduit-serve",
        description="Launch the Conduit API server",
    )
    parser.add_argument("--host", type=str, default=None, help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Port to bind to (default: 3000)")
    parser.add_argument(
        "--memory-dir",
        type=str,
        default=None,
        help="Directory holding memory files (default: ~/.conduit/memories)",
    )
    parser.add_argument(
        "--backend",
        choices=["mock", "ollama", "none"],
        default=None,
        help="Inference backend (default: mock)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        default=None,
        help="Log level (default: INFO)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    return parser


def apply_overrides(args: argparse.Namespace) -> Settings:
    """Export given flags as CONDUIT_* variables and load the resulting settings."""
    for attr, env_name in _OVERRIDES.items():
        value = getattr(args, attr)
        if value is not None:
            os.environ[env_name] = str(value)
    return Settings()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = apply_overrides(args)
    setup_logging(settings.log_level)

    logger.info("Starting Conduit API server on %s:%s", settings.host, settings.port)
    logger.info("API documentation available at: http://%s:%s/docs", settings.host, settings.port)

    uvicorn.run(
        "conduit.api.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
