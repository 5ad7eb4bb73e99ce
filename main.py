#!/usr/bin/env python3
"""
Production entry point for bicifinder.

Serves the HTTP API, or with ``health`` as the first argument checks that the
configuration loads and the upstream vocabulary endpoint answers.
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
import time
from pathlib import Path

import structlog
import uvicorn

from bicifinder.config import Config, load_config
from bicifinder.errors import VocabularyUnavailableError
from bicifinder.observability import configure_logging
from bicifinder.service import BicycleSearchService
from bicifinder.web.main import create_app

logger = structlog.get_logger(__name__)


def _config() -> Config:
    config_path = os.getenv("BICIFINDER_CONFIG")
    return load_config(Path(config_path) if config_path else None)


async def health_check(config: Config) -> dict:
    """Perform health check for container orchestration."""
    try:
        async with BicycleSearchService(config) as service:
            brands = await service.brands()
        return {"status": "healthy", "timestamp": time.time(), "brands": len(brands)}
    except VocabularyUnavailableError as e:
        return {"status": "unhealthy", "timestamp": time.time(), "error": str(e)}


def main() -> None:
    """Main entry point."""
    config = _config()
    configure_logging(config.monitoring)

    if len(sys.argv) > 1 and sys.argv[1] == "health":
        health = asyncio.run(health_check(config))
        print(json.dumps(health, indent=2))
        sys.exit(0 if health["status"] == "healthy" else 1)

    logger.info("bicifinder API starting", host=config.web.host, port=config.web.port)
    uvicorn.run(create_app(config), host=config.web.host, port=config.web.port)


if __name__ == "__main__":
    main()
