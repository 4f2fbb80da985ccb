"""Entry point for the GitHub Copilot MCP server (stdio transport)."""

import asyncio
import logging
import os
import platform
import sys

from pydantic import ValidationError

from . import __version__
from .config import Settings, get_settings
from .connectors.copilot import CopilotService
from .connectors.github_client import GitHubClient
from .mcp.server import CopilotMCPServer
from .observability.logging import configure_logging
from .runtime import get_docker_info

logger = logging.getLogger(__name__)


async def serve(settings: Settings):
    """Build the client, service and MCP server, then serve until EOF."""
    client = GitHubClient.from_settings(settings)
    service = CopilotService(
        client,
        max_attempts=settings.retry_max_attempts,
        base_delay=settings.retry_base_delay,
    )
    server = CopilotMCPServer(service, name=settings.app_name, version=__version__)

    try:
        await server.run_stdio()
    finally:
        await client.aclose()
        logger.info("GitHub client closed")


def main():
    configure_logging(
        environment=os.getenv("ENVIRONMENT", "development"),
        log_level=os.getenv("LOG_LEVEL", "info"),
    )

    try:
        settings = get_settings()
    except ValidationError as exc:
        logger.error("Configuration validation failed: %s", exc)
        sys.exit(1)

    configure_logging(environment=settings.environment, log_level=settings.log_level)
    logger.info(
        "Server startup information",
        extra={
            "context": {
                "version": __version__,
                "auth_mode": settings.auth_mode,
                "log_level": settings.log_level,
                "api_timeout": settings.api_timeout,
                "docker": get_docker_info(),
                "python_version": platform.python_version(),
                "platform": sys.platform,
            }
        },
    )

    try:
        asyncio.run(serve(settings))
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
