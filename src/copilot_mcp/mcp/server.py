"""MCP server exposing the Copilot service as tools, a docs resource and a report prompt."""

import json
import logging
import uuid
from datetime import date, timedelta
from typing import Any, Callable, Dict, List, Optional

from mcp import types
from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server

from ..connectors.copilot import DEFAULT_PAGE, DEFAULT_PER_PAGE, CopilotService
from ..connectors.exceptions import (
    ClassifiedError,
    ErrorKind,
    NotFoundError,
    RateLimitedError,
    ValidationFailure,
)
from ..observability.logging import clear_log_context, set_log_context

logger = logging.getLogger(__name__)

SERVER_NAME = "github-copilot-metrics"
DOCS_URI = "copilot://docs"
REPORT_PROMPT = "copilot-usage-report"
DEFAULT_RANGE_DAYS = 30

DOCS_TEXT = """GitHub Copilot MCP Server

This server provides tools for managing GitHub Copilot metrics and user management.

Available Tools:
- get_copilot_usage_org: Get usage metrics for an organization
- get_copilot_usage_enterprise: Get usage metrics for an enterprise
- list_copilot_seats: List all Copilot seats in an organization
- add_copilot_seats: Add Copilot seats for users
- remove_copilot_seats: Remove Copilot seats for users
- get_copilot_seat_details: Get seat details for a specific user

Authentication:
Set GITHUB_TOKEN with a GitHub personal access token
OR
Set GITHUB_APP_ID, GITHUB_PRIVATE_KEY and GITHUB_INSTALLATION_ID for GitHub App authentication

Required Permissions:
- Personal access token: 'manage_billing:copilot' and 'read:org' scopes
- GitHub App: 'Copilot Business' organization permission (read/write as needed)

Configuration:
- LOG_LEVEL: error, warn, info or debug
- API_TIMEOUT: API request timeout in milliseconds
- RETRY_MAX_ATTEMPTS / RETRY_BASE_DELAY: retry policy for GitHub API calls
"""

REPORT_TEMPLATE = """Analyze the following GitHub Copilot usage data for {entity_name} and generate a comprehensive report including:

1. Summary of total usage metrics
2. Active users and seat utilization
3. Trends and insights
4. Recommendations for optimization

Usage Data:
{usage_data}

Please provide actionable insights and recommendations based on this data."""

_PAGINATION_PROPERTIES = {
    "page": {
        "type": "integer",
        "minimum": 1,
        "default": DEFAULT_PAGE,
        "description": "Page number for pagination",
    },
    "per_page": {
        "type": "integer",
        "minimum": 1,
        "maximum": 100,
        "default": DEFAULT_PER_PAGE,
        "description": "Number of results per page (max 100)",
    },
}

_DATE_RANGE_PROPERTIES = {
    "since": {"type": "string", "description": "Start date (YYYY-MM-DD format)"},
    "until": {"type": "string", "description": "End date (YYYY-MM-DD format)"},
}

_ORG_PROPERTY = {"org": {"type": "string", "description": "The organization name"}}

_USERNAMES_PROPERTY = {
    "selected_usernames": {
        "type": "array",
        "items": {"type": "string"},
        "minItems": 1,
        "description": "GitHub usernames",
    }
}


class ToolExecutionError(Exception):
    """User-facing tool failure; the MCP SDK reports it as an error result."""

    pass


def translate_error(exc: Exception) -> ToolExecutionError:
    """Turn a service error into the message shown to the MCP client."""
    if isinstance(exc, ValidationFailure):
        return ToolExecutionError(f"Invalid input: {exc.message}")

    if isinstance(exc, RateLimitedError):
        hint = (
            f" Please try again in {exc.retry_after} seconds."
            if exc.retry_after
            else " Please try again later."
        )
        return ToolExecutionError(f"Rate limit exceeded.{hint}")

    if isinstance(exc, ClassifiedError):
        if exc.kind in (ErrorKind.UNAUTHORIZED, ErrorKind.FORBIDDEN, ErrorKind.NOT_FOUND):
            return ToolExecutionError(exc.message)
        return ToolExecutionError(f"GitHub API error: {exc.message}")

    return ToolExecutionError(f"Unexpected error: {exc}")


def default_date_range(today: date, days: int = DEFAULT_RANGE_DAYS) -> Dict[str, str]:
    """``since``/``until`` covering the last ``days`` days up to ``today``."""
    return {
        "since": (today - timedelta(days=days)).isoformat(),
        "until": today.isoformat(),
    }


class CopilotMCPServer:
    """Binds ``CopilotService`` operations to MCP protocol handlers."""

    def __init__(
        self,
        service: CopilotService,
        today: Callable[[], date] = date.today,
        name: str = SERVER_NAME,
        version: Optional[str] = None,
    ):
        self.service = service
        self.today = today
        self.server = Server(name, version=version)
        self._handlers = {
            "get_copilot_usage_org": self._get_usage_org,
            "get_copilot_usage_enterprise": self._get_usage_enterprise,
            "list_copilot_seats": self._list_seats,
            "add_copilot_seats": self._add_seats,
            "remove_copilot_seats": self._remove_seats,
            "get_copilot_seat_details": self._get_seat_details,
        }
        self._setup_handlers()

    def _setup_handlers(self):
        """Set up MCP protocol handlers."""

        @self.server.list_tools()
        async def handle_list_tools() -> List[types.Tool]:
            return self.list_tools()

        @self.server.call_tool()
        async def handle_call_tool(
            name: str, arguments: Optional[Dict[str, Any]] = None
        ) -> List[types.TextContent]:
            text = await self.call_tool(name, arguments or {})
            return [types.TextContent(type="text", text=text)]

        @self.server.list_resources()
        async def handle_list_resources() -> List[types.Resource]:
            return self.list_resources()

        @self.server.read_resource()
        async def handle_read_resource(uri) -> List[ReadResourceContents]:
            return [
                ReadResourceContents(
                    content=self.read_resource(str(uri)), mime_type="text/plain"
                )
            ]

        @self.server.list_prompts()
        async def handle_list_prompts() -> List[types.Prompt]:
            return self.list_prompts()

        @self.server.get_prompt()
        async def handle_get_prompt(
            name: str, arguments: Optional[Dict[str, str]] = None
        ) -> types.GetPromptResult:
            return self.get_prompt(name, arguments or {})

    async def run_stdio(self):
        """Serve over stdin/stdout until the client disconnects."""
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options(),
            )

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def list_tools(self) -> List[types.Tool]:
        return [
            types.Tool(
                name="get_copilot_usage_org",
                description=(
                    "Retrieve GitHub Copilot usage metrics for an organization. "
                    "Optionally specify 'since' and 'until' dates; defaults to the "
                    "last 30 days. Falls back to seat information if usage metrics "
                    "are not available."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {**_ORG_PROPERTY, **_DATE_RANGE_PROPERTIES, **_PAGINATION_PROPERTIES},
                    "required": ["org"],
                },
                annotations=types.ToolAnnotations(
                    title="Get Copilot Usage Metrics for Organization",
                    readOnlyHint=True,
                    openWorldHint=True,
                ),
            ),
            types.Tool(
                name="get_copilot_usage_enterprise",
                description=(
                    "Retrieve GitHub Copilot usage metrics for an enterprise. "
                    "Optionally specify 'since' and 'until' dates."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "enterprise": {"type": "string", "description": "The enterprise slug"},
                        **_DATE_RANGE_PROPERTIES,
                        **_PAGINATION_PROPERTIES,
                    },
                    "required": ["enterprise"],
                },
                annotations=types.ToolAnnotations(
                    title="Get Copilot Usage Metrics for Enterprise",
                    readOnlyHint=True,
                    openWorldHint=True,
                ),
            ),
            types.Tool(
                name="list_copilot_seats",
                description="List all GitHub Copilot seats for an organization",
                inputSchema={
                    "type": "object",
                    "properties": {**_ORG_PROPERTY, **_PAGINATION_PROPERTIES},
                    "required": ["org"],
                },
                annotations=types.ToolAnnotations(
                    title="List Copilot Seats", readOnlyHint=True, openWorldHint=True
                ),
            ),
            types.Tool(
                name="add_copilot_seats",
                description="Add GitHub Copilot seats for specified users in an organization",
                inputSchema={
                    "type": "object",
                    "properties": {**_ORG_PROPERTY, **_USERNAMES_PROPERTY},
                    "required": ["org", "selected_usernames"],
                },
                annotations=types.ToolAnnotations(
                    title="Add Copilot Seats for Users",
                    readOnlyHint=False,
                    openWorldHint=True,
                ),
            ),
            types.Tool(
                name="remove_copilot_seats",
                description="Remove GitHub Copilot seats for specified users in an organization",
                inputSchema={
                    "type": "object",
                    "properties": {**_ORG_PROPERTY, **_USERNAMES_PROPERTY},
                    "required": ["org", "selected_usernames"],
                },
                annotations=types.ToolAnnotations(
                    title="Remove Copilot Seats for Users",
                    readOnlyHint=False,
                    destructiveHint=True,
                    openWorldHint=True,
                ),
            ),
            types.Tool(
                name="get_copilot_seat_details",
                description="Get GitHub Copilot seat details for a specific user",
                inputSchema={
                    "type": "object",
                    "properties": {
                        **_ORG_PROPERTY,
                        "username": {
                            "type": "string",
                            "description": "The username to get seat details for",
                        },
                    },
                    "required": ["org", "username"],
                },
                annotations=types.ToolAnnotations(
                    title="Get Copilot Seat Details for User",
                    readOnlyHint=True,
                    openWorldHint=True,
                ),
            ),
        ]

    async def call_tool(self, name: str, arguments: Dict[str, Any]) -> str:
        """Execute a tool and return its JSON text, or raise ``ToolExecutionError``."""
        handler = self._handlers.get(name)
        if handler is None:
            raise ToolExecutionError(f"Unknown tool: {name}")

        set_log_context(tool_name=name, request_id=uuid.uuid4().hex[:8])
        try:
            logger.info("Executing tool: %s", name)
            result = await handler(arguments)
            logger.info("Tool executed successfully: %s", name)
            return json.dumps(result, indent=2)
        except Exception as exc:
            logger.error(
                "Tool execution failed: %s",
                name,
                extra={"context": {"error": str(exc), "type": type(exc).__name__}},
            )
            raise translate_error(exc) from exc
        finally:
            clear_log_context()

    async def _get_usage_org(self, arguments: Dict[str, Any]) -> Any:
        org = arguments.get("org")
        since = arguments.get("since")
        until = arguments.get("until")
        page = arguments.get("page", DEFAULT_PAGE)
        per_page = arguments.get("per_page", DEFAULT_PER_PAGE)

        if not since and not until:
            date_range = default_date_range(self.today())
            since, until = date_range["since"], date_range["until"]

        try:
            return await self.service.get_usage_for_org(
                org, since=since, until=until, page=page, per_page=per_page
            )
        except NotFoundError:
            logger.info(
                "Usage metrics not available, falling back to seat information",
                extra={"context": {"org": org}},
            )
            seats = await self.service.get_seats_for_org(org, page=page, per_page=per_page)
            return {
                "note": (
                    "Usage metrics not available for this organization. "
                    "Showing seat information instead."
                ),
                "organization": org,
                "requested_period": (
                    f"{since} to {until}" if since and until else "Last 30 days (not available)"
                ),
                "seats_data": seats,
            }

    async def _get_usage_enterprise(self, arguments: Dict[str, Any]) -> Any:
        return await self.service.get_usage_for_enterprise(
            arguments.get("enterprise"),
            since=arguments.get("since"),
            until=arguments.get("until"),
            page=arguments.get("page", DEFAULT_PAGE),
            per_page=arguments.get("per_page", DEFAULT_PER_PAGE),
        )

    async def _list_seats(self, arguments: Dict[str, Any]) -> Any:
        return await self.service.get_seats_for_org(
            arguments.get("org"),
            page=arguments.get("page", DEFAULT_PAGE),
            per_page=arguments.get("per_page", DEFAULT_PER_PAGE),
        )

    async def _add_seats(self, arguments: Dict[str, Any]) -> Any:
        return await self.service.add_seats_for_users(
            arguments.get("org"), arguments.get("selected_usernames")
        )

    async def _remove_seats(self, arguments: Dict[str, Any]) -> Any:
        return await self.service.remove_seats_for_users(
            arguments.get("org"), arguments.get("selected_usernames")
        )

    async def _get_seat_details(self, arguments: Dict[str, Any]) -> Any:
        return await self.service.get_seat_details(
            arguments.get("org"), arguments.get("username")
        )

    # ------------------------------------------------------------------
    # Resources & prompts
    # ------------------------------------------------------------------

    def list_resources(self) -> List[types.Resource]:
        return [
            types.Resource(
                uri=DOCS_URI,
                name="GitHub Copilot Documentation",
                mimeType="text/plain",
            )
        ]

    def read_resource(self, uri: str) -> str:
        if uri.rstrip("/") != DOCS_URI:
            raise ValueError(f"Unknown resource: {uri}")
        return DOCS_TEXT

    def list_prompts(self) -> List[types.Prompt]:
        return [
            types.Prompt(
                name=REPORT_PROMPT,
                description="Generate a comprehensive Copilot usage report",
                arguments=[
                    types.PromptArgument(
                        name="usage_data",
                        description="Copilot usage data in JSON format",
                        required=True,
                    ),
                    types.PromptArgument(
                        name="entity_name",
                        description="Organization or enterprise name",
                        required=True,
                    ),
                ],
            )
        ]

    def get_prompt(self, name: str, arguments: Dict[str, str]) -> types.GetPromptResult:
        if name != REPORT_PROMPT:
            raise ValueError(f"Unknown prompt: {name}")

        missing = [k for k in ("usage_data", "entity_name") if not arguments.get(k)]
        if missing:
            raise ValueError(f"Missing required prompt arguments: {', '.join(missing)}")

        text = REPORT_TEMPLATE.format(
            entity_name=arguments["entity_name"], usage_data=arguments["usage_data"]
        )
        return types.GetPromptResult(
            description="Generate a comprehensive Copilot usage report",
            messages=[
                types.PromptMessage(
                    role="user", content=types.TextContent(type="text", text=text)
                )
            ],
        )
