"""GitHub Copilot service layer.

Each operation validates its inputs, wraps the upstream call in
``retry_with_backoff`` and classifies whatever escapes, so callers only
ever see ``ValidationFailure`` or ``ClassifiedError``. Successful upstream
responses are returned unmodified.

API reference: https://docs.github.com/en/rest/copilot
"""

import logging
from typing import Any, Awaitable, Callable, List, Optional

import httpx

from .classifier import classify
from .github_client import GitHubClient
from .retry import DEFAULT_BASE_DELAY, DEFAULT_MAX_ATTEMPTS, retry_with_backoff
from .validation import (
    validate_optional_dates,
    validate_organization_name,
    validate_pagination_params,
    validate_username,
    validate_usernames,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_PER_PAGE = 50


class CopilotService:
    """Copilot usage metrics and seat management for organizations and enterprises."""

    def __init__(
        self,
        client: GitHubClient,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        log: Optional[logging.Logger] = None,
    ):
        self.client = client
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.log = log or logger

    async def _call(
        self, operation_name: str, fn: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Run one upstream call under the retry policy."""

        async def _attempt():
            try:
                return await fn()
            except httpx.HTTPError as exc:
                # Classify per attempt so the retry predicate sees the error kind
                classify(exc, operation_name, log=self.log)

        try:
            return await retry_with_backoff(
                _attempt,
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                operation_name=operation_name,
                log=self.log,
            )
        except Exception as exc:
            classify(exc, operation_name, log=self.log)

    # ------------------------------------------------------------------
    # Usage metrics
    # ------------------------------------------------------------------

    async def get_usage_for_org(
        self,
        org: str,
        since: Optional[str] = None,
        until: Optional[str] = None,
        page: int = DEFAULT_PAGE,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> Any:
        """GET /orgs/{org}/copilot/metrics"""
        validate_organization_name(org)
        validate_pagination_params(page, per_page)
        validate_optional_dates(since=since, until=until)

        self.log.info(
            "Getting Copilot usage for organization",
            extra={
                "context": {
                    "org": org,
                    "since": since,
                    "until": until,
                    "page": page,
                    "per_page": per_page,
                }
            },
        )
        return await self._call(
            f"get Copilot usage for org {org}",
            lambda: self.client.usage_metrics_for_org(
                org, since=since, until=until, page=page, per_page=per_page
            ),
        )

    async def get_usage_for_enterprise(
        self,
        enterprise: str,
        since: Optional[str] = None,
        until: Optional[str] = None,
        page: int = DEFAULT_PAGE,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> Any:
        """GET /enterprises/{enterprise}/copilot/metrics"""
        # Enterprise slugs follow the organization naming rules
        validate_organization_name(enterprise, field="enterprise")
        validate_pagination_params(page, per_page)
        validate_optional_dates(since=since, until=until)

        self.log.info(
            "Getting Copilot usage for enterprise",
            extra={
                "context": {
                    "enterprise": enterprise,
                    "since": since,
                    "until": until,
                    "page": page,
                    "per_page": per_page,
                }
            },
        )
        return await self._call(
            f"get Copilot usage for enterprise {enterprise}",
            lambda: self.client.usage_metrics_for_enterprise(
                enterprise, since=since, until=until, page=page, per_page=per_page
            ),
        )

    # ------------------------------------------------------------------
    # Seat management
    # ------------------------------------------------------------------

    async def get_seats_for_org(
        self, org: str, page: int = DEFAULT_PAGE, per_page: int = DEFAULT_PER_PAGE
    ) -> Any:
        """GET /orgs/{org}/copilot/billing/seats"""
        validate_organization_name(org)
        validate_pagination_params(page, per_page)

        self.log.info(
            "Getting Copilot seats for organization",
            extra={"context": {"org": org, "page": page, "per_page": per_page}},
        )
        return await self._call(
            f"get Copilot seats for org {org}",
            lambda: self.client.list_seats(org, page=page, per_page=per_page),
        )

    async def add_seats_for_users(self, org: str, selected_usernames: List[str]) -> Any:
        """POST /orgs/{org}/copilot/billing/selected_users"""
        validate_organization_name(org)
        validate_usernames(selected_usernames)

        self.log.info(
            "Adding Copilot seats for users",
            extra={
                "context": {
                    "org": org,
                    "user_count": len(selected_usernames),
                    "users": selected_usernames,
                }
            },
        )
        return await self._call(
            f"add Copilot seats for users in org {org}",
            lambda: self.client.add_seats(org, selected_usernames),
        )

    async def remove_seats_for_users(
        self, org: str, selected_usernames: List[str]
    ) -> Any:
        """DELETE /orgs/{org}/copilot/billing/selected_users"""
        validate_organization_name(org)
        validate_usernames(selected_usernames)

        self.log.info(
            "Removing Copilot seats for users",
            extra={
                "context": {
                    "org": org,
                    "user_count": len(selected_usernames),
                    "users": selected_usernames,
                }
            },
        )
        return await self._call(
            f"remove Copilot seats for users in org {org}",
            lambda: self.client.cancel_seats(org, selected_usernames),
        )

    async def get_seat_details(self, org: str, username: str) -> Any:
        """GET /orgs/{org}/members/{username}/copilot"""
        validate_organization_name(org)
        validate_username(username)

        self.log.info(
            "Getting Copilot seat details for user",
            extra={"context": {"org": org, "username": username}},
        )
        return await self._call(
            f"get Copilot seat details for user {username} in org {org}",
            lambda: self.client.seat_detail(org, username),
        )
