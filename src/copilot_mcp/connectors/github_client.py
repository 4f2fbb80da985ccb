"""Thin async client for the GitHub REST endpoints used by the Copilot tools.

Authentication is either a bearer token or GitHub App credentials. App
credentials are exchanged for a short-lived installation token (signed
RS256 JWT via python-jose), cached until shortly before it expires.

Every operation raises ``httpx.HTTPStatusError`` on a non-2xx response;
classification happens in the service layer.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from jose import jwt

from ..config import Settings

logger = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"

# GitHub rejects app JWTs valid for more than 10 minutes
APP_JWT_TTL_SECONDS = 540
APP_JWT_CLOCK_SKEW_SECONDS = 60
INSTALLATION_TOKEN_REFRESH_MARGIN = 60


class TokenAuth:
    """Static bearer token (personal access token or fine-grained token)."""

    mode = "token"

    def __init__(self, token: str):
        self._token = token

    async def get_token(self, client: httpx.AsyncClient) -> str:
        return self._token


class AppAuth:
    """GitHub App installation authentication."""

    mode = "app"

    def __init__(self, app_id: str, private_key: str, installation_id: str):
        self.app_id = app_id
        self.installation_id = installation_id
        self._private_key = private_key
        self._token: Optional[str] = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()

    def create_jwt(self, now: Optional[float] = None) -> str:
        """Sign the app JWT used to request installation tokens."""
        now = int(now if now is not None else time.time())
        claims = {
            "iat": now - APP_JWT_CLOCK_SKEW_SECONDS,
            "exp": now + APP_JWT_TTL_SECONDS,
            "iss": str(self.app_id),
        }
        return jwt.encode(claims, self._private_key, algorithm="RS256")

    async def get_token(self, client: httpx.AsyncClient) -> str:
        async with self._lock:
            if self._token and time.time() < self._expires_at - INSTALLATION_TOKEN_REFRESH_MARGIN:
                return self._token

            logger.debug("Requesting installation token for app %s", self.app_id)
            response = await client.post(
                f"/app/installations/{self.installation_id}/access_tokens",
                headers={"Authorization": f"Bearer {self.create_jwt()}"},
            )
            response.raise_for_status()
            data = response.json()

            self._token = data["token"]
            self._expires_at = _parse_expires_at(data.get("expires_at"))
            return self._token


def _parse_expires_at(value: Optional[str]) -> float:
    """Parse GitHub's ``expires_at`` (ISO 8601, ``Z`` suffix) to epoch seconds."""
    if not value:
        # Installation tokens live for one hour
        return time.time() + 3600
    return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()


class GitHubClient:
    """Copilot-related GitHub REST operations over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        auth: Any,
        base_url: str = GITHUB_API,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.auth = auth
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
                "User-Agent": "copilot-mcp",
            },
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "GitHubClient":
        if settings.github_token:
            auth: Any = TokenAuth(settings.github_token)
        else:
            auth = AppAuth(
                settings.github_app_id,
                settings.github_private_key,
                settings.github_installation_id,
            )
        logger.info(
            "Initializing GitHub client with %s authentication", auth.mode
        )
        return cls(
            auth,
            base_url=settings.github_api_url,
            timeout=settings.api_timeout / 1000,
        )

    async def aclose(self):
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        token = await self.auth.get_token(self._client)
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        response = await self._client.request(
            method,
            url,
            params=params or None,
            json=json,
            headers={"Authorization": f"Bearer {token}"},
        )
        response.raise_for_status()
        if not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Usage metrics
    # ------------------------------------------------------------------

    async def usage_metrics_for_org(
        self,
        org: str,
        since: Optional[str] = None,
        until: Optional[str] = None,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
    ) -> Any:
        """GET /orgs/{org}/copilot/metrics"""
        return await self._request(
            "GET",
            f"/orgs/{org}/copilot/metrics",
            params={"since": since, "until": until, "page": page, "per_page": per_page},
        )

    async def usage_metrics_for_enterprise(
        self,
        enterprise: str,
        since: Optional[str] = None,
        until: Optional[str] = None,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
    ) -> Any:
        """GET /enterprises/{enterprise}/copilot/metrics"""
        return await self._request(
            "GET",
            f"/enterprises/{enterprise}/copilot/metrics",
            params={"since": since, "until": until, "page": page, "per_page": per_page},
        )

    # ------------------------------------------------------------------
    # Seat management
    # ------------------------------------------------------------------

    async def list_seats(
        self, org: str, page: Optional[int] = None, per_page: Optional[int] = None
    ) -> Any:
        """GET /orgs/{org}/copilot/billing/seats"""
        return await self._request(
            "GET",
            f"/orgs/{org}/copilot/billing/seats",
            params={"page": page, "per_page": per_page},
        )

    async def add_seats(self, org: str, usernames: List[str]) -> Any:
        """POST /orgs/{org}/copilot/billing/selected_users"""
        return await self._request(
            "POST",
            f"/orgs/{org}/copilot/billing/selected_users",
            json={"selected_usernames": usernames},
        )

    async def cancel_seats(self, org: str, usernames: List[str]) -> Any:
        """DELETE /orgs/{org}/copilot/billing/selected_users"""
        return await self._request(
            "DELETE",
            f"/orgs/{org}/copilot/billing/selected_users",
            json={"selected_usernames": usernames},
        )

    async def seat_detail(self, org: str, username: str) -> Any:
        """GET /orgs/{org}/members/{username}/copilot"""
        return await self._request(
            "GET", f"/orgs/{org}/members/{username}/copilot"
        )
