"""
Secret values from the MLP API.

A cluster namespace maps to the MLP project of the same name; the declared
secret key is the name of the MLP secret.
"""

import asyncio
from typing import Dict, Optional

import aiohttp
import google.auth
from google.auth.exceptions import DefaultCredentialsError, GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from loguru import logger

from dapsw.config import WebhookConfig
from dapsw.exceptions import ProviderError, SecretNotFoundError
from dapsw.metrics import MetricsCollector
from dapsw.providers.base import SecretValueProvider

GOOGLE_AUTH_SCOPES = ["https://www.googleapis.com/auth/userinfo.email"]


def init_google_credentials():
    """Google default credentials, or None when none are configured."""
    try:
        credentials, _ = google.auth.default(scopes=GOOGLE_AUTH_SCOPES)
    except DefaultCredentialsError:
        logger.info("Google default credential not found. Fallback to HTTP default client")
        return None
    return credentials


class MLPSecretProvider(SecretValueProvider):
    """Secret value provider backed by the MLP projects and secrets API."""

    def __init__(
        self,
        config: WebhookConfig,
        metrics: Optional[MetricsCollector] = None,
        credentials=None,
    ):
        self.api_host = config.mlp_api_host
        self.timeout = aiohttp.ClientTimeout(total=config.mlp_timeout)
        self.metrics = metrics
        self.credentials = credentials
        self.auth_request = None
        self.session = None

    async def _ensure_session(self):
        """Ensure aiohttp session exists."""
        if self.session is None:
            self.session = aiohttp.ClientSession(timeout=self.timeout)

    async def _headers(self) -> Dict[str, str]:
        if self.credentials is None:
            return {}
        if not self.credentials.valid:
            if self.auth_request is None:
                self.auth_request = GoogleAuthRequest()
            # google-auth refreshes synchronously
            await asyncio.wait_for(
                asyncio.to_thread(self.credentials.refresh, self.auth_request),
                timeout=self.timeout.total,
            )
        return {"Authorization": f"Bearer {self.credentials.token}"}

    async def _get_json(self, path: str, params: Optional[Dict[str, str]] = None):
        await self._ensure_session()
        url = f"{self.api_host}{path}"
        headers = await self._headers()

        async with self.session.get(url, params=params, headers=headers) as response:
            if response.status != 200:
                body = await response.text()
                raise ProviderError(f"MLP API {path} returned status {response.status}: {body}")
            return await response.json()

    async def _get_project_id(self, project: str) -> int:
        params = {"name": project} if project else None
        projects = await self._get_json("/projects", params=params) or []
        if not isinstance(projects, list):
            raise ProviderError(f"unexpected MLP API response listing projects: {projects!r}")

        for item in projects:
            if isinstance(item, dict) and item.get("name") == project:
                if item.get("id") is None:
                    raise ProviderError(f"mlp project '{project}' has no id")
                return item["id"]
        raise ProviderError(f"cannot find project '{project}' from mlp client")

    async def get_secret_value(self, project: str, name: str) -> str:
        """Look up secret ``name`` in the MLP project named ``project``."""
        success = False
        try:
            try:
                project_id = await self._get_project_id(project)
                secrets = await self._get_json(f"/projects/{project_id}/secrets") or []
            except ProviderError:
                raise
            except asyncio.TimeoutError as e:
                raise ProviderError(f"MLP API request timed out for project '{project}'") from e
            except (aiohttp.ClientError, GoogleAuthError, ValueError) as e:
                raise ProviderError(f"MLP API request failed for project '{project}': {e}") from e

            if not isinstance(secrets, list):
                raise ProviderError(
                    f"unexpected MLP API response listing secrets of project '{project}'"
                )

            success = True
            for secret in secrets:
                if isinstance(secret, dict) and secret.get("name") == name:
                    value = secret.get("data")
                    if not isinstance(value, str):
                        raise ProviderError(
                            f"secret '{name}' from mlp project '{project}' has no value"
                        )
                    return value

            if self.metrics:
                self.metrics.record_secret_not_found(project)
            raise SecretNotFoundError(
                f"cannot find secret '{name}' from mlp project '{project}'"
            )
        finally:
            if self.metrics:
                self.metrics.record_mlp_request(project, success)

    async def health_check(self) -> bool:
        """Check that the MLP API answers."""
        try:
            await self._get_json("/projects")
            return True
        except Exception as e:
            logger.error("MLP health check failed: {}", e)
            return False

    async def close(self):
        if self.session and not self.session.closed:
            await self.session.close()
