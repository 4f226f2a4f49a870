"""
Minimal async Microsoft Graph REST client.

Thin httpx wrapper that signs each request with a bearer token from the
run's TokenCredential and turns OData error bodies into GraphAPIError.
Retries are not handled here; calls go through OperationPipeline.
"""

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import httpx
from azure.core.credentials import TokenCredential

from ..constants import GRAPH_API_BASE, GRAPH_DEFAULT_SCOPE
from ..exceptions import GraphAPIError, GraphTransportError

logger = logging.getLogger(__name__)


def user_path(mailbox: str, *segments: str) -> str:
    """Build /users/{mailbox}/... with the mailbox safely quoted."""
    parts = [quote(mailbox, safe="@"), *segments]
    return "/users/" + "/".join(parts)


def _error_from_response(resp: httpx.Response) -> GraphAPIError:
    code = ""
    message = resp.reason_phrase or "request failed"
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        code = payload["error"].get("code") or ""
        message = payload["error"].get("message") or message
    return GraphAPIError(message, resp.status_code, code=code, headers=resp.headers)


class GraphClient:
    """Wraps Graph v1.0 REST calls for a single signing credential."""

    def __init__(
        self,
        credential: TokenCredential,
        *,
        base_url: str = GRAPH_API_BASE,
        scope: str = GRAPH_DEFAULT_SCOPE,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credential = credential
        self._scope = scope
        self._http = httpx.AsyncClient(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "GraphClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _authorization(self) -> dict[str, str]:
        # azure-identity's sync credentials block on the token endpoint
        token = await asyncio.to_thread(self._credential.get_token, self._scope)
        return {"Authorization": f"Bearer {token.token}"}

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Send a Graph request and return the decoded JSON body ({} for 202/204).

        Raises:
            GraphAPIError: Graph answered with a non-2xx status.
            GraphTransportError: the request never got a response.
        """
        headers = await self._authorization()
        logger.debug("Calling Graph API: %s %s", method, path)
        try:
            resp = await self._http.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.TransportError as e:
            raise GraphTransportError(f"{type(e).__name__}: {e}") from e

        if resp.status_code >= 400:
            raise _error_from_response(resp)
        if not resp.content:
            return {}
        return resp.json()

    async def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: dict[str, Any]) -> dict[str, Any]:
        return await self.request("POST", path, json=json)
