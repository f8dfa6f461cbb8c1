"""HTTP client for the local stats backend."""

import logging
from typing import Any, Literal

import httpx

from statsbridge.config import ProxyConfig

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """The backend answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"HTTP error! status: {status_code}, message: {message}")
        self.status_code = status_code
        self.message = message


class BackendClient:
    """Issues JSON requests to the backend configured in ProxyConfig."""

    def __init__(self, config: ProxyConfig, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self.config.base_url

    async def request(
        self,
        method: str,
        path: str,
        body: dict | None = None,
        response_format: Literal["json", "text"] = "json",
    ) -> Any:
        """Send a request and decode the response.

        Raises:
            BackendError: for non-2xx responses, carrying the response body
            httpx.HTTPError: for connection failures and timeouts
        """
        logger.debug(f"{method} {self.base_url}{path} body={body}")
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.config.request_timeout,
            transport=self._transport,
        ) as client:
            response = await client.request(
                method,
                path,
                json=body,
                headers={"Content-Type": "application/json"},
            )

        if not response.is_success:
            raise BackendError(response.status_code, response.text)

        if response_format == "text":
            return response.text
        return response.json()

    async def get(self, path: str, response_format: Literal["json", "text"] = "json") -> Any:
        return await self.request("GET", path, None, response_format)

    async def post(
        self, path: str, body: dict | None = None, response_format: Literal["json", "text"] = "json"
    ) -> Any:
        return await self.request("POST", path, body, response_format)
