"""
aiohttp-based HTTP transport.

Implements HttpTransportProtocol for manifest discovery and remote action
execution. Every failure (connection errors, timeouts, non-2xx responses,
undecodable bodies) is raised as ExecutionError so the retry layer treats it
as an ordinary, retryable execution failure.
"""

import asyncio
from typing import Any, Optional

import aiohttp
import structlog

from aiwe.core.domain.errors import ExecutionError

DEFAULT_TIMEOUT_SECONDS = 30.0


class AiohttpTransport:
    """JSON-over-HTTP transport backed by a shared aiohttp.ClientSession."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the transport.

        Args:
            timeout: Total timeout per request in seconds
            session: Existing session to reuse (not closed by `close()`)
        """
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None
        self.logger = structlog.get_logger().bind(component="aiohttp_transport")

    async def get_json(self, url: str, headers: Optional[dict[str, str]] = None) -> Any:
        return await self.request("GET", url, headers=headers)

    async def post_json(self, url: str, body: Any, headers: Optional[dict[str, str]] = None) -> Any:
        return await self.request("POST", url, headers=headers, json=body)

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[dict[str, str]] = None,
        json: Any = None,
        data: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
    ) -> Any:
        """
        Issue a request and decode the JSON response body.

        Raises:
            ExecutionError: On transport failure, timeout, non-2xx status or bad JSON
        """
        session = await self._get_session()
        self.logger.debug("http.request", method=method, url=url)

        try:
            async with session.request(
                method,
                url,
                headers=headers,
                json=json,
                data=data,
                params=params,
                timeout=self.timeout,
            ) as response:
                if response.status >= 400:
                    text = await response.text()
                    raise ExecutionError(
                        f"{method} {url} failed with HTTP {response.status}: {text[:200]}",
                        details={"status": response.status, "url": url},
                    )
                # Services do not always label JSON bodies correctly.
                return await response.json(content_type=None)
        except ExecutionError:
            raise
        except asyncio.TimeoutError as e:
            self.logger.warning("http.timeout", method=method, url=url)
            raise ExecutionError(
                f"{method} {url} timed out after {self.timeout.total}s", details={"url": url}
            ) from e
        except aiohttp.ClientError as e:
            self.logger.warning("http.client_error", method=method, url=url, error=str(e))
            raise ExecutionError(f"{method} {url} failed: {e}", details={"url": url}) from e
        except ValueError as e:
            raise ExecutionError(f"{method} {url} returned invalid JSON: {e}", details={"url": url}) from e

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session
