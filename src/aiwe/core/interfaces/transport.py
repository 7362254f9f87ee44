"""
HTTP Transport Protocol

Suspending JSON-over-HTTP calls used for manifest discovery and remote action
execution. Implementations raise ExecutionError for transport failures,
non-2xx responses and timeouts.
"""

from typing import Any, Optional, Protocol


class HttpTransportProtocol(Protocol):
    async def get_json(self, url: str, headers: Optional[dict[str, str]] = None) -> Any:
        """GET a URL and return the decoded JSON body."""
        ...

    async def post_json(
        self, url: str, body: Any, headers: Optional[dict[str, str]] = None
    ) -> Any:
        """POST a JSON body and return the decoded response body."""
        ...

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
        """Issue an arbitrary request and return the decoded response body."""
        ...
