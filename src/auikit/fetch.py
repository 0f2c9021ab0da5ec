"""
HTTP fetch handle for invocation contexts.

Every InvocationContext carries a FetchHandle: the HTTP-capable primitive
handlers use for outbound calls. Untrusted-origin handlers typically use it
to reach the trusted handler of the same capability over the network, which
is what remote_handler() builds.

Remote execution payload:
    request:  POST {"tool": <name>, "input": <input>}
    response: {"result": <value>} on success
              {"error": <message>} with a 4xx/5xx status on failure

Each call opens its own httpx.AsyncClient so a handle holds no sockets
between calls and can be shared freely between contexts.
"""

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import BaseModel

from auikit.errors import RemoteCallError

if TYPE_CHECKING:
    from auikit.context import InvocationContext
    from auikit.schema import RuntimeConfig


DEFAULT_EXECUTE_ENDPOINT = "/api/aui/execute"


class FetchHandle:
    """
    Callable HTTP client bound to a base URL, timeout and default headers.

    Attributes:
        base_url: Prefix for relative URLs
        timeout_seconds: Timeout applied to each request
        headers: Headers sent with every request
        transport: Optional httpx transport (e.g. httpx.MockTransport)

    Example:
        fetch = FetchHandle(base_url="https://api.example.com")
        response = await fetch("/users/1")
        data = await fetch.json("/search", {"q": "weather"})
    """

    def __init__(
        self,
        base_url: str = "",
        timeout_seconds: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.headers = dict(headers or {})
        self.transport = transport

    @classmethod
    def from_config(cls, config: "RuntimeConfig") -> "FetchHandle":
        """Create a handle from runtime configuration."""
        return cls(
            base_url=config.fetch_base_url,
            timeout_seconds=config.fetch_timeout_seconds,
            headers=config.fetch_headers,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_seconds,
            headers=self.headers,
            transport=self.transport,
            follow_redirects=True,
        )

    async def __call__(self, url: str, method: str = "GET", **kwargs: Any) -> httpx.Response:
        """
        Perform a request and return the raw response.

        Args:
            url: Absolute URL, or a path relative to base_url
            method: HTTP method
            **kwargs: Passed through to httpx (json, params, headers, ...)

        Returns:
            The httpx.Response, whatever its status code

        Raises:
            httpx.RequestError: On transport failures
        """
        async with self._client() as client:
            return await client.request(method, url, **kwargs)

    async def json(
        self,
        url: str,
        payload: Any = None,
        method: str = "POST",
    ) -> Any:
        """
        Send a JSON request and decode the JSON response.

        Args:
            url: Absolute URL, or a path relative to base_url
            payload: JSON body (omitted when None)
            method: HTTP method

        Returns:
            The decoded response body

        Raises:
            RemoteCallError: On transport failures, status >= 400 or a
                body that is not JSON
        """
        kwargs: dict[str, Any] = {}
        if payload is not None:
            kwargs["json"] = payload

        try:
            response = await self(url, method=method, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteCallError(
                url=url,
                underlying_error=f"timed out after {self.timeout_seconds} seconds",
            ) from e
        except httpx.RequestError as e:
            raise RemoteCallError(url=url, underlying_error=str(e)) from e

        if response.status_code >= 400:
            raise RemoteCallError(
                url=url,
                status_code=response.status_code,
                underlying_error=_error_message(response),
            )

        try:
            return response.json()
        except ValueError as e:
            raise RemoteCallError(
                url=url,
                status_code=response.status_code,
                message=f"Remote call to {url} returned a non-JSON body",
            ) from e

    def __repr__(self) -> str:
        return f"<FetchHandle: {self.base_url or '<no base url>'}>"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text


def remote_handler(
    name: str,
    endpoint: str = DEFAULT_EXECUTE_ENDPOINT,
) -> Callable[[Any, "InvocationContext"], Awaitable[Any]]:
    """
    Build an untrusted-origin handler that calls a trusted endpoint.

    The handler posts the validated input to the endpoint through the
    context's fetch handle and returns the response's "result" field.

    Args:
        name: Capability name sent as the "tool" field
        endpoint: URL of the remote execute endpoint

    Returns:
        An async handler usable with .client_execute()

    Example:
        weather = (
            capability("weather")
            .input(WeatherInput)
            .execute(fetch_weather)
            .client_execute(remote_handler("weather"))
            .build()
        )
    """

    async def handler(input: Any, context: "InvocationContext") -> Any:
        if isinstance(input, BaseModel):
            input = input.model_dump(mode="json")
        body = await context.fetch.json(endpoint, {"tool": name, "input": input})
        if isinstance(body, dict) and "result" in body:
            return body["result"]
        raise RemoteCallError(
            capability=name,
            url=endpoint,
            message=f"Remote call to {endpoint} returned no result for {name}",
        )

    handler.__name__ = f"remote_{name}"
    return handler
