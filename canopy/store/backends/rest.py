"""REST tree backend for Firebase-compatible realtime databases."""

import logging
from typing import Any, Dict, Optional

import aiohttp

from .. import paths
from ..exceptions import BackendError
from .base import TreeBackend, prune

logger = logging.getLogger(__name__)


class RestBackend(TreeBackend):
    """Tree backend speaking the realtime-database REST protocol.

    Every node is addressed as ``{base_url}/{path}.json``:

        GET     read the subtree (``null`` when absent)
        PUT     replace the subtree
        POST    append a child; the response is ``{"name": "<key>"}``
        DELETE  remove the subtree

    Example:
        backend = RestBackend("https://fleet-1234.firebaseio.com")
        await backend.connect(auth=token)
        key = await backend.append("ships", {"name": "Enterprise"})
        await backend.close()
    """

    def __init__(self, base_url: str):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None
        self._auth: Optional[str] = None
        self._owns_session = False

    async def connect(
        self,
        auth: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
        **kwargs,
    ) -> None:
        """Open the HTTP session.

        Args:
            auth: Database secret or ID token sent as the ``auth`` parameter
            timeout: Total per-request timeout in seconds
            session: Existing session to reuse (not closed by close())
        """
        self._auth = auth
        if session is not None:
            self._session = session
            self._owns_session = False
        else:
            client_timeout = aiohttp.ClientTimeout(total=timeout)
            self._session = aiohttp.ClientSession(timeout=client_timeout)
            self._owns_session = True
        self._connected = True

    async def close(self) -> None:
        """Close the HTTP session if this backend opened it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None
        self._connected = False

    def url(self, path: str) -> str:
        """Return the REST URL of a node."""
        path = paths.normalize(path)
        return f"{self.base_url}/{path}.json" if path else f"{self.base_url}/.json"

    def _params(self) -> Dict[str, str]:
        return {"auth": self._auth} if self._auth else {}

    async def _request(self, method: str, path: str, payload: Any = None) -> Any:
        url = self.url(path)
        logger.debug("%s %s", method, url)
        kwargs: Dict[str, Any] = {"params": self._params()}
        if method in ("PUT", "POST"):
            kwargs["json"] = payload
        try:
            async with self._session.request(method, url, **kwargs) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise BackendError(
                        f"{method} {url} failed with status {response.status}: {body}",
                        status=response.status,
                    )
                return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise BackendError(f"{method} {url} failed: {e}") from e

    async def read(self, path: str) -> Optional[Any]:
        """Read the subtree at path."""
        return await self._request("GET", path)

    async def write(self, path: str, value: Any) -> None:
        """Replace the subtree at path."""
        value = prune(value)
        if value is None:
            await self._request("DELETE", path)
        else:
            await self._request("PUT", path, value)

    async def remove(self, path: str) -> bool:
        """Remove the subtree at path.

        The protocol does not report whether the node existed, so this
        reads first.
        """
        existed = await self.read(path) is not None
        await self._request("DELETE", path)
        return existed

    async def append(self, path: str, value: Any) -> str:
        """Append a child and return the server-generated key."""
        result = await self._request("POST", path, prune(value))
        if not isinstance(result, dict) or "name" not in result:
            raise BackendError(f"Unexpected append response from {self.url(path)}: {result!r}")
        return result["name"]
