"""Typed API transport over HTTP.

Implements the SyncTransport protocol with httpx. Version mismatch is
detected two ways: the server version from /api/info is compared with the
request's required version before sending, and an endpoint answering 404 is
treated as not supported by this server.
"""

import logging
import threading
from typing import Any

import httpx

from roomsync.domain.exceptions import TransportError, VersionMismatchError
from roomsync.domain.requests import ApiRequest
from roomsync.domain.value_objects import ServerVersion

logger = logging.getLogger(__name__)

INFO_ENDPOINT = "/api/info"


class HttpSyncTransport:
    """SyncTransport backed by an httpx.Client."""

    def __init__(
        self,
        base_url: str,
        user_id: str | None = None,
        token: str | None = None,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        """Initialize the transport.

        Args:
            base_url: Server base URL
            user_id: Server user id for X-User-Id
            token: Auth token for X-Auth-Token
            timeout: Request timeout in seconds
            client: Preconfigured client (e.g. with a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.token = token
        self.timeout = timeout
        self._client = client
        self._server_version: ServerVersion | None = None
        self._version_checked = False
        self._version_lock = threading.Lock()

    def _get_client(self) -> httpx.Client:
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                base_url=self.base_url,
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.user_id and self.token:
            headers["X-User-Id"] = self.user_id
            headers["X-Auth-Token"] = self.token
        return headers

    def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            self._client.close()
        self._client = None

    def server_version(self) -> ServerVersion | None:
        """Return the server version, fetched once from /api/info.

        Returns:
            The version, or None if the server does not report one.

        Raises:
            TransportError: If the info endpoint cannot be reached.
        """
        with self._version_lock:
            if not self._version_checked:
                self._server_version = self._fetch_server_version()
                self._version_checked = True
            return self._server_version

    def _fetch_server_version(self) -> ServerVersion | None:
        try:
            body = self._send("GET", INFO_ENDPOINT)
        except VersionMismatchError:
            logger.debug("Server has no %s endpoint", INFO_ENDPOINT)
            return None

        raw = body.get("version")
        if raw is None and isinstance(body.get("info"), dict):
            raw = body["info"].get("version")
        if not isinstance(raw, str):
            return None
        try:
            version = ServerVersion.parse(raw)
        except ValueError:
            logger.warning("Ignoring unparseable server version %r", raw)
            return None
        logger.debug("Server version %s", version)
        return version

    def fetch(self, request: ApiRequest) -> dict[str, Any]:
        """Issue a typed request and return the decoded response body.

        Raises:
            VersionMismatchError: If the server does not support the endpoint.
            TransportError: For network failures and unexpected responses.
        """
        version = self.server_version()
        if version is not None and version < request.required_version:
            raise VersionMismatchError(
                f"{request.path} requires server {request.required_version}, "
                f"server is {version}",
                server_version=str(version),
                required_version=str(request.required_version),
            )
        return self._send(
            request.method,
            request.path,
            params=request.query() or None,
            body=request.body(),
        )

    def _send(
        self,
        method: str,
        endpoint: str,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        client = self._get_client()
        try:
            response = client.request(
                method,
                endpoint,
                params=params,
                json=body,
                headers=self._headers(),
            )
        except httpx.RequestError as e:  # ConnectError, TimeoutException, etc.
            raise TransportError(f"Connection error to {self.base_url}{endpoint}: {e}") from e

        if response.status_code == 404:
            raise VersionMismatchError(f"{endpoint} not found on server")

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = response.text[:200]
            if response.status_code in (401, 403):
                raise TransportError(
                    f"Authentication failed for {endpoint}: {detail}",
                    status_code=response.status_code,
                ) from e
            raise TransportError(
                f"HTTP {response.status_code} from {endpoint}: {detail}",
                status_code=response.status_code,
            ) from e

        try:
            data = response.json()
        except ValueError as e:  # JSONDecodeError or UnicodeDecodeError
            raise TransportError(
                f"Failed to decode JSON response from {endpoint}",
                status_code=response.status_code,
            ) from e

        if not isinstance(data, dict):
            raise TransportError(
                f"Unexpected response body from {endpoint}: {type(data).__name__}",
                status_code=response.status_code,
            )
        return data
