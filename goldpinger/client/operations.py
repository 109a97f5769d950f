"""HTTP client for the peer API: ping, check and check-all operations."""

from __future__ import annotations

from typing import Any, Optional, Sequence, Type, TypeVar

import requests

from ..models.aggregates import CheckAllResults
from ..models.results import CheckResults, PingResults

DEFAULT_HOST = "localhost"
DEFAULT_BASE_PATH = "/"
DEFAULT_SCHEMES: tuple[str, ...] = ("http",)
DEFAULT_TIMEOUT = 30.0

_UNMATCHED_STATUS = (
    "response status code does not match any response statuses defined "
    "for this endpoint in the swagger spec"
)

_Model = TypeVar("_Model", PingResults, CheckResults, CheckAllResults)


class ApiError(Exception):
    """A call to a peer failed: transport error, unexpected status or bad payload."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: bytes = b""):
        self.message = message
        self.status_code = status_code
        self.body = body
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (status {self.status_code})"


class HttpTransport:
    """Sends GET requests to one peer over HTTP."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        base_path: str = DEFAULT_BASE_PATH,
        schemes: Optional[Sequence[str]] = None,
        session: Optional[Any] = None,
    ):
        self.host = host
        self.base_path = base_path or DEFAULT_BASE_PATH
        self.schemes = tuple(schemes) if schemes else DEFAULT_SCHEMES
        self.session = session if session is not None else requests.Session()

    def url_for(self, path: str) -> str:
        """Return the absolute URL of ``path`` on this transport's host."""
        joined = self.base_path.rstrip("/") + "/" + path.lstrip("/")
        return f"{self.schemes[0]}://{self.host}{joined}"

    def get(self, path: str, timeout: Optional[float] = None) -> requests.Response:
        """GET ``path``; network failures are raised as ApiError."""
        url = self.url_for(path)
        try:
            return self.session.get(
                url,
                headers={"Accept": "application/json"},
                timeout=DEFAULT_TIMEOUT if timeout is None else timeout,
            )
        except requests.RequestException as exc:
            raise ApiError(f'Get "{url}": {exc}') from exc


class OperationsClient:
    """Calls the operations a peer exposes and decodes their payloads."""

    def __init__(self, transport: Optional[HttpTransport] = None):
        self.transport = transport if transport is not None else HttpTransport()

    def _call(
        self, operation_id: str, path: str, model: Type[_Model], timeout: Optional[float]
    ) -> _Model:
        response = self.transport.get(path, timeout)
        body = response.content or b""
        if response.status_code != 200:
            raise ApiError(_UNMATCHED_STATUS, response.status_code, body)
        if not body.strip():
            return model()
        try:
            return model.from_json(body)
        except ValueError as exc:
            raise ApiError(f"{operation_id}: invalid payload: {exc}", 200, body) from exc

    def check_all_pods(self, timeout: Optional[float] = None) -> CheckAllResults:
        """Ask the peer to have every pod report its neighbours (``/check_all``)."""
        return self._call("checkAllPods", "/check_all", CheckAllResults, timeout)

    def check_service_pods(self, timeout: Optional[float] = None) -> CheckResults:
        """Ask the peer for its latest ping results (``/check``)."""
        return self._call("checkServicePods", "/check", CheckResults, timeout)

    def ping(self, timeout: Optional[float] = None) -> PingResults:
        """Ping the peer (``/ping``)."""
        return self._call("ping", "/ping", PingResults, timeout)

    def set_transport(self, transport: HttpTransport) -> None:
        """Send all further calls through ``transport``."""
        self.transport = transport