"""
Upstream Proxy Client
Forwards dashboard, health and recommendation requests to the recommendation backend
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import httpx
import structlog
from pydantic import ValidationError

from addon_insights.dashboard.schemas import Envelope
from addon_insights.dashboard.state import FetchOutcome

logger = structlog.get_logger()

PROXY_ERROR_CODE = "PROXY_ERROR"


class UpstreamUnavailable(Exception):
    """The backend could not be reached or did not answer with JSON"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class UpstreamResponse:
    status_code: int
    payload: Any
    elapsed_ms: float


def proxy_error_body(message: str) -> Dict[str, Any]:
    """Envelope returned to callers when the backend is unreachable"""
    return {"ok": False, "data": None, "error": {"code": PROXY_ERROR_CODE, "message": message}}


class UpstreamClient:
    """Async HTTP client for the recommendation backend"""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        observer: Optional[Callable[[float, bool], None]] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.observer = observer
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Cache-Control": "no-store"},
        )

    async def _request(self, method: str, path: str, json: Any = None) -> UpstreamResponse:
        start_time = time.perf_counter()

        try:
            response = await self.client.request(method, path, json=json)
        except httpx.HTTPError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            self._observe(elapsed_ms, False)
            message = str(e) or type(e).__name__
            logger.warning("Upstream request failed", method=method, path=path, error=message)
            raise UpstreamUnavailable(message) from e

        elapsed_ms = (time.perf_counter() - start_time) * 1000

        try:
            payload = response.json()
        except ValueError as e:
            self._observe(elapsed_ms, False)
            logger.warning(
                "Upstream returned a non-JSON body", path=path, status=response.status_code
            )
            raise UpstreamUnavailable(
                f"Backend returned a non-JSON response (HTTP {response.status_code})",
                status_code=response.status_code,
            ) from e

        self._observe(elapsed_ms, response.is_success)
        logger.debug(
            "Upstream request completed",
            method=method,
            path=path,
            status=response.status_code,
            elapsed_ms=round(elapsed_ms, 2),
        )
        return UpstreamResponse(response.status_code, payload, elapsed_ms)

    def _observe(self, elapsed_ms: float, ok: bool):
        if self.observer is not None:
            self.observer(elapsed_ms, ok)

    async def get_dashboard(self, path: str) -> UpstreamResponse:
        return await self._request("GET", f"/v1/dashboard/{path.lstrip('/')}")

    async def get_health(self) -> UpstreamResponse:
        return await self._request("GET", "/health")

    async def post_recommendations(self, body: Dict[str, Any]) -> UpstreamResponse:
        return await self._request("POST", "/v1/recommendations", json=body)

    async def fetch_dashboard(self, path: str) -> FetchOutcome:
        """Fetch a dashboard resource as an outcome for the page state machine"""
        return await self._outcome(self.get_dashboard(path))

    async def fetch_health(self) -> FetchOutcome:
        return await self._outcome(self.get_health())

    async def fetch_recommendations(self, body: Dict[str, Any]) -> FetchOutcome:
        return await self._outcome(self.post_recommendations(body))

    async def _outcome(self, call) -> FetchOutcome:
        try:
            response = await call
        except UpstreamUnavailable as e:
            if e.status_code is not None:
                return FetchOutcome.malformed(e.message, status_code=e.status_code)
            return FetchOutcome.unreachable(e.message)

        try:
            envelope = Envelope.model_validate(response.payload)
        except ValidationError:
            return FetchOutcome.malformed(
                "Backend response is not an {ok, data, error} envelope",
                status_code=response.status_code,
            )

        return FetchOutcome.received(envelope, status_code=response.status_code)

    async def close(self):
        await self.client.aclose()
        logger.info("Upstream client closed")
