# storefront/utils/api_client.py
import httpx
import logging
from typing import Any, Dict, Optional

from storefront.config import settings
from storefront.utils.errors import BackendResponseError, BackendUnavailable, MalformedResponse

logger = logging.getLogger(__name__)


def normalize_base(url: str) -> str:
    return (url or "").strip().rstrip("/")


class BackendClient:
    def __init__(self, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout: Optional[float] = None):
        self.base_url = normalize_base(base_url if base_url is not None else settings.API_URL)
        self.timeout = timeout if timeout is not None else settings.API_TIMEOUT
        # Tests inject httpx.MockTransport here
        self._transport = transport

    def build_url(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return f"{self.base_url}{path}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        token: Optional[str] = None,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        url = self.build_url(path)
        request_headers = {"Content-Type": "application/json"}
        if token:
            request_headers["Authorization"] = f"Bearer {token}"
        if headers:
            request_headers.update(headers)

        async with httpx.AsyncClient(transport=self._transport, timeout=self.timeout) as client:
            try:
                response = await client.request(method, url, json=json, params=params, headers=request_headers)
            except httpx.RequestError as e:
                logger.error(f"Backend {method} {url} failed: {e}")
                raise BackendUnavailable(f"Could not reach the server: {e}") from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.warning(f"Backend {method} {url} returned {response.status_code}: {message}")
            raise BackendResponseError(message, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Backend {method} {url} returned malformed JSON")
            raise MalformedResponse("Malformed response from backend", status_code=response.status_code) from e

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def delete(self, path: str, **kwargs) -> Any:
        return await self.request("DELETE", path, **kwargs)


def _error_message(response: httpx.Response) -> str:
    # Backend errors carry {"message": ...}; fall back to the reason phrase
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    return response.reason_phrase or f"Request failed with status {response.status_code}"


backend_client = BackendClient()


def get_backend_client() -> BackendClient:
    return backend_client
