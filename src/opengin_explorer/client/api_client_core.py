"""OpenGIN API client - read endpoints and metadata writes."""

import sys
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..models import (
    APIConfiguration,
    AuthenticationError,
    CountSummary,
    EntityNotFoundError,
    EntityPage,
    NetworkError,
    RelationBatch,
    StructuralError,
    TimeoutError,
)
from .relation_helper import parse_relation_batches


def log_event(message: str, component: str = "CLIENT") -> None:
    """Log an event to stderr with timestamp and consistent formatting."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] [{component}] {message}", file=sys.stderr, flush=True)


class _ClientLogger:
    """Small logger facade over :func:`log_event`.

    Everything goes to stderr because stdout carries the MCP stdio stream.
    Extra positional/keyword arguments are accepted and ignored so call sites
    can be written like ``logging`` calls.
    """

    def __init__(self, component: str = "CLIENT") -> None:
        self._component = component

    def _msg(self, msg: object) -> str:
        try:
            return str(msg)
        except Exception:
            return repr(msg)

    def info(self, msg: object, *args: object, **kwargs: object) -> None:
        log_event(self._msg(msg), self._component)

    def warning(self, msg: object, *args: object, **kwargs: object) -> None:
        log_event(f"WARNING: {self._msg(msg)}", self._component)

    def error(self, msg: object, *args: object, **kwargs: object) -> None:
        log_event(f"ERROR: {self._msg(msg)}", self._component)

    def debug(self, msg: object, *args: object, **kwargs: object) -> None:
        log_event(f"DEBUG: {self._msg(msg)}", self._component)


class OpenGINClient:
    """Async client for the OpenGIN read/write API.

    Every call is a single attempt. Failures surface as ``NetworkError`` (or a
    subclass) and it is up to the user to re-trigger the action.
    """

    def __init__(self, config: APIConfiguration, transport: httpx.AsyncBaseTransport | None = None):
        """Initialize the client; ``transport`` is for tests and custom stacks."""
        self.config = config
        self.base_url = config.base_url
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._logger = _ClientLogger()

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            headers = {
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            if self.config.api_key is not None:
                headers["Authorization"] = f"Bearer {self.config.api_key.get_secret_value()}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "OpenGINClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _handle_response(self, response: httpx.Response, allow_empty: bool = False) -> Any:
        """Handle API response and errors."""
        if response.status_code in (401, 403):
            raise AuthenticationError("Invalid API key or unauthorized access", status_code=response.status_code)

        if response.status_code == 404:
            raise EntityNotFoundError(response.request.url.path)

        if response.status_code >= 500:
            raise NetworkError(f"Server error: {response.status_code}", status_code=response.status_code)

        if response.status_code >= 400:
            try:
                error_data = response.json()
                message = error_data.get("error") or error_data.get("detail") or "API request failed"
            except (ValueError, AttributeError):
                message = f"API error: {response.status_code}"
            raise NetworkError(str(message), status_code=response.status_code)

        if allow_empty and not response.content:
            return None

        try:
            return response.json()
        except ValueError as err:
            raise NetworkError("Invalid response format from API", status_code=response.status_code) from err
        except RecursionError as err:
            raise StructuralError("Response is nested too deeply to parse") from err

    async def _request(self, method: str, path: str, allow_empty: bool = False, **kwargs: Any) -> Any:
        """Issue one request; transport failures become ``NetworkError``."""
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as err:
            self._logger.warning(f"Timeout on {method} {path}: {err}")
            raise TimeoutError(f"{method} {path}") from err
        except httpx.RequestError as err:
            self._logger.warning(f"Transport error on {method} {path}: {err}")
            raise NetworkError(f"Transport failure: {err}") from err
        return await self._handle_response(response, allow_empty=allow_empty)

    @staticmethod
    def _expect(data: Any, kind: type, what: str) -> Any:
        if data is None:
            return kind()
        if not isinstance(data, kind):
            raise NetworkError(f"Invalid response format from API: expected {what}")
        return data

    async def get_counts(self) -> CountSummary:
        """Entity totals grouped by major and minor kind."""
        data = self._expect(await self._request("GET", self.config.counts_path), dict, "an object")
        try:
            return CountSummary.model_validate(data)
        except PydanticValidationError as err:
            raise NetworkError(f"Invalid count summary: {err.error_count()} errors") from err

    async def list_entities(self, major: str, minor: str, offset: int = 0, limit: int = 50) -> EntityPage:
        """One page of entities of the given kind."""
        params = {"major": major, "minor": minor, "offset": offset, "limit": limit}
        data = self._expect(await self._request("GET", "/entities", params=params), dict, "an object")
        try:
            page = EntityPage.model_validate(data)
        except PydanticValidationError as err:
            raise NetworkError(f"Invalid entity page: {err.error_count()} errors") from err
        # The server does not echo paging parameters back.
        page.offset = offset
        page.limit = limit
        return page

    async def get_metadata(self, entity_id: str) -> dict[str, Any]:
        """Metadata map ``key -> wire value`` for an entity."""
        return self._expect(await self._request("GET", f"/entities/{entity_id}/metadata"), dict, "an object")

    async def save_metadata(self, entity_id: str, entries: list[dict[str, str]]) -> None:
        """Persist the full merged metadata list; the response body is not interpreted."""
        self._logger.info(f"Saving {len(entries)} metadata entries for {entity_id}")
        await self._request("POST", f"/entities/{entity_id}/metadata", allow_empty=True, json=entries)

    async def get_relations(self, entity_id: str) -> list[RelationBatch]:
        """Relation batches for an entity, in server order."""
        data = await self._request("GET", f"/entities/{entity_id}/relations")
        if data is not None and not isinstance(data, (list, dict)):
            raise NetworkError("Invalid response format from API: expected a list")
        try:
            return parse_relation_batches(data)
        except PydanticValidationError as err:
            raise NetworkError(f"Invalid relations payload: {err.error_count()} errors") from err

    async def get_category_tree(self, entity_id: str) -> list[dict[str, Any]]:
        """Raw category tree roots; walked by :mod:`category_tree`."""
        data = await self._request("GET", f"/entities/{entity_id}/categories/tree")
        if isinstance(data, dict):
            data = [data]
        return self._expect(data, list, "a list")
