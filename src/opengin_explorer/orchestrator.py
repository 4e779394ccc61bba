"""Entity detail and listing coordinators.

``EntityDetailOrchestrator`` owns the three views shown for a selected entity
(metadata, relations, categorization tree). Each view has its own slot with
``status``/``data``/``error`` and is fetched by an independent task.

Every selection bumps a selection token. A task remembers the token it was
started under and writes to its slot only if that token is still current, so
a slow response for a previously selected entity can never overwrite the
view of the entity selected after it. ``EntityPager`` applies the same rule
to page requests.

Nothing here retries. A failed stream records its error in its own slot and
leaves the other slots alone; the user re-selects to try again.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from .client.api_client_core import OpenGINClient, _ClientLogger
from .client.category_tree import DEFAULT_MAX_DEPTH, flatten_tree
from .client.metadata_merge import decode_metadata, validate_and_merge
from .client.relation_helper import flatten, relation_row
from .client.wire_value import WireHeaderMode, decode
from .models import (
    Entity,
    EntityPage,
    InvalidQueryError,
    MetadataNotLoadedError,
    NetworkError,
    OpenGINError,
    SaveInProgressError,
    StaleResponseError,
)

logger = _ClientLogger("DETAIL")


class StreamStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class StreamSlot:
    status: StreamStatus = StreamStatus.IDLE
    data: Any = None
    error: Optional[OpenGINError] = None

    def reset(self, status: StreamStatus = StreamStatus.IDLE) -> None:
        self.status = status
        self.data = None
        self.error = None

    def succeed(self, data: Any) -> None:
        self.status = StreamStatus.SUCCESS
        self.data = data
        self.error = None

    def fail(self, error: OpenGINError) -> None:
        self.status = StreamStatus.ERROR
        self.data = None
        self.error = error

    def to_dict(self, render: Callable[[Any], Any] | None = None) -> Dict[str, Any]:
        data = self.data
        if render is not None and self.status == StreamStatus.SUCCESS:
            data = render(data)
        return {
            "status": self.status.value,
            "data": data,
            "error": None if self.error is None else f"{type(self.error).__name__}: {self.error}",
        }


@dataclass
class _Streams:
    metadata: StreamSlot = field(default_factory=StreamSlot)
    relations: StreamSlot = field(default_factory=StreamSlot)
    categories: StreamSlot = field(default_factory=StreamSlot)

    def all(self) -> List[StreamSlot]:
        return [self.metadata, self.relations, self.categories]


class EntityDetailOrchestrator:
    """Concurrent, staleness-safe loader for one selected entity's detail views."""

    def __init__(
        self,
        client: OpenGINClient,
        max_tree_depth: int = DEFAULT_MAX_DEPTH,
        header_mode: WireHeaderMode = WireHeaderMode.DETECT,
    ) -> None:
        self._client = client
        self.max_tree_depth = max_tree_depth
        self.header_mode = header_mode

        self._token = 0
        self.entity: Optional[Entity] = None
        self._streams = _Streams()
        self.save = StreamSlot()
        self._save_in_flight = False
        self.stale_dropped = 0

    # -- state -------------------------------------------------------------

    @property
    def selection_token(self) -> int:
        return self._token

    @property
    def metadata(self) -> StreamSlot:
        return self._streams.metadata

    @property
    def relations(self) -> StreamSlot:
        return self._streams.relations

    @property
    def categories(self) -> StreamSlot:
        return self._streams.categories

    @property
    def is_saving(self) -> bool:
        return self._save_in_flight

    def _is_current(self, token: int, stream: str) -> bool:
        if token == self._token:
            return True
        self.stale_dropped += 1
        logger.debug(str(StaleResponseError(stream, token, self._token)))
        return False

    # -- selection ---------------------------------------------------------

    def select(self, entity: Entity) -> "asyncio.Future[List[None]]":
        """Select ``entity`` and start its three fetches.

        Must be called from a running event loop. Returns a future that
        resolves once all three streams have settled; awaiting it is optional.
        """
        self._token += 1
        token = self._token
        self.entity = entity
        for slot in self._streams.all():
            slot.reset(StreamStatus.LOADING)
        self.save.reset()

        entity_id = entity.id
        logger.info(f"Selected entity {entity_id} (token {token})")

        tasks = [
            asyncio.create_task(
                self._run_stream("metadata", token, lambda: self._client.get_metadata(entity_id))
            ),
            asyncio.create_task(
                self._run_stream("relations", token, lambda: self._client.get_relations(entity_id), flatten)
            ),
            asyncio.create_task(
                self._run_stream(
                    "categories",
                    token,
                    lambda: self._client.get_category_tree(entity_id),
                    lambda roots: flatten_tree(roots, self.max_tree_depth, self.header_mode),
                )
            ),
        ]
        return asyncio.gather(*tasks)

    async def _run_stream(
        self,
        stream: str,
        token: int,
        fetch: Callable[[], Awaitable[Any]],
        transform: Callable[[Any], Any] | None = None,
    ) -> None:
        slot: StreamSlot = getattr(self._streams, stream)
        try:
            data = await fetch()
            if not self._is_current(token, stream):
                return
            if transform is not None:
                data = transform(data)
        except OpenGINError as err:
            if not self._is_current(token, stream):
                return
            logger.warning(f"{stream} failed for token {token}: {type(err).__name__}: {err}")
            slot.fail(err)
            return
        except Exception as err:  # noqa: BLE001
            if not self._is_current(token, stream):
                return
            logger.error(f"{stream} failed unexpectedly for token {token}: {type(err).__name__}: {err}")
            slot.fail(NetworkError(f"{type(err).__name__}: {err}"))
            return
        slot.succeed(data)

    def close(self) -> None:
        """Drop the selection; late results of in-flight fetches are discarded."""
        self._token += 1
        self.entity = None
        for slot in self._streams.all():
            slot.reset()
        self.save.reset()

    # -- metadata writes ---------------------------------------------------

    async def save_metadata(self, candidates: Iterable[Any]) -> List[Dict[str, str]]:
        """Validate, merge and persist new metadata rows, then re-fetch.

        The locally merged list is only the write payload. After a successful
        POST the metadata slot is replaced with a fresh server read.

        Raises:
            SaveInProgressError: Another save has not resolved yet.
            MetadataNotLoadedError: No entity selected or its metadata is not loaded.
            ValidationError: Rejected by :func:`validate_and_merge`; nothing is sent.
            NetworkError: The POST failed.
        """
        if self._save_in_flight:
            raise SaveInProgressError()
        if self.entity is None or self.metadata.status != StreamStatus.SUCCESS:
            raise MetadataNotLoadedError()

        payload = validate_and_merge(self.metadata.data, candidates, self.header_mode)

        token = self._token
        entity_id = self.entity.id
        self._save_in_flight = True
        self.save.reset(StreamStatus.LOADING)
        try:
            try:
                await self._client.save_metadata(entity_id, payload)
            except OpenGINError as err:
                if token == self._token:
                    self.save.fail(err)
                raise

            if token == self._token:
                self.save.succeed(payload)
                self.metadata.reset(StreamStatus.LOADING)
                await self._run_stream("metadata", token, lambda: self._client.get_metadata(entity_id))
        finally:
            self._save_in_flight = False
        return payload

    # -- rendering ---------------------------------------------------------

    def snapshot(self) -> Dict[str, Any]:
        """JSON-friendly view of the current selection and its slots."""
        entity = None
        if self.entity is not None:
            entity = {"id": self.entity.id, "name": decode(self.entity.name, self.header_mode)}
        return {
            "selection_token": self._token,
            "entity": entity,
            "metadata": self.metadata.to_dict(lambda data: decode_metadata(data, self.header_mode)),
            "relations": self.relations.to_dict(
                lambda rows: [relation_row(r, lambda name: decode(name, self.header_mode)) for r in rows]
            ),
            "categories": self.categories.to_dict(lambda rows: [row.to_dict() for row in rows]),
            "save": self.save.to_dict(),
        }


class EntityPager:
    """Sequential page loader for one ``major``/``minor`` entity listing."""

    def __init__(self, client: OpenGINClient, major: str, minor: str, page_size: int = 50) -> None:
        if not major or not minor:
            raise InvalidQueryError("Major and minor parameters are required")
        self._client = client
        self.major = major
        self.minor = minor
        self.page_size = page_size
        self.offset = 0
        self.slot = StreamSlot()
        self._token = 0

    @property
    def page(self) -> Optional[EntityPage]:
        return self.slot.data if self.slot.status == StreamStatus.SUCCESS else None

    @property
    def has_previous(self) -> bool:
        return self.offset > 0

    @property
    def has_next(self) -> bool:
        page = self.page
        return page is not None and self.offset + self.page_size < page.total

    async def load(self, offset: int = 0) -> Optional[EntityPage]:
        """Fetch the page at ``offset``; a newer request supersedes this one."""
        self._token += 1
        token = self._token
        self.offset = max(0, offset)
        self.slot.reset(StreamStatus.LOADING)
        try:
            page = await self._client.list_entities(self.major, self.minor, self.offset, self.page_size)
        except OpenGINError as err:
            if token == self._token:
                logger.warning(f"Entity page {self.offset} failed: {err}")
                self.slot.fail(err)
            return None
        if token != self._token:
            logger.debug(str(StaleResponseError("page", token, self._token)))
            return None
        self.slot.succeed(page)
        return page

    async def next_page(self) -> Optional[EntityPage]:
        return await self.load(self.offset + self.page_size)

    async def previous_page(self) -> Optional[EntityPage]:
        return await self.load(self.offset - self.page_size)
