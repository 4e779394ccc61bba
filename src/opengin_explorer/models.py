"""Data models and error types for the OpenGIN explorer."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationInfo, field_validator

# A wire value is either plain text or a {"typeUrl": ..., "value": <hex>} wrapper,
# delivered as a JSON string or (occasionally) as an already-parsed object.
WireValue = Union[str, Dict[str, Any]]
JsonDict = Dict[str, Any]


class APIConfiguration(BaseModel):
    """Connection settings handed to the HTTP client."""

    base_url: str = "http://localhost:8000"
    api_key: Optional[SecretStr] = None
    timeout: float = 30.0
    counts_path: str = "/counts"

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class _Snapshot(BaseModel):
    # Server payloads carry more than we model; keep the extras around.
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Entity(_Snapshot):
    id: str
    name: WireValue = ""
    created: Optional[str] = None
    terminated: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def _name_default(cls, value: Any) -> Any:
        return value if value is not None else ""


class RelationKind(_Snapshot):
    major: str = ""
    minor: str = ""


class Relation(_Snapshot):
    id: str = ""
    name: WireValue = ""
    kind: RelationKind = Field(default_factory=RelationKind)
    created: Optional[str] = None
    terminated: Optional[str] = None
    direction: Optional[str] = None

    @field_validator("kind", mode="before")
    @classmethod
    def _kind_default(cls, value: Any) -> Any:
        return value if value is not None else {}

    @field_validator("name", mode="before")
    @classmethod
    def _name_default(cls, value: Any) -> Any:
        return value if value is not None else ""


class RelationBatch(_Snapshot):
    body: List[Relation] = Field(default_factory=list)

    @field_validator("body", mode="before")
    @classmethod
    def _body_default(cls, value: Any) -> Any:
        return value if value is not None else []


class EntityPair(_Snapshot):
    major: str = ""
    minor: str = ""


class EntityPage(_Snapshot):
    pair: EntityPair = Field(default_factory=EntityPair)
    count: int = 0
    total: int = 0
    items: List[Entity] = Field(default_factory=list)
    offset: int = 0
    limit: int = 0

    @field_validator("pair", "items", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return {} if info.field_name == "pair" else []
        return value


class CountSummary(_Snapshot):
    total_count: int = 0
    major_counts: Dict[str, int] = Field(default_factory=dict)
    minor_counts: Dict[str, Dict[str, int]] = Field(default_factory=dict)

    @field_validator("major_counts", "minor_counts", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return value if value is not None else {}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class OpenGINError(Exception):
    """Base class for every error raised by the explorer core."""


class NetworkError(OpenGINError):
    """Non-success HTTP status or transport failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(NetworkError):
    """The backend refused our credentials."""


class EntityNotFoundError(NetworkError):
    def __init__(self, resource: str, message: str = "Resource not found") -> None:
        super().__init__(f"{message}: {resource}", status_code=404)
        self.resource = resource


class TimeoutError(NetworkError):  # noqa: A001
    def __init__(self, operation: str) -> None:
        super().__init__(f"Request timed out: {operation}")
        self.operation = operation


class StructuralError(OpenGINError):
    """Categorization data exceeds the traversal depth bound or contains a cycle."""

    def __init__(self, message: str, depth: int | None = None, node_id: str | None = None) -> None:
        super().__init__(message)
        self.depth = depth
        self.node_id = node_id


class StaleResponseError(OpenGINError):
    """A result arrived for a selection or page that has since been replaced.

    Only used for diagnostics; stale results are dropped, never surfaced.
    """

    def __init__(self, stream: str, token: int, current: int) -> None:
        super().__init__(f"Stale {stream} response (token {token}, current {current})")
        self.stream = stream
        self.token = token
        self.current = current


class ValidationError(OpenGINError):
    """Metadata submission rejected before any network call."""


class EmptyInputError(ValidationError):
    def __init__(self) -> None:
        super().__init__("Please add at least one metadata entry with both key and value")


class DuplicateInInputError(ValidationError):
    def __init__(self, keys: List[str]) -> None:
        super().__init__(f"Duplicate keys found: {', '.join(keys)}")
        self.keys = keys


class DuplicateExistingError(ValidationError):
    def __init__(self, keys: List[str]) -> None:
        super().__init__(f"Keys already exist: {', '.join(keys)}")
        self.keys = keys


class InvalidQueryError(ValidationError):
    """Listing request missing its required major/minor pair."""


class SaveInProgressError(OpenGINError):
    def __init__(self) -> None:
        super().__init__("A metadata save is already in progress")


class MetadataNotLoadedError(OpenGINError):
    def __init__(self) -> None:
        super().__init__("Existing metadata must be loaded before saving new entries")
