"""OpenGIN explorer MCP server implementation using FastMCP."""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from .client import OpenGINClient
from .config import ServerConfig, setup_logging
from .models import Entity, OpenGINError, ValidationError
from .orchestrator import EntityDetailOrchestrator, EntityPager
from .presentation import count_distribution, entity_page_view

logger = logging.getLogger(__name__)

# Global instances, owned by the lifespan below
_config: ServerConfig | None = None
_client: OpenGINClient | None = None
_detail: EntityDetailOrchestrator | None = None


def get_client() -> OpenGINClient:
    """Get the global OpenGIN client instance."""
    if _client is None:
        raise RuntimeError("OpenGIN client not initialized. Server not started properly.")
    return _client


def get_detail() -> EntityDetailOrchestrator:
    """Get the global entity detail orchestrator."""
    if _detail is None:
        raise RuntimeError("Entity detail orchestrator not initialized. Server not started properly.")
    return _detail


def get_config() -> ServerConfig:
    if _config is None:
        raise RuntimeError("Server configuration not loaded. Server not started properly.")
    return _config


@asynccontextmanager
async def lifespan(_app: FastMCP):  # type: ignore[no-untyped-def]
    """Manage server lifecycle."""
    global _config, _client, _detail

    logger.info("Starting OpenGIN explorer MCP server")

    _config = ServerConfig()
    api_config = _config.get_api_config()
    _client = OpenGINClient(api_config)
    _detail = EntityDetailOrchestrator(
        _client,
        max_tree_depth=_config.max_tree_depth,
        header_mode=_config.wire_header_mode,
    )
    logger.info(f"OpenGIN client initialized with base URL: {api_config.base_url}")

    try:
        yield
    finally:
        logger.info("Shutting down OpenGIN explorer MCP server")
        if _client:
            await _client.close()
        _client = None
        _detail = None
        _config = None


mcp = FastMCP(
    "OpenGIN Explorer",
    instructions="Browse OpenGIN entities, their relations, category trees and metadata",
    lifespan=lifespan,
)


@mcp.tool(name="opengin_counts", description="Entity totals with major and minor kind distributions")
async def opengin_counts() -> dict:
    summary = await get_client().get_counts()
    return {
        "success": True,
        "total_count": summary.total_count,
        "major": count_distribution(summary, "major"),
        "minor": count_distribution(summary, "minor"),
    }


@mcp.tool(name="opengin_list_entities", description="List one page of entities of a major/minor kind")
async def opengin_list_entities(major: str, minor: str, offset: int = 0, limit: int | None = None) -> dict:
    """List entities.

    Args:
        major: Major kind, e.g. "Organisation"
        minor: Minor kind, e.g. "department"
        offset: Zero-based index of the first entity
        limit: Page size (defaults to the configured page size)
    """
    try:
        pager = EntityPager(get_client(), major, minor, page_size=limit or get_config().page_size)
    except ValidationError as e:
        return {"success": False, "error": str(e)}

    page = await pager.load(offset)
    if page is None:
        return {"success": False, **pager.slot.to_dict()}
    return {"success": True, **entity_page_view(page, get_config().wire_header_mode)}


@mcp.tool(
    name="opengin_entity_detail",
    description="Select an entity and load its metadata, relations and category tree concurrently",
)
async def opengin_entity_detail(entity_id: str, name: str = "") -> dict:
    detail = get_detail()
    await detail.select(Entity(id=entity_id, name=name))
    return {"success": True, **detail.snapshot()}


@mcp.tool(name="opengin_add_metadata", description="Add new metadata key/value entries to the selected entity")
async def opengin_add_metadata(entries: list[dict[str, Any]], entity_id: str | None = None) -> dict:
    """Add metadata to the selected entity.

    Args:
        entries: Rows like [{"key": "source", "value": "gazette"}]
        entity_id: Selects this entity first when it differs from the current one
    """
    detail = get_detail()
    if entity_id and (detail.entity is None or detail.entity.id != entity_id):
        await detail.select(Entity(id=entity_id))

    try:
        payload = await detail.save_metadata(entries)
    except ValidationError as e:
        return {"success": False, "error": str(e), "keys": getattr(e, "keys", [])}
    except OpenGINError as e:
        logger.warning(f"Metadata save failed: {e}")
        return {"success": False, "error": f"{type(e).__name__}: {e}"}

    return {"success": True, "saved": payload, **detail.snapshot()}


@mcp.tool(name="opengin_close_detail", description="Clear the selected entity and its detail views")
async def opengin_close_detail() -> dict:
    get_detail().close()
    return {"success": True}


def main() -> None:
    setup_logging(ServerConfig().log_level)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
