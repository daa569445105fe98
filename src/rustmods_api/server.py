"""RUSTMods API Server - Main server definition."""

import asyncio
import atexit
import json
import sys
import threading
from importlib.resources import files

from loguru import logger
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from rustmods_api.admin import form_placeholders, request_rescan, save_overrides
from rustmods_api.config import FALLBACK_CONVENTIONS, settings
from rustmods_api.naming import archive_filename, detect_version, source_filename
from rustmods_api.service import ModsService

# Configure logging
logger.remove()
logger.add(sys.stderr, level=settings.log_level)

# Module-level state (created on first use)
_service: ModsService | None = None
_service_lock = threading.Lock()


def _get_service() -> ModsService:
    """Return the shared service, opening the databases on first call."""
    global _service
    with _service_lock:
        if _service is None:
            _service = ModsService.from_settings()
            logger.info(
                f"Catalog at {settings.get_catalog_db_path()}, "
                f"cache at {settings.get_cache_db_path()}"
            )
        return _service


def _close_service() -> None:
    global _service
    with _service_lock:
        if _service is not None:
            _service.close()
            _service = None


# Initialize MCP server
mcp = FastMCP(
    name="rustmods",
    instructions=(
        "RUSTMods catalog API. "
        "Use `mods` to list the published mods with their derived metadata. "
        "Use `admin` to edit per-mod overrides or force an archive rescan. "
        "The list is cached for a few minutes and refreshed on catalog edits."
    ),
    host=settings.host,
    port=settings.port,
)


# ---------------------------------------------------------------------------
# Public HTTP route
# ---------------------------------------------------------------------------


@mcp.custom_route("/v1/mods", methods=["GET"])
async def list_mods_route(request: Request) -> Response:
    """Public, unauthenticated mods list. Always 200."""
    try:
        mods = await asyncio.to_thread(lambda: _get_service().list_mods())
    except Exception as e:
        logger.error(f"GET /v1/mods failed, returning empty list: {e}")
        mods = []
    return JSONResponse(mods)


# ---------------------------------------------------------------------------
# mods tool: list, get, preview
# ---------------------------------------------------------------------------


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=True,
        idempotentHint=True,
    ),
)
async def mods(
    action: str,
    item_id: int | None = None,
    title: str | None = None,
) -> str:
    """Read the mods catalog.
    - list: The public mods list (cached)
    - get: Freshly derived record of one item (requires item_id)
    - preview: Derived names for a title without saving (requires title)
    Use `help` tool for full documentation.
    """
    match action:
        case "list":
            result = await asyncio.to_thread(lambda: _get_service().list_mods())
            return json.dumps(result, ensure_ascii=False, indent=2)

        case "get":
            if item_id is None:
                return "Error: item_id is required for get action"
            service = _get_service()
            item = await asyncio.to_thread(service.catalog.get_item, item_id)
            if item is None:
                return f"Error: item {item_id} not found"
            record = await asyncio.to_thread(service.resolver.resolve, item)
            return json.dumps(
                {**record.to_dict(), "status": item.status},
                ensure_ascii=False,
                indent=2,
            )

        case "preview":
            if not title:
                return "Error: title is required for preview action"
            version = detect_version(title)
            return json.dumps(
                {
                    "version": version,
                    "source_filename": source_filename(
                        title, version, settings.source_extension
                    ),
                    "archive_filename": archive_filename(title, version),
                    "placeholders": form_placeholders(title),
                },
                ensure_ascii=False,
                indent=2,
            )

        case _:
            return f"Error: Unknown action '{action}'. Valid actions: list, get, preview"


# ---------------------------------------------------------------------------
# admin tool: save, rescan, invalidate
# ---------------------------------------------------------------------------


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=False,
        destructiveHint=False,
        openWorldHint=False,
    ),
)
async def admin(
    action: str,
    item_id: int | None = None,
    version: str | None = None,
    filename: str | None = None,
    author: str | None = None,
) -> str:
    """Edit mod overrides and refresh derived data.
    - save: Store overrides (requires item_id). Empty string clears a field,
      omitted fields stay unchanged.
    - rescan: Re-read the item's archive on the next build (requires item_id)
    - invalidate: Drop the cached mods list
    Use `help` tool for full documentation.
    """
    service = _get_service()

    match action:
        case "save":
            if item_id is None:
                return "Error: item_id is required for save action"
            if await asyncio.to_thread(service.catalog.get_item, item_id) is None:
                return f"Error: item {item_id} not found"
            submitted = {
                key: value
                for key, value in (
                    ("version", version),
                    ("filename", filename),
                    ("author", author),
                )
                if value is not None
            }
            if not submitted:
                return "Error: at least one of version, filename, author is required"
            changes = await asyncio.to_thread(
                save_overrides, service.catalog, item_id, submitted, service.events
            )
            return json.dumps({"status": "saved", "item_id": item_id, **changes})

        case "rescan":
            if item_id is None:
                return "Error: item_id is required for rescan action"
            await asyncio.to_thread(
                request_rescan, service.inspector, item_id, service.events
            )
            return json.dumps({"status": "rescan requested", "item_id": item_id})

        case "invalidate":
            await asyncio.to_thread(service.invalidate)
            return json.dumps({"status": "mods list invalidated"})

        case _:
            return (
                f"Error: Unknown action '{action}'. "
                "Valid actions: save, rescan, invalidate"
            )


@mcp.tool(
    annotations=ToolAnnotations(
        readOnlyHint=True,
        openWorldHint=False,
        idempotentHint=True,
    ),
)
async def help(tool_name: str = "mods") -> str:
    """Get full documentation for a tool.
    Use when compressed descriptions are insufficient.
    Valid tool names: mods, admin, config, help.
    """
    try:
        doc_file = files("rustmods_api.docs").joinpath(f"{tool_name}.md")
        return doc_file.read_text()
    except FileNotFoundError:
        return f"Error: No documentation found for tool '{tool_name}'"
    except Exception as e:
        return f"Error loading documentation: {e}"


@mcp.tool(
    description=(
        "Server config and management. Actions: "
        "status|set|cache_clear. "
        "Use help tool with tool_name='config' for full docs."
    ),
    annotations=ToolAnnotations(
        title="Config",
        readOnlyHint=False,
        destructiveHint=False,
        idempotentHint=True,
        openWorldHint=False,
    ),
)
async def config(
    action: str,
    key: str | None = None,
    value: str | None = None,
) -> str:
    """Server configuration and management.

    Actions:
    - status: Show current config and status
    - set: Update runtime setting (key + value required)
    - cache_clear: Clear the mods list and rescan flags
    """
    match action:
        case "status":
            status = await asyncio.to_thread(lambda: _get_service().status())
            status["settings"] = {
                "log_level": settings.log_level,
                "fetch_timeout": settings.fetch_timeout,
                "default_author": settings.default_author,
            }
            return json.dumps(status, indent=2, default=str)

        case "set":
            if not key or value is None:
                return json.dumps({"error": "key and value are required for set"})
            valid_keys = {
                "log_level",
                "eager_rebuild",
                "fallback_naming",
                "default_author",
                "archive_inspection",
                "fetch_timeout",
            }
            if key not in valid_keys:
                return json.dumps(
                    {
                        "error": f"Invalid key: {key}",
                        "valid_keys": sorted(valid_keys),
                    }
                )
            if key == "log_level":
                settings.log_level = value.upper()
                logger.remove()
                logger.add(sys.stderr, level=settings.log_level)
            elif key in ("eager_rebuild", "archive_inspection"):
                setattr(settings, key, value.lower() in ("true", "1", "yes"))
            elif key == "fetch_timeout":
                settings.fetch_timeout = int(value)
            elif key == "fallback_naming":
                if value.lower() not in FALLBACK_CONVENTIONS:
                    return json.dumps(
                        {
                            "error": f"Invalid fallback_naming: {value}",
                            "valid_values": list(FALLBACK_CONVENTIONS),
                        }
                    )
                settings.fallback_naming = value.lower()
            else:
                setattr(settings, key, value)

            # Derived values depend on these, drop the stale list
            if key in ("fallback_naming", "default_author", "archive_inspection"):
                await asyncio.to_thread(lambda: _get_service().invalidate())
            return json.dumps(
                {
                    "status": "updated",
                    "key": key,
                    "value": getattr(settings, key),
                },
                default=str,
            )

        case "cache_clear":
            cleared = await asyncio.to_thread(
                lambda: _get_service().transients.clear()
            )
            return json.dumps({"status": "cache cleared", "entries": cleared})

        case _:
            return (
                f"Error: Unknown action '{action}'. "
                "Valid actions: status, set, cache_clear"
            )


def main() -> None:
    """Entry point for the server."""
    atexit.register(_close_service)
    logger.info(
        f"Starting RUSTMods API ({settings.transport}) "
        f"on {settings.host}:{settings.port}"
    )
    mcp.run(transport=settings.transport)


if __name__ == "__main__":
    main()
