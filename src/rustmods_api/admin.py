"""Admin write surface for per-mod overrides.

Only fields the admin actually submitted are touched. An empty value
deletes the override so the field reverts to auto-derivation; anything
else is stored after sanitizing. Nothing is ever written automatically.
"""

from loguru import logger

from rustmods_api.archive import ArchiveInspector
from rustmods_api.catalog import OVERRIDE_FIELDS, MetaStore
from rustmods_api.config import settings
from rustmods_api.events import CatalogEvents
from rustmods_api.naming import (
    archive_filename,
    detect_version,
    sanitize_text_field,
)


def save_overrides(
    meta: MetaStore,
    item_id: int,
    submitted: dict[str, object],
    events: CatalogEvents | None = None,
) -> dict[str, str | None]:
    """Apply submitted override fields for an item.

    Args:
        meta: Metadata store holding the overrides.
        item_id: Catalog item id.
        submitted: Form values keyed by ``version``, ``filename``, ``author``.
            Missing keys leave the stored override as is.
        events: When given, the save is reported as an item update.

    Returns:
        Mapping of each submitted field to its stored value (None = deleted).
    """
    changes: dict[str, str | None] = {}
    for field_name, meta_key in OVERRIDE_FIELDS.items():
        if field_name not in submitted:
            continue
        raw = submitted[field_name]
        value = str(raw).strip() if raw is not None else ""
        if value:
            value = sanitize_text_field(value)
        if value:
            meta.set_meta(item_id, meta_key, value)
            changes[field_name] = value
        else:
            meta.delete_meta(item_id, meta_key)
            changes[field_name] = None

    if changes:
        logger.info(f"Item {item_id}: overrides saved {sorted(changes)}")
        if events is not None:
            events.item_mutated(item_id)
    return changes


def form_placeholders(title: str) -> dict[str, str]:
    """Values the admin form shows as hints for empty override fields."""
    version = detect_version(title)
    return {
        "version": version,
        "filename": archive_filename(title, version),
        "author": settings.default_author,
    }


def request_rescan(
    inspector: ArchiveInspector,
    item_id: int,
    events: CatalogEvents | None = None,
) -> None:
    """Ask for the item's archive to be inspected again on the next build."""
    inspector.request_rescan(item_id)
    logger.info(f"Item {item_id}: archive rescan requested")
    if events is not None:
        events.item_mutated(item_id)
