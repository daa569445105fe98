"""Wiring of catalog, caches, inspector and resolver.

``ModsService`` owns the single mutation handler: every drained batch of
catalog mutations drops archive results for items whose downloads changed,
invalidates the mods list and (optionally) queues a rebuild on a background
worker, so catalog writes never wait for the list to be resolved again.
"""

from concurrent.futures import Future, ThreadPoolExecutor

from loguru import logger

from rustmods_api.archive import ArchiveInspector
from rustmods_api.cache import ListCache, TransientCache
from rustmods_api.config import Settings, settings
from rustmods_api.db import CatalogDB
from rustmods_api.events import ItemMutation
from rustmods_api.resolver import RecordResolver


class ModsService:
    """The mods list and everything needed to keep it coherent."""

    def __init__(
        self,
        catalog: CatalogDB,
        transients: TransientCache,
        cfg: Settings | None = None,
    ):
        self._cfg = cfg or settings
        self.catalog = catalog
        self.transients = transients
        self.events = catalog.events
        self.inspector = ArchiveInspector(catalog, transients, self._cfg)
        self.resolver = RecordResolver(catalog, catalog, self.inspector, self._cfg)
        self.list_cache = ListCache(
            transients, self.resolver.build, ttl=self._cfg.mods_cache_ttl
        )
        self._rebuilder = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="mods-rebuild"
        )
        self._pending_rebuild: Future | None = None
        self.events.subscribe(self.on_items_mutated)

    @classmethod
    def from_settings(cls, cfg: Settings | None = None) -> "ModsService":
        """Open the configured databases."""
        cfg = cfg or settings
        catalog = CatalogDB(cfg.get_catalog_db_path())
        transients = TransientCache(cfg.get_cache_db_path())
        return cls(catalog, transients, cfg)

    def list_mods(self) -> list[dict[str, str]]:
        """Public mods list in wire format. Never raises."""
        try:
            records = self.list_cache.get_or_build()
        except Exception as e:
            logger.error(f"Mods list cache unavailable, building uncached: {e}")
            try:
                records = self.resolver.build()
            except Exception as e:
                logger.error(f"Mods list build failed: {e}")
                records = []
        return [record.to_dict() for record in records]

    def on_items_mutated(self, mutations: list[ItemMutation]) -> None:
        """Invalidate derived state after catalog writes."""
        for mutation in mutations:
            if mutation.downloads_changed:
                self.inspector.forget(mutation.item_id)
        self.list_cache.invalidate()
        logger.debug(f"Invalidated mods list for {len(mutations)} item(s)")

        if self._cfg.eager_rebuild:
            try:
                self._pending_rebuild = self._rebuilder.submit(self._rebuild)
            except RuntimeError as e:
                logger.warning(f"Eager mods list rebuild not scheduled: {e}")

    def _rebuild(self) -> None:
        try:
            self.list_cache.rebuild()
        except Exception as e:
            logger.warning(f"Eager mods list rebuild failed (ignored): {e}")

    def wait_for_rebuild(self, timeout: float | None = None) -> None:
        """Block until the last queued rebuild has finished."""
        pending = self._pending_rebuild
        if pending is not None:
            pending.result(timeout=timeout)

    def invalidate(self) -> None:
        self.list_cache.invalidate()

    def status(self) -> dict:
        """Operator view of stores, cache and inspection health."""
        return {
            "catalog": {
                "path": str(self._cfg.get_catalog_db_path()),
                "items": self.catalog.stats(),
            },
            "cache": {
                "path": str(self._cfg.get_cache_db_path()),
                "ttl": self._cfg.mods_cache_ttl,
                "eager_rebuild": self._cfg.eager_rebuild,
                **self.transients.stats(),
            },
            "archive_inspection": {
                "available": self.inspector.available,
                "notices": self.inspector.notices(),
            },
            "fallback_naming": self._cfg.resolve_fallback_naming(),
        }

    def close(self) -> None:
        self._rebuilder.shutdown(wait=True)
        self.catalog.close()
        self.transients.close()
