"""Derive the public record of each catalog item.

Precedence per field:
- version: override, else first version token in the title, else 1.0.0
- filename: sanitized override, else the plugin file found in the
  archive, else a name generated from the title (fallback convention)
- author: override, else the catalog operator
- name: the title without its version token

All strings are tag-stripped before they leave the resolver.
"""

from collections.abc import Iterable

from loguru import logger

from rustmods_api.archive import ArchiveInspector
from rustmods_api.catalog import (
    CatalogItem,
    CatalogStore,
    DerivedRecord,
    ItemOverrides,
    MetaStore,
    product_for,
)
from rustmods_api.config import Settings, settings
from rustmods_api.naming import (
    archive_filename,
    detect_version,
    sanitize_source_filename,
    source_filename,
    strip_tags,
    strip_version,
)


class RecordResolver:
    """Build ``DerivedRecord`` objects from catalog items and overrides."""

    def __init__(
        self,
        catalog: CatalogStore,
        meta: MetaStore,
        inspector: ArchiveInspector | None = None,
        cfg: Settings | None = None,
    ):
        self._catalog = catalog
        self._meta = meta
        self._inspector = inspector
        self._cfg = cfg or settings

    def generated_filename(self, title: str, version: str) -> str:
        """Terminal fallback filename in the configured convention."""
        if self._cfg.resolve_fallback_naming() == "archive":
            return archive_filename(title, version)
        return source_filename(title, version, self._cfg.source_extension)

    def resolve(self, item: CatalogItem) -> DerivedRecord:
        """Derive the record of a single item."""
        product = product_for(self._catalog, item)
        title = product.get_name()
        overrides = ItemOverrides.load(self._meta, item.id)

        version = overrides.version or detect_version(title)

        if overrides.filename:
            filename = sanitize_source_filename(
                overrides.filename, self._cfg.source_extension
            )
        else:
            filename = None
            if self._inspector is not None:
                filename = self._inspector.resolve_embedded_source_name(
                    item, product
                )
            if not filename:
                filename = self.generated_filename(title, version)

        author = overrides.author or self._cfg.default_author
        name = strip_version(title, version)

        return DerivedRecord(
            filename=strip_tags(filename),
            name=strip_tags(name),
            version=strip_tags(version),
            author=strip_tags(author),
            url=item.permalink,
        )

    def resolve_all(self, items: Iterable[CatalogItem]) -> list[DerivedRecord]:
        """Derive records for ``items``, preserving their order.

        Unpublished items are skipped. One item failing never aborts the
        batch; it is logged and left out.
        """
        records = []
        for item in items:
            if not item.is_published:
                continue
            try:
                records.append(self.resolve(item))
            except Exception as e:
                logger.error(f"Failed to resolve item {item.id}: {e}")
        return records

    def build(self) -> list[DerivedRecord]:
        """Resolve every published item of the catalog."""
        return self.resolve_all(self._catalog.list_published())
