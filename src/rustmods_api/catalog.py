"""Catalog data model and the collaborator interfaces the core depends on.

The catalog (items, downloads, metadata) is owned elsewhere; the core only
reads it through the protocols below. ``CatalogDB`` in ``db.py`` is the
SQLite implementation shipped with the server.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

# Metadata keys for admin overrides
META_FILENAME = "mod_filename"
META_VERSION = "mod_version"
META_AUTHOR = "mod_author"
OVERRIDE_FIELDS: dict[str, str] = {
    "version": META_VERSION,
    "filename": META_FILENAME,
    "author": META_AUTHOR,
}

# Metadata keys for the archive inspection cache
META_DETECTED_FILENAME = "_mod_detected_filename"
META_DETECTED_SOURCE_URL = "_mod_detected_source_url"


@dataclass(frozen=True)
class Download:
    """A downloadable file attached to a catalog item."""

    name: str
    file_url: str


@dataclass(frozen=True)
class CatalogItem:
    """A publishable mod as the catalog stores it."""

    id: int
    title: str
    status: str = "publish"
    permalink: str = ""
    downloads: tuple[Download, ...] = ()

    @property
    def is_published(self) -> bool:
        return self.status == "publish"


@dataclass(frozen=True)
class ItemOverrides:
    """Admin-supplied values that win over auto-derivation.

    Each field is either None or a non-empty string.
    """

    filename: str | None = None
    version: str | None = None
    author: str | None = None

    @classmethod
    def load(cls, meta: MetaStore, item_id: int) -> ItemOverrides:
        """Read overrides for an item, treating empty values as absent."""
        values = {}
        for field_name, key in OVERRIDE_FIELDS.items():
            value = meta.get_meta(item_id, key)
            values[field_name] = value if value else None
        return cls(**values)


@dataclass(frozen=True)
class DerivedRecord:
    """One entry of the public mods list."""

    filename: str
    name: str
    version: str
    author: str
    url: str

    def to_dict(self) -> dict[str, str]:
        """Wire format: the version is exposed as ``last``."""
        return {
            "filename": self.filename,
            "name": self.name,
            "last": self.version,
            "author": self.author,
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> DerivedRecord:
        return cls(
            filename=str(data.get("filename", "")),
            name=str(data.get("name", "")),
            version=str(data.get("last", "")),
            author=str(data.get("author", "")),
            url=str(data.get("url", "")),
        )


# ---------------------------------------------------------------------------
# Collaborator protocols
# ---------------------------------------------------------------------------


class CatalogStore(Protocol):
    """Read access to catalog items."""

    def list_published(self) -> list[CatalogItem]:
        """All published items in the catalog's natural listing order."""
        ...

    def get_item(self, item_id: int) -> CatalogItem | None:
        """Single item by id, or None."""
        ...


class MetaStore(Protocol):
    """Per-item key/value metadata."""

    def get_meta(self, item_id: int, key: str) -> str | None: ...

    def set_meta(self, item_id: int, key: str, value: str) -> None: ...

    def delete_meta(self, item_id: int, key: str) -> None: ...


class Product(Protocol):
    """Commerce view of an item: display name and downloadable files."""

    def get_name(self) -> str: ...

    def get_downloads(self) -> list[Download]: ...


@dataclass
class NullProduct:
    """Product stand-in when the catalog has no commerce extension."""

    item: CatalogItem
    downloads: list[Download] = field(default_factory=list)

    def get_name(self) -> str:
        return self.item.title

    def get_downloads(self) -> list[Download]:
        return list(self.downloads)


def product_for(store: object, item: CatalogItem) -> Product:
    """Return the store's product view of ``item`` or a ``NullProduct``.

    Stores opt into the commerce capability by providing ``get_product``.
    """
    get_product = getattr(store, "get_product", None)
    if callable(get_product):
        product = get_product(item)
        if product is not None:
            return product
    return NullProduct(item)
