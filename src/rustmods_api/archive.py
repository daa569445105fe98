"""Recover the plugin source filename from a mod's download archive.

A mod is shipped as a zip whose first ``.cs`` entry is the real plugin
file (``RaidProtection.cs``). That name beats anything generated from the
title, so the resolver asks the inspector first.

Archives are read from the local uploads directory when their URL points
there, otherwise downloaded to a temporary file that is removed on every
exit path. Results are cached in item metadata together with the source
URL they were read from; a different URL invalidates the entry.

Every failure (no download, blocked URL, HTTP error, corrupt zip, no
matching entry) yields None. The caller falls back to generated names.
"""

import os
import posixpath
import tempfile
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from urllib.parse import unquote, urljoin, urlparse

import httpx
from loguru import logger

from rustmods_api.cache import TransientCache
from rustmods_api.catalog import (
    META_DETECTED_FILENAME,
    META_DETECTED_SOURCE_URL,
    CatalogItem,
    MetaStore,
    NullProduct,
    Product,
)
from rustmods_api.config import Settings, settings
from rustmods_api.naming import sanitize_source_filename
from rustmods_api.security import blocked_reason, is_safe_path

_MAX_REDIRECTS = 5
_USER_AGENT = "rustmods-api archive inspector"

RESCAN_FLAG_PREFIX = "rustmods_rescan_"


class ArchiveUnavailable(Exception):
    """The archive behind a source URL cannot be read."""


def archive_support() -> bool:
    """Check that compressed zip entries can be read (zlib present)."""
    try:
        import zlib  # noqa: F401

        return True
    except ImportError:
        return False


def _local_path(source_url: str, cfg: Settings) -> Path | None:
    """Map a source URL onto the uploads directory, if it lives there."""
    uploads_dir = cfg.get_uploads_dir()
    if uploads_dir is None:
        return None

    uploads_url = cfg.uploads_url.rstrip("/")
    if uploads_url and source_url.startswith(uploads_url + "/"):
        relative = unquote(urlparse(source_url[len(uploads_url) + 1 :]).path)
        candidate = uploads_dir / relative
    elif source_url.startswith("file://"):
        candidate = Path(unquote(urlparse(source_url).path))
    elif os.path.isabs(source_url):
        candidate = Path(source_url)
    else:
        return None

    if not is_safe_path(candidate, uploads_dir):
        raise ArchiveUnavailable(f"Path traversal blocked: {source_url}")
    return candidate


def _fetch(client: httpx.Client, url: str, fh, cfg: Settings) -> int:
    """Stream ``url`` into ``fh``, re-checking every redirect hop."""
    for _ in range(_MAX_REDIRECTS + 1):
        reason = blocked_reason(url, allow_private=cfg.allow_private_urls)
        if reason:
            raise ArchiveUnavailable(f"Unsafe URL blocked ({reason}): {url}")

        with client.stream("GET", url) as response:
            if response.is_redirect:
                url = urljoin(url, response.headers.get("location", ""))
                continue
            response.raise_for_status()

            total = 0
            for chunk in response.iter_bytes():
                total += len(chunk)
                if total > cfg.max_archive_bytes:
                    raise ArchiveUnavailable(
                        f"Archive exceeds {cfg.max_archive_bytes} bytes: {url}"
                    )
                fh.write(chunk)
            return total

    raise ArchiveUnavailable(f"Too many redirects: {url}")


@contextmanager
def open_download(source_url: str, cfg: Settings | None = None) -> Iterator[Path]:
    """Yield a local path holding the archive behind ``source_url``.

    Remote archives go to a temporary file that is deleted when the block
    exits, whether it succeeded or raised.
    """
    cfg = cfg or settings
    local = _local_path(source_url, cfg)
    if local is not None:
        if not local.is_file():
            raise ArchiveUnavailable(f"Archive not found on disk: {local}")
        yield local
        return

    fd, tmp_name = tempfile.mkstemp(prefix="rustmods-", suffix=".zip")
    tmp_path = Path(tmp_name)
    try:
        with (
            os.fdopen(fd, "wb") as fh,
            httpx.Client(
                timeout=cfg.fetch_timeout,
                transport=httpx.HTTPTransport(retries=2),
                headers={"User-Agent": _USER_AGENT},
            ) as client,
        ):
            size = _fetch(client, source_url, fh, cfg)
        logger.debug(f"Downloaded {size} bytes from {source_url}")
        yield tmp_path
    finally:
        tmp_path.unlink(missing_ok=True)


def find_source_entry(archive_path: Path, extension: str = ".cs") -> str | None:
    """Base name of the first archive entry ending with ``extension``.

    Entries are scanned in archive order; the match is case-insensitive.
    """
    try:
        with zipfile.ZipFile(archive_path) as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                name = info.filename.replace("\\", "/")
                if name.lower().endswith(extension.lower()):
                    return posixpath.basename(name)
    except (zipfile.BadZipFile, OSError) as e:
        logger.warning(f"Cannot open archive {archive_path}: {e}")
    return None


class ArchiveInspector:
    """Cached lookup of the plugin filename embedded in an item's archive."""

    def __init__(
        self,
        meta: MetaStore,
        transients: TransientCache | None = None,
        cfg: Settings | None = None,
    ):
        self._meta = meta
        self._transients = transients
        self._cfg = cfg or settings
        self._warned = False

    @property
    def available(self) -> bool:
        return self._cfg.archive_inspection and archive_support()

    def notices(self) -> list[str]:
        """Operator-facing notices about degraded inspection."""
        if not self._cfg.archive_inspection:
            return ["Archive inspection is disabled; filenames are generated."]
        if not archive_support():
            return [
                "zlib is not available: archives cannot be inspected, "
                "filenames are generated from titles."
            ]
        return []

    def resolve_embedded_source_name(
        self, item: CatalogItem, product: Product | None = None
    ) -> str | None:
        """Return the sanitized plugin filename from the item's archive."""
        if not self.available:
            if not self._warned:
                for notice in self.notices():
                    logger.warning(notice)
                self._warned = True
            return None

        product = product or NullProduct(item, list(item.downloads))
        downloads = product.get_downloads()
        if not downloads or not downloads[0].file_url:
            return None
        source_url = downloads[0].file_url

        if self._consume_rescan(item.id):
            self.forget(item.id)

        cached = self._cached_name(item.id, source_url)
        if cached:
            logger.debug(f"Archive cache HIT for item {item.id}: {cached}")
            return cached

        name = self._inspect(item.id, source_url)
        if not name:
            return None

        name = sanitize_source_filename(name, self._cfg.source_extension)
        self._meta.set_meta(item.id, META_DETECTED_FILENAME, name)
        self._meta.set_meta(item.id, META_DETECTED_SOURCE_URL, source_url)
        logger.info(f"Item {item.id}: found {name} in {source_url}")
        return name

    def _inspect(self, item_id: int, source_url: str) -> str | None:
        try:
            with open_download(source_url, self._cfg) as path:
                return find_source_entry(path, self._cfg.source_extension)
        except ArchiveUnavailable as e:
            logger.warning(f"Item {item_id}: {e}")
        except httpx.HTTPError as e:
            logger.warning(f"Item {item_id}: archive download failed: {e}")
        except Exception as e:
            logger.error(f"Item {item_id}: archive inspection failed: {e}")
        return None

    def _cached_name(self, item_id: int, source_url: str) -> str | None:
        name = self._meta.get_meta(item_id, META_DETECTED_FILENAME)
        cached_url = self._meta.get_meta(item_id, META_DETECTED_SOURCE_URL)
        if name and cached_url and source_url and cached_url == source_url:
            return name
        return None

    def forget(self, item_id: int) -> None:
        """Drop the cached inspection result for an item."""
        self._meta.delete_meta(item_id, META_DETECTED_FILENAME)
        self._meta.delete_meta(item_id, META_DETECTED_SOURCE_URL)

    def request_rescan(self, item_id: int) -> None:
        """Force re-inspection on the next lookup within the flag TTL."""
        if self._transients is None:
            self.forget(item_id)
            return
        self._transients.set(
            f"{RESCAN_FLAG_PREFIX}{item_id}", True, self._cfg.rescan_flag_ttl
        )

    def _consume_rescan(self, item_id: int) -> bool:
        if self._transients is None:
            return False
        key = f"{RESCAN_FLAG_PREFIX}{item_id}"
        if self._transients.get(key):
            self._transients.delete(key)
            return True
        return False
