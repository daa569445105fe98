"""Pytest configuration and fixtures."""

import zipfile

import pytest

from rustmods_api.cache import TransientCache
from rustmods_api.config import Settings
from rustmods_api.db import CatalogDB
from rustmods_api.events import CatalogEvents
from rustmods_api.service import ModsService

UPLOADS_URL = "https://rustmods.com/wp-content/uploads"


@pytest.fixture
def cfg(tmp_path):
    """Settings isolated in a temp dir, lazy rebuild, local uploads mapping."""
    uploads = tmp_path / "uploads"
    uploads.mkdir()
    return Settings(
        data_dir=str(tmp_path / "data"),
        uploads_dir=str(uploads),
        uploads_url=UPLOADS_URL,
        eager_rebuild=False,
        fallback_naming="source",
        archive_inspection=True,
    )


@pytest.fixture
def uploads_dir(cfg):
    return cfg.get_uploads_dir()


@pytest.fixture
def make_zip(uploads_dir):
    """Create a zip in the uploads dir and return its public URL.

    Usage: ``make_zip("mod.zip", ["readme.txt", "src/MyMod.cs"])``
    """

    def _make(name: str, entries: list[str]) -> str:
        path = uploads_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for entry in entries:
                if entry.endswith("/"):
                    zf.writestr(entry, "")
                else:
                    zf.writestr(entry, f"// {entry}\n")
        return f"{UPLOADS_URL}/{name}"

    return _make


@pytest.fixture
def events():
    return CatalogEvents()


@pytest.fixture
def catalog(cfg, events):
    db = CatalogDB(cfg.get_catalog_db_path(), events)
    yield db
    db.close()


@pytest.fixture
def transients(cfg):
    cache = TransientCache(cfg.get_cache_db_path())
    yield cache
    cache.close()


@pytest.fixture
def service(catalog, transients, cfg):
    service = ModsService(catalog, transients, cfg)
    yield service
    service.close()
