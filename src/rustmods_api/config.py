"""Configuration settings for the RUSTMods API server."""

from pathlib import Path

from pydantic_settings import BaseSettings


def _default_data_dir() -> Path:
    """Get default data directory (~/.rustmods-api/)."""
    return Path.home() / ".rustmods-api"


# Terminal fallback conventions for generated filenames
FALLBACK_CONVENTIONS = ("source", "archive")


class Settings(BaseSettings):
    """RUSTMods API configuration.

    Environment variables:
    - DATA_DIR: Base directory for databases (default: ~/.rustmods-api)
    - CATALOG_DB_PATH / CACHE_DB_PATH: Override individual database paths
    - MODS_CACHE_TTL: Lifetime of the cached mods list in seconds (default: 300)
    - RESCAN_FLAG_TTL: Lifetime of a "rescan archive" request (default: 60)
    - EAGER_REBUILD: Rebuild the mods list right after invalidation (default: true)
    - FALLBACK_NAMING: "source" (PascalCase .cs) | "archive" (hyphenated .zip)
    - ARCHIVE_INSPECTION: Look inside download archives for the plugin file
    - FETCH_TIMEOUT: Timeout in seconds for remote archive downloads
    - UPLOADS_URL / UPLOADS_DIR: Serve archives under UPLOADS_URL from disk
    - ALLOW_PRIVATE_URLS: Allow fetching archives from private addresses
    """

    # Storage
    data_dir: str = ""  # Default: ~/.rustmods-api
    catalog_db_path: str = ""  # Default: <data_dir>/catalog.db
    cache_db_path: str = ""  # Default: <data_dir>/cache.db

    # Caching
    mods_cache_ttl: int = 300  # 5 minutes
    rescan_flag_ttl: int = 60
    eager_rebuild: bool = True

    # Metadata derivation
    fallback_naming: str = "source"  # "source" | "archive"
    default_author: str = "RUSTMods"
    source_extension: str = ".cs"

    # Archive inspection
    archive_inspection: bool = True
    fetch_timeout: int = 30
    max_archive_bytes: int = 100 * 1024 * 1024
    uploads_url: str = ""  # e.g. https://rustmods.com/wp-content/uploads
    uploads_dir: str = ""  # local directory backing uploads_url
    allow_private_urls: bool = False

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    transport: str = "streamable-http"  # "streamable-http" | "sse" | "stdio"

    # Logging
    log_level: str = "INFO"

    model_config = {"env_prefix": "", "case_sensitive": False}

    # --- Path helpers ---

    def get_data_dir(self) -> Path:
        """Get data directory.

        Uses DATA_DIR if set, otherwise ~/.rustmods-api/.
        """
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        return _default_data_dir()

    def get_catalog_db_path(self) -> Path:
        """Get resolved catalog database path."""
        if self.catalog_db_path:
            return Path(self.catalog_db_path).expanduser()
        return self.get_data_dir() / "catalog.db"

    def get_cache_db_path(self) -> Path:
        """Get resolved transient cache database path."""
        if self.cache_db_path:
            return Path(self.cache_db_path).expanduser()
        return self.get_data_dir() / "cache.db"

    def get_uploads_dir(self) -> Path | None:
        """Get the local uploads directory, or None when not configured."""
        if self.uploads_dir:
            return Path(self.uploads_dir).expanduser()
        return None

    # --- Naming resolution ---

    def resolve_fallback_naming(self) -> str:
        """Return the configured fallback convention.

        Unknown values fall back to "source".
        """
        value = self.fallback_naming.strip().lower()
        if value in FALLBACK_CONVENTIONS:
            return value
        return "source"


settings = Settings()
