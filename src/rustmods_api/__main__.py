"""RUSTMods API entry point."""

import sys


def _rebuild() -> None:
    """Rebuild the cached mods list so the first request is served warm.

    Useful after bulk catalog imports that bypassed the server:
        rustmods-api rebuild
    """
    from rustmods_api.config import settings
    from rustmods_api.service import ModsService

    print("RUSTMods API: rebuilding mods list...")
    service = ModsService.from_settings(settings)
    try:
        for notice in service.inspector.notices():
            print(f"  Notice: {notice}")
        service.list_cache.invalidate()
        records = service.list_cache.rebuild()
        print(f"  {len(records)} published mods cached for {settings.mods_cache_ttl}s")
    finally:
        service.close()
    print("Rebuild complete!")


def _cli() -> None:
    """CLI dispatcher: server (default) or rebuild subcommand."""
    if len(sys.argv) >= 2 and sys.argv[1] == "rebuild":
        _rebuild()
    else:
        from rustmods_api.server import main

        main()


if __name__ == "__main__":
    _cli()
