"""Tests for src/rustmods_api/__main__.py — CLI dispatch."""

import sys
from unittest.mock import patch

from rustmods_api.__main__ import _cli, _rebuild
from rustmods_api.cache import MODS_CACHE_KEY, TransientCache
from rustmods_api.db import CatalogDB


def test_cli_defaults_to_server():
    with (
        patch.object(sys, "argv", ["rustmods-api"]),
        patch("rustmods_api.server.main") as mock_main,
    ):
        _cli()
    mock_main.assert_called_once()


def test_cli_rebuild():
    with (
        patch.object(sys, "argv", ["rustmods-api", "rebuild"]),
        patch("rustmods_api.__main__._rebuild") as mock_rebuild,
    ):
        _cli()
    mock_rebuild.assert_called_once()


def test_rebuild_warms_cache(cfg, capsys):
    db = CatalogDB(cfg.get_catalog_db_path())
    db.create_item("Raid Protection 2.1.0")
    db.close()

    with patch("rustmods_api.config.settings", cfg):
        _rebuild()

    assert "1 published mods cached" in capsys.readouterr().out
    cache = TransientCache(cfg.get_cache_db_path())
    try:
        assert cache.get(MODS_CACHE_KEY)[0]["name"] == "Raid Protection"
    finally:
        cache.close()
