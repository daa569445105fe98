"""RUSTMods API - public mods list with derived metadata."""

from importlib.metadata import version

from rustmods_api.__main__ import _cli as main
from rustmods_api.server import mcp

__version__ = version("rustmods-api")
__all__ = ["mcp", "main", "__version__"]
