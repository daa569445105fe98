"""Guards for archive locations: remote download URLs and local upload paths."""

import ipaddress
import socket
from pathlib import Path
from urllib.parse import urlparse

_ALLOWED_SCHEMES = ("http", "https")
_LOCAL_HOSTNAMES = ("localhost", "localhost.localdomain")


def _unsafe_address(address: str) -> str | None:
    """Describe why a resolved address must not be fetched, or None."""
    try:
        # fe80::1%eth0 -> fe80::1
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return None
    if ip.is_loopback:
        return f"loopback address {ip}"
    if ip.is_link_local:
        return f"link-local address {ip}"
    if ip.is_private:
        return f"private address {ip}"
    if ip.is_reserved or ip.is_multicast:
        return f"reserved address {ip}"
    return None


def blocked_reason(url: str, allow_private: bool = False) -> str | None:
    """Return why an archive URL must not be downloaded, or None if it may.

    Only http(s) URLs with a host are fetched. Unless ``allow_private`` is
    set, every address the host resolves to must be public. A host that does
    not resolve is let through: the download itself will fail.
    """
    try:
        parsed = urlparse(url)
    except ValueError:
        return "malformed URL"

    if parsed.scheme not in _ALLOWED_SCHEMES:
        return f"scheme {parsed.scheme or '(none)'!r} not allowed"

    hostname = parsed.hostname
    if not hostname:
        return "no host"
    if allow_private:
        return None
    if hostname.lower() in _LOCAL_HOSTNAMES:
        return f"local host {hostname}"

    # IP literals need no lookup
    try:
        ipaddress.ip_address(hostname.split("%", 1)[0])
    except ValueError:
        pass
    else:
        return _unsafe_address(hostname)

    try:
        addresses = {str(info[4][0]) for info in socket.getaddrinfo(hostname, None)}
    except socket.gaierror:
        return None
    except OSError as e:
        return f"cannot resolve {hostname}: {e}"

    for address in sorted(addresses):
        reason = _unsafe_address(address)
        if reason:
            return f"{hostname} resolves to {reason}"
    return None


def is_safe_path(path: str | Path, base: str | Path) -> bool:
    """Check that ``path`` resolves inside ``base`` (no traversal)."""
    try:
        resolved = Path(path).expanduser().resolve()
        root = Path(base).expanduser().resolve()
    except (OSError, RuntimeError, ValueError):
        return False
    return resolved.is_relative_to(root)
