"""Version detection and filename normalization for catalog titles.

Titles are free text typed by shop admins ("Raid Protection 2.1.0",
"Simple Base"). Everything here is a pure function of its inputs so the
resolver and the admin form always agree on the derived values.

Two filename conventions exist:
- archive: hyphenated, case preserved, ``.zip`` (``Raid-Protection-2.1.0.zip``)
- source: PascalCase plugin file, ``.cs`` (``RaidProtection.cs``)
"""

import re

DEFAULT_VERSION = "1.0.0"

# N.N or N.N.N of ASCII digits on word boundaries; first match wins
_VERSION_RE = re.compile(r"\b\d+(?:\.\d+){1,2}\b", re.ASCII)

_ARCHIVE_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9\s-]")
_SOURCE_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_HYPHENS_RE = re.compile(r"-+")
_SEPARATOR_RE = re.compile(r"[-_]")

# Markup stripping (script/style bodies go with their tags)
_SCRIPT_STYLE_RE = re.compile(
    r"<(script|style)[^>]*?>.*?</\1\s*>", re.IGNORECASE | re.DOTALL
)
_TAG_RE = re.compile(r"<[^>]*>")
_OCTET_RE = re.compile(r"%[a-fA-F0-9]{2}")


def detect_version(title: object) -> str:
    """Return the first ``N.N`` / ``N.N.N`` token in a title, verbatim.

    Non-string or empty input, and titles without a version, yield
    ``DEFAULT_VERSION``.
    """
    if not isinstance(title, str) or not title:
        return DEFAULT_VERSION
    match = _VERSION_RE.search(title)
    if match:
        return match.group(0)
    return DEFAULT_VERSION


def strip_version(title: str, version: str) -> str:
    """Remove the first word-bounded occurrence of ``version`` from a title.

    The default version is never stripped. Whitespace around the removed
    token collapses to a single space and the result is trimmed.
    """
    if not isinstance(title, str):
        return ""
    if not version or version == DEFAULT_VERSION:
        return title.strip()
    pattern = re.compile(
        r"\s*\b" + re.escape(version) + r"\b\s*", re.IGNORECASE | re.ASCII
    )
    return pattern.sub(" ", title, count=1).strip()


def _pascal_case(text: str) -> str:
    words = [w for w in _WHITESPACE_RE.split(text.strip()) if w]
    return "".join(w[:1].upper() + w[1:].lower() for w in words)


def archive_base_name(title: str, version: str) -> str:
    """Hyphenated, case-preserving base name. Never empty."""
    if not isinstance(title, str) or not title:
        return "product"
    base = strip_version(title, version)
    base = _ARCHIVE_UNSAFE_RE.sub("", base)
    base = _WHITESPACE_RE.sub("-", base)
    base = _HYPHENS_RE.sub("-", base)
    base = base.strip("-")
    return base or "product"


def archive_filename(title: str, version: str) -> str:
    """Archive-style filename, e.g. ``Raid-Protection-2.1.0.zip``.

    The version suffix is only added for a non-default version.
    """
    base = archive_base_name(title, version)
    if version and version != DEFAULT_VERSION:
        return f"{base}-{version}.zip"
    return f"{base}.zip"


def source_filename(title: str, version: str, extension: str = ".cs") -> str:
    """PascalCase plugin filename, e.g. ``RaidProtection.cs``.

    No version suffix: when the real plugin file can be recovered from the
    archive it wins over this generated name.
    """
    base = ""
    if isinstance(title, str) and title:
        base = strip_version(title, version)
        base = _SOURCE_UNSAFE_RE.sub("", base)
        base = _pascal_case(_WHITESPACE_RE.sub(" ", base))
    return f"{base or 'Product'}{extension}"


def sanitize_source_filename(filename: str, extension: str = ".cs") -> str:
    """Normalize a filename containing ``-`` or ``_`` to PascalCase.

    ``raid_protection.cs`` -> ``RaidProtection.cs``. Names without either
    separator pass through untouched, which makes the function idempotent.
    """
    if not isinstance(filename, str) or not _SEPARATOR_RE.search(filename):
        return filename

    has_extension = filename.lower().endswith(extension.lower())
    base = filename[: -len(extension)] if has_extension else filename
    base = _SEPARATOR_RE.sub(" ", base)
    base = _SOURCE_UNSAFE_RE.sub("", base)
    base = _pascal_case(_WHITESPACE_RE.sub(" ", base)) or "Product"
    if has_extension:
        return f"{base}{extension}"
    return base


def strip_tags(text: object) -> str:
    """Strip HTML tags (and script/style bodies) from text and trim it."""
    if text is None:
        return ""
    text = str(text)
    text = _SCRIPT_STYLE_RE.sub("", text)
    text = _TAG_RE.sub("", text)
    return text.strip()


def sanitize_text_field(text: object) -> str:
    """Clean a submitted form value: no tags, no octets, single-line, trimmed."""
    text = strip_tags(text)
    text = _OCTET_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()
