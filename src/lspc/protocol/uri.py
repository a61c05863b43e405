"""Conversion between filesystem paths and file:// URIs."""

from __future__ import annotations

from urllib.parse import quote, unquote, urlparse

FILE_SCHEME = "file"


def path_to_uri(path: str) -> str:
    """Build a file URI for an absolute path, percent-encoding as needed."""
    return f"{FILE_SCHEME}://{quote(path, safe='/')}"


def uri_to_path(uri: str) -> str:
    """Decode a file URI into a path.

    Strings without a scheme are treated as paths already.
    """
    parsed = urlparse(uri)
    if not parsed.scheme:
        return uri
    if parsed.scheme != FILE_SCHEME:
        raise ValueError(f"Not a file URI: {uri}")
    return unquote(parsed.path)
