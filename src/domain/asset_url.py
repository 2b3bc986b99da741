"""
Storage URL decomposition.

Delivery URLs look like::

    https://res.cloudinary.com/<account>/image/upload/[<transformations>/]v1690000000/products/abc/photo.jpg

The same URL always yields the same public id, which is what both the source
and the destination account address the asset by.
"""

import re
from typing import Iterable, List, Optional
from urllib.parse import urlsplit, urlunsplit

from .exceptions import DecomposeError
from .models import AssetRef, ResourceType

_RESOURCE_TYPES = {rt.value for rt in ResourceType}
_VERSION_RE = re.compile(r"^v\d+$")


def _path_segments(url: str) -> List[str]:
    try:
        parsed = urlsplit(url)
    except ValueError as e:
        raise DecomposeError(f"Unparseable URL: {url}") from e
    return [segment for segment in parsed.path.split("/") if segment]


def decompose(url: str) -> AssetRef:
    """
    Turn a delivery URL into an AssetRef.

    Args:
        url: Storage URL as found in the database

    Returns:
        AssetRef for the URL

    Raises:
        DecomposeError: If the URL has no resource type or no upload path
    """
    if not url or not isinstance(url, str):
        raise DecomposeError(f"Not a URL: {url!r}")

    segments = _path_segments(url)

    type_index = next(
        (i for i, segment in enumerate(segments) if segment in _RESOURCE_TYPES),
        None
    )
    if type_index is None:
        raise DecomposeError(f"No resource type segment in URL: {url}")

    # Skip the type marker and the delivery mode that follows it (upload, private, ...)
    upload_path = segments[type_index + 2:]
    if not upload_path:
        raise DecomposeError(f"Missing upload path segments: {url}")

    version = None
    for i, segment in enumerate(upload_path):
        if _VERSION_RE.match(segment):
            version = segment
            upload_path = upload_path[i + 1:]
            break

    if not upload_path:
        raise DecomposeError(f"Nothing after version segment: {url}")

    filename = upload_path[-1]
    bare_name, dot, extension = filename.rpartition(".")
    if dot and bare_name:
        fmt: Optional[str] = extension.lower()
    else:
        bare_name, fmt = filename, None

    folder = "/".join(upload_path[:-1]) or None
    public_id = f"{folder}/{bare_name}" if folder else bare_name

    return AssetRef(
        source_url=url,
        public_id=public_id,
        resource_type=ResourceType(segments[type_index]),
        filename=filename,
        folder=folder,
        format=fmt,
        version=version,
    )


def account_of(url: str) -> Optional[str]:
    """Account segment of a delivery URL (the segment before the resource type)."""
    try:
        segments = _path_segments(url)
    except DecomposeError:
        return None
    for i, segment in enumerate(segments):
        if segment in _RESOURCE_TYPES:
            return segments[i - 1] if i > 0 else None
    return None


def references_account(url: str, accounts: Iterable[str]) -> bool:
    """True if the URL is served from one of the given accounts."""
    names = set(accounts)
    if not names or not url:
        return False
    account = account_of(url)
    if account in names:
        return True
    host = urlsplit(url).hostname or ""
    return any(host.startswith(f"{name}-") or host.startswith(f"{name}.") for name in names)


def rewrite_account(url: str, old_accounts: Iterable[str], target: str) -> str:
    """
    Point a delivery URL at another account, leaving the rest untouched.

    Args:
        url: Original URL
        old_accounts: Account names that may appear in the URL
        target: Account name to substitute

    Returns:
        Rewritten URL, or the original one if no old account is referenced
    """
    names = set(old_accounts) - {target}
    if not names:
        return url

    parsed = urlsplit(url)
    path_parts = parsed.path.split("/")
    for i, part in enumerate(path_parts):
        if part in names:
            path_parts[i] = target
            return urlunsplit(parsed._replace(path="/".join(path_parts)))

    host = parsed.netloc
    for name in names:
        for sep in ("-", "."):
            if host.startswith(name + sep):
                return urlunsplit(parsed._replace(netloc=target + host[len(name):]))

    return url
