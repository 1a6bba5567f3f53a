from __future__ import annotations

import base64
import binascii
import re
from urllib.parse import parse_qs, urlsplit

from magstream.core.exceptions import AcquisitionError

_HEX_HASH = re.compile(r"^[0-9a-fA-F]{40}$")
_BASE32_HASH = re.compile(r"^[A-Za-z2-7]{32}$")


def is_magnet(locator: str) -> bool:
    return locator.strip().lower().startswith("magnet:?")


def info_hash(magnet_uri: str) -> str:
    """
    Returns the lower-case hex BitTorrent v1 info-hash of a magnet URI.
    Base32 hashes are converted.
    """
    query = urlsplit(magnet_uri.strip()).query
    for topic in parse_qs(query).get("xt", []):
        if not topic.lower().startswith("urn:btih:"):
            continue
        value = topic[len("urn:btih:"):]
        if _HEX_HASH.match(value):
            return value.lower()
        if _BASE32_HASH.match(value):
            try:
                return base64.b32decode(value.upper()).hex()
            except binascii.Error:
                break
        break
    raise AcquisitionError(f"magnet link has no usable btih topic: {magnet_uri}")


def bundle_key(locator: str) -> str:
    """
    Storage key of a bundle: the info-hash for magnets, the locator itself otherwise.
    """
    if is_magnet(locator):
        return info_hash(locator)
    return locator.strip()
