"""Utilities to normalize user-supplied domains and attended URLs."""

from __future__ import annotations

import re
from fnmatch import fnmatchcase
from typing import Iterable, Optional
from urllib.parse import urlsplit

from .errors import InvalidDomain

_TRACKABLE_SCHEMES = ("http", "https")
_HOSTNAME_PATTERN = re.compile(r"^[a-z0-9_-]+(\.[a-z0-9_-]+)*\.?$")


def normalize_domain(text: Optional[str]) -> str:
    """Reduce free text such as ``WWW.Example.COM/path`` to ``example.com``."""
    candidate = (text or "").strip()
    if not candidate:
        raise InvalidDomain("Enter a website domain.")

    if "://" not in candidate:
        candidate = f"https://{candidate}"

    try:
        parsed = urlsplit(candidate)
        hostname = parsed.hostname
    except ValueError as exc:
        raise InvalidDomain() from exc

    if parsed.scheme.lower() not in _TRACKABLE_SCHEMES or not hostname:
        raise InvalidDomain()
    hostname = hostname.lower()
    if not _HOSTNAME_PATTERN.match(hostname):
        raise InvalidDomain()

    domain = _strip_www(hostname.rstrip("."))
    if not domain:
        raise InvalidDomain()
    return domain


def is_trackable_url(url: Optional[str]) -> bool:
    if not url:
        return False
    return url.startswith("http://") or url.startswith("https://")


def extract_host(url: str) -> Optional[str]:
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None
    return hostname.lower() if hostname else None


def host_matches(domain: Optional[str], host: Optional[str]) -> bool:
    if not domain or not host:
        return False
    return host == domain or host.endswith(f".{domain}")


def domains_overlap(first: str, second: str) -> bool:
    return host_matches(first, second) or host_matches(second, first)


def url_patterns(domain: str) -> list[str]:
    """Match patterns for every tab on ``domain`` or a subdomain, both schemes."""
    clean = re.sub(r"^\*+\.?", "", domain)
    patterns = [
        f"https://{clean}/*",
        f"http://{clean}/*",
        f"https://*.{clean}/*",
        f"http://*.{clean}/*",
    ]
    return list(dict.fromkeys(patterns))


def url_matches_patterns(url: str, patterns: Iterable[str]) -> bool:
    """Match ``url`` against ``scheme://host/path`` patterns.

    A host of ``*.domain`` matches the domain and its subdomains; the path
    part is a glob.
    """
    if not is_trackable_url(url):
        return False
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    path = parts.path or "/"
    for pattern in patterns:
        pattern_scheme, _, rest = pattern.partition("://")
        pattern_host, _, pattern_path = rest.partition("/")
        if pattern_scheme != scheme:
            continue
        if pattern_host.startswith("*."):
            host_ok = host_matches(pattern_host[2:], host)
        else:
            host_ok = host == pattern_host
        if host_ok and fnmatchcase(path, f"/{pattern_path}"):
            return True
    return False


def _strip_www(hostname: str) -> str:
    return hostname[4:] if hostname.startswith("www.") else hostname
