"""Host handling: inbound domain prefixes and outbound short URLs."""

from collections.abc import Iterable
from typing import Optional
from urllib.parse import urlsplit

__all__ = ["extract_domain_prefix", "compose_short_url"]


def extract_domain_prefix(host: Optional[str], reserved: Iterable[str] = ("www", "app")) -> Optional[str]:
    """Return the leftmost host label when it can name a custom domain.

    ``alice.sho.rt`` yields ``"alice"``; ``sho.rt``, ``www.sho.rt`` and
    ``app.sho.rt`` yield ``None``.
    """
    if not host:
        return None
    hostname = host.strip().lower()
    if hostname.startswith("["):
        # IPv6 literal
        return None
    hostname = hostname.split(":", 1)[0].rstrip(".")
    labels = hostname.split(".")
    if len(labels) <= 2 or not labels[0]:
        return None
    if all(label.isdigit() for label in labels):
        # IPv4 literal
        return None
    if labels[0] in {r.lower() for r in reserved}:
        return None
    return labels[0]


def compose_short_url(base_url: str, path: str, domain_prefix: Optional[str] = None) -> str:
    base_url = base_url.rstrip("/")
    if not domain_prefix:
        return f"{base_url}/{path}"
    parts = urlsplit(base_url)
    scheme = parts.scheme or "https"
    return f"{scheme}://{domain_prefix.lower()}.{parts.netloc}{parts.path}/{path}"
