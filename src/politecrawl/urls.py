"""
URL canonicalization and crawl-scope checks.

Every URL that reaches the frontier has been through normalize(), so two
spellings of the same page compare equal in the visited set.
"""

from typing import Iterable, Optional, Set
from urllib.parse import urlsplit, urlunsplit

REJECTED_PREFIXES = ("mailto:", "javascript:", "tel:")
DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize(raw: Optional[str]) -> Optional[str]:
    """
    Canonicalize a raw URL, or return None if it should be discarded.

    examples

    "HTTPS://Example.COM:443/docs?b=2#intro"  ->  "https://example.com/docs?b=2"
    "http://example.com"                      ->  "http://example.com/"
    "mailto:someone@example.com"              ->  None
    "ftp://example.com/file"                  ->  None
    """
    if raw is None:
        return None
    url = raw.strip()
    if not url:
        return None
    if url.lower().startswith(REJECTED_PREFIXES):
        return None

    try:
        parts = urlsplit(url)
        port = parts.port  # raises ValueError on a non-numeric or out-of-range port
    except ValueError:
        return None

    scheme = parts.scheme.lower()
    if scheme not in DEFAULT_PORTS:
        return None

    host = parts.hostname  # already lower-cased, IPv6 brackets stripped
    if not host:
        return None

    netloc = f"[{host}]" if ":" in host else host
    if port is not None and port != DEFAULT_PORTS[scheme]:
        netloc = f"{netloc}:{port}"
    if "@" in parts.netloc:
        userinfo = parts.netloc.rpartition("@")[0]
        netloc = f"{userinfo}@{netloc}"

    path = parts.path or "/"

    # fragment is always dropped
    return urlunsplit((scheme, netloc, path, parts.query, ""))


def host_of(url: str) -> Optional[str]:
    """Lower-cased host of a URL, or None when it has none or cannot be parsed."""
    try:
        return urlsplit(url).hostname
    except ValueError:
        return None


class ScopePolicy:
    """
    Restricts discovered links to a whitelist of hosts and their subdomains.
    Without it the frontier grows without bound.
    """

    def __init__(self, allowed_hosts: Iterable[str]):
        self.allowed_hosts: Set[str] = {h.lower() for h in allowed_hosts if h}

    @classmethod
    def from_seeds(cls, seeds: Iterable[str]) -> "ScopePolicy":
        """Build the policy from the hosts of the (normalizable) seed URLs."""
        hosts = set()
        for seed in seeds:
            normalized = normalize(seed)
            if normalized is None:
                continue
            host = host_of(normalized)
            if host:
                hosts.add(host)
        return cls(hosts)

    def is_in_scope(self, url: str) -> bool:
        host = host_of(url)
        if not host:
            return False
        return any(host == d or host.endswith("." + d) for d in self.allowed_hosts)
