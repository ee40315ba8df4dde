"""
Domain authorization guard.

A pixel only accepts events from the website domain it is assigned to.
Pixels without an assignment accept no URL-bearing events at all.
"""
import re
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit

NO_DOMAIN_ASSIGNED = "no_domain_assigned"
DOMAIN_MISMATCH = "domain_mismatch"

_SCHEME_RE = re.compile(r"^https?://")


@dataclass(frozen=True)
class DomainCheck:
    allowed: bool
    reason: Optional[str] = None

    @property
    def message(self) -> Optional[str]:
        if self.reason == NO_DOMAIN_ASSIGNED:
            return "No website domain is assigned to this pixel"
        if self.reason == DOMAIN_MISMATCH:
            return "Event domain does not match the pixel's assigned domain"
        return None


def normalize_domain(value: Optional[str]) -> str:
    """
    Normalize a hostname for comparison.

    Example:
        normalize_domain(" HTTPS://www.MyStore.com/ ") -> "mystore.com"
    """
    if not value:
        return ""
    domain = value.strip().lower()
    domain = _SCHEME_RE.sub("", domain)
    if domain.startswith("www."):
        domain = domain[len("www."):]
    return domain.rstrip("/").strip()


def extract_host(url: Optional[str]) -> Optional[str]:
    """Hostname of a URL (no port), accepting scheme-less URLs."""
    if not url:
        return None
    candidate = url.strip()
    if "://" not in candidate:
        candidate = f"//{candidate}"
    try:
        host = urlsplit(candidate).hostname
    except ValueError:
        return None
    return host or None


def check_domain(request_host: Optional[str], assigned_domain: Optional[str]) -> DomainCheck:
    """Compare a request host against a pixel's assigned domain."""
    assigned = normalize_domain(assigned_domain)
    if not assigned:
        return DomainCheck(allowed=False, reason=NO_DOMAIN_ASSIGNED)

    if normalize_domain(request_host) != assigned:
        return DomainCheck(allowed=False, reason=DOMAIN_MISMATCH)

    return DomainCheck(allowed=True)
