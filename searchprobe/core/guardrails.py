"""
Scope & Safety Guardrails.
Validates target domains and keeps the browser actor away from destructive controls.
"""

import ipaddress
import re
from urllib.parse import urlparse


class GuardrailViolation(Exception):
    """Raised when a guardrail is violated."""
    pass


# Hostnames that are never probed
BLOCKED_HOSTS = (
    "localhost",
    "google.com",
    "facebook.com",
    "twitter.com",
    "doubleclick.net",
)

# Controls the actor must never touch while searching
BLOCKED_ACTION_PATTERNS = (
    r".*log\s?out.*",
    r".*sign\s?out.*",
    r".*check\s?out.*",
    r".*place\s+order.*",
    r".*add\s+to\s+(cart|bag|basket).*",
    r".*delete.*account.*",
    r".*unsubscribe.*",
)

_HOST_RE = re.compile(r"^(?=.{1,253}$)([a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")


def normalize_domain(domain: str) -> str:
    """
    Normalize a domain or URL to its https root.

    Args:
        domain: Raw domain ("Example.com", "http://example.com/path")

    Returns:
        Root URL such as "https://example.com"
    """
    raw = (domain or "").strip()
    if not raw:
        raise GuardrailViolation("Empty domain")

    if not raw.startswith(("http://", "https://")):
        raw = "https://" + raw

    parsed = urlparse(raw)
    host = (parsed.hostname or "").lower().rstrip(".")
    if not host:
        raise GuardrailViolation(f"Could not parse a host from '{domain}'")

    try:
        port = f":{parsed.port}" if parsed.port else ""
    except ValueError as e:
        raise GuardrailViolation(f"Invalid port in '{domain}': {e}") from e
    return f"{parsed.scheme}://{host}{port}"


def domain_name(url: str) -> str:
    """Extract the bare hostname from a URL or domain."""
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    return (urlparse(url).hostname or url).lower()


class Guardrails:
    """
    Safety enforcement for probing.

    - Only public hostnames are probed
    - The actor never clicks purchase, logout, or account-deletion controls
    """

    def __init__(self, blocked_hosts: tuple[str, ...] = BLOCKED_HOSTS):
        self.blocked_hosts = blocked_hosts
        self.blocked_patterns = BLOCKED_ACTION_PATTERNS

    def validate_target(self, domain: str) -> str:
        """
        Validate a domain and return its normalized root URL.

        Raises:
            GuardrailViolation: If the domain is not a public hostname
        """
        root = normalize_domain(domain)
        host = domain_name(root)

        try:
            ip = ipaddress.ip_address(host)
        except ValueError:
            ip = None

        if ip is not None:
            if ip.is_private or ip.is_loopback or ip.is_link_local:
                raise GuardrailViolation(f"Host '{host}' is not public")
        elif not _HOST_RE.match(host):
            raise GuardrailViolation(f"'{host}' is not a valid hostname")

        for blocked in self.blocked_hosts:
            if host == blocked or host.endswith(f".{blocked}"):
                raise GuardrailViolation(f"Domain '{host}' is blocked")

        return root

    def validate_batch(self, domains: list[str]) -> list[str]:
        """
        Normalize and dedupe a list of domains, dropping invalid entries.

        Raises:
            GuardrailViolation: If no valid domain remains
        """
        roots: list[str] = []
        seen: set[str] = set()
        for domain in domains:
            try:
                root = self.validate_target(domain)
            except GuardrailViolation as e:
                print(f"[guardrails] Skipping {domain!r}: {e}")
                continue
            if root not in seen:
                seen.add(root)
                roots.append(root)

        if not roots:
            raise GuardrailViolation("No valid domains in batch")
        return roots

    def validate_action(self, action_type: str, target_label: str) -> bool:
        """
        Validate that a proposed actor action is safe to execute.

        Raises:
            GuardrailViolation: If the target matches a blocked pattern
        """
        label = (target_label or "").lower()
        for pattern in self.blocked_patterns:
            if re.match(pattern, label, re.IGNORECASE):
                raise GuardrailViolation(
                    f"{action_type} on '{target_label}' blocked by safety pattern"
                )
        return True
