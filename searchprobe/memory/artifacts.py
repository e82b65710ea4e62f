"""
Artifact Store - filesystem namespace for probe screenshots.
Layout: <root>/<session_id>/<domain>/screens/<stage>.jpg
"""

import re
from pathlib import Path

from ..core.guardrails import domain_name


def sanitize(value: str) -> str:
    """Make a value safe for a single path segment."""
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "_", value).strip("._")
    return cleaned or "_"


class ArtifactStore:
    """Maps (session, domain, stage) to screenshot locations."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def directory(self, session_id: str, domain: str) -> Path:
        """Screens directory for a session/domain, created on demand."""
        path = self.root / sanitize(session_id) / sanitize(domain_name(domain)) / "screens"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def path(self, session_id: str, domain: str, stage: str) -> Path:
        """Filesystem location for one stage screenshot."""
        return self.directory(session_id, domain) / f"{sanitize(stage)}.jpg"

    def url(self, session_id: str, domain: str, stage: str) -> str:
        """Served URL for an artifact, relative to the artifacts mount."""
        return (
            f"/artifacts/{sanitize(session_id)}/{sanitize(domain_name(domain))}"
            f"/screens/{sanitize(stage)}.jpg"
        )
