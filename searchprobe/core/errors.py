"""Exceptions raised across the probe and scheduling layers."""


class ProbeError(Exception):
    """Base class for infrastructure failures during a probe."""
    pass


class BrowserSessionError(ProbeError):
    """Raised when a browser session cannot be created or used."""
    pass


class HomepageLoadError(ProbeError):
    """Raised when the domain root cannot be loaded. Fatal for the session."""
    pass


class BatchNotFound(Exception):
    """Raised when a batch ID does not exist in the store."""
    pass


class TransientPageError(ProbeError):
    """Raised when a tier keeps landing on broken pages past the retry limit."""
    pass
