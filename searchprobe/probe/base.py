"""
Base Component Class.
Common functionality for the probe engine's collaborators.
"""

from datetime import datetime


class BaseComponent:
    """
    Base class for probe components.
    Provides named, timestamped console logging.
    """

    def __init__(self, name: str):
        """
        Initialize component.

        Args:
            name: Component name used as the log tag
        """
        self.name = name

    def log(self, message: str) -> None:
        """Log a message with component name and timestamp."""
        timestamp = datetime.now().strftime("%H:%M:%S")
        print(f"[{timestamp}] [{self.name}] {message}")
