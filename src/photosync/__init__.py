"""PhotoSync - photo catalog synchronization server and client."""

__version__ = "0.1.0"
