"""TaskMate - task dashboard client with live synchronization."""

__version__ = "0.3.0"
