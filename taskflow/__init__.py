"""TaskFlow: team task management with real-time updates."""

__version__ = "1.0.0"
