"""Live Activity Relay - fan-out of live activity updates to a push gateway."""

__version__ = "0.1.0"
