"""Content store - live activity ids and stored article content."""

from live_activity_relay.storage.database import create_engine, create_session_factory, create_tables
from live_activity_relay.storage.models import Base, LiveActivityContentModel, LiveActivityModel
from live_activity_relay.storage.repos import LiveActivityContentDTO, LiveActivityRepository

__all__ = [
    "Base",
    "LiveActivityContentDTO",
    "LiveActivityContentModel",
    "LiveActivityModel",
    "LiveActivityRepository",
    "create_engine",
    "create_session_factory",
    "create_tables",
]
