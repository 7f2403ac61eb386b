"""Notification layer - live activity payload construction and formatting."""

from live_activity_relay.notification.builder import ContentBuilder, article_url
from live_activity_relay.notification.formatter import (
    deal_number,
    encode_token_prices,
    format_decimal,
    format_percentage,
    parse_token_prices,
)
from live_activity_relay.notification.models import (
    ActivityAttributes,
    Alert,
    ContentFields,
    ContentState,
    EndNotification,
    EventKind,
    NotificationVariant,
    PushOptions,
    StartNotification,
    TokenPriceEntry,
    UpdateNotification,
)

__all__ = [
    "ActivityAttributes",
    "Alert",
    "ContentBuilder",
    "ContentFields",
    "ContentState",
    "EndNotification",
    "EventKind",
    "NotificationVariant",
    "PushOptions",
    "StartNotification",
    "TokenPriceEntry",
    "UpdateNotification",
    "article_url",
    "deal_number",
    "encode_token_prices",
    "format_decimal",
    "format_percentage",
    "parse_token_prices",
]
