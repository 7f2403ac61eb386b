"""Data models for live activity notifications.

All numeric market figures are carried as preformatted display strings;
no numeric type crosses into the notification payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from live_activity_relay.errors import UnsupportedEventKind


class EventKind(Enum):
    """Live activity lifecycle event."""

    START = "start"
    UPDATE = "update"
    END = "end"

    @classmethod
    def parse(cls, tag: str) -> EventKind:
        """Resolve an event tag, raising UnsupportedEventKind if unknown."""
        try:
            return cls(tag)
        except ValueError:
            raise UnsupportedEventKind(tag) from None


@dataclass(frozen=True)
class TokenPriceEntry:
    """One token's price line on the activity card."""

    name: str
    price: str
    change: str
    url: str

    def to_payload(self) -> dict[str, str]:
        """Serialize for the gateway."""
        return {
            "name": self.name,
            "price": self.price,
            "change": self.change,
            "url": self.url,
        }


@dataclass(frozen=True)
class ContentState:
    """Dynamic content rendered on the live activity card.

    Attributes:
        blue_url: Deep link behind the primary (blue) button.
        red_url: Deep link behind the secondary (red) button.
        title: Headline.
        content: Body text.
        token_prices: Token price lines in display order.
        market_text: Label for the market cap figure.
        type_title: Label describing the kind of update.
        total_market_cap: Abbreviated total market cap, e.g. ``$3.44T``.
        market_cap_change_24h: Formatted 24h change, e.g. ``-2.85%``.
        time: Display timestamp.
        url: Deep link to the underlying article.
    """

    blue_url: str
    red_url: str
    title: str
    content: str
    token_prices: tuple[TokenPriceEntry, ...]
    market_text: str
    type_title: str
    total_market_cap: str
    market_cap_change_24h: str
    time: str
    url: str

    def to_payload(self) -> dict[str, Any]:
        """Serialize using the key names the app decodes."""
        return {
            "blue_url": self.blue_url,
            "red_url": self.red_url,
            "title": self.title,
            "content": self.content,
            "token_price": [entry.to_payload() for entry in self.token_prices],
            "market_text": self.market_text,
            "typeTitle": self.type_title,
            "total_market_cap": self.total_market_cap,
            "market_cap_change24h_usd": self.market_cap_change_24h,
            "time": self.time,
            "url": self.url,
        }


@dataclass(frozen=True)
class Alert:
    """Alert shown when the activity updates."""

    title: str
    body: str
    sound: str = "default"

    def to_payload(self) -> dict[str, str]:
        """Serialize for the gateway."""
        return {"title": self.title, "body": self.body, "sound": self.sound}


@dataclass(frozen=True)
class ActivityAttributes:
    """Static attributes identifying the activity type on the device."""

    name: str
    type: str


@dataclass(frozen=True)
class StartNotification:
    """Starts a new live activity."""

    content_state: ContentState
    alert: Alert
    attributes: ActivityAttributes

    kind = EventKind.START

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the gateway."""
        return {
            "event": self.kind.value,
            "content-state": self.content_state.to_payload(),
            "alert": self.alert.to_payload(),
            "attributes-type": self.attributes.type,
            "attributes": {"name": self.attributes.name},
        }


@dataclass(frozen=True)
class UpdateNotification:
    """Updates the content of a running live activity."""

    content_state: ContentState
    alert: Alert

    kind = EventKind.UPDATE

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the gateway."""
        return {
            "event": self.kind.value,
            "content-state": self.content_state.to_payload(),
            "alert": self.alert.to_payload(),
        }


@dataclass(frozen=True)
class EndNotification:
    """Ends a live activity; the gateway dismisses it at dismissal_date."""

    content_state: ContentState
    alert: Alert
    attributes: ActivityAttributes
    dismissal_date: int

    kind = EventKind.END

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the gateway."""
        return {
            "event": self.kind.value,
            "content-state": self.content_state.to_payload(),
            "alert": self.alert.to_payload(),
            "attributes-type": self.attributes.type,
            "attributes": {"name": self.attributes.name},
            "dismissal-date": self.dismissal_date,
        }


NotificationVariant = StartNotification | UpdateNotification | EndNotification


@dataclass(frozen=True)
class PushOptions:
    """Gateway delivery options."""

    apns_production: bool = True
    time_to_live: int = 86400

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the gateway."""
        return {
            "apns_production": self.apns_production,
            "time_to_live": self.time_to_live,
        }


@dataclass(frozen=True)
class ContentFields:
    """Raw fields from which a notification is built.

    Market figures are already formatted; see ``notification.formatter``.
    Any field left as None falls back to the builder's default.
    """

    title: str | None = None
    content: str | None = None
    blue_url: str | None = None
    red_url: str | None = None
    market_text: str | None = None
    type_title: str | None = None
    token_prices: tuple[TokenPriceEntry, ...] = field(default_factory=tuple)
    total_market_cap: str = "0"
    market_cap_change_24h: str = "0"
    time: str = ""
    url: str = ""
    sound: str | None = None
    attributes_name: str | None = None
    attributes_type: str | None = None
    dismissal_date: int | None = None
