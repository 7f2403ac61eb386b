"""Builds live activity notification variants from raw content fields."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from live_activity_relay.notification.models import (
    ActivityAttributes,
    Alert,
    ContentFields,
    ContentState,
    EndNotification,
    EventKind,
    NotificationVariant,
    StartNotification,
    UpdateNotification,
)

DEFAULT_TITLE = "Live update"
DEFAULT_CONTENT = "Open the app for the latest market news"
DEFAULT_BLUE_URL = "blockbeats://m.theblockbeats.info/home"
DEFAULT_RED_URL = "blockbeats://m.theblockbeats.info/flash/list"
DEFAULT_MARKET_TEXT = "加密总市值"
DEFAULT_TYPE_TITLE = "实时消息"
DEFAULT_SOUND = "default"
DEFAULT_ATTRIBUTES_NAME = "live_activity"
DEFAULT_ATTRIBUTES_TYPE = "LiveActivityAttributes"

ARTICLE_URL = "blockbeats://m.theblockbeats.info/{kind}?id={article_id}"

# End events without an explicit dismissal date expire 4 hours out
DEFAULT_DISMISSAL_SECONDS = 4 * 3600

Clock = Callable[[], datetime]


def article_url(article_id: int, *, is_flash: bool) -> str:
    """Deep link to a stored article (flash or news)."""
    return ARTICLE_URL.format(kind="flash" if is_flash else "news", article_id=article_id)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class ContentBuilder:
    """Assembles one notification variant per event.

    Construction is pure: identical input yields structurally identical
    output, except for the default dismissal date of end events, which is
    taken from the injected clock.

    Example:
        ```python
        builder = ContentBuilder()
        variant = builder.build("update", ContentFields(title="BTC breaks 100k"))
        ```
    """

    def __init__(
        self,
        *,
        clock: Clock = _utc_now,
        dismissal_seconds: int = DEFAULT_DISMISSAL_SECONDS,
    ) -> None:
        """Initialize the builder.

        Args:
            clock: Returns the current time; used for default dismissal dates.
            dismissal_seconds: Offset from now for the default dismissal date.
        """
        self._clock = clock
        self.dismissal_seconds = dismissal_seconds

    def build(self, event: str | EventKind, fields: ContentFields) -> NotificationVariant:
        """Build the variant for an event tag.

        Args:
            event: ``"start"``, ``"update"`` or ``"end"`` (or an EventKind).
            fields: Raw content fields.

        Returns:
            The notification variant.

        Raises:
            UnsupportedEventKind: If the event tag is not recognized.
        """
        kind = event if isinstance(event, EventKind) else EventKind.parse(event)

        content_state = self.build_content_state(fields)
        alert = self.build_alert(fields)

        if kind is EventKind.START:
            return StartNotification(
                content_state=content_state,
                alert=alert,
                attributes=self.build_attributes(fields),
            )
        if kind is EventKind.UPDATE:
            return UpdateNotification(content_state=content_state, alert=alert)
        return EndNotification(
            content_state=content_state,
            alert=alert,
            attributes=self.build_attributes(fields),
            dismissal_date=self.dismissal_date(fields.dismissal_date),
        )

    def build_content_state(self, fields: ContentFields) -> ContentState:
        """Build the card content, applying defaults for absent fields."""
        return ContentState(
            blue_url=fields.blue_url or DEFAULT_BLUE_URL,
            red_url=fields.red_url or DEFAULT_RED_URL,
            title=fields.title or DEFAULT_TITLE,
            content=fields.content or DEFAULT_CONTENT,
            token_prices=tuple(fields.token_prices),
            market_text=fields.market_text or DEFAULT_MARKET_TEXT,
            type_title=fields.type_title or DEFAULT_TYPE_TITLE,
            total_market_cap=fields.total_market_cap,
            market_cap_change_24h=fields.market_cap_change_24h,
            time=fields.time,
            url=fields.url,
        )

    def build_alert(self, fields: ContentFields) -> Alert:
        """Build the alert; it mirrors the card title and content."""
        return Alert(
            title=fields.title or DEFAULT_TITLE,
            body=fields.content or DEFAULT_CONTENT,
            sound=fields.sound or DEFAULT_SOUND,
        )

    def build_attributes(self, fields: ContentFields) -> ActivityAttributes:
        return ActivityAttributes(
            name=fields.attributes_name or DEFAULT_ATTRIBUTES_NAME,
            type=fields.attributes_type or DEFAULT_ATTRIBUTES_TYPE,
        )

    def dismissal_date(self, explicit: int | None = None) -> int:
        """Epoch seconds at which an ended activity is dismissed."""
        if explicit is not None:
            return explicit
        return int(self._clock().timestamp()) + self.dismissal_seconds
