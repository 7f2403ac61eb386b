"""Live activity send pipeline.

Turns a validated request into one notification and fans it out:

    request -> (store write + re-read) -> formatter -> builder -> dispatcher

Two deployment variants share this pipeline. When the request carries a
content ``id`` the token prices and market totals are written to the store
and the row is re-read for the title, body and article link. Without an
``id`` the request supplies all content.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from live_activity_relay.dispatcher import Dispatcher, Gateway
from live_activity_relay.errors import ConfigError, ContentNotFound, StoreError, ValidationError
from live_activity_relay.gateway.client import GatewayClient
from live_activity_relay.notification.builder import ContentBuilder, article_url
from live_activity_relay.notification.formatter import (
    DEFAULT_TOKEN_URL,
    encode_token_prices,
    format_decimal,
    format_market_cap,
    format_market_cap_change,
    format_plain,
    parse_token_prices,
)
from live_activity_relay.notification.models import (
    ContentFields,
    EventKind,
    PushOptions,
    TokenPriceEntry,
)
from live_activity_relay.storage.database import create_engine, create_session_factory
from live_activity_relay.storage.repos import LiveActivityContentDTO, LiveActivityRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from live_activity_relay.config import Settings
    from live_activity_relay.dispatcher import DispatchReport
    from live_activity_relay.schemas import LiveActivityRequest

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[], Gateway]


@dataclass
class StoredContent:
    """Content row plus the targets discovered alongside it."""

    row: LiveActivityContentDTO
    target_ids: list[str] = field(default_factory=list)


class LiveActivityService:
    """Runs one live activity request end to end.

    Example:
        ```python
        service = LiveActivityService.from_settings(get_settings())
        report = await service.send_live_activity(request)
        await service.close()
        ```
    """

    def __init__(
        self,
        settings: Settings,
        *,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        builder: ContentBuilder | None = None,
        gateway_factory: GatewayFactory | None = None,
        engine: AsyncEngine | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            settings: Application settings.
            session_factory: Store sessions; None runs in caller-content mode.
            builder: Notification builder.
            gateway_factory: Creates the transport for a batch. Raises
                ConfigError when credentials are missing.
            engine: Engine to dispose on close, when owned by the service.
        """
        self.settings = settings
        self._session_factory = session_factory
        self._builder = builder or ContentBuilder()
        self._gateway_factory = gateway_factory or self._default_gateway
        self._engine = engine

    @classmethod
    def from_settings(cls, settings: Settings) -> LiveActivityService:
        """Create a service, connecting to the store if one is configured."""
        if settings.database.url is None:
            logger.info("No content store configured; content comes from requests")
            return cls(settings)

        engine = create_engine(settings.database.url)
        return cls(settings, session_factory=create_session_factory(engine), engine=engine)

    @property
    def has_store(self) -> bool:
        return self._session_factory is not None

    def _default_gateway(self) -> Gateway:
        return GatewayClient.from_settings(self.settings.gateway, dry_run=self.settings.dry_run)

    async def close(self) -> None:
        """Release the store connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None

    async def send_live_activity(self, request: LiveActivityRequest) -> DispatchReport:
        """Build the notification for a request and deliver it to every target.

        Per-target gateway failures are recorded in the report, never raised.

        Raises:
            UnsupportedEventKind: If the event tag is unknown.
            ConfigError: If gateway credentials (or a needed store) are missing.
            ValidationError: If there are no targets.
            ContentNotFound: If the store has no row for the request id.
            StoreError: If the store cannot be read or written.
        """
        kind = EventKind.parse(request.event)
        gateway = self._gateway_factory()

        if request.id is None:
            if not request.ios_live_activity_ids:
                raise ValidationError("ios_live_activity_ids must not be empty")
            fields = self._fields_from_request(request)
            target_ids = list(request.ios_live_activity_ids)
        else:
            stored = await self._load_stored_content(request.id, request)
            fields = self._fields_from_store(request, stored.row)
            target_ids = list(request.ios_live_activity_ids) or stored.target_ids
            if not target_ids:
                raise ValidationError("No live activity ids to send to")

        variant = self._builder.build(kind, fields)

        dispatcher = Dispatcher(
            gateway,
            max_concurrent=self.settings.max_concurrent,
            options=self._push_options(request),
        )
        logger.info(
            "Sending %s live activity to %d targets (max %d concurrent)",
            kind.value,
            len(target_ids),
            dispatcher.max_concurrent,
        )
        return await dispatcher.dispatch_variant(target_ids, variant)

    def _push_options(self, request: LiveActivityRequest) -> PushOptions:
        apns_production = (
            request.apns_production
            if request.apns_production is not None
            else self.settings.gateway.apns_production
        )
        return PushOptions(
            apns_production=apns_production,
            time_to_live=self.settings.gateway.time_to_live,
        )

    async def _load_stored_content(
        self, content_id: int, request: LiveActivityRequest
    ) -> StoredContent:
        """Write the fresh token prices, then re-read the content row."""
        if self._session_factory is None:
            raise ConfigError("Request references stored content but no DATABASE_URL is set")

        token_price = encode_token_prices(
            (token.name, format_plain(token.price), token.change) for token in request.token
        )

        try:
            async with self._session_factory() as session:
                repo = LiveActivityRepository(session)
                await repo.record_market_snapshot(
                    content_id,
                    token_price,
                    total_market_cap=request.total_market_cap,
                    market_cap_change24h_usd=request.market_cap_change24h_usd,
                )
                await session.commit()

                row = await repo.get_content(content_id)
                if row is None:
                    raise ContentNotFound(content_id)

                target_ids = [] if request.ios_live_activity_ids else await repo.list_activity_ids()
        except SQLAlchemyError as e:
            logger.error("Content store failure for id %s: %s", content_id, e)
            raise StoreError(f"Content store failure: {e}") from e

        return StoredContent(row=row, target_ids=target_ids)

    def _market_fields(self, request: LiveActivityRequest) -> tuple[str, str]:
        total = (
            float(request.total_market_cap) if request.total_market_cap is not None else None
        )
        return (
            format_market_cap(total),
            format_market_cap_change(request.market_cap_change24h_usd),
        )

    def _fields_from_request(self, request: LiveActivityRequest) -> ContentFields:
        total_market_cap, change = self._market_fields(request)
        token_prices = tuple(
            TokenPriceEntry(
                name=token.name,
                price=format_decimal(token.price),
                change=token.change,
                url=token.url or DEFAULT_TOKEN_URL,
            )
            for token in request.token
        )
        return ContentFields(
            title=request.title,
            content=request.content,
            blue_url=request.blue_url,
            red_url=request.red_url,
            market_text=request.market_text,
            type_title=request.type_title,
            token_prices=token_prices,
            total_market_cap=total_market_cap,
            market_cap_change_24h=change,
            time=request.time or "",
            url=request.url or "",
            sound=request.sound,
            attributes_name=request.attributes_name,
            attributes_type=request.attributes_type,
            dismissal_date=request.dismissal_date,
        )

    def _fields_from_store(
        self, request: LiveActivityRequest, row: LiveActivityContentDTO
    ) -> ContentFields:
        total_market_cap, change = self._market_fields(request)
        return ContentFields(
            title=request.title or row.title,
            content=request.content or row.content,
            blue_url=request.blue_url,
            red_url=request.red_url,
            market_text=request.market_text,
            type_title=request.type_title,
            token_prices=tuple(parse_token_prices(row.token_price)),
            total_market_cap=total_market_cap,
            market_cap_change_24h=change,
            time=request.time or (row.time.isoformat() if row.time else ""),
            url=request.url or article_url(row.article_id, is_flash=row.is_flash),
            sound=request.sound,
            attributes_name=request.attributes_name,
            attributes_type=request.attributes_type,
            dismissal_date=request.dismissal_date,
        )
