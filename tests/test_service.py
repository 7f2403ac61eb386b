"""Tests for the live activity send pipeline."""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError

from live_activity_relay.config import DatabaseSettings, GatewaySettings, Settings
from live_activity_relay.errors import (
    ConfigError,
    ContentNotFound,
    GatewayError,
    StoreError,
    UnsupportedEventKind,
    ValidationError,
)
from live_activity_relay.gateway.client import GatewayResponse
from live_activity_relay.notification.models import (
    EndNotification,
    NotificationVariant,
    PushOptions,
    StartNotification,
    UpdateNotification,
)
from live_activity_relay.schemas import LiveActivityRequest
from live_activity_relay.service import LiveActivityService
from live_activity_relay.storage import (
    LiveActivityContentModel,
    LiveActivityModel,
    LiveActivityRepository,
    create_engine,
    create_session_factory,
    create_tables,
)


class RecordingGateway:
    """Gateway double that records every send."""

    def __init__(self, fail: set[str] | None = None) -> None:
        self.fail = fail or set()
        self.sent: list[tuple[str, NotificationVariant, PushOptions | None]] = []

    async def send(
        self,
        platforms: Sequence[str],
        target_id: str,
        variant: NotificationVariant,
        options: PushOptions | None = None,
    ) -> GatewayResponse:
        self.sent.append((target_id, variant, options))
        if target_id in self.fail:
            raise GatewayError("rejected", status=400)
        return GatewayResponse(status=200, body="ok")


def make_settings(**overrides: object) -> Settings:
    gateway = GatewaySettings(PUSH_APP_KEY="key", PUSH_MASTER_SECRET="secret")
    return Settings(gateway=gateway, **overrides)


async def make_store_service(
    tmp_path: Path, gateway: RecordingGateway
) -> LiveActivityService:
    """Create a service backed by a seeded sqlite store."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await create_tables(engine)
    session_factory = create_session_factory(engine)
    async with session_factory() as session:
        session.add_all(
            [
                LiveActivityModel(live_activity_id="la-1"),
                LiveActivityModel(live_activity_id="la-2"),
                LiveActivityContentModel(
                    id=1,
                    article_id=42,
                    title="Stored title",
                    content="Stored body",
                    is_flash=1,
                    time=date(2024, 1, 1),
                ),
            ]
        )
        await session.commit()

    return LiveActivityService(
        make_settings(),
        session_factory=session_factory,
        gateway_factory=lambda: gateway,
        engine=engine,
    )


# ============================================================================
# Caller Content Tests
# ============================================================================


class TestCallerContent:
    """Tests for requests that supply their own content."""

    @pytest.mark.asyncio
    async def test_sends_to_every_target(self) -> None:
        gateway = RecordingGateway()
        service = LiveActivityService(make_settings(), gateway_factory=lambda: gateway)
        request = LiveActivityRequest.model_validate(
            {
                "ios_live_activity_ids": ["a", "b", "c"],
                "event": "update",
                "title": "BTC breaks 100k",
                "content": "Rally continues",
                "token": [
                    {"name": "BTC/USDT", "price": 2000.0, "change": "+1%"},
                    {"name": "PEPE/USDT", "price": 0.0005, "change": "-3%", "url": "https://x"},
                ],
                "total_market_cap": "3435635411867.5",
                "market_cap_change24h_usd": "-2.8544",
            }
        )

        report = await service.send_live_activity(request)

        assert len(report.outcomes) == 3
        assert report.all_succeeded
        assert sorted(target for target, _, _ in gateway.sent) == ["a", "b", "c"]

        variant = gateway.sent[0][1]
        assert isinstance(variant, UpdateNotification)
        state = variant.content_state
        assert state.title == "BTC breaks 100k"
        assert state.total_market_cap == "$3.44T"
        assert state.market_cap_change_24h == "-2.85%"
        assert [(t.name, t.price, t.change) for t in state.token_prices] == [
            ("BTC/USDT", "2000", "+1%"),
            ("PEPE/USDT", "0.0{2}5", "-3%"),
        ]
        assert state.token_prices[0].url.startswith("https://p2p.binance.com")
        assert state.token_prices[1].url == "https://x"

    @pytest.mark.asyncio
    async def test_same_variant_for_all_targets(self) -> None:
        gateway = RecordingGateway()
        service = LiveActivityService(make_settings(), gateway_factory=lambda: gateway)
        request = LiveActivityRequest(ios_live_activity_ids=["a", "b"], event="end")

        await service.send_live_activity(request)

        variants = [variant for _, variant, _ in gateway.sent]
        assert all(isinstance(v, EndNotification) for v in variants)
        assert variants[0] == variants[1]

    @pytest.mark.asyncio
    async def test_missing_totals_render_zero(self) -> None:
        gateway = RecordingGateway()
        service = LiveActivityService(make_settings(), gateway_factory=lambda: gateway)

        await service.send_live_activity(LiveActivityRequest(ios_live_activity_ids=["a"]))

        state = gateway.sent[0][1].content_state
        assert state.total_market_cap == "0"
        assert state.market_cap_change_24h == "0"

    @pytest.mark.asyncio
    async def test_failures_do_not_raise(self) -> None:
        gateway = RecordingGateway(fail={"b"})
        service = LiveActivityService(make_settings(), gateway_factory=lambda: gateway)

        report = await service.send_live_activity(
            LiveActivityRequest(ios_live_activity_ids=["a", "b"])
        )

        assert report.failure_count == 1
        assert report.failures()[0].target_id == "b"

    @pytest.mark.asyncio
    async def test_empty_targets(self) -> None:
        gateway = RecordingGateway()
        service = LiveActivityService(make_settings(), gateway_factory=lambda: gateway)

        with pytest.raises(ValidationError):
            await service.send_live_activity(LiveActivityRequest())

        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_unsupported_event(self) -> None:
        gateway = RecordingGateway()
        service = LiveActivityService(make_settings(), gateway_factory=lambda: gateway)

        with pytest.raises(UnsupportedEventKind):
            await service.send_live_activity(
                LiveActivityRequest(ios_live_activity_ids=["a"], event="pause")
            )

        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_missing_credentials(self) -> None:
        settings = Settings(
            gateway=GatewaySettings(PUSH_APP_KEY=None, PUSH_MASTER_SECRET=None),
            DRY_RUN=False,
        )
        service = LiveActivityService(settings)

        with pytest.raises(ConfigError):
            await service.send_live_activity(LiveActivityRequest(ios_live_activity_ids=["a"]))

    @pytest.mark.asyncio
    async def test_dry_run_without_credentials(self) -> None:
        settings = Settings(
            gateway=GatewaySettings(PUSH_APP_KEY=None, PUSH_MASTER_SECRET=None),
            DRY_RUN=True,
        )
        service = LiveActivityService(settings)

        report = await service.send_live_activity(
            LiveActivityRequest(ios_live_activity_ids=["a", "b"], event="start")
        )

        assert report.all_succeeded
        assert {o.detail for o in report.outcomes} == {"dry-run"}

    @pytest.mark.asyncio
    async def test_push_options(self) -> None:
        gateway = RecordingGateway()
        service = LiveActivityService(make_settings(), gateway_factory=lambda: gateway)

        await service.send_live_activity(LiveActivityRequest(ios_live_activity_ids=["a"]))
        await service.send_live_activity(
            LiveActivityRequest(ios_live_activity_ids=["a"], apns_production=False)
        )

        assert gateway.sent[0][2] == PushOptions(apns_production=True, time_to_live=86400)
        assert gateway.sent[1][2] == PushOptions(apns_production=False, time_to_live=86400)

    @pytest.mark.asyncio
    async def test_start_attributes_from_request(self) -> None:
        gateway = RecordingGateway()
        service = LiveActivityService(make_settings(), gateway_factory=lambda: gateway)

        await service.send_live_activity(
            LiveActivityRequest(
                ios_live_activity_ids=["a"], event="start", attributes_name="btc"
            )
        )

        variant = gateway.sent[0][1]
        assert isinstance(variant, StartNotification)
        assert variant.attributes.name == "btc"


# ============================================================================
# Stored Content Tests
# ============================================================================


class TestStoredContent:
    """Tests for requests that reference a stored content row."""

    @pytest.mark.asyncio
    async def test_writes_then_reads_store(self, tmp_path: Path) -> None:
        gateway = RecordingGateway()
        service = await make_store_service(tmp_path, gateway)
        request = LiveActivityRequest.model_validate(
            {
                "id": 1,
                "token": {"btc": {"last_price": 0.0000612, "change24h": "+3%"}},
                "total_market_cap": 2500000000,
                "market_cap_change24h_usd": 1.5,
            }
        )

        try:
            report = await service.send_live_activity(request)

            async with service._session_factory() as session:
                row = await LiveActivityRepository(session).get_content(1)
        finally:
            await service.close()

        assert sorted(o.target_id for o in report.outcomes) == ["la-1", "la-2"]
        assert row is not None
        assert row.is_send is True
        assert row.token_price == "btc|0.0000612|+3%;"
        assert row.total_market_cap == Decimal("2500000000")
        assert row.market_cap_change24h_usd == "1.5"

        state = gateway.sent[0][1].content_state
        assert state.title == "Stored title"
        assert state.content == "Stored body"
        assert state.url == "blockbeats://m.theblockbeats.info/flash?id=42"
        assert state.time == "2024-01-01"
        assert state.total_market_cap == "$2.50B"
        assert state.market_cap_change_24h == "1.5%"
        assert [(t.name, t.price, t.change) for t in state.token_prices] == [
            ("BTC/USDT", "0.0{3}612", "+3%"),
        ]

    @pytest.mark.asyncio
    async def test_request_targets_override_store(self, tmp_path: Path) -> None:
        gateway = RecordingGateway()
        service = await make_store_service(tmp_path, gateway)

        try:
            report = await service.send_live_activity(
                LiveActivityRequest(id=1, ios_live_activity_ids=["only"], title="Override")
            )
        finally:
            await service.close()

        assert [o.target_id for o in report.outcomes] == ["only"]
        assert gateway.sent[0][1].content_state.title == "Override"

    @pytest.mark.asyncio
    async def test_content_not_found(self, tmp_path: Path) -> None:
        gateway = RecordingGateway()
        service = await make_store_service(tmp_path, gateway)

        try:
            with pytest.raises(ContentNotFound) as exc_info:
                await service.send_live_activity(LiveActivityRequest(id=99))
        finally:
            await service.close()

        assert exc_info.value.content_id == 99
        assert gateway.sent == []

    @pytest.mark.asyncio
    async def test_no_store_configured(self) -> None:
        gateway = RecordingGateway()
        service = LiveActivityService(make_settings(), gateway_factory=lambda: gateway)

        assert service.has_store is False
        with pytest.raises(ConfigError):
            await service.send_live_activity(LiveActivityRequest(id=1))

    @pytest.mark.asyncio
    async def test_store_failure(self) -> None:
        gateway = RecordingGateway()

        def broken_session():
            raise OperationalError("SELECT 1", {}, Exception("connection lost"))

        service = LiveActivityService(
            make_settings(),
            session_factory=broken_session,  # type: ignore[arg-type]
            gateway_factory=lambda: gateway,
        )

        with pytest.raises(StoreError):
            await service.send_live_activity(LiveActivityRequest(id=1))

        assert gateway.sent == []


class TestFromSettings:
    """Tests for LiveActivityService.from_settings."""

    def test_without_database(self) -> None:
        service = LiveActivityService.from_settings(make_settings())
        assert service.has_store is False

    @pytest.mark.asyncio
    async def test_with_database(self, tmp_path: Path) -> None:
        database = DatabaseSettings(DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'x.db'}")
        service = LiveActivityService.from_settings(make_settings(database=database))

        assert service.has_store is True
        await service.close()
