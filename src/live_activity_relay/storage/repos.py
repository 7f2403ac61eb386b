"""Repository for live activity ids and content rows."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select, update

from live_activity_relay.storage.models import LiveActivityContentModel, LiveActivityModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass
class LiveActivityContentDTO:
    """Data transfer object for content rows."""

    id: int
    article_id: int
    title: str
    content: str
    is_flash: bool
    token_price: str
    is_send: bool
    total_market_cap: Decimal
    market_cap_change24h_usd: str
    time: date | None = None

    @classmethod
    def from_model(cls, model: LiveActivityContentModel) -> LiveActivityContentDTO:
        """Create DTO from SQLAlchemy model."""
        return cls(
            id=model.id,
            article_id=model.article_id,
            title=model.title,
            content=model.content,
            is_flash=model.is_flash != 0,
            token_price=model.token_price,
            is_send=model.is_send != 0,
            total_market_cap=model.total_market_cap,
            market_cap_change24h_usd=model.market_cap_change24h_usd,
            time=model.time,
        )


class LiveActivityRepository:
    """Data access for registered live activities and their content.

    The caller owns the transaction; ``record_market_snapshot`` flushes but
    does not commit.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy async session.
        """
        self.session = session

    async def list_activity_ids(self) -> list[str]:
        """Get every registered live activity id."""
        result = await self.session.execute(
            select(LiveActivityModel.live_activity_id).order_by(LiveActivityModel.id)
        )
        return list(result.scalars().all())

    async def get_content(self, content_id: int) -> LiveActivityContentDTO | None:
        """Get a content row by id.

        Returns:
            LiveActivityContentDTO if found, None otherwise.
        """
        result = await self.session.execute(
            select(LiveActivityContentModel).where(LiveActivityContentModel.id == content_id)
        )
        model = result.scalar_one_or_none()
        return LiveActivityContentDTO.from_model(model) if model else None

    async def record_market_snapshot(
        self,
        content_id: int,
        token_price: str,
        *,
        total_market_cap: Decimal | None,
        market_cap_change24h_usd: str | None,
    ) -> bool:
        """Write the encoded token prices and market totals, marking the row sent.

        When either total is missing both are reset (cap to 0, change to
        empty) so stale figures are never shown next to fresh prices.

        Returns:
            True if a row was updated.
        """
        values: dict[str, object] = {
            "is_send": 1,
            "token_price": token_price,
            "update_time": datetime.now(UTC).replace(tzinfo=None),
        }
        if total_market_cap is None or market_cap_change24h_usd is None:
            values["total_market_cap"] = Decimal(0)
            values["market_cap_change24h_usd"] = ""
        else:
            values["total_market_cap"] = total_market_cap
            values["market_cap_change24h_usd"] = market_cap_change24h_usd

        result = await self.session.execute(
            update(LiveActivityContentModel)
            .where(LiveActivityContentModel.id == content_id)
            .values(**values)
        )
        await self.session.flush()

        updated = bool(result.rowcount)
        if not updated:
            logger.warning("No content row %d to update", content_id)
        return updated

