"""SQLAlchemy models for the live activity content store.

Two tables: the registered live activity ids and the content rows that
feed each notification.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class LiveActivityModel(Base):
    """A live activity instance registered by a device."""

    __tablename__ = "ios_live_activity"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    live_activity_id: Mapped[str] = mapped_column(String(255), nullable=False)
    create_time: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=lambda: datetime.now(UTC).replace(tzinfo=None)
    )
    update_time: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(UTC).replace(tzinfo=None),
        onupdate=lambda: datetime.now(UTC).replace(tzinfo=None),
    )


class LiveActivityContentModel(Base):
    """Content of one article pushed to live activities.

    ``token_price`` holds ``SYMBOL|price|change;`` segments.
    """

    __tablename__ = "ios_live_activity_content"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    article_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_flash: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    token_price: Mapped[str] = mapped_column(Text, nullable=False, default="")
    is_send: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_market_cap: Mapped[Decimal] = mapped_column(
        Numeric(30, 10), nullable=False, default=Decimal(0)
    )
    market_cap_change24h_usd: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    time: Mapped[date | None] = mapped_column(Date, nullable=True)
    create_time: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=lambda: datetime.now(UTC).replace(tzinfo=None)
    )
    update_time: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=lambda: datetime.now(UTC).replace(tzinfo=None),
        onupdate=lambda: datetime.now(UTC).replace(tzinfo=None),
    )
