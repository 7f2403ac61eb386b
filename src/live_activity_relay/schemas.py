"""Request models for the live activity endpoint."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class TokenInput(BaseModel):
    """A token price supplied by the caller.

    Accepts both field naming schemes seen across deployments
    (``name``/``symbol``, ``price``/``last_price``, ``change``/``change24h``).
    """

    model_config = ConfigDict(extra="ignore")

    name: str = Field(validation_alias=AliasChoices("name", "symbol"))
    price: float = Field(
        validation_alias=AliasChoices("price", "last_price"),
        allow_inf_nan=False,
    )
    change: str = Field(default="", validation_alias=AliasChoices("change", "change24h"))
    url: str | None = None

    @field_validator("change", mode="before")
    @classmethod
    def coerce_change(cls, v: Any) -> Any:
        """Allow numeric changes; they are displayed verbatim."""
        if isinstance(v, int | float):
            return str(v)
        return v


class LiveActivityRequest(BaseModel):
    """Body of ``POST /send_live_activity``.

    With ``id`` set, content is read from the store (after writing the
    token prices back); otherwise the request supplies all content.
    """

    model_config = ConfigDict(extra="ignore")

    ios_live_activity_ids: list[str] = Field(default_factory=list)
    id: int | None = None
    event: str = "update"

    token: list[TokenInput] = Field(default_factory=list)
    total_market_cap: Decimal | None = None
    market_cap_change24h_usd: str | None = None

    title: str | None = None
    content: str | None = None
    time: str | None = None
    url: str | None = None
    market_text: str | None = None
    type_title: str | None = None
    blue_url: str | None = None
    red_url: str | None = None
    sound: str | None = None
    attributes_name: str | None = None
    attributes_type: str | None = None

    apns_production: bool | None = None
    dismissal_date: int | None = None

    @field_validator("token", mode="before")
    @classmethod
    def normalize_token(cls, v: Any) -> Any:
        """Accept ``{SYMBOL: {...}}`` maps as well as lists."""
        if v is None:
            return []
        if isinstance(v, dict):
            return [
                {"name": symbol, **info} if isinstance(info, dict) else info
                for symbol, info in v.items()
            ]
        return v

    @field_validator("total_market_cap", mode="before")
    @classmethod
    def validate_total_market_cap(cls, v: Any) -> Any:
        """Reject non-numeric market caps; empty strings count as absent."""
        if v is None or v == "":
            return None
        try:
            value = Decimal(str(v))
        except InvalidOperation:
            raise ValueError("total_market_cap must be numeric") from None
        if not value.is_finite():
            raise ValueError("total_market_cap must be finite")
        return value

    @field_validator("market_cap_change24h_usd", mode="before")
    @classmethod
    def coerce_market_cap_change(cls, v: Any) -> Any:
        if isinstance(v, int | float):
            return str(v)
        return v
