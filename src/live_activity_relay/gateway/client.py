"""Push gateway client for live activity delivery."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from live_activity_relay.config import DEFAULT_GATEWAY_URL
from live_activity_relay.errors import ConfigError, GatewayError
from live_activity_relay.notification.models import PushOptions

if TYPE_CHECKING:
    from live_activity_relay.config import GatewaySettings
    from live_activity_relay.notification.models import NotificationVariant

logger = logging.getLogger(__name__)

AUDIENCE_KEY = "live_activity_id"
DRY_RUN_BODY = "dry-run"


@dataclass(frozen=True)
class GatewayResponse:
    """A successful (2xx) gateway response."""

    status: int
    body: str


def build_envelope(
    platforms: Sequence[str],
    target_id: str,
    variant: NotificationVariant,
    options: PushOptions,
) -> dict[str, Any]:
    """Build the JSON request body for one target.

    The variant payload is repeated under each platform key.
    """
    payload = variant.to_payload()
    return {
        "platform": list(platforms),
        "audience": {AUDIENCE_KEY: target_id},
        "live_activity": {platform: payload for platform in platforms},
        "options": options.to_payload(),
    }


class GatewayClient:
    """Stateless wrapper issuing one authenticated POST per send.

    Credentials are checked at construction so a misconfigured batch fails
    before any request is made. There is exactly one attempt per call.
    """

    def __init__(
        self,
        app_key: str | None,
        master_secret: str | None,
        *,
        url: str = DEFAULT_GATEWAY_URL,
        timeout: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
        dry_run: bool = False,
    ) -> None:
        """Initialize the gateway client.

        Args:
            app_key: Gateway application key.
            master_secret: Gateway master secret.
            url: Gateway endpoint.
            timeout: HTTP request timeout in seconds.
            http_client: Optional shared client; one is created per call otherwise.
            dry_run: Log envelopes instead of sending them. Credentials are
                not required in this mode.

        Raises:
            ConfigError: If credentials are missing and dry_run is off.
        """
        if not dry_run and (not app_key or not master_secret):
            raise ConfigError("Push gateway app key and master secret are required")

        self.url = url
        self.timeout = timeout
        self.dry_run = dry_run
        self._auth = (app_key or "", master_secret or "")
        self._http_client = http_client

    @classmethod
    def from_settings(
        cls,
        settings: GatewaySettings,
        *,
        http_client: httpx.AsyncClient | None = None,
        dry_run: bool = False,
    ) -> GatewayClient:
        """Create a client from gateway settings.

        Raises:
            ConfigError: If credentials are missing and dry_run is off.
        """
        if dry_run:
            return cls(None, None, url=settings.url, timeout=settings.timeout, dry_run=True)

        app_key, master_secret = settings.require_credentials()
        return cls(
            app_key,
            master_secret,
            url=settings.url,
            timeout=settings.timeout,
            http_client=http_client,
        )

    async def send(
        self,
        platforms: Sequence[str],
        target_id: str,
        variant: NotificationVariant,
        options: PushOptions | None = None,
    ) -> GatewayResponse:
        """Send a live activity to one target.

        Args:
            platforms: Gateway platforms, e.g. ``["ios"]``.
            target_id: Live activity id on the device.
            variant: Notification to deliver.
            options: Delivery options.

        Returns:
            GatewayResponse for a 2xx reply.

        Raises:
            GatewayError: On a non-2xx reply or a transport failure.
        """
        envelope = build_envelope(platforms, target_id, variant, options or PushOptions())

        if self.dry_run:
            logger.info(
                "Dry run, not sending to %s: %s",
                target_id,
                json.dumps(envelope, ensure_ascii=False),
            )
            return GatewayResponse(status=200, body=DRY_RUN_BODY)

        try:
            if self._http_client is not None:
                response = await self._post(self._http_client, envelope)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._post(client, envelope)
        except httpx.TimeoutException as e:
            raise GatewayError(f"Gateway timeout: {e}") from e
        except httpx.HTTPError as e:
            raise GatewayError(f"Gateway transport error: {e}") from e

        if response.is_success:
            return GatewayResponse(status=response.status_code, body=response.text)

        raise GatewayError(response.text, status=response.status_code)

    async def _post(self, client: httpx.AsyncClient, envelope: dict[str, Any]) -> httpx.Response:
        return await client.post(self.url, json=envelope, auth=self._auth)
