"""Bounded concurrent fan-out of one notification to many live activities."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol

from prometheus_client import Counter, Gauge, Histogram

from live_activity_relay.errors import GatewayError, ValidationError
from live_activity_relay.notification.models import PushOptions

if TYPE_CHECKING:
    from live_activity_relay.gateway.client import GatewayResponse
    from live_activity_relay.notification.models import NotificationVariant

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 10
DEFAULT_PLATFORMS = ("ios",)


DISPATCH_TOTAL = Counter(
    "live_activity_dispatch_total",
    "Live activity sends by result",
    ["result"],
)

DISPATCH_IN_FLIGHT = Gauge(
    "live_activity_dispatch_in_flight",
    "Gateway requests currently in flight",
)

GATEWAY_LATENCY = Histogram(
    "live_activity_gateway_latency_seconds",
    "Gateway request latency in seconds",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


class Gateway(Protocol):
    """Protocol for the transport used by the dispatcher."""

    async def send(
        self,
        platforms: Sequence[str],
        target_id: str,
        variant: NotificationVariant,
        options: PushOptions | None = None,
    ) -> GatewayResponse:
        """Send to one target. Raises GatewayError on failure."""
        ...


@dataclass(frozen=True)
class DispatchTarget:
    """One live activity id and the shared notification to deliver to it."""

    target_id: str
    variant: NotificationVariant


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of delivering to a single target."""

    target_id: str
    success: bool
    http_status: int | None = None
    detail: str = ""


@dataclass
class DispatchReport:
    """All outcomes of a batch, in completion order."""

    outcomes: list[DispatchOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    duration_seconds: float = 0.0

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.success)

    @property
    def failure_count(self) -> int:
        return len(self.outcomes) - self.success_count

    @property
    def all_succeeded(self) -> bool:
        """Return True if every target succeeded."""
        return self.failure_count == 0 and self.success_count > 0

    def failures(self) -> list[DispatchOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.success]


class Dispatcher:
    """Sends a notification to many targets with a cap on concurrent requests.

    Each target gets its own task. A task waits only for a permit, never for
    another target's result, and a failed target never affects the others.
    The dispatcher keeps no state between batches; each batch gets a fresh
    semaphore.

    Example:
        ```python
        dispatcher = Dispatcher(GatewayClient.from_settings(settings.gateway))
        report = await dispatcher.dispatch_variant(["la-1", "la-2"], variant)
        ```
    """

    def __init__(
        self,
        gateway: Gateway,
        *,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        platforms: Sequence[str] = DEFAULT_PLATFORMS,
        options: PushOptions | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            gateway: Transport used for each send.
            max_concurrent: Maximum gateway requests in flight per batch.
            platforms: Gateway platforms to address.
            options: Delivery options sent with every request.

        Raises:
            ValueError: If max_concurrent is not positive.
        """
        if max_concurrent <= 0:
            raise ValueError("max_concurrent must be positive")

        self.gateway = gateway
        self.max_concurrent = max_concurrent
        self.platforms = tuple(platforms)
        self.options = options or PushOptions()

    async def _send_to_target(
        self,
        target: DispatchTarget,
        semaphore: asyncio.Semaphore,
        outcomes: list[DispatchOutcome],
    ) -> None:
        """Send to one target under a permit and record its outcome."""
        async with semaphore:
            DISPATCH_IN_FLIGHT.inc()
            start = time.perf_counter()
            try:
                response = await self.gateway.send(
                    self.platforms, target.target_id, target.variant, self.options
                )
            except GatewayError as e:
                logger.error(
                    "Failed to send live activity to %s: status=%s detail=%s",
                    target.target_id,
                    e.status,
                    e.detail,
                )
                outcome = DispatchOutcome(
                    target_id=target.target_id,
                    success=False,
                    http_status=e.status,
                    detail=e.detail,
                )
            except Exception as e:
                logger.exception("Unexpected error sending live activity to %s", target.target_id)
                outcome = DispatchOutcome(
                    target_id=target.target_id,
                    success=False,
                    detail=f"{type(e).__name__}: {e}",
                )
            else:
                logger.info(
                    "Sent live activity to %s: HTTP %d", target.target_id, response.status
                )
                logger.debug("Gateway response for %s: %s", target.target_id, response.body)
                outcome = DispatchOutcome(
                    target_id=target.target_id,
                    success=True,
                    http_status=response.status,
                    detail=response.body,
                )
            finally:
                GATEWAY_LATENCY.observe(time.perf_counter() - start)
                DISPATCH_IN_FLIGHT.dec()

        DISPATCH_TOTAL.labels(result="success" if outcome.success else "failure").inc()
        outcomes.append(outcome)

    async def dispatch(
        self,
        targets: Sequence[DispatchTarget],
        *,
        max_concurrent: int | None = None,
    ) -> DispatchReport:
        """Deliver to every target and wait for all of them.

        Args:
            targets: Targets to deliver to.
            max_concurrent: Override of the per-batch concurrency budget.

        Returns:
            DispatchReport with one outcome per target, in completion order.

        Raises:
            ValidationError: If there are no targets.
            ValueError: If max_concurrent is not positive.
        """
        if not targets:
            raise ValidationError("No live activity targets to dispatch to")

        budget = self.max_concurrent if max_concurrent is None else max_concurrent
        if budget <= 0:
            raise ValueError("max_concurrent must be positive")

        semaphore = asyncio.Semaphore(budget)
        report = DispatchReport()
        start = time.perf_counter()

        await asyncio.gather(
            *(self._send_to_target(target, semaphore, report.outcomes) for target in targets)
        )

        report.duration_seconds = time.perf_counter() - start
        logger.info(
            "Dispatch complete: %d/%d succeeded in %.2fs",
            report.success_count,
            len(report.outcomes),
            report.duration_seconds,
        )
        return report

    async def dispatch_variant(
        self,
        target_ids: Sequence[str],
        variant: NotificationVariant,
        *,
        max_concurrent: int | None = None,
    ) -> DispatchReport:
        """Fan one notification out to a list of live activity ids."""
        targets = [DispatchTarget(target_id=target_id, variant=variant) for target_id in target_ids]
        return await self.dispatch(targets, max_concurrent=max_concurrent)
