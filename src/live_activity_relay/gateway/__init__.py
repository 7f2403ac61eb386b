"""Push gateway transport."""

from live_activity_relay.gateway.client import GatewayClient, GatewayResponse, build_envelope

__all__ = [
    "GatewayClient",
    "GatewayResponse",
    "build_envelope",
]
