"""API components - inbound notification endpoint."""

from nft_relay.api.webhook import WebhookServer

__all__ = ["WebhookServer"]
