"""Alchemy Notify client - registers the address-activity webhook."""

from __future__ import annotations

import logging

import httpx

log = logging.getLogger(__name__)

NOTIFY_API_URL = "https://dashboard.alchemy.com/api"


class NotifyError(RuntimeError):
    pass


class AlchemyNotifyClient:
    """Creates webhook subscriptions through the Alchemy Notify API.

    Only used at startup when no signing key is configured. The signing key
    in the response is returned to the caller and never logged.
    """

    def __init__(
        self,
        auth_token: str,
        api_url: str = NOTIFY_API_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._auth_token = auth_token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def create_address_activity_webhook(
        self, webhook_url: str, addresses: list[str], network: str = "ETH_MAINNET",
    ) -> str:
        """Register an ADDRESS_ACTIVITY webhook and return its signing key."""
        log.info("Registering %s activity webhook for %s -> %s", network, addresses, webhook_url)
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout, connect=10),
            transport=self._transport,
        ) as client:
            try:
                resp = await client.post(
                    f"{self._api_url}/create-webhook",
                    headers={"X-Alchemy-Token": self._auth_token},
                    json={
                        "network": network,
                        "webhook_type": "ADDRESS_ACTIVITY",
                        "webhook_url": webhook_url,
                        "addresses": addresses,
                    },
                )
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise NotifyError(
                    f"webhook registration failed: HTTP {exc.response.status_code}"
                ) from exc
            except httpx.HTTPError as exc:
                raise NotifyError(f"webhook registration failed: {exc}") from exc

        data = resp.json().get("data") or {}
        signing_key = data.get("signing_key")
        if not signing_key:
            raise NotifyError("webhook registration response has no signing key")
        log.info("Webhook %s registered", data.get("id", "?"))
        return signing_key
