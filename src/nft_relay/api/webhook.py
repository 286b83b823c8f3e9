"""Inbound notification endpoint (aiohttp)."""

from __future__ import annotations

import json
import logging
from typing import Callable

from aiohttp import web

from nft_relay.models.events import DepositNotification
from nft_relay.security.signature import SIGNATURE_HEADER, SignatureVerifier

log = logging.getLogger(__name__)

ActivityHandler = Callable[[DepositNotification], None]


class WebhookServer:
    """Receives signed address-activity notifications.

    Responses only reflect acceptance: 403 on a bad signature, 400 on an
    empty or unparseable activity list, otherwise 200 once every activity
    has been handed to ``on_activity`` (which schedules the processing).
    """

    def __init__(
        self,
        verifier: SignatureVerifier,
        on_activity: ActivityHandler,
        host: str = "127.0.0.1",
        port: int = 8080,
        route_path: str = "/nft-l1-to-l2",
    ) -> None:
        self._verifier = verifier
        self._on_activity = on_activity
        self._host = host
        self._port = port
        self._route_path = route_path
        self._runner: web.AppRunner | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post(self._route_path, self._handle_notification)
        app.router.add_get("/health", self._handle_health)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        log.info("NFT bridge listening at %s:%d%s", self._host, self._port, self._route_path)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def _handle_notification(self, request: web.Request) -> web.Response:
        raw_body = await request.read()
        signature = request.headers.get(SIGNATURE_HEADER)
        if not self._verifier.verify(raw_body, signature):
            log.warning("Rejected notification from %s: bad signature", request.remote)
            return web.Response(status=403, text="Signature validation failed, unauthorized!")

        try:
            payload = json.loads(raw_body)
        except ValueError:
            return web.Response(status=400, text="Invalid Request!")

        event = payload.get("event") if isinstance(payload, dict) else None
        activity = event.get("activity") if isinstance(event, dict) else None
        if not isinstance(activity, list) or not activity:
            return web.Response(status=400, text="Invalid Request!")

        log.info("Received notification with %d activity item(s)", len(activity))
        for item in activity:
            if not isinstance(item, dict):
                log.warning("Skipping malformed activity item: %r", item)
                continue
            self._on_activity(DepositNotification.from_activity(item))

        return web.Response(status=200, text="Processing the Response...")
