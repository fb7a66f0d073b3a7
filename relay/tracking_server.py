# file: relay/tracking_server.py
#!/usr/bin/env python3
import base64
import html
import logging
import time
from typing import Callable, Optional
from aiohttp import web
from leadfactory.config import get_settings
from leadfactory.schema import Workspace, new_id
from leadfactory.services.inbound import handle_inbound, normalize_inbound_payload
from leadfactory.services.outbox import get_message, record_click, record_open, record_opt_out
from leadfactory.services.store import WorkspaceStore

log = logging.getLogger("relay")

PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///ywAAAAAAQABAAACAUwAOw==")
NO_CACHE = "no-store, no-cache, must-revalidate, proxy-revalidate"
MAX_SENDS_PER_HOUR = 60  # warmup limit


class TrackingServer:
    """Sender relay: dry-run send endpoints, tracking pixel/redirect, unsubscribe and inbound webhook"""

    def __init__(self, store: Optional[WorkspaceStore] = None):
        self.store = store or WorkspaceStore()
        self.window_start = time.monotonic()
        self.sent_in_window = 0

    async def _apply_to_message(self, message_id: str, apply: Callable[[Workspace], Workspace]) -> bool:
        for ws in await self.store.list():
            if get_message(ws, message_id) is not None:
                updated = apply(ws)
                if updated is not ws:
                    await self.store.save(updated)
                return True
        return False

    async def handle_open(self, request):
        message_id = request.match_info["message_id"]
        log.info("open for message %s", message_id)
        if not await self._apply_to_message(message_id, lambda ws: record_open(ws, message_id)):
            log.info("open for unknown message %s", message_id)
        return web.Response(body=PIXEL, content_type="image/gif", headers={"Cache-Control": NO_CACHE})

    async def handle_click(self, request):
        message_id = request.match_info["message_id"]
        target = request.query.get("url", "")
        if not target.startswith(("http://", "https://")):
            return web.Response(status=400, text="Invalid URL")
        log.info("click for message %s -> %s", message_id, target)
        await self._apply_to_message(message_id, lambda ws: record_click(ws, message_id))
        raise web.HTTPFound(target)

    async def handle_unsubscribe(self, request):
        workspace_id = request.match_info["workspace_id"]
        channel = request.match_info["channel"]
        log.info("unsubscribe request %s on %s", workspace_id, channel)
        ws = await self.store.get(workspace_id)
        if ws is None:
            return web.Response(status=404, text="Unknown recipient")
        try:
            updated = record_opt_out(ws, channel)
        except ValueError:
            return web.Response(status=400, text="Unknown channel")
        if updated is not ws:
            await self.store.save(updated)
        page = (
            '<html><body style="font-family: sans-serif; text-align: center; padding: 50px;">'
            '<h1 style="color: #16a34a;">Unsubscribe confirmed</h1>'
            f"<p>The address linked to <strong>{html.escape(workspace_id)}</strong> will no longer "
            f"receive messages via <strong>{html.escape(channel)}</strong>.</p>"
            "</body></html>"
        )
        return web.Response(text=page, content_type="text/html")

    async def handle_inbound_email(self, request):
        try:
            payload = await request.json()
        except ValueError:
            return web.json_response({"ok": False, "error": "Invalid JSON"}, status=400)
        if not isinstance(payload, dict):
            return web.json_response({"ok": False, "error": "Expected an object"}, status=400)
        inbound = normalize_inbound_payload(payload)
        ws, inbound = await handle_inbound(self.store, inbound)
        return web.json_response({
            "ok": True,
            "inboundId": inbound.id,
            "workspaceId": ws.id if ws else None,
            "matchedBy": inbound.matched_by,
        })

    def _rate_limited(self) -> bool:
        now = time.monotonic()
        if now - self.window_start > 3600:
            self.window_start = now
            self.sent_in_window = 0
        self.sent_in_window += 1
        return self.sent_in_window > MAX_SENDS_PER_HOUR

    async def _send(self, request, required, provider: str):
        if self._rate_limited():
            return web.json_response({"ok": False, "error": "Rate limit exceeded (Warmup)"}, status=429)
        try:
            body = await request.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return web.json_response({"ok": False, "error": "Expected an object"}, status=400)
        for field in required:
            if not body.get(field):
                return web.json_response({"ok": False, "error": f"Missing field: {field}"}, status=400)
        # no provider transport; every send is a dry run
        log.info("[DRY RUN] %s to %s", provider, body.get("to") or body.get("toE164"))
        return web.json_response({
            "ok": True, "dryRun": True, "provider": provider, "providerMessageId": new_id("dry"),
        })

    async def handle_send_email(self, request):
        return await self._send(request, ("to", "subject"), "smtp")

    async def handle_send_whatsapp(self, request):
        return await self._send(request, ("toE164", "body"), "whatsapp")

    async def handle_health(self, request):
        return web.json_response({"ok": True})


def create_app(store: Optional[WorkspaceStore] = None) -> web.Application:
    server = TrackingServer(store)
    app = web.Application(client_max_size=2 * 1024 * 1024)
    app.router.add_get("/health", server.handle_health)
    app.router.add_get("/t/open/{message_id}", server.handle_open)
    app.router.add_get("/t/click/{message_id}", server.handle_click)
    app.router.add_get("/unsubscribe/{workspace_id}/{channel}", server.handle_unsubscribe)
    app.router.add_post("/inbound/email", server.handle_inbound_email)
    app.router.add_post("/send/email", server.handle_send_email)
    app.router.add_post("/send/whatsapp", server.handle_send_whatsapp)
    return app


if __name__ == "__main__":
    from leadfactory.logging_utils import setup_logging
    setup_logging()
    web.run_app(create_app(), port=get_settings().tracking_port)
