"""
ASGI application - Bridges the ASGI protocol to Request/Response/Router.

One HTTP exchange:
1. Build the Request (body read, session resolved through the store)
2. Build a fresh Response
3. ``router.dispatch`` under the configured request deadline
4. Guarantee exactly one reply, even if dispatch fails or times out
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional

from .config import StanzaConfig
from .faults import PayloadTooLarge
from .request import Request
from .response import Response, Sealed
from .router import Controller, Handler, Route, Router
from .sessions import SessionStore
from .status import StatusCode
from .templates import Jinja2Renderer, TemplateRenderer


logger = logging.getLogger("stanza.app")

Hook = Callable[[], Awaitable[None]]


class Stanza:
    """
    ASGI application.

    Args:
        router: Route table (a new one if omitted)
        store: Session store (a new one if omitted, bounded by config)
        renderer: Template renderer (Jinja2 over ``config.templates_dir``
            if omitted and configured)
        config: Application configuration

    Example:
        app = Stanza(config=StanzaConfig.load(".env"))
        app.include(AuthController(db), PoemController(db))
    """

    def __init__(
        self,
        router: Optional[Router] = None,
        store: Optional[SessionStore] = None,
        renderer: Optional[TemplateRenderer] = None,
        config: Optional[StanzaConfig] = None,
    ):
        self.config = config or StanzaConfig()
        self.router = router or Router()
        self.store = store or SessionStore(max_sessions=self.config.max_sessions)

        self.renderer = renderer
        self._owns_renderer = renderer is None
        if self._owns_renderer:
            self.renderer = self._default_renderer()

        self.on_startup: List[Hook] = []
        self.on_shutdown: List[Hook] = []

    def _default_renderer(self) -> Optional[TemplateRenderer]:
        if not self.config.templates_dir:
            return None
        return Jinja2Renderer(self.config.templates_dir, suffix=self.config.template_suffix)

    def configure(self, config: StanzaConfig) -> None:
        """
        Replace the configuration of an already built application.

        The session store takes the new ``max_sessions`` bound, and a
        renderer the app built itself is rebuilt from ``templates_dir``.
        An explicitly passed renderer is kept.
        """
        self.config = config
        self.store.max_sessions = config.max_sessions
        if self._owns_renderer:
            self.renderer = self._default_renderer()

    # ------------------------------------------------------------------
    # Route registration
    # ------------------------------------------------------------------

    def include(self, *controllers: Controller) -> None:
        """Register each controller's route table, in order."""
        for controller in controllers:
            self.router.include(controller)

    def get(self, pattern: str, handler: Handler) -> Route:
        return self.router.get(pattern, handler)

    def post(self, pattern: str, handler: Handler) -> Route:
        return self.router.post(pattern, handler)

    def put(self, pattern: str, handler: Handler) -> Route:
        return self.router.put(pattern, handler)

    def patch(self, pattern: str, handler: Handler) -> Route:
        return self.router.patch(pattern, handler)

    def delete(self, pattern: str, handler: Handler) -> Route:
        return self.router.delete(pattern, handler)

    # ------------------------------------------------------------------
    # ASGI entry point
    # ------------------------------------------------------------------

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        scope_type = scope["type"]
        if scope_type == "http":
            await self.handle_http(scope, receive, send)
        elif scope_type == "lifespan":
            await self.handle_lifespan(scope, receive, send)
        else:
            logger.warning("Unsupported ASGI scope type: %s", scope_type)

    def new_response(self, send: Callable, request: Optional[Request] = None) -> Response:
        return Response(
            send,
            request,
            renderer=self.renderer,
            session_cookie=self.config.session_cookie,
            session_max_age=self.config.session_max_age,
        )

    async def handle_http(self, scope: dict, receive: Callable, send: Callable) -> None:
        """Handle one HTTP exchange."""
        started = time.perf_counter()

        try:
            request = await Request.from_asgi(
                scope,
                receive,
                store=self.store,
                cookie_name=self.config.session_cookie,
                max_body_size=self.config.max_body_size,
            )
        except PayloadTooLarge as fault:
            logger.warning("%s: %s %s", fault, scope.get("method"), scope.get("path"))
            await self.new_response(send).send(
                status_code=StatusCode.PayloadTooLarge,
                message=fault.message,
            )
            return
        except Exception:
            logger.error(
                "Could not build request: %s %s", scope.get("method"), scope.get("path"),
                exc_info=True,
            )
            await self._fallback(self.new_response(send), StatusCode.InternalServerError, "Internal server error")
            return

        response = self.new_response(send, request)
        sealed = await self._dispatch(request, response)

        if sealed is not None:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info("%s %s %d %.1fms", request.method, request.path, sealed.status, elapsed_ms)

    async def _dispatch(self, request: Request, response: Response) -> Optional[Sealed]:
        timeout = self.config.handler_timeout
        try:
            if timeout:
                return await asyncio.wait_for(self.router.dispatch(request, response), timeout)
            return await self.router.dispatch(request, response)
        except asyncio.TimeoutError:
            logger.error("Request deadline of %ss exceeded: %s %s", timeout, request.method, request.path)
            return await self._fallback(response, StatusCode.ServiceUnavailable, "Request timed out")
        except Exception:
            logger.error("Critical error in request pipeline: %s %s", request.method, request.path, exc_info=True)
            return await self._fallback(response, StatusCode.InternalServerError, "Internal server error")

    async def _fallback(self, response: Response, status: StatusCode, message: str) -> Optional[Sealed]:
        if response.sent:
            return None
        try:
            return await response.send(status_code=status, message=message)
        except Exception:
            logger.error("Could not send fallback response", exc_info=True)
            return None

    # ------------------------------------------------------------------
    # Lifespan
    # ------------------------------------------------------------------

    async def startup(self) -> None:
        for hook in self.on_startup:
            await hook()
        for warning in self.router.warnings:
            logger.warning("Route table: %s", warning)
        logger.debug("Startup complete: %d routes", len(self.router))

    async def shutdown(self) -> None:
        for hook in self.on_shutdown:
            await hook()
        self.store.clear()
        logger.debug("Shutdown complete")

    async def handle_lifespan(self, scope: dict, receive: Callable, send: Callable) -> None:
        """Handle ASGI lifespan events."""
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    await self.startup()
                    await send({"type": "lifespan.startup.complete"})
                except Exception as e:
                    logger.error("Startup error: %s", e, exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise

            elif message["type"] == "lifespan.shutdown":
                try:
                    await self.shutdown()
                    await send({"type": "lifespan.shutdown.complete"})
                except Exception as e:
                    logger.error("Shutdown error: %s", e, exc_info=True)
                    await send({"type": "lifespan.shutdown.failed", "message": str(e)})
                break
