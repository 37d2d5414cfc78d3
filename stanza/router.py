"""
Router - Ordered route table with first-match dispatch.

Routes are kept per method in registration order. Matching walks that
order and returns the first route whose pattern fits the path:

- pattern and path are split on ``/`` (leading/trailing slashes ignored)
- segment counts must be equal
- a literal segment must equal the path segment exactly
- a ``:name`` segment matches any non-empty path segment

First-match is deliberate: static routes must be registered before any
parameterized route they could be confused with (``/poems/new`` before
``/poems/:id``). Registration reports routes that can never be reached
because an earlier route already covers them.

Duplicate parameter names are kept in order, so for
``/poems/:id/comments/:id`` the first ``id`` is the poem and the last is
the comment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, Tuple

from ._datastructures import MultiDict
from .faults import InvalidRoutePattern, ResponseNotSent
from .request import Request
from .response import Response, Sealed
from .status import StatusCode


logger = logging.getLogger("stanza.router")

Handler = Callable[[Request, Response], Awaitable[Any]]

SERVER_ERROR_MESSAGE = "Internal server error"


class Controller(Protocol):
    """Anything that registers its routes on a router at startup."""

    def register_routes(self, router: "Router") -> None:
        ...


def split_path(path: str) -> Tuple[str, ...]:
    """Split a path or pattern into segments; ``/`` has none."""
    stripped = path.strip("/")
    if not stripped:
        return ()
    return tuple(stripped.split("/"))


# ============================================================================
# Route Types
# ============================================================================

@dataclass(frozen=True)
class Segment:
    """One pattern segment: a literal, or a named parameter."""
    value: str
    is_param: bool = False

    def __str__(self) -> str:
        return f":{self.value}" if self.is_param else self.value


def compile_pattern(pattern: str) -> Tuple[Segment, ...]:
    """
    Parse a route pattern into segments.

    Raises:
        InvalidRoutePattern: For an empty segment or a ``:`` with no name
    """
    segments = []
    for part in split_path(pattern):
        if not part:
            raise InvalidRoutePattern(
                f"Empty segment in route pattern {pattern!r}",
                metadata={"pattern": pattern},
            )
        if part.startswith(":"):
            name = part[1:]
            if not name:
                raise InvalidRoutePattern(
                    f"Unnamed parameter in route pattern {pattern!r}",
                    metadata={"pattern": pattern},
                )
            segments.append(Segment(name, is_param=True))
        else:
            segments.append(Segment(part))
    return tuple(segments)


@dataclass(frozen=True)
class Route:
    """A route table entry."""
    method: str
    pattern: str
    segments: Tuple[Segment, ...]
    handler: Handler = field(compare=False)

    @property
    def arity(self) -> int:
        return len(self.segments)

    @property
    def is_static(self) -> bool:
        return not any(s.is_param for s in self.segments)

    @property
    def param_names(self) -> List[str]:
        return [s.value for s in self.segments if s.is_param]

    @property
    def handler_name(self) -> str:
        return getattr(self.handler, "__qualname__", repr(self.handler))

    def match(self, parts: Tuple[str, ...]) -> Optional[MultiDict]:
        """Bind ``parts`` against this pattern, or None if it does not fit."""
        if len(parts) != len(self.segments):
            return None

        params = MultiDict()
        for segment, part in zip(self.segments, parts):
            if segment.is_param:
                if not part:
                    return None
                params.add(segment.value, part)
            elif segment.value != part:
                return None
        return params

    def covers(self, other: "Route") -> bool:
        """
        True if every path ``other`` matches is also matched by this route.
        """
        if self.arity != other.arity:
            return False
        for mine, theirs in zip(self.segments, other.segments):
            if mine.is_param:
                continue
            if theirs.is_param or mine.value != theirs.value:
                return False
        return True


@dataclass
class RouteMatch:
    """Result of a successful match."""
    route: Route
    params: MultiDict


@dataclass(frozen=True)
class RouteWarning:
    """A route that an earlier registration makes unreachable."""
    method: str
    pattern: str
    shadowed_by: str

    def __str__(self) -> str:
        return (
            f"{self.method} {self.pattern} is unreachable: "
            f"{self.method} {self.shadowed_by} was registered first and matches the same paths"
        )


# ============================================================================
# Router
# ============================================================================

class Router:
    """
    Method-segregated, order-preserving route table.

    Args:
        strict: Raise ``InvalidRoutePattern`` instead of warning when a new
            route is shadowed by an earlier one

    Example:
        router = Router()
        router.get("/poems/new", new_poem_form)
        router.get("/poems/:id", show_poem)
        await router.dispatch(request, response)
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self.routes_by_method: Dict[str, List[Route]] = {}
        self.warnings: List[RouteWarning] = []

    # ========================================================================
    # Registration
    # ========================================================================

    def register_route(self, method: str, pattern: str, handler: Handler) -> Route:
        """
        Append a route to ``method``'s table.

        No de-duplication and no re-ordering; ordering is the caller's
        responsibility.
        """
        method = method.upper()
        route = Route(method, pattern, compile_pattern(pattern), handler)
        table = self.routes_by_method.setdefault(method, [])

        for earlier in table:
            if earlier.covers(route):
                warning = RouteWarning(method, pattern, earlier.pattern)
                if self.strict:
                    raise InvalidRoutePattern(str(warning), metadata={"pattern": pattern})
                self.warnings.append(warning)
                logger.warning("%s", warning)
                break

        table.append(route)
        logger.debug("Registered %s %s -> %s", method, pattern, route.handler_name)
        return route

    def get(self, pattern: str, handler: Handler) -> Route:
        return self.register_route("GET", pattern, handler)

    def post(self, pattern: str, handler: Handler) -> Route:
        return self.register_route("POST", pattern, handler)

    def put(self, pattern: str, handler: Handler) -> Route:
        return self.register_route("PUT", pattern, handler)

    def patch(self, pattern: str, handler: Handler) -> Route:
        return self.register_route("PATCH", pattern, handler)

    def delete(self, pattern: str, handler: Handler) -> Route:
        return self.register_route("DELETE", pattern, handler)

    def include(self, controller: Controller) -> None:
        """Let a controller register its route table."""
        controller.register_routes(self)

    def routes(self) -> List[Route]:
        """Snapshot of every route, grouped by method in registration order."""
        return [route for table in self.routes_by_method.values() for route in table]

    # ========================================================================
    # Matching
    # ========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the first route for ``method`` that matches ``path``.

        Returns:
            RouteMatch with parameters bound left to right, or None
        """
        table = self.routes_by_method.get(method.upper())
        if not table:
            return None

        parts = split_path(path)
        for route in table:
            params = route.match(parts)
            if params is not None:
                return RouteMatch(route=route, params=params)
        return None

    # ========================================================================
    # Dispatch
    # ========================================================================

    async def dispatch(self, request: Request, response: Response) -> Sealed:
        """
        Route ``request`` to its handler and make sure a response goes out.

        - No match: 404 ``Invalid route: <METHOD> <path>`` without payload.
        - Handler raises: logged; generic 500 if nothing was sent yet.
        - Handler returns without sending: logged as a defect; generic 500.
        """
        match = self.match(request.method, request.path)
        if match is None:
            logger.info("No route for %s %s", request.method, request.path)
            return await response.send(
                status_code=StatusCode.NotFound,
                message=f"Invalid route: {request.method} {request.path}",
            )

        route = match.route
        request.path_params = match.params
        request.state["route"] = route

        try:
            await route.handler(request, response)
        except Exception:
            logger.error(
                "Handler %s failed for %s %s",
                route.handler_name, request.method, request.path,
                exc_info=True,
            )
            if response.sent:
                return Sealed(status=response.status, envelope=response.envelope)
            return await self._send_server_error(response)

        if not response.sent:
            fault = ResponseNotSent(
                metadata={"handler": route.handler_name, "method": request.method, "path": request.path},
            )
            logger.error("%s: %s %s (%s)", fault, request.method, request.path, route.handler_name)
            return await self._send_server_error(response)

        return Sealed(status=response.status, envelope=response.envelope)

    @staticmethod
    async def _send_server_error(response: Response) -> Sealed:
        return await response.send(
            status_code=StatusCode.InternalServerError,
            message=SERVER_ERROR_MESSAGE,
        )

    def __len__(self) -> int:
        return sum(len(table) for table in self.routes_by_method.values())
