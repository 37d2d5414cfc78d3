"""
Tests for Response: write-once send, output selection, cookies.
"""

import pytest

from stanza.cookies import Cookie
from stanza.faults import ResponseAlreadySent, TemplateRenderError
from stanza.response import Envelope, Response, Sealed
from stanza.status import StatusCode

from tests.conftest import SendCollector, make_request


class StubRenderer:
    """Records render calls and returns a fixed document."""

    def __init__(self, html="<p>ok</p>"):
        self.html = html
        self.calls = []

    async def render(self, view_id, context):
        self.calls.append((view_id, dict(context)))
        return self.html


class FailingRenderer:
    async def render(self, view_id, context):
        raise TemplateRenderError(f"Template not found: {view_id}")


# ============================================================================
# Envelope
# ============================================================================

class TestEnvelope:

    def test_minimal_wire_shape(self):
        env = Envelope(StatusCode.NotFound, "Invalid route: GET /x")
        assert env.to_dict() == {"statusCode": 404, "message": "Invalid route: GET /x"}

    def test_full_wire_shape(self):
        env = Envelope(StatusCode.Created, "Poem created", payload={"id": 1}, redirect="/poems/1", template="PoemView")
        assert env.to_dict() == {
            "statusCode": 201,
            "message": "Poem created",
            "payload": {"id": 1},
            "redirect": "/poems/1",
        }

    def test_int_coerced(self):
        assert Envelope(200, "ok").status_code is StatusCode.OK

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            Envelope(418, "teapot")

    def test_falsy_payload_kept(self):
        assert Envelope(StatusCode.OK, "empty", payload=[]).to_dict()["payload"] == []


# ============================================================================
# Write-once send
# ============================================================================

class TestSendOnce:

    @pytest.mark.asyncio
    async def test_send_returns_sealed(self, collector):
        response = Response(collector)
        sealed = await response.send(status_code=StatusCode.OK, message="Hello")

        assert isinstance(sealed, Sealed)
        assert sealed.status == 200
        assert response.sent
        assert collector.status == 200
        assert collector.json() == {"statusCode": 200, "message": "Hello"}
        assert [m["type"] for m in collector.messages] == ["http.response.start", "http.response.body"]

    @pytest.mark.asyncio
    async def test_send_accepts_envelope(self, collector):
        response = Response(collector)
        await response.send(Envelope(StatusCode.Created, "Created", payload={"id": 4}))
        assert collector.json()["payload"] == {"id": 4}

    @pytest.mark.asyncio
    async def test_envelope_and_fields_rejected(self, collector):
        response = Response(collector)
        with pytest.raises(TypeError):
            await response.send(Envelope(StatusCode.OK, "x"), message="y")
        assert not response.sent

    @pytest.mark.asyncio
    async def test_second_send_raises(self, collector):
        response = Response(collector)
        await response.send(status_code=StatusCode.OK, message="first")

        with pytest.raises(ResponseAlreadySent):
            await response.send(status_code=StatusCode.OK, message="second")

        assert len(collector.messages) == 2
        assert collector.json()["message"] == "first"

    @pytest.mark.asyncio
    async def test_set_cookie_after_send_raises(self, collector):
        response = Response(collector)
        await response.send(status_code=StatusCode.OK, message="done")
        with pytest.raises(ResponseAlreadySent):
            response.set_cookie(Cookie("late", "1"))

    @pytest.mark.asyncio
    async def test_transport_failure_consumes_exchange(self):
        async def broken_send(message):
            raise ConnectionResetError()

        response = Response(broken_send)
        with pytest.raises(ConnectionResetError):
            await response.send(status_code=StatusCode.OK, message="x")
        assert response.sent

    @pytest.mark.asyncio
    async def test_render_failure_allows_retry(self, store, collector):
        request = await make_request(store, "GET", "/poems")
        response = Response(collector, request, renderer=FailingRenderer())

        with pytest.raises(TemplateRenderError):
            await response.send(status_code=StatusCode.OK, message="x", template="Missing")
        assert not response.sent
        assert collector.messages == []

        await response.send(status_code=StatusCode.InternalServerError, message="Internal server error")
        assert collector.status == 500


# ============================================================================
# Output selection
# ============================================================================

class TestOutputSelection:

    @pytest.mark.asyncio
    async def test_redirect_wins_over_template(self, store, collector):
        request = await make_request(store, "POST", "/poems")
        renderer = StubRenderer()
        response = Response(collector, request, renderer=renderer)

        await response.send(status_code=StatusCode.Created, message="Poem created",
                            redirect="/poems/1", template="PoemView")

        assert collector.status == 303
        assert collector.header("location") == "/poems/1"
        assert collector.body == b""
        assert renderer.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [StatusCode.MovedPermanently, StatusCode.Found, StatusCode.SeeOther])
    async def test_explicit_redirect_status_kept(self, store, collector, status):
        request = await make_request(store)
        await Response(collector, request).send(status_code=status, message="moved", redirect="/new")
        assert collector.status == int(status)

    @pytest.mark.asyncio
    async def test_redirect_location_encoded(self, store, collector):
        request = await make_request(store)
        await Response(collector, request).send(status_code=StatusCode.OK, message="x", redirect="/poems?q=ode à")
        assert collector.header("location") == "/poems?q=ode%20%C3%A0"

    @pytest.mark.asyncio
    async def test_template_rendered_with_payload(self, store, collector):
        request = await make_request(store, "GET", "/poems")
        renderer = StubRenderer("<ul></ul>")
        response = Response(collector, request, renderer=renderer)

        await response.send(status_code=StatusCode.OK, message="Poems retrieved",
                            payload={"poems": []}, template="ListView")

        assert collector.status == 200
        assert collector.header("content-type").startswith("text/html")
        assert collector.body == b"<ul></ul>"
        view_id, context = renderer.calls[0]
        assert view_id == "ListView"
        assert context == {"poems": [], "message": "Poems retrieved", "statusCode": 200}

    @pytest.mark.asyncio
    async def test_template_without_renderer(self, store, collector):
        request = await make_request(store)
        with pytest.raises(TemplateRenderError):
            await Response(collector, request).send(status_code=StatusCode.OK, message="x", template="ListView")

    @pytest.mark.asyncio
    async def test_plain_envelope_is_json(self, store, collector):
        request = await make_request(store)
        await Response(collector, request).send(status_code=StatusCode.BadRequest, message="Invalid ID")
        assert collector.status == 400
        assert collector.header("content-type").startswith("application/json")
        assert collector.json() == {"statusCode": 400, "message": "Invalid ID"}

    @pytest.mark.asyncio
    async def test_json_client_gets_envelope_despite_redirect(self, store, collector, json_headers):
        request = await make_request(store, "POST", "/login", headers=json_headers)
        renderer = StubRenderer()
        await Response(collector, request, renderer=renderer).send(
            status_code=StatusCode.OK, message="Logged in", redirect="/", template="LoginView",
        )
        assert collector.status == 200
        assert collector.header("location") is None
        assert collector.json() == {"statusCode": 200, "message": "Logged in", "redirect": "/"}
        assert renderer.calls == []

    @pytest.mark.asyncio
    async def test_payload_serializes_dates_and_sets(self, collector):
        from datetime import date

        await Response(collector).send(status_code=StatusCode.OK, message="x",
                                       payload={"on": date(2024, 1, 2), "tags": {"a"}})
        assert collector.json()["payload"] == {"on": "2024-01-02", "tags": ["a"]}

    @pytest.mark.asyncio
    async def test_content_length(self, collector):
        await Response(collector).send(status_code=StatusCode.OK, message="x")
        assert collector.header("content-length") == str(len(collector.body))


# ============================================================================
# Cookies
# ============================================================================

class TestCookies:

    @pytest.mark.asyncio
    async def test_cookies_in_order(self, collector):
        response = Response(collector)
        response.set_cookie(Cookie("a", "1"))
        response.set_cookie(Cookie("b", "2"))
        response.set_cookie(Cookie("c", "3"))
        await response.send(status_code=StatusCode.OK, message="x")

        assert [h.split("=", 1)[0] for h in collector.headers("set-cookie")] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_later_cookie_overrides_in_place(self, collector):
        response = Response(collector)
        response.set_cookie(Cookie("a", "1"))
        response.set_cookie(Cookie("b", "2"))
        response.set_cookie(Cookie("a", "3"))
        await response.send(status_code=StatusCode.OK, message="x")

        assert collector.headers("set-cookie") == [
            "a=3; Path=/; HttpOnly",
            "b=2; Path=/; HttpOnly",
        ]

    @pytest.mark.asyncio
    async def test_new_session_gets_cookie(self, store, collector):
        request = await make_request(store)
        await Response(collector, request).send(status_code=StatusCode.OK, message="x")
        assert collector.headers("set-cookie") == [f"session_id={request.session.id}; Path=/; HttpOnly"]

    @pytest.mark.asyncio
    async def test_session_max_age(self, store, collector):
        request = await make_request(store)
        await Response(collector, request, session_max_age=600).send(status_code=StatusCode.OK, message="x")
        assert "Max-Age=600" in collector.header("set-cookie")

    @pytest.mark.asyncio
    async def test_existing_session_no_cookie(self, store, collector):
        session = store.create()
        request = await make_request(store, headers=[("cookie", f"session_id={session.id}")])
        await Response(collector, request).send(status_code=StatusCode.OK, message="x")
        assert collector.headers("set-cookie") == []

    @pytest.mark.asyncio
    async def test_destroyed_session_expires_cookie(self, store, collector):
        session = store.create()
        request = await make_request(store, headers=[("cookie", f"session_id={session.id}")])
        request.session.destroy()
        await Response(collector, request).send(status_code=StatusCode.OK, message="Logged out", redirect="/")
        assert collector.headers("set-cookie") == ["session_id=; Path=/; Max-Age=0; HttpOnly"]

    @pytest.mark.asyncio
    async def test_handler_session_cookie_wins(self, store, collector):
        request = await make_request(store)
        response = Response(collector, request)
        response.set_cookie(Cookie("session_id", "custom", max_age=60))
        await response.send(status_code=StatusCode.OK, message="x")
        assert collector.headers("set-cookie") == ["session_id=custom; Path=/; Max-Age=60; HttpOnly"]

    @pytest.mark.asyncio
    async def test_delete_cookie(self, collector):
        response = Response(collector)
        response.delete_cookie("theme")
        await response.send(status_code=StatusCode.OK, message="x")
        assert collector.header("set-cookie") == "theme=; Path=/; Max-Age=0; HttpOnly"

    @pytest.mark.asyncio
    async def test_extra_header(self, collector):
        response = Response(collector)
        response.set_header("X-Frame-Options", "DENY")
        await response.send(status_code=StatusCode.OK, message="x")
        assert collector.header("x-frame-options") == "DENY"

    def test_header_line_break_rejected(self):
        response = Response(SendCollector())
        with pytest.raises(ValueError):
            response.set_header("X-Bad", "a\r\nb")
