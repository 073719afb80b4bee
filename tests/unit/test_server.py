"""
Unit tests for the Server aggregate, the recovery boundary and the demo app.
"""

import json
from email.message import Message
from urllib.error import HTTPError

import pytest

from servecore.app import GreetHandler, LogMailer, MemoryStore, build_router, demo_providers
from servecore.config import ServerConfig
from servecore.errors import ConfigError, ErrorKind, RequestError, WriteError, wrap
from servecore.http.request import HTTPRequest
from servecore.interfaces import Mailer, Store
from servecore.http.router import Router
from servecore.lifecycle import acquire_all
from servecore.middleware import Recovery, function_middleware
from servecore.server import Server


def greet_request(name=None) -> HTTPRequest:
    form = {"name": name} if name is not None else {}
    return HTTPRequest.build("POST", "/greet", form=form)


class TestConstruction:
    """Tests for all-or-nothing construction."""

    def test_missing_store_rejected(self, mailer):
        with pytest.raises(ConfigError) as exc_info:
            Server(Router(), mailer=mailer)
        assert "store" in str(exc_info.value)

    def test_missing_everything_lists_all(self):
        with pytest.raises(ConfigError) as exc_info:
            Server(None)
        assert str(exc_info.value) == "server is missing dependencies: router, store, mailer"

    def test_invalid_config_rejected(self, store, mailer):
        with pytest.raises(ConfigError):
            Server(Router(), store=store, mailer=mailer, config=ServerConfig(port=70000))

    def test_router_frozen_after_construction(self, make_server):
        router = Router()
        server = make_server(router)

        assert server.router is router
        with pytest.raises(ConfigError):
            router.register("GET", "/late", lambda w, r: None)

    def test_dependencies_exposed(self, make_server, store, mailer):
        server = make_server(Router())
        assert server.store is store
        assert server.mailer is mailer


class TestRecovery:
    """Tests for the recovery boundary."""

    def test_unexpected_error_becomes_500(self, make_server, caplog):
        router = Router()

        @router.get("/boom")
        def boom(writer, request):
            writer.headers["X-Partial"] = "1"
            writer.write("partial output")
            raise RuntimeError("kaboom")

        response = make_server(router).serve(HTTPRequest.build("GET", "/boom"))

        assert response.status == 500
        assert json.loads(response.body) == {"error": "Internal Server Error"}
        assert "X-Partial" not in response.headers
        assert "kaboom" in caplog.text

    def test_request_error_uses_its_status(self, make_server):
        router = Router()

        @router.get("/users/:id")
        def get_user(writer, request):
            raise RequestError(f"no user {request.path_params['id']}", status=404)

        response = make_server(router).serve(HTTPRequest.build("GET", "/users/9"))

        assert response.status == 404
        assert json.loads(response.body) == {"error": "Not Found"}

    def test_wrapped_upstream_redirect_becomes_500(self, make_server):
        router = Router()

        @router.get("/proxy")
        def proxy(writer, request):
            upstream = HTTPError("http://upstream/", 302, "Found", Message(), None)
            raise wrap(upstream, "fetch upstream", ErrorKind.REQUEST) from upstream

        response = make_server(router).serve(HTTPRequest.build("GET", "/proxy"))

        assert response.status == 500
        assert json.loads(response.body) == {"error": "Internal Server Error"}

    @pytest.mark.parametrize("status", [200, 302, 99, 600])
    def test_non_error_status_becomes_500(self, make_server, status):
        router = Router()

        @router.get("/odd")
        def odd(writer, request):
            raise RequestError("odd status", status=status)

        response = make_server(router).serve(HTTPRequest.build("GET", "/odd"))

        assert response.status == 500

    def test_write_error_only_logged(self, writer, caplog):
        def fail(w, r):
            raise WriteError("client went away")

        Recovery().wrap(fail).handle(writer, HTTPRequest.build("GET", "/"))

        assert writer.status is None
        assert writer.body == b""
        assert "client went away" in caplog.text

    def test_committed_response_not_replaced(self, writer):
        def finish_then_fail(w, r):
            w.write("done")
            w.finish()
            raise RuntimeError("after commit")

        Recovery().wrap(finish_then_fail).handle(writer, HTTPRequest.build("GET", "/"))

        assert writer.body == b"done"

    def test_server_keeps_serving_after_failure(self, make_server):
        router = Router()
        router.register("GET", "/boom", lambda w, r: 1 / 0)
        router.register("GET", "/ok", lambda w, r: w.write("fine"))
        server = make_server(router)

        assert server.serve(HTTPRequest.build("GET", "/boom")).status == 500
        assert server.serve(HTTPRequest.build("GET", "/ok")).text == "fine"

    def test_routing_outcomes_pass_through(self, make_server):
        router = Router()
        router.register("GET", "/users", lambda w, r: w.write("users"))
        server = make_server(router)

        assert server.serve(HTTPRequest.build("GET", "/missing")).status == 404
        response = server.serve(HTTPRequest.build("POST", "/users"))
        assert response.status == 405
        assert response.headers["Allow"] == "GET"


class TestServerMiddleware:
    """Tests for server-wide middleware."""

    def test_extra_middleware_runs_inside_recovery(self, make_server):
        def deny(writer, request, next):
            raise RequestError("denied", status=403)

        router = Router()
        router.register("GET", "/", lambda w, r: w.write("hidden"))
        server = make_server(router, middleware=[function_middleware(deny)])

        assert server.serve(HTTPRequest.build("GET", "/")).status == 403

    def test_access_log_adds_request_id(self, store, mailer):
        router = Router()
        router.register("GET", "/", lambda w, r: w.write("ok"))
        config = ServerConfig(request_timeout=None, access_log=True)
        server = Server(router, store=store, mailer=mailer, config=config)

        response = server.serve(HTTPRequest.build("GET", "/"))
        assert "X-Request-ID" in response.headers

    def test_default_config_serves_through_timeout(self, store, mailer):
        router = Router()
        router.register("GET", "/", lambda w, r: w.write("ok"))
        server = Server(router, store=store, mailer=mailer)

        assert server.serve(HTTPRequest.build("GET", "/")).text == "ok"


class TestGreet:
    """End-to-end tests for the greeting service."""

    def test_greet_end_to_end(self, make_server, store, mailer):
        server = make_server(build_router(store, mailer))

        response = server.serve(greet_request("Bob"))

        assert response.status == 200
        assert response.text == "Hello, Bob!"
        assert mailer.sent == [("bob@example.com", "Greetings!", "Hello, Bob!")]

    def test_greet_name_from_query(self, make_server, store, mailer):
        server = make_server(build_router(store, mailer))

        response = server.serve(HTTPRequest.build("POST", "/greet?name=Alice"))

        assert response.text == "Hello, Alice!"
        assert mailer.sent[0][0] == "alice@example.com"

    def test_greet_missing_name_is_400(self, make_server, store, mailer):
        server = make_server(build_router(store, mailer))

        response = server.serve(greet_request())

        assert response.status == 400
        assert mailer.sent == []

    def test_greet_unknown_user_is_404(self, make_server, store, mailer):
        server = make_server(build_router(store, mailer))

        response = server.serve(greet_request("Mallory"))

        assert response.status == 404
        assert mailer.sent == []

    def test_greet_get_not_allowed(self, make_server, store, mailer):
        server = make_server(build_router(store, mailer))

        response = server.serve(HTTPRequest.build("GET", "/greet"))

        assert response.status == 405
        assert response.headers["Allow"] == "POST"

    def test_handler_shares_injected_dependencies(self, store, mailer, writer):
        handler = GreetHandler(store, mailer)
        handler.handle(writer, greet_request("Bob"))

        assert store.lookups == ["Bob"]
        assert len(mailer.sent) == 1


class TestHealth:
    """Tests for health endpoints."""

    def test_liveness(self, make_server, store, mailer):
        server = make_server(build_router(store, mailer))

        response = server.serve(HTTPRequest.build("GET", "/health/live"))

        assert response.status == 200
        assert response.headers["Cache-Control"] == "no-store"
        assert json.loads(response.body) == {"status": "alive"}

    def test_readiness_healthy(self, make_server, store, mailer):
        server = make_server(build_router(store, mailer))

        body = json.loads(server.serve(HTTPRequest.build("GET", "/health/ready")).body)

        assert body["status"] == "ready"
        assert body["checks"] == {
            "store": {"status": "healthy"},
            "mailer": {"status": "healthy"},
        }

    def test_readiness_unhealthy_is_503(self, make_server, store, mailer):
        server = make_server(build_router(store, mailer))
        mailer.healthy = False

        response = server.serve(HTTPRequest.build("GET", "/health/ready"))

        assert response.status == 503
        assert json.loads(response.body)["checks"]["mailer"] == {"status": "unhealthy"}


class TestDemoDependencies:
    """Tests for the in-memory store and mailer."""

    def test_demo_providers_acquire_and_release(self):
        with acquire_all(*demo_providers()) as (store, mailer):
            assert isinstance(store, MemoryStore)
            assert isinstance(mailer, LogMailer)
            assert store.lookup_email("Bob") == "bob@example.com"
            assert store.ping() and mailer.ping()
            assert isinstance(store, Store)
            assert isinstance(mailer, Mailer)

        assert not store.ping()
        assert not mailer.ping()

    def test_log_mailer_records(self):
        mailer = LogMailer()
        mailer.send("a@example.com", "Hi", "body")
        assert list(mailer.sent) == [("a@example.com", "Hi", "body")]

    def test_log_mailer_keeps_only_recent(self):
        mailer = LogMailer(keep=2)
        for n in range(5):
            mailer.send(f"user{n}@example.com", "Hi", "body")

        assert [to for to, _, _ in mailer.sent] == ["user3@example.com", "user4@example.com"]
