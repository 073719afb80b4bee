"""
Unit tests for the per-request deadline.
"""

import json
import threading

import pytest

from servecore.errors import ConfigError, RequestTimeout, WriteError
from servecore.config import ServerConfig
from servecore.http.request import HTTPRequest
from servecore.http.router import Router
from servecore.lifecycle import FunctionProvider, scoped
from servecore.middleware import Timeout
from servecore.server import Server


class TestTimeout:
    """Tests for the Timeout middleware."""

    def test_fast_handler_output_copied(self, writer):
        def fast(w, r):
            w.headers["X-Fast"] = "1"
            w.write_header(201)
            w.write("quick")

        Timeout(5).wrap(fast).handle(writer, HTTPRequest.build("GET", "/"))

        response = writer.finish()
        assert response.status == 201
        assert response.headers["X-Fast"] == "1"
        assert response.body == b"quick"

    def test_handler_error_reraised(self, writer):
        def fail(w, r):
            raise KeyError("missing")

        with pytest.raises(KeyError):
            Timeout(5).wrap(fail).handle(writer, HTTPRequest.build("GET", "/"))

    def test_deadline_raises_request_timeout(self, writer):
        release = threading.Event()

        def slow(w, r):
            release.wait(5)

        try:
            with pytest.raises(RequestTimeout) as exc_info:
                Timeout(0.05).wrap(slow).handle(writer, HTTPRequest.build("GET", "/slow"))
        finally:
            release.set()

        assert exc_info.value.status == 504
        assert writer.body == b""

    def test_late_write_fails_and_releases_resource(self, writer):
        entered = threading.Event()
        release = threading.Event()
        finished = threading.Event()
        released = []
        late_errors = []

        def slow(w, r):
            with scoped(FunctionProvider("conn", lambda: "conn", released.append)):
                entered.set()
                release.wait(5)
                try:
                    w.write("too late")
                except WriteError as e:
                    late_errors.append(e)
            finished.set()

        with pytest.raises(RequestTimeout):
            Timeout(0.05).wrap(slow).handle(writer, HTTPRequest.build("GET", "/slow"))

        assert entered.wait(5)
        release.set()
        assert finished.wait(5)
        assert released == ["conn"]
        assert len(late_errors) == 1
        assert writer.body == b""

    @pytest.mark.parametrize("seconds", [0, -1, None])
    def test_invalid_deadline_rejected(self, seconds):
        with pytest.raises(ConfigError):
            Timeout(seconds)


class TestServerTimeout:
    """Tests for deadlines through the Server."""

    def test_server_answers_504(self, store, mailer):
        release = threading.Event()
        router = Router()
        router.register("GET", "/slow", lambda w, r: release.wait(5))
        config = ServerConfig(request_timeout=0.05, access_log=False)
        server = Server(router, store=store, mailer=mailer, config=config)

        try:
            response = server.serve(HTTPRequest.build("GET", "/slow"))
        finally:
            release.set()

        assert response.status == 504
        assert json.loads(response.body) == {"error": "Gateway Timeout"}
