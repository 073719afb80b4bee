"""
Unit tests for error chains.
"""

import pytest

from servecore.errors import (
    ChainError,
    ConfigError,
    ErrorKind,
    RequestError,
    RequestTimeout,
    SetupError,
    WriteError,
    chain,
    is_kind,
    kind_of,
    render,
    root_cause,
    root_kind,
    wrap,
)


class TestWrap:
    """Tests for wrapping errors with context."""

    def test_double_wrap_keeps_root_and_kind(self):
        root = SetupError("connection refused")
        outer = wrap(wrap(root, "ctx1"), "ctx2")

        assert root_cause(outer) is root
        assert kind_of(outer) is ErrorKind.SETUP
        assert root_kind(outer) is ErrorKind.SETUP
        assert render(outer) == "ctx2: ctx1: connection refused"

    def test_wrap_foreign_exception(self):
        root = OSError("connection refused")
        err = wrap(root, "acquire 'store'", ErrorKind.SETUP)

        assert isinstance(err, SetupError)
        assert err.cause is root
        assert err.__cause__ is root
        assert render(err) == "acquire 'store': connection refused"

    def test_wrap_foreign_exception_defaults_to_internal(self):
        err = wrap(ValueError("bad"), "parse")
        assert kind_of(err) is ErrorKind.INTERNAL
        assert type(err) is ChainError

    def test_wrap_with_explicit_kind_changes_node_kind(self):
        root = WriteError("broken pipe")
        err = wrap(root, "flush", ErrorKind.INTERNAL)

        assert kind_of(err) is ErrorKind.INTERNAL
        assert root_kind(err) is ErrorKind.WRITE
        assert is_kind(err, ErrorKind.WRITE)

    def test_wrap_request_error_keeps_status(self):
        root = RequestError("no such user", status=404)
        err = wrap(root, "greet")

        assert isinstance(err, RequestError)
        assert err.status == 404

    def test_wrap_foreign_status_not_inherited(self):
        class UpstreamError(Exception):
            status = 302

        err = wrap(UpstreamError("moved"), "fetch upstream", ErrorKind.REQUEST)

        assert isinstance(err, RequestError)
        assert err.status == 500

    def test_wrap_timeout_keeps_504(self):
        err = wrap(RequestTimeout(), "GET /slow")
        assert err.status == 504


class TestChain:
    """Tests for chain traversal and rendering."""

    def test_chain_order_is_outermost_first(self):
        root = ValueError("root")
        middle = wrap(root, "middle")
        outer = wrap(middle, "outer")

        assert list(chain(outer)) == [outer, middle, root]

    def test_implicit_context_not_followed(self):
        try:
            try:
                raise KeyError("inner")
            except KeyError:
                raise ConfigError("outer")
        except ConfigError as e:
            err = e

        assert list(chain(err)) == [err]
        assert render(err) == "outer"

    def test_render_single_node(self):
        assert render(ConfigError("invalid port")) == "invalid port"

    def test_render_foreign_exception_without_message(self):
        assert render(wrap(KeyError(), "lookup")) == "lookup: KeyError"

    def test_str_is_rendered_chain(self):
        err = wrap(OSError("refused"), "acquire 'db'", ErrorKind.SETUP)
        assert str(err) == "acquire 'db': refused"

    def test_cycle_does_not_loop(self):
        a = ChainError("a")
        b = ChainError("b", a)
        a.__cause__ = b

        assert render(b) == "b: a"


class TestKinds:
    """Tests for error kinds."""

    @pytest.mark.parametrize("err, kind", [
        (ConfigError("x"), ErrorKind.CONFIG),
        (SetupError("x"), ErrorKind.SETUP),
        (RequestError("x"), ErrorKind.REQUEST),
        (RequestTimeout(), ErrorKind.REQUEST),
        (WriteError("x"), ErrorKind.WRITE),
        (RuntimeError("x"), ErrorKind.INTERNAL),
    ])
    def test_kind_of(self, err, kind):
        assert kind_of(err) is kind

    def test_request_error_default_status(self):
        assert RequestError("x").status == 500
