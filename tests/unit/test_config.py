"""
Unit tests for configuration and the CLI entry point.
"""

import pytest

from servecore.__main__ import load_config, main
from servecore.app import LogMailer, MemoryStore
from servecore.config import ServerConfig
from servecore.errors import ConfigError
from servecore.lifecycle import FunctionProvider


class TestServerConfig:
    """Tests for ServerConfig."""

    def test_defaults_are_valid(self):
        config = ServerConfig()
        config.validate()

        assert config.port == 8080
        assert config.request_timeout == 30.0

    @pytest.mark.parametrize("overrides", [
        {"port": -1},
        {"port": 65536},
        {"request_timeout": 0},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ])
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ConfigError):
            ServerConfig(**overrides).validate()

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SERVECORE_HOST", "0.0.0.0")
        monkeypatch.setenv("SERVECORE_PORT", "3000")
        monkeypatch.setenv("SERVECORE_TIMEOUT", "0")
        monkeypatch.setenv("SERVECORE_LOG_LEVEL", "DEBUG")

        config = ServerConfig.from_env()

        assert config.host == "0.0.0.0"
        assert config.port == 3000
        assert config.request_timeout is None
        assert config.log_level == "DEBUG"

    def test_from_env_bad_port(self, monkeypatch):
        monkeypatch.setenv("SERVECORE_PORT", "eighty")

        with pytest.raises(ConfigError) as exc_info:
            ServerConfig.from_env()

        assert str(exc_info.value).startswith("invalid environment configuration: ")


class TestCommandLine:
    """Tests for argument handling in __main__."""

    def test_args_override_env(self, monkeypatch):
        monkeypatch.setenv("SERVECORE_PORT", "3000")

        config = load_config(["--port", "4000", "--timeout", "2.5", "-l", "WARNING"])

        assert config.port == 4000
        assert config.request_timeout == 2.5
        assert config.log_level == "WARNING"

    def test_zero_timeout_disables_deadline(self, monkeypatch):
        monkeypatch.delenv("SERVECORE_TIMEOUT", raising=False)
        assert load_config(["--timeout", "0"]).request_timeout is None

    def test_invalid_config_exits_1(self, capsys):
        assert main(["--port", "99999"]) == 1
        assert "invalid port" in capsys.readouterr().err

    def test_failed_acquire_exits_1(self, monkeypatch, capsys):
        released = []

        def refuse():
            raise ConnectionRefusedError("refused")

        monkeypatch.setattr("servecore.__main__.demo_providers", lambda: (
            FunctionProvider("store", MemoryStore, lambda s: released.append("store")),
            FunctionProvider("mailer", refuse),
        ))

        assert main([]) == 1
        assert "acquire 'mailer': refused" in capsys.readouterr().err
        assert released == ["store"]

    def test_listen_failure_exits_1(self, monkeypatch, capsys):
        monkeypatch.delenv("SERVECORE_HOST", raising=False)
        monkeypatch.delenv("SERVECORE_PORT", raising=False)

        def cannot_bind(app, host, port):
            raise OSError("address in use")

        monkeypatch.setattr("servecore.__main__.make_wsgi_server", cannot_bind)

        assert main([]) == 1
        assert "servecore: listen on 127.0.0.1:8080: address in use" in capsys.readouterr().err

    def test_interrupt_exits_0_and_releases(self, monkeypatch):
        released = []

        class InterruptedServer:
            closed = False

            def serve_forever(self):
                raise KeyboardInterrupt

            def server_close(self):
                self.closed = True

        httpd = InterruptedServer()
        monkeypatch.setattr("servecore.__main__.make_wsgi_server", lambda app, host, port: httpd)
        monkeypatch.setattr("servecore.__main__.demo_providers", lambda: (
            FunctionProvider("store", MemoryStore, lambda s: released.append("store")),
            FunctionProvider("mailer", LogMailer, lambda m: released.append("mailer")),
        ))

        assert main([]) == 0
        assert httpd.closed
        assert released == ["mailer", "store"]
