"""Unit tests for core.metrics."""

from unittest.mock import AsyncMock, MagicMock, patch

from envoi.core.metrics import MetricsConfig, MetricsServer


class TestMetricsConfig:
    def test_disabled_by_default(self) -> None:
        config = MetricsConfig()
        assert config.enabled is False
        assert config.path == "/metrics"


class TestMetricsServer:
    async def test_disabled_is_noop(self) -> None:
        server = MetricsServer(MetricsConfig(enabled=False))
        await server.start()
        assert not server.is_running
        await server.stop()

    async def test_start_and_stop(self) -> None:
        server = MetricsServer(MetricsConfig(enabled=True, port=9100))
        runner = MagicMock(setup=AsyncMock(), cleanup=AsyncMock())
        site = MagicMock(start=AsyncMock())
        with (
            patch("envoi.core.metrics.web.AppRunner", return_value=runner),
            patch("envoi.core.metrics.web.TCPSite", return_value=site) as tcp_site,
        ):
            await server.start()
            assert server.is_running
            assert tcp_site.call_args.args[1:] == ("127.0.0.1", 9100)
            await server.stop()
        runner.cleanup.assert_awaited_once()
        assert not server.is_running

    async def test_handler_serves_exposition(self) -> None:
        response = await MetricsServer._handle_metrics(MagicMock())
        assert response.headers["Content-Type"].startswith("text/plain")
        assert isinstance(response.body, bytes)
