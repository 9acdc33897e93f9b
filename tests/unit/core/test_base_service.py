"""
Unit tests for core.base_service.

Tests:
- BaseServiceConfig defaults and validation
- run_forever() success, failure counting and the failure limit
- Shutdown and context manager behaviour
- Factory methods
"""

from pathlib import Path
from typing import ClassVar
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from envoi.core.base_service import BaseService, BaseServiceConfig
from envoi.core.brotr import Brotr
from envoi.models.constants import ServiceName


class _Config(BaseServiceConfig):
    label: str = "default"


class _Service(BaseService[_Config]):
    SERVICE_NAME: ClassVar[ServiceName] = ServiceName.API
    CONFIG_CLASS: ClassVar[type[_Config]] = _Config

    def __init__(self, brotr: Brotr, config: _Config | None = None, fail: int = 0) -> None:
        super().__init__(brotr, config)
        self.calls = 0
        self.fail = fail

    async def run(self) -> None:
        self.calls += 1
        if self.calls <= self.fail:
            raise ValueError("cycle failed")


class TestBaseServiceConfig:
    def test_defaults(self) -> None:
        config = BaseServiceConfig()
        assert config.interval == 60.0
        assert config.max_consecutive_failures == 5
        assert config.metrics.enabled is False

    def test_interval_minimum(self) -> None:
        with pytest.raises(ValidationError):
            BaseServiceConfig(interval=0.5)


class TestFactories:
    def test_from_dict(self, mock_brotr: Brotr) -> None:
        service = _Service.from_dict({"label": "x"}, brotr=mock_brotr, fail=2)
        assert service.config.label == "x"
        assert service.fail == 2

    def test_from_yaml(self, mock_brotr: Brotr, tmp_path: Path) -> None:
        path = tmp_path / "svc.yaml"
        path.write_text("label: y\ninterval: 5\n")
        service = _Service.from_yaml(str(path), brotr=mock_brotr)
        assert service.config.label == "y"
        assert service.config.interval == 5.0

    def test_default_config(self, mock_brotr: Brotr) -> None:
        assert _Service(mock_brotr).config.label == "default"


class TestRunForever:
    async def test_stops_on_shutdown(self, mock_brotr: Brotr) -> None:
        service = _Service(mock_brotr, _Config(interval=1.0))

        async def wait(_timeout: float) -> bool:
            service.request_shutdown()
            return True

        with patch.object(service, "wait", side_effect=wait):
            await service.run_forever()
        assert service.calls == 1
        assert not service.is_running

    async def test_failure_limit(self, mock_brotr: Brotr) -> None:
        service = _Service(mock_brotr, _Config(max_consecutive_failures=3), fail=10)
        with (
            patch.object(service, "wait", return_value=False),
            patch.object(service, "inc_counter") as counter,
        ):
            await service.run_forever()
        assert service.calls == 3
        counter.assert_any_call("cycles_failed")
        counter.assert_any_call("errors_ValueError")

    async def test_success_resets_failures(self, mock_brotr: Brotr) -> None:
        service = _Service(mock_brotr, _Config(max_consecutive_failures=2), fail=1)
        waits = iter([False, False, True])
        with (
            patch.object(service, "wait", side_effect=lambda _t: next(waits)),
            patch.object(service, "set_gauge") as gauge,
        ):
            await service.run_forever()
        assert service.calls == 3
        gauge.assert_any_call("consecutive_failures", 0)


class TestLifecycle:
    async def test_context_manager(self, mock_brotr: Brotr) -> None:
        service = _Service(mock_brotr)
        async with service:
            assert service.is_running
        assert not service.is_running

    async def test_wait_returns_on_shutdown(self, mock_brotr: Brotr) -> None:
        service = _Service(mock_brotr)
        service.request_shutdown()
        assert await service.wait(5.0) is True

    async def test_wait_times_out(self, mock_brotr: Brotr) -> None:
        assert await _Service(mock_brotr).wait(0.01) is False

    def test_metrics_disabled_noop(self, mock_brotr: Brotr) -> None:
        service = _Service(mock_brotr)
        service.inc_counter("x")
        service.set_gauge("y", 1.0)
