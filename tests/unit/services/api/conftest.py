"""Shared fixtures for the services.api test package."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from envoi.core.brotr import Brotr
from envoi.services.api.service import Api, ApiConfig
from envoi.utils.algod import ChainConfig


@pytest.fixture
def api_config(chain_config: ChainConfig) -> ApiConfig:
    """Minimal API config for testing."""
    return ApiConfig(
        interval=60.0,
        host="127.0.0.1",
        port=9999,
        max_batch_size=3,
        chain=chain_config,
    )


@pytest.fixture
def api_service(mock_brotr: Brotr, api_config: ApiConfig, memory_store, fake_lookup, clock) -> Api:
    """Api service over the in-memory store and fake chain."""
    return Api(
        brotr=mock_brotr, config=api_config, lookup=fake_lookup, store=memory_store, clock=clock
    )


@pytest.fixture
def test_client(api_service: Api) -> TestClient:
    """FastAPI TestClient from the Api service."""
    return TestClient(api_service._build_app())
