"""
Pytest configuration for the approval review engine.

Provides fixtures for:
- Settings with test-specific overrides
- In-memory platforms seeded by the synthetic data generator
- Schema maps discovered against those platforms
"""

from __future__ import annotations

from typing import Any, Callable

import pytest

from approval_engine.config import Settings
from approval_engine.domain.models import SchemaMap
from approval_engine.engine.discovery import PlatformSchemaDiscoverer
from scripts.generate_data import build_describes, generate_dataset
from tests.fakes import FakePlatform


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Keeps engine limits at their production values; tests that need smaller
    limits use `model_copy(update=...)`.
    """
    return Settings(
        platform_instance_url="https://example.my.platform.test",
        platform_access_token="test-token",
        log_level="DEBUG",
        retry_attempts=1,
    )


@pytest.fixture
def make_platform() -> Callable[..., FakePlatform]:
    """
    Factory for seeded fake platforms.

    Keyword arguments other than the generator's (`rows`, `seed`, `nested`,
    `contributors`, ...) are passed to FakePlatform.
    """

    def _make(rows: int = 50, seed: int = 7, nested: bool = False, **kwargs: Any) -> FakePlatform:
        generator_keys = {"accounts", "projects_per_account", "objectives_per_project", "contributors"}
        generator_args = {k: kwargs.pop(k) for k in list(kwargs) if k in generator_keys}
        tables = generate_dataset(rows, seed=seed, nested=nested, **generator_args)
        return FakePlatform(build_describes(nested=nested), tables, **kwargs)

    return _make


@pytest.fixture
def flat_platform(make_platform) -> FakePlatform:
    return make_platform(rows=50)


@pytest.fixture
def nested_platform(make_platform) -> FakePlatform:
    return make_platform(rows=50, nested=True)


@pytest.fixture
def discover(test_settings: Settings) -> Callable[[FakePlatform], SchemaMap]:
    def _discover(platform: FakePlatform) -> SchemaMap:
        return PlatformSchemaDiscoverer(platform, settings=test_settings).discover()

    return _discover


@pytest.fixture
def flat_schema(flat_platform: FakePlatform, discover) -> SchemaMap:
    return discover(flat_platform)


@pytest.fixture
def nested_schema(nested_platform: FakePlatform, discover) -> SchemaMap:
    return discover(nested_platform)
