from __future__ import annotations

from approval_engine.domain.models import SchemaMap
from approval_engine.engine.abstract import SchemaDiscoverer, StaticSchemaDiscoverer
from approval_engine.engine.registry import SchemaRegistry
from approval_engine.service import ApprovalReviewService


class _CountingDiscoverer:
    def __init__(self) -> None:
        self.calls = 0

    def discover(self) -> SchemaMap:
        self.calls += 1
        return SchemaMap(object_name=f"Obj{self.calls}__c")


class _Clock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_map_is_computed_once_without_ttl() -> None:
    discoverer = _CountingDiscoverer()
    registry = SchemaRegistry(discoverer)

    assert registry.cached is None
    first = registry.get()
    assert registry.get() is first
    assert discoverer.calls == 1


def test_ttl_expiry_triggers_rediscovery() -> None:
    discoverer, clock = _CountingDiscoverer(), _Clock()
    registry = SchemaRegistry(discoverer, ttl_seconds=60, clock=clock)

    assert registry.get().object_name == "Obj1__c"
    clock.now += 59
    assert registry.get().object_name == "Obj1__c"
    clock.now += 1
    assert registry.get().object_name == "Obj2__c"


def test_invalidate_and_refresh() -> None:
    discoverer = _CountingDiscoverer()
    registry = SchemaRegistry(discoverer)

    registry.get()
    registry.invalidate()
    assert registry.cached is None
    assert registry.get().object_name == "Obj2__c"
    assert registry.refresh().object_name == "Obj3__c"
    assert registry.cached.object_name == "Obj3__c"


def test_unavailable_map_is_cached_too() -> None:
    class _Empty:
        calls = 0

        def discover(self) -> SchemaMap:
            self.calls += 1
            return SchemaMap()

    discoverer = _Empty()
    registry = SchemaRegistry(discoverer)

    assert not registry.get().available
    registry.get()
    assert discoverer.calls == 1


def test_static_discoverer_serves_a_preconfigured_map(flat_platform, flat_schema, test_settings) -> None:
    registry = SchemaRegistry(StaticSchemaDiscoverer(flat_schema))
    service = ApprovalReviewService(flat_platform, settings=test_settings, registry=registry)
    flat_platform.describe_calls.clear()

    assert service.list_records(limit=3).records
    assert flat_platform.describe_calls == []
    assert isinstance(registry.discoverer, SchemaDiscoverer)
